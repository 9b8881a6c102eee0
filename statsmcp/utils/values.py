"""Tagged numeric values for upstream observations.

Upstream tables mix real numbers with suppression markers in the same field.
Values are parsed once, at the adapter boundary, into a :class:`StatValue`
that is either missing or carries a number; nothing downstream compares raw
strings against the marker list again.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

Number = Union[int, float]

# "-" no data, "..." not yet published, "X" suppressed for confidentiality
MISSING_SENTINELS = frozenset({"-", "...", "X", ""})


@dataclass(frozen=True)
class StatValue:
    """Either ``Missing`` (``number is None``) or ``Value(number)``."""

    number: Optional[Number] = None
    raw: Optional[str] = None

    @classmethod
    def missing(cls, raw: Optional[str] = None) -> "StatValue":
        return cls(None, raw)

    @classmethod
    def of(cls, number: Number, raw: Optional[str] = None) -> "StatValue":
        return cls(number, raw)

    @property
    def is_missing(self) -> bool:
        return self.number is None


def parse_stat_value(raw: Any) -> StatValue:
    """Parse an upstream cell into a :class:`StatValue`.

    Thousands separators are stripped. Integral strings parse to ``int``,
    decimal strings to ``float``. Suppression markers, blanks, ``None``,
    unparseable text and non-finite numbers are all missing.
    """
    if raw is None or isinstance(raw, bool):
        return StatValue.missing()

    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and not math.isfinite(raw):
            return StatValue.missing()
        return StatValue.of(raw)

    text = str(raw).strip()
    if text in MISSING_SENTINELS:
        return StatValue.missing(text)

    cleaned = text.replace(",", "")
    try:
        return StatValue.of(int(cleaned), text)
    except ValueError:
        pass

    try:
        number = float(cleaned)
    except ValueError:
        return StatValue.missing(text)

    if not math.isfinite(number):
        return StatValue.missing(text)
    return StatValue.of(number, text)


def present_numbers(values: Iterable[StatValue]) -> list[Number]:
    """Return the numbers of all non-missing values, in order."""
    return [value.number for value in values if value.number is not None]
