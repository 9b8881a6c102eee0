"""
Statistics Engine

Descriptive statistics over one numeric column of uniform rows, optionally
grouped by another column. Variance and standard deviation are population
statistics (divide by N). Quartiles use the median-of-halves method: q1 and
q3 are the medians of the values below and above the midpoint, and the
midpoint itself is excluded when N is odd.

``count`` and ``sum`` are always reported. Over zero values every requested
statistic (and the sum) is ``NaN`` and ``count`` is 0.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..models import StatisticKind
from ..utils.values import parse_stat_value
from .normalizer import Row

Kinds = Sequence[Union[StatisticKind, str]]

NAN = float("nan")


def numeric_values(values: Iterable[Any]) -> List[float]:
    """Coerce cells to numbers, dropping nulls, sentinels and unparseable text."""
    numbers = (parse_stat_value(value).number for value in values)
    return [float(number) for number in numbers if number is not None]


def _kind_names(kinds: Kinds) -> List[str]:
    names: List[str] = []
    for kind in kinds:
        name = kind.value if isinstance(kind, StatisticKind) else StatisticKind(kind).value
        if name not in names:
            names.append(name)
    return names


def _median_of_sorted(values: np.ndarray) -> float:
    n = len(values)
    if n == 0:
        return NAN
    mid = n // 2
    if n % 2 == 0:
        return float((values[mid - 1] + values[mid]) / 2)
    return float(values[mid])


def calculate_mean(values: Sequence[float]) -> float:
    return float(np.mean(values)) if len(values) else NAN


def calculate_median(values: Sequence[float]) -> float:
    return _median_of_sorted(np.sort(np.asarray(values, dtype=float)))


def calculate_mode(values: Sequence[float]) -> float:
    """Most frequent value; ties go to the smallest value."""
    if not len(values):
        return NAN
    modes = pd.Series(values, dtype=float).mode()
    return float(modes.iloc[0])


def calculate_variance(values: Sequence[float]) -> float:
    return float(np.var(values)) if len(values) else NAN


def calculate_std(values: Sequence[float]) -> float:
    return float(np.std(values)) if len(values) else NAN


def calculate_quartiles(values: Sequence[float]) -> Dict[str, float]:
    ordered = np.sort(np.asarray(values, dtype=float))
    n = len(ordered)
    if n == 0:
        return {"q1": NAN, "q2": NAN, "q3": NAN}
    if n == 1:
        # Both halves are empty; the single value is every quartile
        only = float(ordered[0])
        return {"q1": only, "q2": only, "q3": only}

    mid = n // 2
    lower = ordered[:mid]
    upper = ordered[mid if n % 2 == 0 else mid + 1:]
    return {
        "q1": _median_of_sorted(lower),
        "q2": _median_of_sorted(ordered),
        "q3": _median_of_sorted(upper),
    }


def calculate_statistics(values: Sequence[float], kinds: Kinds) -> Dict[str, Any]:
    """Compute ``kinds`` over ``values``; keys follow request order after ``count``."""
    names = _kind_names(kinds)
    result: Dict[str, Any] = {"count": len(values)}

    if not len(values):
        for name in names:
            result[name] = NAN
        result["sum"] = NAN
        return result

    quartiles = None
    if {"q1", "q3", "iqr"} & set(names):
        quartiles = calculate_quartiles(values)

    for name in names:
        if name == "mean":
            result[name] = calculate_mean(values)
        elif name == "median":
            result[name] = calculate_median(values)
        elif name == "mode":
            result[name] = calculate_mode(values)
        elif name == "std":
            result[name] = calculate_std(values)
        elif name == "variance":
            result[name] = calculate_variance(values)
        elif name == "min":
            result[name] = float(min(values))
        elif name == "max":
            result[name] = float(max(values))
        elif name == "range":
            result[name] = float(max(values) - min(values))
        elif name == "q1":
            result[name] = quartiles["q1"]
        elif name == "q3":
            result[name] = quartiles["q3"]
        elif name == "iqr":
            result[name] = quartiles["q3"] - quartiles["q1"]

    result["sum"] = float(math.fsum(values))
    return result


def _group_key(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def calculate_grouped_statistics(
    rows: Sequence[Row],
    group_column: str,
    value_column: str,
    kinds: Kinds,
) -> List[Dict[str, Any]]:
    """One record per group (first-seen order): the group key plus its statistics.

    Rows whose value is not numeric are dropped; a group left with no
    numeric values does not appear.
    """
    if not rows:
        return []

    frame = pd.DataFrame({
        "group": [_group_key(row.get(group_column)) for row in rows],
        "value": [parse_stat_value(row.get(value_column)).number for row in rows],
    })
    frame["value"] = pd.to_numeric(frame["value"], errors="coerce")
    frame = frame.dropna(subset=["value"])

    results: List[Dict[str, Any]] = []
    for key, group in frame.groupby("group", sort=False):
        stats = calculate_statistics(group["value"].astype(float).tolist(), kinds)
        results.append({group_column: key, **stats})
    return results


def summarize_rows(
    rows: Sequence[Row],
    kinds: Kinds,
    value_column: str = "value",
    group_by: Optional[str] = None,
) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
    """Statistics over ``value_column`` of uniform rows, grouped when ``group_by`` is set."""
    if group_by:
        return calculate_grouped_statistics(rows, group_by, value_column, kinds)
    return calculate_statistics(numeric_values(row.get(value_column) for row in rows), kinds)
