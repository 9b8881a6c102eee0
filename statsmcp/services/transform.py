"""
Transform Stage

Optional reshaping of uniform rows. When several steps are requested they run
in a fixed order: filter, sort, time-series reshape, pivot reshape.
"""

from __future__ import annotations

import functools
from numbers import Number
from typing import Any, Dict, List, Optional, Sequence

from ..models import PivotSpec, SortSpec, TimeSeriesSpec, TransformSpec
from .normalizer import Row


def filter_rows(rows: Sequence[Row], predicates: Dict[str, Any]) -> List[Row]:
    """Keep rows whose fields equal every predicate value (a missing column never matches)."""
    return [
        row for row in rows
        if all(key in row and row[key] == expected for key, expected in predicates.items())
    ]


def _is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _compare(a: Any, b: Any) -> int:
    if _is_number(a) and _is_number(b):
        return (a > b) - (a < b)
    a_text, b_text = str(a), str(b)
    return (a_text > b_text) - (a_text < b_text)


def sort_rows(rows: Sequence[Row], keys: Sequence[SortSpec]) -> List[Row]:
    """Stable multi-key sort; numbers compare numerically, anything else as text."""

    def compare_rows(left: Row, right: Row) -> int:
        for key in keys:
            result = _compare(left.get(key.column), right.get(key.column))
            if result:
                return -result if key.order == "desc" else result
        return 0

    return sorted(rows, key=functools.cmp_to_key(compare_rows))


def to_time_series(rows: Sequence[Row], spec: TimeSeriesSpec) -> List[Row]:
    """Project to ``date``/``value`` (and ``group``), passing other columns through."""
    consumed = {spec.dateColumn, spec.valueColumn}
    if spec.groupColumn:
        consumed.add(spec.groupColumn)

    result: List[Row] = []
    for row in rows:
        item: Row = {"date": row.get(spec.dateColumn), "value": row.get(spec.valueColumn)}
        if spec.groupColumn:
            item["group"] = row.get(spec.groupColumn)
        item.update({key: value for key, value in row.items() if key not in consumed})
        result.append(item)
    return result


def to_pivot(rows: Sequence[Row], spec: PivotSpec) -> List[Row]:
    """Index values become rows, ``columnsColumn`` values become columns.

    Keys are compared by their string form. When several rows share an
    ``(index, column)`` pair the first one wins; absent pairs are ``None``.
    """
    indices: Dict[str, None] = {}
    columns: Dict[str, None] = {}
    cells: Dict[tuple, Any] = {}

    for row in rows:
        index = str(row.get(spec.indexColumn))
        column = str(row.get(spec.columnsColumn))
        indices.setdefault(index, None)
        columns.setdefault(column, None)
        cells.setdefault((index, column), row.get(spec.valuesColumn))

    pivot: List[Row] = []
    for index in indices:
        item: Row = {spec.indexColumn: index}
        for column in columns:
            item[column] = cells.get((index, column))
        pivot.append(item)
    return pivot


def apply_transform(rows: Sequence[Row], spec: Optional[TransformSpec]) -> List[Row]:
    result = list(rows)
    if spec is None:
        return result

    if spec.filter:
        result = filter_rows(result, spec.filter)
    if spec.sort:
        result = sort_rows(result, spec.sort)
    if spec.asTimeSeries:
        result = to_time_series(result, spec.asTimeSeries)
    if spec.asPivot:
        result = to_pivot(result, spec.asPivot)
    return result
