"""
Row Normalizer

Turns each source's decoded result into uniform rows: flat ``str -> scalar``
mappings that all share one column set. Transform, statistics, export and
chart stages only ever see uniform rows.

Source payloads handled here:

- e-Stat ``StatsData``: one row per observation, category codes resolved to
  labels through the class maps
- World Bank ``IndicatorPoint`` lists: one row per non-null observation
- Eurostat JSON-stat (2.0 top-level or 1.0 ``dataset``-wrapped): one row per
  non-missing cell
- OECD SDMX-JSON (``AllDimensions`` or series-keyed): one row per observation
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from ..exceptions import ResponseFormatError
from ..models import DataSource, IndicatorPoint, StatsData, StatsRecord
from ..utils.values import parse_stat_value

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

# Observation dimensions of an e-Stat record, in output column order
ESTAT_DIMENSIONS: Tuple[str, ...] = ("tab",) + StatsRecord.CATEGORY_FIELDS + ("area", "time")


# ============================================================================
# Uniform column set
# ============================================================================

def ensure_uniform_columns(rows: Iterable[Row]) -> List[Row]:
    """Give every row the union of all keys (first-seen order), absent keys as ``None``."""
    rows = list(rows)
    columns: Dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)

    return [{column: row.get(column) for column in columns} for row in rows]


def columns_of(rows: Sequence[Row]) -> List[str]:
    return list(rows[0].keys()) if rows else []


# ============================================================================
# e-Stat
# ============================================================================

def estat_rows(data: StatsData) -> List[Row]:
    """One row per observation.

    Each dimension used by the table yields a label column and a ``_code``
    column. Codes without a mapping keep the raw code as their label, and
    suppressed values become ``None``.
    """
    used = [
        dim for dim in ESTAT_DIMENSIONS
        if any(getattr(record, dim) is not None for record in data.records)
    ]
    has_unit = any(record.unit is not None for record in data.records)

    rows: List[Row] = []
    for index, record in enumerate(data.records):
        row: Row = {"index": index}
        for dim in used:
            code = getattr(record, dim)
            row[dim] = data.label(dim, code)
            row[f"{dim}_code"] = code
        if has_unit:
            row["unit"] = record.unit
        row["value"] = record.value.number
        rows.append(row)
    return rows


def generic_rows(raw: Any) -> List[Row]:
    """Rows from a loosely shaped result: lists are indexed, a lone object is one row."""
    if isinstance(raw, list):
        return [
            {"index": index, **item} if isinstance(item, dict) else {"index": index, "value": item}
            for index, item in enumerate(raw)
        ]
    if isinstance(raw, dict):
        return [dict(raw)]
    return []


@dataclass
class CategorySummary:
    """Total and per-category sums of an e-Stat table, suppressed values excluded."""

    total: float = 0
    observations: int = 0
    missing: int = 0
    class_names: Dict[str, str] = field(default_factory=dict)
    breakdowns: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def top(self, class_id: str, n: Optional[int] = None) -> List[Tuple[str, float, float]]:
        """``(label, sum, share-of-total %)`` sorted by sum, largest first."""
        items = sorted(self.breakdowns.get(class_id, {}).items(), key=lambda item: item[1], reverse=True)
        if n is not None:
            items = items[:n]
        return [
            (label, value, (value / self.total * 100) if self.total else 0.0)
            for label, value in items
        ]


def summarize_by_category(data: StatsData) -> CategorySummary:
    summary = CategorySummary(class_names={obj.id: obj.name for obj in data.classes})
    dims = StatsRecord.CATEGORY_FIELDS + ("area",)

    for record in data.records:
        summary.observations += 1
        number = record.value.number
        if number is None:
            summary.missing += 1
            continue

        summary.total += number
        for dim in dims:
            code = getattr(record, dim)
            if code is None:
                continue
            label = data.label(dim, code)
            bucket = summary.breakdowns.setdefault(dim, {})
            bucket[label] = bucket.get(label, 0) + number

    return summary


# ============================================================================
# World Bank
# ============================================================================

def worldbank_rows(points: Iterable[Union[IndicatorPoint, Dict[str, Any]]]) -> List[Row]:
    """Observations with a value, in the analysis column layout."""
    rows: List[Row] = []
    for point in points:
        if isinstance(point, dict):
            point = IndicatorPoint.model_validate(point)
        if point.value is None:
            continue
        rows.append({
            "country_code": point.countryCode,
            "country_name": point.countryName or point.countryCode,
            "year": point.date,
            "value": point.value,
            "indicator_id": point.indicatorId,
            "indicator_name": point.indicatorName,
        })
    return rows


# ============================================================================
# JSON-stat
# ============================================================================

def _jsonstat_categories(dim_id: str, node: Dict[str, Any]) -> List[Tuple[str, str]]:
    """Ordered ``(code, label)`` pairs of one JSON-stat dimension."""
    category = node.get("category") or {}
    labels = category.get("label") or {}
    index = category.get("index")

    if isinstance(index, list):
        codes = [str(code) for code in index]
    elif isinstance(index, dict):
        codes = [str(code) for code, _ in sorted(index.items(), key=lambda item: item[1])]
    else:
        # A single-category dimension may omit the index
        codes = [str(code) for code in labels]

    if not codes:
        raise ResponseFormatError("Eurostat", f"JSON-stat dimension '{dim_id}' has no categories")
    return [(code, str(labels.get(code, code))) for code in codes]


def jsonstat_rows(document: Dict[str, Any]) -> List[Row]:
    dataset = document.get("dataset") if isinstance(document.get("dataset"), dict) else document
    dimension = dataset.get("dimension") or {}
    ids = dataset.get("id") or dimension.get("id") or []
    sizes = dataset.get("size") or dimension.get("size") or []

    if len(ids) != len(sizes):
        raise ResponseFormatError(
            "Eurostat",
            f"JSON-stat id/size mismatch ({len(ids)} dimensions, {len(sizes)} sizes)",
        )

    categories = []
    for dim_id, size in zip(ids, sizes):
        node = dimension.get(dim_id)
        if not isinstance(node, dict):
            raise ResponseFormatError("Eurostat", f"JSON-stat dimension '{dim_id}' is missing")
        pairs = _jsonstat_categories(dim_id, node)
        if len(pairs) != size:
            raise ResponseFormatError(
                "Eurostat",
                f"JSON-stat dimension '{dim_id}' lists {len(pairs)} categories, size says {size}",
            )
        categories.append(pairs)

    values = dataset.get("value")
    if isinstance(values, list):
        cells = list(enumerate(values))
    elif isinstance(values, dict):
        try:
            cells = sorted((int(key), value) for key, value in values.items())
        except (TypeError, ValueError) as exc:
            raise ResponseFormatError("Eurostat", f"JSON-stat value index is not numeric: {exc}") from exc
    else:
        cells = []

    cell_count = math.prod(sizes)
    rows: List[Row] = []
    for flat_index, raw in cells:
        number = parse_stat_value(raw).number
        if number is None:
            continue
        if not 0 <= flat_index < cell_count:
            raise ResponseFormatError(
                "Eurostat", f"JSON-stat value index {flat_index} is outside {cell_count} cells"
            )

        # Row-major: the last dimension varies fastest
        coords = []
        remainder = flat_index
        for size in reversed(sizes):
            coords.append(remainder % size)
            remainder //= size
        coords.reverse()

        row: Row = {}
        for dim_id, pairs, position in zip(ids, categories, coords):
            code, label = pairs[position]
            row[dim_id] = code
            row[f"{dim_id}_label"] = label
        row["value"] = number
        rows.append(row)
    return rows


# ============================================================================
# SDMX-JSON
# ============================================================================

def _sdmx_name(node: Dict[str, Any]) -> str:
    name = node.get("name")
    if isinstance(name, str) and name:
        return name
    names = node.get("names")
    if isinstance(names, dict) and names:
        return str(names.get("en") or next(iter(names.values())))
    return str(node.get("id", ""))


def _sdmx_decode_key(key: str, dimensions: List[Dict[str, Any]]) -> Row:
    parts = [part for part in str(key).split(":") if part != ""]
    if len(parts) != len(dimensions):
        raise ResponseFormatError(
            "OECD", f"SDMX key '{key}' does not match {len(dimensions)} dimensions"
        )

    row: Row = {}
    for part, dim in zip(parts, dimensions):
        values = dim.get("values") or []
        try:
            position = int(part)
        except (TypeError, ValueError) as exc:
            raise ResponseFormatError("OECD", f"SDMX key '{key}' is not numeric") from exc
        if not 0 <= position < len(values):
            raise ResponseFormatError("OECD", f"SDMX key '{key}' is out of range for '{dim.get('id')}'")
        value = values[position]
        row[str(dim.get("id"))] = str(value.get("id"))
        row[f"{dim.get('id')}_label"] = _sdmx_name(value)
    return row


def _sdmx_observation_value(observation: Any) -> Any:
    if isinstance(observation, list):
        raw = observation[0] if observation else None
    else:
        raw = observation
    return parse_stat_value(raw).number


def sdmx_rows(document: Dict[str, Any]) -> List[Row]:
    # SDMX-JSON 2.0 nests the message under "data" and uses "structures"
    root = document.get("data") if isinstance(document.get("data"), dict) else document
    structure = root.get("structure")
    if not isinstance(structure, dict):
        structures = root.get("structures") or document.get("structures") or []
        structure = structures[0] if structures else {}
    if not structure and isinstance(document.get("structure"), dict):
        structure = document["structure"]

    dimensions = structure.get("dimensions") or {}
    series_dims = dimensions.get("series") or []
    obs_dims = dimensions.get("observation") or []

    rows: List[Row] = []
    for dataset in root.get("dataSets") or []:
        if "observations" in dataset:
            for key, observation in (dataset.get("observations") or {}).items():
                row = _sdmx_decode_key(key, obs_dims)
                row["value"] = _sdmx_observation_value(observation)
                rows.append(row)
        for series_key, series in (dataset.get("series") or {}).items():
            prefix = _sdmx_decode_key(series_key, series_dims)
            for obs_key, observation in (series.get("observations") or {}).items():
                row = dict(prefix)
                row.update(_sdmx_decode_key(obs_key, obs_dims))
                row["value"] = _sdmx_observation_value(observation)
                rows.append(row)
    return rows


# ============================================================================
# Dispatch
# ============================================================================

def normalize(source: Union[DataSource, str], raw: Any) -> List[Row]:
    """Convert a source's decoded result into uniform rows."""
    source_id = source.value if isinstance(source, DataSource) else str(source)

    if source_id == DataSource.WORLDBANK.value:
        rows = worldbank_rows(raw or [])
    elif source_id == DataSource.ESTAT.value:
        rows = estat_rows(raw) if isinstance(raw, StatsData) else generic_rows(raw)
    elif source_id == DataSource.EUROSTAT.value:
        rows = jsonstat_rows(raw) if isinstance(raw, dict) else generic_rows(raw)
    elif source_id == DataSource.OECD.value:
        rows = sdmx_rows(raw) if isinstance(raw, dict) else generic_rows(raw)
    else:
        raise ValueError(f"Unsupported data source: {source_id}")

    rows = ensure_uniform_columns(rows)
    logger.debug(f"Normalized {source_id} result into {len(rows)} rows")
    return rows
