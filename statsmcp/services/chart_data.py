"""Conversion of uniform rows into chart series and pie points."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ..exceptions import ValidationError
from ..models import DataSource, StatsRecord
from ..utils.values import parse_stat_value
from .charts import ChartDataPoint, ChartSeries
from .normalizer import Row, columns_of

DEFAULT_SERIES_NAME = "Data"

# (label column, series column) used when the caller names none
DEFAULT_CHART_COLUMNS: Dict[str, Tuple[str, Optional[str]]] = {
    DataSource.WORLDBANK.value: ("year", "country_name"),
    DataSource.ESTAT.value: ("time", None),
    DataSource.EUROSTAT.value: ("time", "geo_label"),
    DataSource.OECD.value: ("TIME_PERIOD", "REF_AREA_label"),
}


@dataclass(frozen=True)
class ChartColumns:
    label: str
    value: str
    series: Optional[str] = None


# e-Stat label columns to fall back on, most chart-friendly first
ESTAT_LABEL_FALLBACK: Tuple[str, ...] = ("area",) + StatsRecord.CATEGORY_FIELDS + ("tab",)


def _fallback_label(source_id: str, columns: Sequence[str], value: str) -> str:
    """Label column when the default is absent: a readable label column beats a code or index."""
    candidates = [column for column in columns if column != value]
    labelled = [column for column in candidates if column.endswith("_label")]
    if source_id == DataSource.ESTAT.value:
        labelled += [column for column in ESTAT_LABEL_FALLBACK if column in candidates]
    if labelled:
        return labelled[0]
    readable = [column for column in candidates if column != "index" and not column.endswith("_code")]
    return (readable or candidates or [value])[0]

def resolve_chart_columns(
    source: Union[DataSource, str],
    rows: Sequence[Row],
    label_column: Optional[str] = None,
    value_column: Optional[str] = None,
    series_column: Optional[str] = None,
) -> ChartColumns:
    """Pick label/value/series columns, validating explicit choices against the rows."""
    source_id = source.value if isinstance(source, DataSource) else str(source)
    columns = columns_of(rows)
    if not columns:
        return ChartColumns(label=label_column or "label", value=value_column or "value", series=series_column)

    for name, field in ((label_column, "labelColumn"), (value_column, "valueColumn"), (series_column, "seriesColumn")):
        if name is not None and name not in columns:
            raise ValidationError(
                f"Column '{name}' not found. Available columns: {', '.join(columns)}",
                field=field,
            )

    value = value_column or "value"
    if value not in columns:
        raise ValidationError(f"Result has no '{value}' column", field="valueColumn")

    default_label, default_series = DEFAULT_CHART_COLUMNS.get(source_id, ("index", None))
    label = label_column or default_label
    if label not in columns:
        label = _fallback_label(source_id, columns, value)

    series = series_column
    if series is None:
        if source_id == DataSource.ESTAT.value:
            # First category classification the table actually uses
            series = next((cat for cat in StatsRecord.CATEGORY_FIELDS if cat in columns and cat != label), None)
        elif default_series in columns:
            series = default_series
    if series == label:
        series = None

    return ChartColumns(label=label, value=value, series=series)


def rows_to_series(
    rows: Sequence[Row],
    label_column: str,
    value_column: str,
    series_column: Optional[str] = None,
) -> Tuple[List[ChartSeries], List[ChartDataPoint]]:
    """Group rows into series.

    Rows without a numeric value or a label are omitted. Rows sharing a
    series and label are summed. Pie points take the latest label of each
    series, or the per-label totals when there is a single series.
    """
    totals: Dict[str, Dict[str, float]] = {}
    for row in rows:
        number = parse_stat_value(row.get(value_column)).number
        label = row.get(label_column)
        if number is None or label is None:
            continue
        name = DEFAULT_SERIES_NAME
        if series_column:
            key = row.get(series_column)
            name = DEFAULT_SERIES_NAME if key is None else str(key)
        bucket = totals.setdefault(name, {})
        bucket[str(label)] = bucket.get(str(label), 0) + number

    series = [
        ChartSeries(
            name=name,
            data=[ChartDataPoint(label=label, value=value) for label, value in sorted(points.items())],
        )
        for name, points in totals.items()
    ]

    if len(series) == 1:
        pie_points = [ChartDataPoint(label=point.label, value=point.value) for point in series[0].data]
    else:
        pie_points = [
            ChartDataPoint(label=s.name, value=s.data[-1].value)
            for s in series
            if s.data
        ]
    return series, pie_points
