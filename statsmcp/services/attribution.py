"""Source attribution printed under charts and returned with chart results."""

from __future__ import annotations

from typing import Optional, Union

from ..models import AttributionInfo, DataSource


def get_attribution(
    data_source: Union[DataSource, str],
    indicator_code: Optional[str] = None,
    stats_data_id: Optional[str] = None,
    dataset_id: Optional[str] = None,
) -> AttributionInfo:
    source = data_source.value if isinstance(data_source, DataSource) else str(data_source)

    if source == DataSource.WORLDBANK.value:
        return AttributionInfo(
            sourceName="World Bank",
            sourceUrl="https://data.worldbank.org",
            license="CC BY 4.0",
            additionalInfo=f"Indicator: {indicator_code}" if indicator_code else None,
        )
    if source == DataSource.ESTAT.value:
        return AttributionInfo(
            sourceName="e-Stat (Portal Site of Official Statistics of Japan)",
            sourceUrl="https://www.e-stat.go.jp",
            license="Government of Japan Standard Terms of Use 2.0",
            additionalInfo=f"Table ID: {stats_data_id}" if stats_data_id else None,
        )
    if source == DataSource.OECD.value:
        return AttributionInfo(
            sourceName="OECD",
            sourceUrl="https://data.oecd.org",
            license="OECD Terms and Conditions",
            additionalInfo=f"Dataset: {dataset_id}" if dataset_id else "OECD Data",
        )
    if source == DataSource.EUROSTAT.value:
        return AttributionInfo(
            sourceName="Eurostat",
            sourceUrl="https://ec.europa.eu/eurostat",
            license="EU open data licence",
            additionalInfo=f"Dataset: {dataset_id}" if dataset_id else None,
        )
    return AttributionInfo(sourceName="Unknown Source", sourceUrl="", license="Unknown License")


def format_attribution(attribution: AttributionInfo) -> str:
    """One-line attribution, e.g. ``Source: World Bank | Indicator: X | License: ... | URL: ...``."""
    parts = [f"Source: {attribution.sourceName}"]
    if attribution.additionalInfo:
        parts.append(attribution.additionalInfo)
    parts.append(f"License: {attribution.license}")
    parts.append(f"URL: {attribution.sourceUrl}")
    return " | ".join(parts)
