"""
Pydantic models for tool arguments, tool results and decoded upstream data.

Tool argument models carry the documented constraints (ranges, non-empty
identifiers, language codes) so a request is rejected before it reaches a
provider. Upstream models are the typed intermediate results produced by the
providers and consumed by the row normalizer.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .utils.values import StatValue

MIN_YEAR = 1960
MAX_YEAR = 2100
EUROSTAT_LANGUAGES = ("EN", "DE", "FR", "IT", "ES", "PL", "PT")


class DataSource(str, Enum):
    """Upstream statistics provider"""
    ESTAT = "estat"            # e-Stat, Japanese government statistics portal
    WORLDBANK = "worldbank"    # World Bank indicators API
    OECD = "oecd"              # OECD SDMX REST API
    EUROSTAT = "eurostat"      # Eurostat JSON-stat API


class ExportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    JSON_STRUCTURED = "json-structured"


class ChartType(str, Enum):
    LINE = "line"
    BAR = "bar"
    PIE = "pie"


class StatisticKind(str, Enum):
    MEAN = "mean"
    MEDIAN = "median"
    MODE = "mode"
    STD = "std"
    VARIANCE = "variance"
    MIN = "min"
    MAX = "max"
    RANGE = "range"
    Q1 = "q1"
    Q3 = "q3"
    IQR = "iqr"


# ============================================================================
# Shared field validators
# ============================================================================

def _require_text(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{name} is required and must be a non-empty string")
    return str(value).strip()


def _check_country_code(value: str) -> str:
    value = _require_text(value, "countryCode")
    for code in value.split(";"):
        if not 1 <= len(code.strip()) <= 3:
            raise ValueError(
                "countryCode must be 1-3 characters (e.g., JP, USA) "
                "or a semicolon-separated list of such codes"
            )
    return value


def _check_year(value: Optional[int], name: str) -> Optional[int]:
    if value is not None and not MIN_YEAR <= value <= MAX_YEAR:
        raise ValueError(f"{name} must be between {MIN_YEAR} and {MAX_YEAR}")
    return value


def _check_lang(value: Optional[str]) -> str:
    if value is None:
        return "EN"
    upper = str(value).strip().upper()
    if upper not in EUROSTAT_LANGUAGES:
        raise ValueError(f"lang must be one of: {', '.join(EUROSTAT_LANGUAGES)}")
    return upper


# ============================================================================
# Source tool arguments
# ============================================================================

class SearchStatisticsRequest(BaseModel):
    searchWord: Optional[str] = Field(default=None, description="Keyword to search table titles for")
    limit: int = Field(default=10, ge=1, le=1000, description="Maximum number of tables to return")


class GetStatisticsDataRequest(BaseModel):
    statsDataId: str = Field(..., description="e-Stat statistical table id (e.g., 0003410379)")
    limit: int = Field(default=100, ge=1, le=10000, description="Maximum number of observations")

    @field_validator("statsDataId")
    @classmethod
    def validate_stats_data_id(cls, v):
        return _require_text(v, "statsDataId")


class GetIndicatorDataRequest(BaseModel):
    countryCode: str = Field(..., description="ISO country code (e.g., JP, USA) or 'JP;US'")
    indicatorCode: str = Field(..., description="World Bank indicator code (e.g., NY.GDP.MKTP.CD)")
    startYear: Optional[int] = Field(default=None, description="First year (1960-2100)")
    endYear: Optional[int] = Field(default=None, description="Last year (1960-2100)")

    @field_validator("countryCode")
    @classmethod
    def validate_country_code(cls, v):
        return _check_country_code(v)

    @field_validator("indicatorCode")
    @classmethod
    def validate_indicator_code(cls, v):
        return _require_text(v, "indicatorCode")

    @field_validator("startYear")
    @classmethod
    def validate_start_year(cls, v):
        return _check_year(v, "startYear")

    @field_validator("endYear")
    @classmethod
    def validate_end_year(cls, v):
        return _check_year(v, "endYear")

    @model_validator(mode="after")
    def validate_year_order(self):
        if self.startYear is not None and self.endYear is not None and self.startYear > self.endYear:
            raise ValueError("startYear must be less than or equal to endYear")
        return self


class SearchIndicatorsRequest(BaseModel):
    search: Optional[str] = Field(default=None, description="Case-insensitive match on indicator name or id")


class GetSdmxDataRequest(BaseModel):
    datasetId: str = Field(..., description="OECD dataflow id (e.g., OECD.SDD.NAD,DSD_NAMAIN1@DF_QNA,1.0)")
    filter: Optional[str] = Field(default=None, description="SDMX key expression (default: all)")
    startPeriod: Optional[str] = Field(default=None, description="First period (e.g., 2020-Q1)")
    endPeriod: Optional[str] = Field(default=None, description="Last period (e.g., 2024-Q4)")

    @field_validator("datasetId")
    @classmethod
    def validate_dataset_id(cls, v):
        return _require_text(v, "datasetId")


class GetJsonStatDataRequest(BaseModel):
    datasetCode: str = Field(..., description="Eurostat dataset code (e.g., nama_10_gdp)")
    filters: Dict[str, str] = Field(default_factory=dict, description='Dimension filters, e.g. {"geo": "DE"}')
    lang: str = Field(default="EN", description="Label language: EN, DE, FR, IT, ES, PL or PT")

    @field_validator("datasetCode")
    @classmethod
    def validate_dataset_code(cls, v):
        return _require_text(v, "datasetCode")

    @field_validator("lang", mode="before")
    @classmethod
    def validate_lang(cls, v):
        return _check_lang(v)


# ============================================================================
# Derived tool arguments (export / statistics / chart)
# ============================================================================

class DataParams(BaseModel):
    """Union of every source's fetch parameters.

    Which fields are required depends on the data source and is checked by
    the data service, so errors can name the exact ``dataParams`` field.
    """

    # e-Stat
    statsDataId: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1, le=10000)
    # World Bank
    countryCode: Optional[str] = None
    indicatorCode: Optional[str] = None
    startYear: Optional[int] = None
    endYear: Optional[int] = None
    # OECD
    datasetId: Optional[str] = None
    filter: Optional[str] = None
    startPeriod: Optional[str] = None
    endPeriod: Optional[str] = None
    # Eurostat
    datasetCode: Optional[str] = None
    filters: Dict[str, str] = Field(default_factory=dict)
    lang: Optional[str] = None

    @field_validator("countryCode")
    @classmethod
    def validate_country_code(cls, v):
        return None if v is None else _check_country_code(v)

    @field_validator("startYear")
    @classmethod
    def validate_start_year(cls, v):
        return _check_year(v, "startYear")

    @field_validator("endYear")
    @classmethod
    def validate_end_year(cls, v):
        return _check_year(v, "endYear")

    @field_validator("lang", mode="before")
    @classmethod
    def validate_lang(cls, v):
        return None if v is None else _check_lang(v)

    @model_validator(mode="after")
    def validate_year_order(self):
        if self.startYear is not None and self.endYear is not None and self.startYear > self.endYear:
            raise ValueError("startYear must be less than or equal to endYear")
        return self


class SortSpec(BaseModel):
    column: str
    order: str = Field(default="asc", pattern="^(asc|desc)$")


class TimeSeriesSpec(BaseModel):
    dateColumn: str
    valueColumn: str
    groupColumn: Optional[str] = None


class PivotSpec(BaseModel):
    indexColumn: str
    columnsColumn: str
    valuesColumn: str


class TransformSpec(BaseModel):
    """Optional reshaping, applied as filter, sort, time series, pivot."""

    filter: Optional[Dict[str, Any]] = Field(default=None, description="Exact-match predicates, AND-ed")
    sort: Optional[List[SortSpec]] = Field(default=None, description="Sort keys, most significant first")
    asTimeSeries: Optional[TimeSeriesSpec] = None
    asPivot: Optional[PivotSpec] = None


class ExportDataRequest(BaseModel):
    dataSource: DataSource
    dataParams: DataParams = Field(default_factory=DataParams)
    format: ExportFormat = ExportFormat.CSV
    transform: Optional[TransformSpec] = None


class CalculateStatisticsRequest(BaseModel):
    dataSource: DataSource
    dataParams: DataParams = Field(default_factory=DataParams)
    statistics: List[StatisticKind] = Field(..., min_length=1)
    groupBy: Optional[str] = Field(default=None, description="Column to group rows by")
    valueColumn: str = Field(default="value", description="Numeric column to summarize")


class GenerateChartRequest(BaseModel):
    chartType: ChartType
    dataSource: DataSource
    dataParams: DataParams = Field(default_factory=DataParams)
    title: Optional[str] = None
    xLabel: Optional[str] = None
    yLabel: Optional[str] = None
    width: int = Field(default=800, ge=100, le=4000)
    height: int = Field(default=400, ge=100, le=4000)
    labelColumn: Optional[str] = Field(default=None, description="Column used for x-axis labels")
    seriesColumn: Optional[str] = Field(default=None, description="Column that splits rows into series")
    valueColumn: Optional[str] = Field(default=None, description="Numeric column to plot")


# ============================================================================
# Tool results
# ============================================================================

class ExportMetadata(BaseModel):
    source: str
    columns: List[str]
    rowCount: int


class ExportDataResponse(BaseModel):
    format: str
    data: Any
    metadata: ExportMetadata


class AttributionInfo(BaseModel):
    sourceName: str
    sourceUrl: str
    license: str
    additionalInfo: Optional[str] = None


class ChartResponse(BaseModel):
    chartType: str
    svg: str
    dataUri: str
    seriesCount: int
    attribution: Optional[AttributionInfo] = None


class SourceInfo(BaseModel):
    id: str
    name: str
    baseUrl: str
    enabled: bool
    description: str
    license: str


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    server: str
    version: str
    sources: List[str]


# ============================================================================
# Decoded upstream data
# ============================================================================

class StatsTable(BaseModel):
    """e-Stat table descriptor from getStatsList."""
    id: str
    title: str = ""
    statName: Optional[str] = None
    govOrg: Optional[str] = None
    statisticsName: Optional[str] = None
    surveyDate: Optional[str] = None
    openDate: Optional[str] = None
    overallTotalNumber: Optional[int] = None


class ClassObject(BaseModel):
    """One e-Stat classification (``CLASS_OBJ``) with its code-to-label map."""
    id: str
    name: str = ""
    codes: Dict[str, str] = Field(default_factory=dict)

    def label(self, code: Optional[str]) -> Optional[str]:
        if code is None:
            return None
        return self.codes.get(code, code)


class StatsRecord(BaseModel):
    """One sparse e-Stat observation."""
    tab: Optional[str] = None
    cat01: Optional[str] = None
    cat02: Optional[str] = None
    cat03: Optional[str] = None
    cat04: Optional[str] = None
    area: Optional[str] = None
    time: Optional[str] = None
    unit: Optional[str] = None
    value: StatValue = Field(default_factory=StatValue.missing)

    CATEGORY_FIELDS: ClassVar[Tuple[str, ...]] = ("cat01", "cat02", "cat03", "cat04")


class StatsData(BaseModel):
    """Decoded e-Stat getStatsData result."""
    table: Optional[StatsTable] = None
    classes: List[ClassObject] = Field(default_factory=list)
    records: List[StatsRecord] = Field(default_factory=list)
    totalNumber: Optional[int] = None

    def class_object(self, class_id: str) -> Optional[ClassObject]:
        for obj in self.classes:
            if obj.id == class_id:
                return obj
        return None

    def label(self, class_id: str, code: Optional[str]) -> Optional[str]:
        """Display label for ``code``; the raw code when no mapping exists."""
        obj = self.class_object(class_id)
        if obj is None:
            return code
        return obj.label(code)

    def to_payload(self) -> Dict[str, Any]:
        """Tool-result representation; missing values become ``None`` plus their marker."""
        return {
            "table": self.table.model_dump() if self.table else None,
            "classes": [obj.model_dump() for obj in self.classes],
            "values": [
                {
                    **record.model_dump(exclude={"value"}, exclude_none=True),
                    "value": record.value.number,
                    "rawValue": record.value.raw,
                }
                for record in self.records
            ],
            "totalNumber": self.totalNumber,
        }


class IndicatorPoint(BaseModel):
    """One World Bank observation."""
    countryCode: str = ""
    countryName: str = ""
    date: str = ""
    value: Optional[float] = None
    indicatorId: str = ""
    indicatorName: str = ""


class Indicator(BaseModel):
    """World Bank indicator catalogue entry."""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    sourceNote: str = ""
    sourceOrganization: str = ""
