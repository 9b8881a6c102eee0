"""
Statistics tool service

Implements every tool operation on top of the providers:

- source tools return decoded upstream results (search-statistics,
  get-statistics-data, get-indicator-data, search-indicators, get-sdmx-data,
  get-jsonstat-data)
- derived tools fetch from one source, normalize to uniform rows and then
  export, summarize or chart them (export-data, calculate-statistics,
  generate-chart)

The service owns the rate limiter registry; each provider receives the
limiter of its own source at construction.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from ..config import Settings, get_settings
from ..exceptions import ConfigurationError, ValidationError
from ..models import (
    ChartResponse,
    DataParams,
    DataSource,
    ExportDataRequest,
    ExportDataResponse,
    CalculateStatisticsRequest,
    GenerateChartRequest,
    GetIndicatorDataRequest,
    GetJsonStatDataRequest,
    GetSdmxDataRequest,
    GetStatisticsDataRequest,
    SearchIndicatorsRequest,
    SearchStatisticsRequest,
    SourceInfo,
)
from ..providers import EStatProvider, EurostatProvider, OECDProvider, WorldBankProvider
from ..providers.base import BaseProvider
from ..utils.logging_security import SecureLogger, log_tool_request, log_tool_response
from ..utils.retry import RetryConfig
from .attribution import get_attribution
from .chart_data import resolve_chart_columns, rows_to_series
from .charts import ChartConfig, ChartGenerator, svg_data_uri
from .export import export_service
from .normalizer import Row, normalize
from .rate_limiter import RateLimiterRegistry
from .statistics import summarize_rows
from .transform import apply_transform

logger = logging.getLogger(__name__)

T = TypeVar("T")

# e-Stat row limits when the caller gives none
ESTAT_ANALYSIS_LIMIT = 10000
ESTAT_CHART_LIMIT = 100

SOURCE_CATALOGUE: Dict[str, Dict[str, str]] = {
    DataSource.ESTAT.value: {
        "name": "e-Stat",
        "description": "Portal Site of Official Statistics of Japan (population, housing, labour, prices)",
        "license": "Government of Japan Standard Terms of Use 2.0",
    },
    DataSource.WORLDBANK.value: {
        "name": "World Bank",
        "description": "World Development Indicators for countries and regional aggregates",
        "license": "CC BY 4.0",
    },
    DataSource.OECD.value: {
        "name": "OECD",
        "description": "OECD Data Explorer SDMX REST API",
        "license": "OECD Terms and Conditions",
    },
    DataSource.EUROSTAT.value: {
        "name": "Eurostat",
        "description": "Eurostat dissemination API (JSON-stat)",
        "license": "EU open data licence",
    },
}

# dataParams fields each source needs to fetch rows
REQUIRED_DATA_PARAMS: Dict[str, tuple] = {
    DataSource.ESTAT.value: ("statsDataId",),
    DataSource.WORLDBANK.value: ("countryCode", "indicatorCode"),
    DataSource.OECD.value: ("datasetId",),
    DataSource.EUROSTAT.value: ("datasetCode",),
}


class StatisticsToolService:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[RateLimiterRegistry] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.registry = registry or RateLimiterRegistry()
        timeout = self.settings.request_timeout
        s = self.settings

        self.estat: Optional[EStatProvider] = None
        if s.estat_enabled and s.estat_app_id:
            self.estat = EStatProvider(
                s.estat_app_id,
                self.registry.get_limiter(DataSource.ESTAT.value),
                base_url=s.estat_base_url,
                retry_config=retry_config,
                timeout=timeout,
            )

        self.worldbank: Optional[WorldBankProvider] = None
        if s.worldbank_enabled:
            self.worldbank = WorldBankProvider(
                self.registry.get_limiter(DataSource.WORLDBANK.value),
                base_url=s.worldbank_base_url,
                retry_config=retry_config,
                timeout=timeout,
            )

        self.oecd: Optional[OECDProvider] = None
        if s.oecd_enabled:
            self.oecd = OECDProvider(
                self.registry.get_limiter(DataSource.OECD.value),
                base_url=s.oecd_base_url,
                retry_config=retry_config,
                timeout=timeout,
            )

        self.eurostat: Optional[EurostatProvider] = None
        if s.eurostat_enabled:
            self.eurostat = EurostatProvider(
                self.registry.get_limiter(DataSource.EUROSTAT.value),
                base_url=s.eurostat_base_url,
                retry_config=retry_config,
                timeout=timeout,
            )

        logger.info(f"Statistics tools ready for sources: {', '.join(self.enabled_sources()) or 'none'}")

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _providers(self) -> Dict[str, Optional[BaseProvider]]:
        return {
            DataSource.ESTAT.value: self.estat,
            DataSource.WORLDBANK.value: self.worldbank,
            DataSource.OECD.value: self.oecd,
            DataSource.EUROSTAT.value: self.eurostat,
        }

    def enabled_sources(self) -> List[str]:
        return [source for source, provider in self._providers().items() if provider is not None]

    def _require(self, source: Union[DataSource, str]) -> Any:
        source_id = DataSource(source).value
        provider = self._providers()[source_id]
        if provider is None:
            name = SOURCE_CATALOGUE[source_id]["name"]
            raise ConfigurationError(f"{name} is not enabled on this server")
        return provider

    async def _run_tool(self, tool: str, args: Dict[str, Any], operation: Callable[[], Awaitable[T]]) -> T:
        """Run one tool call with entry/exit logging."""
        call_id = SecureLogger.generate_call_id()
        log_tool_request(tool, args, call_id)
        started = time.perf_counter()
        success = False
        try:
            result = await operation()
            success = True
            return result
        finally:
            log_tool_response(tool, success, (time.perf_counter() - started) * 1000, call_id)

    @staticmethod
    def _check_data_params(source: DataSource, params: DataParams) -> None:
        for name in REQUIRED_DATA_PARAMS[source.value]:
            value = getattr(params, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(
                    f"{name} is required for {SOURCE_CATALOGUE[source.value]['name']} data",
                    field=f"dataParams.{name}",
                )

    async def fetch_rows(self, source: DataSource, params: DataParams, estat_limit: int) -> List[Row]:
        """Fetch one source's data and normalize it to uniform rows."""
        source = DataSource(source)
        self._check_data_params(source, params)
        provider = self._require(source)

        if source == DataSource.ESTAT:
            raw: Any = await provider.get_stats_data(params.statsDataId, limit=params.limit or estat_limit)
        elif source == DataSource.WORLDBANK:
            raw = await provider.get_indicator_data(
                params.countryCode, params.indicatorCode, params.startYear, params.endYear
            )
        elif source == DataSource.OECD:
            raw = await provider.get_data(
                params.datasetId, params.filter, params.startPeriod, params.endPeriod
            )
        else:
            raw = await provider.get_data(params.datasetCode, params.filters, params.lang or "EN")

        return normalize(source, raw)

    # ------------------------------------------------------------------
    # Source tools
    # ------------------------------------------------------------------

    async def search_statistics(self, request: SearchStatisticsRequest) -> List[Dict[str, Any]]:
        async def operation():
            tables = await self._require(DataSource.ESTAT).get_stats_list(request.searchWord, request.limit)
            return [table.model_dump() for table in tables]

        return await self._run_tool("search-statistics", request.model_dump(), operation)

    async def get_statistics_data(self, request: GetStatisticsDataRequest) -> Dict[str, Any]:
        async def operation():
            data = await self._require(DataSource.ESTAT).get_stats_data(request.statsDataId, request.limit)
            return data.to_payload()

        return await self._run_tool("get-statistics-data", request.model_dump(), operation)

    async def get_indicator_data(self, request: GetIndicatorDataRequest) -> List[Dict[str, Any]]:
        async def operation():
            points = await self._require(DataSource.WORLDBANK).get_indicator_data(
                request.countryCode, request.indicatorCode, request.startYear, request.endYear
            )
            return [point.model_dump() for point in points]

        return await self._run_tool("get-indicator-data", request.model_dump(), operation)

    async def search_indicators(self, request: SearchIndicatorsRequest) -> List[Dict[str, Any]]:
        async def operation():
            indicators = await self._require(DataSource.WORLDBANK).get_indicators(request.search)
            return [indicator.model_dump() for indicator in indicators]

        return await self._run_tool("search-indicators", request.model_dump(), operation)

    async def get_sdmx_data(self, request: GetSdmxDataRequest) -> Dict[str, Any]:
        async def operation():
            return await self._require(DataSource.OECD).get_data(
                request.datasetId, request.filter, request.startPeriod, request.endPeriod
            )

        return await self._run_tool("get-sdmx-data", request.model_dump(), operation)

    async def get_jsonstat_data(self, request: GetJsonStatDataRequest) -> Dict[str, Any]:
        async def operation():
            return await self._require(DataSource.EUROSTAT).get_data(
                request.datasetCode, request.filters, request.lang
            )

        return await self._run_tool("get-jsonstat-data", request.model_dump(), operation)

    # ------------------------------------------------------------------
    # Derived tools
    # ------------------------------------------------------------------

    async def export_data(self, request: ExportDataRequest) -> ExportDataResponse:
        async def operation():
            rows = await self.fetch_rows(request.dataSource, request.dataParams, ESTAT_ANALYSIS_LIMIT)
            rows = apply_transform(rows, request.transform)
            return export_service.export(rows, request.format, request.dataSource)

        return await self._run_tool("export-data", request.model_dump(mode="json"), operation)

    async def calculate_statistics(
        self, request: CalculateStatisticsRequest
    ) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        async def operation():
            rows = await self.fetch_rows(request.dataSource, request.dataParams, ESTAT_ANALYSIS_LIMIT)
            if rows and request.valueColumn not in rows[0]:
                raise ValidationError(
                    f"Column '{request.valueColumn}' not found in {request.dataSource.value} data",
                    field="valueColumn",
                )
            if request.groupBy and rows and request.groupBy not in rows[0]:
                raise ValidationError(
                    f"Column '{request.groupBy}' not found in {request.dataSource.value} data",
                    field="groupBy",
                )
            return summarize_rows(rows, request.statistics, request.valueColumn, request.groupBy)

        return await self._run_tool("calculate-statistics", request.model_dump(mode="json"), operation)

    async def generate_chart(self, request: GenerateChartRequest) -> ChartResponse:
        async def operation():
            rows = await self.fetch_rows(request.dataSource, request.dataParams, ESTAT_CHART_LIMIT)
            columns = resolve_chart_columns(
                request.dataSource,
                rows,
                label_column=request.labelColumn,
                value_column=request.valueColumn,
                series_column=request.seriesColumn,
            )
            series, points = rows_to_series(rows, columns.label, columns.value, columns.series)

            params = request.dataParams
            attribution = get_attribution(
                request.dataSource,
                indicator_code=params.indicatorCode,
                stats_data_id=params.statsDataId,
                dataset_id=params.datasetId or params.datasetCode,
            )
            generator = ChartGenerator(ChartConfig(
                title=request.title,
                x_label=request.xLabel,
                y_label=request.yLabel,
                width=request.width,
                height=request.height,
                attribution=attribution,
            ))
            svg = generator.generate(request.chartType, series, points)
            logger.info(
                f"Rendered {request.chartType.value} chart: {len(series)} series, "
                f"{len(rows)} rows, label={columns.label}, series={columns.series}"
            )
            return ChartResponse(
                chartType=request.chartType.value,
                svg=svg,
                dataUri=svg_data_uri(svg),
                seriesCount=len(points) if request.chartType.value == "pie" else len(series),
                attribution=attribution,
            )

        return await self._run_tool("generate-chart", request.model_dump(mode="json"), operation)

    # ------------------------------------------------------------------
    # Catalogue
    # ------------------------------------------------------------------

    def sources(self) -> List[SourceInfo]:
        enabled = set(self.enabled_sources())
        return [
            SourceInfo(
                id=source_id,
                name=info["name"],
                baseUrl=getattr(self.settings, f"{source_id}_base_url"),
                enabled=source_id in enabled,
                description=info["description"],
                license=info["license"],
            )
            for source_id, info in SOURCE_CATALOGUE.items()
        ]
