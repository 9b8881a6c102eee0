from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi_mcp import FastApiMCP

from . import __version__
from .config import Settings, get_settings
from .exceptions import ApiError, StatsMcpError, ValidationError, get_error_response
from .models import (
    CalculateStatisticsRequest,
    ExportDataRequest,
    GenerateChartRequest,
    GetIndicatorDataRequest,
    GetJsonStatDataRequest,
    GetSdmxDataRequest,
    GetStatisticsDataRequest,
    HealthResponse,
    SearchIndicatorsRequest,
    SearchStatisticsRequest,
    SourceInfo,
)
from .services.http_pool import HTTPClientPool, close_http_pool
from .services.tools import StatisticsToolService
from .utils.serialization import to_json_safe

logger = logging.getLogger("statsmcp")

settings: Settings = get_settings()
logging.basicConfig(level=settings.log_level)

HTTPClientPool.configure(settings.request_timeout)
tool_service = StatisticsToolService(settings)

TOOL_OPERATIONS = [
    "search_statistics",
    "get_statistics_data",
    "get_indicator_data",
    "search_indicators",
    "get_sdmx_data",
    "get_jsonstat_data",
    "export_data",
    "calculate_statistics",
    "generate_chart",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown events."""
    # === STARTUP ===
    HTTPClientPool()
    logger.info(
        f"{settings.server_name} {settings.server_version} ready "
        f"(sources: {', '.join(tool_service.enabled_sources()) or 'none'})"
    )

    yield

    # === SHUTDOWN ===
    await close_http_pool()


app = FastAPI(title=f"{settings.server_name} API", version=__version__, lifespan=lifespan)


# ============================================================================
# Error responses
# ============================================================================

def _status_for(error: Exception) -> int:
    if isinstance(error, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(error, ApiError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(StatsMcpError)
async def statsmcp_error_handler(request: Request, exc: StatsMcpError) -> JSONResponse:
    logger.warning(f"{request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=_status_for(exc), content=to_json_safe(get_error_response(exc)))


def request_validation_payload(exc: RequestValidationError) -> Dict[str, Any]:
    """The first pydantic error as a ValidationError payload with a dotted field path."""
    errors = exc.errors()
    if not errors:
        return ValidationError("Invalid request").to_dict()

    first = errors[0]
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    message = str(first.get("msg", "Invalid value"))
    # pydantic prefixes errors raised from validators
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return ValidationError(message, field=".".join(loc) or None).to_dict()


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    payload = request_validation_payload(exc)
    logger.info(f"{request.url.path} rejected: {payload['message']} (field={payload['field']})")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=payload)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error in {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=get_error_response(exc),
    )


# ============================================================================
# Source tools
# ============================================================================

@app.post(
    "/api/tools/search-statistics",
    operation_id="search_statistics",
    summary="Search e-Stat statistical tables",
    description="Search the Japanese government statistics portal (e-Stat) for statistical tables by keyword. Returns table ids usable with get_statistics_data.",
    tags=["e-Stat"],
)
async def search_statistics_endpoint(request: SearchStatisticsRequest) -> List[Dict[str, Any]]:
    return to_json_safe(await tool_service.search_statistics(request))


@app.post(
    "/api/tools/get-statistics-data",
    operation_id="get_statistics_data",
    summary="Get e-Stat table data",
    description="Fetch the classifications and observations of one e-Stat table. Suppressed values ('-', '...', 'X') are returned as null with their raw marker.",
    tags=["e-Stat"],
)
async def get_statistics_data_endpoint(request: GetStatisticsDataRequest) -> Dict[str, Any]:
    return to_json_safe(await tool_service.get_statistics_data(request))


@app.post(
    "/api/tools/get-indicator-data",
    operation_id="get_indicator_data",
    summary="Get World Bank indicator data",
    description="Fetch one World Bank indicator (e.g., NY.GDP.MKTP.CD) for a country or a semicolon-separated list of countries, optionally bounded by year.",
    tags=["World Bank"],
)
async def get_indicator_data_endpoint(request: GetIndicatorDataRequest) -> List[Dict[str, Any]]:
    return to_json_safe(await tool_service.get_indicator_data(request))


@app.post(
    "/api/tools/search-indicators",
    operation_id="search_indicators",
    summary="Search World Bank indicators",
    description="List World Bank indicators whose name or id contains the search text (case-insensitive).",
    tags=["World Bank"],
)
async def search_indicators_endpoint(request: SearchIndicatorsRequest) -> List[Dict[str, Any]]:
    return to_json_safe(await tool_service.search_indicators(request))


@app.post(
    "/api/tools/get-sdmx-data",
    operation_id="get_sdmx_data",
    summary="Get OECD SDMX data",
    description="Fetch an OECD dataflow as SDMX-JSON. The filter is an SDMX key expression (default 'all').",
    tags=["OECD"],
)
async def get_sdmx_data_endpoint(request: GetSdmxDataRequest) -> Dict[str, Any]:
    return to_json_safe(await tool_service.get_sdmx_data(request))


@app.post(
    "/api/tools/get-jsonstat-data",
    operation_id="get_jsonstat_data",
    summary="Get Eurostat JSON-stat data",
    description="Fetch a Eurostat dataset (e.g., nama_10_gdp) as JSON-stat, filtered by dimension values such as {\"geo\": \"DE\"}.",
    tags=["Eurostat"],
)
async def get_jsonstat_data_endpoint(request: GetJsonStatDataRequest) -> Dict[str, Any]:
    return to_json_safe(await tool_service.get_jsonstat_data(request))


# ============================================================================
# Derived tools
# ============================================================================

@app.post(
    "/api/tools/export-data",
    operation_id="export_data",
    summary="Export data as CSV or JSON",
    description="Fetch data from one source, optionally filter/sort/reshape it, and return it as CSV, a JSON row list, or structured JSON with metadata.",
    tags=["Analysis"],
)
async def export_data_endpoint(request: ExportDataRequest) -> Dict[str, Any]:
    result = await tool_service.export_data(request)
    return to_json_safe(result.model_dump())


@app.post(
    "/api/tools/calculate-statistics",
    operation_id="calculate_statistics",
    summary="Calculate descriptive statistics",
    description="Compute mean, median, mode, std, variance, min, max, range, q1, q3 or iqr over a numeric column, optionally per group. count and sum are always included.",
    tags=["Analysis"],
)
async def calculate_statistics_endpoint(request: CalculateStatisticsRequest) -> Any:
    return to_json_safe(await tool_service.calculate_statistics(request))


@app.post(
    "/api/tools/generate-chart",
    operation_id="generate_chart",
    summary="Generate an SVG chart",
    description="Render a line, bar or pie chart of one source's data as a self-contained SVG document, with a base64 data URI and source attribution.",
    tags=["Analysis"],
)
async def generate_chart_endpoint(request: GenerateChartRequest) -> Dict[str, Any]:
    result = await tool_service.generate_chart(request)
    return to_json_safe(result.model_dump())


# ============================================================================
# Service endpoints
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        server=settings.server_name,
        version=settings.server_version,
        sources=tool_service.enabled_sources(),
    )


@app.get("/api/sources", response_model=List[SourceInfo])
async def list_sources() -> List[SourceInfo]:
    return tool_service.sources()


@app.get("/")
async def root():
    return {"status": "ok"}


if not settings.disable_mcp:
    # Mount after the routes are registered so the OpenAPI schema includes every tool
    mcp = FastApiMCP(
        app,
        name=f"{settings.server_name} MCP Server",
        description="Statistics aggregator: query e-Stat, World Bank, OECD and Eurostat, then export, summarize or chart the results.",
        include_operations=TOOL_OPERATIONS,
    )
    mcp.mount()
    logger.info("MCP server mounted at /mcp endpoint")


def run(host: str = "0.0.0.0", port: int = 8000) -> None:
    import uvicorn

    uvicorn.run("statsmcp.main:app", host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
