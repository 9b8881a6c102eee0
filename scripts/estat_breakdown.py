#!/usr/bin/env python3
"""
e-Stat table breakdown

Fetches one e-Stat statistical table, saves the STATISTICAL_DATA object for
later runs, and prints the total plus per-category breakdowns. Suppressed
values ("-", "...", "X") never contribute to a sum.

Usage:
    python scripts/estat_breakdown.py --stats-data-id 0004025681
    python scripts/estat_breakdown.py --stats-data-id 0004025681 --chart-category cat02
    python scripts/estat_breakdown.py --from-file output/data/estat-data-0004025681.json --top 5
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from statsmcp.config import get_settings
from statsmcp.exceptions import StatsMcpError
from statsmcp.models import DataSource
from statsmcp.providers.estat import EStatProvider
from statsmcp.services.attribution import get_attribution
from statsmcp.services.charts import ChartConfig, ChartDataPoint, ChartGenerator, ChartSeries
from statsmcp.services.export import export_service
from statsmcp.services.http_pool import close_http_pool
from statsmcp.services.normalizer import CategorySummary, summarize_by_category
from statsmcp.services.rate_limiter import RateLimiterRegistry

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

OUTPUT_DIR = Path.cwd() / "output"
DATA_DIR = OUTPUT_DIR / "data"
CHARTS_DIR = OUTPUT_DIR / "charts"


async def fetch_statistical_data(stats_data_id: str, limit: int) -> Optional[Dict[str, Any]]:
    settings = get_settings()
    if not settings.estat_app_id:
        raise StatsMcpError("ESTAT_API_KEY is not set; use --from-file to analyze a saved table")

    registry = RateLimiterRegistry()
    provider = EStatProvider(
        settings.estat_app_id,
        registry.get_limiter(DataSource.ESTAT.value),
        base_url=settings.estat_base_url,
        timeout=settings.request_timeout,
    )
    try:
        return await provider.get_statistical_data(stats_data_id, limit=limit)
    finally:
        await close_http_pool()


def save_dump(statistical_data: Dict[str, Any], prefix: str, stats_data_id: str) -> Path:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    path = DATA_DIR / export_service.generate_filename(prefix, stats_data_id, "json")
    path.write_text(export_service.dumps(statistical_data), encoding="utf-8")
    return path


def print_summary(summary: CategorySummary, top: int) -> None:
    print("=" * 70)
    print(f"Observations: {summary.observations:,} ({summary.missing:,} suppressed or missing)")
    print(f"Total: {summary.total:,.0f}")

    for class_id in summary.breakdowns:
        name = summary.class_names.get(class_id) or class_id
        print(f"\n{name} ({class_id}), top {top}:")
        for label, value, share in summary.top(class_id, top):
            print(f"   - {label}: {value:,.0f} ({share:.2f}%)")


def render_charts(summary: CategorySummary, class_id: str, stats_data_id: str, top: int) -> None:
    if class_id not in summary.breakdowns:
        available = ", ".join(summary.breakdowns) or "none"
        raise StatsMcpError(f"Category '{class_id}' not found (available: {available})")

    name = summary.class_names.get(class_id) or class_id
    points = [ChartDataPoint(label=label, value=value) for label, value, _ in summary.top(class_id, top)]
    attribution = get_attribution(DataSource.ESTAT, stats_data_id=stats_data_id)

    CHARTS_DIR.mkdir(parents=True, exist_ok=True)

    pie = ChartGenerator(ChartConfig(title=name, width=900, height=600, attribution=attribution))
    pie_path = CHARTS_DIR / f"estat-{stats_data_id}-{class_id}-pie.svg"
    pie_path.write_text(pie.generate_pie_chart(points), encoding="utf-8")

    bar = ChartGenerator(ChartConfig(title=name, x_label=name, width=1000, height=500, attribution=attribution))
    bar_path = CHARTS_DIR / f"estat-{stats_data_id}-{class_id}-bar.svg"
    bar_path.write_text(bar.generate_bar_chart([ChartSeries(name=name, data=points)]), encoding="utf-8")

    print(f"\nCharts written: {pie_path}, {bar_path}")


async def main() -> int:
    parser = argparse.ArgumentParser(description="Summarize an e-Stat table by category")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--stats-data-id", type=str, help="e-Stat statistical table id")
    source.add_argument("--from-file", type=Path, help="Analyze a previously saved STATISTICAL_DATA dump")
    parser.add_argument("--limit", type=int, default=10000, help="Maximum observations to fetch")
    parser.add_argument("--prefix", type=str, default="estat-data", help="Dump file name prefix")
    parser.add_argument("--top", type=int, default=10, help="Rows shown per category")
    parser.add_argument("--chart-category", type=str, help="Render pie and bar charts of this class (e.g. cat02)")
    args = parser.parse_args()

    try:
        if args.from_file:
            statistical_data = json.loads(args.from_file.read_text(encoding="utf-8"))
            stats_data_id = (statistical_data.get("TABLE_INF") or {}).get("@id") or args.from_file.stem
        else:
            stats_data_id = args.stats_data_id
            statistical_data = await fetch_statistical_data(stats_data_id, args.limit)
            if statistical_data is None:
                print(f"No data returned for table {stats_data_id}")
                return 1
            path = save_dump(statistical_data, args.prefix, stats_data_id)
            logger.info(f"Saved STATISTICAL_DATA to {path}")

        data = EStatProvider.decode_statistical_data(statistical_data)
        if data.table:
            print(f"{data.table.id}: {data.table.title}")

        summary = summarize_by_category(data)
        print_summary(summary, args.top)

        if args.chart_category:
            render_charts(summary, args.chart_category, stats_data_id, args.top)
    except StatsMcpError as exc:
        logger.error(exc.message)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
