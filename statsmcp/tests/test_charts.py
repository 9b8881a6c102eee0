from __future__ import annotations

import base64
import math
import unittest
import xml.etree.ElementTree as ET

from statsmcp.exceptions import ValidationError
from statsmcp.models import AttributionInfo, ChartType
from statsmcp.services.attribution import format_attribution, get_attribution
from statsmcp.services.chart_data import DEFAULT_SERIES_NAME, resolve_chart_columns, rows_to_series
from statsmcp.services.charts import (
    ATTRIBUTION_HEIGHT,
    ChartConfig,
    ChartDataPoint,
    ChartGenerator,
    ChartSeries,
    DEFAULT_COLORS,
    compute_pie_slices,
    format_value,
    svg_data_uri,
)

SVG = "{http://www.w3.org/2000/svg}"


def parse(svg: str) -> ET.Element:
    return ET.fromstring(svg)


def two_series():
    return [
        ChartSeries(name="Japan", data=[ChartDataPoint("2020", 5.0), ChartDataPoint("2021", 5.1)]),
        ChartSeries(name="Korea", data=[ChartDataPoint("2021", 1.8)]),
    ]


class FormatValueTests(unittest.TestCase):
    def test_suffixes(self) -> None:
        self.assertEqual(format_value(1.5e12), "1.50T")
        self.assertEqual(format_value(2.25e9), "2.25B")
        self.assertEqual(format_value(-2e6), "-2.00M")
        self.assertEqual(format_value(2500), "2.50K")
        self.assertEqual(format_value(12), "12.00")
        self.assertEqual(format_value(0), "0.00")


class PieSliceTests(unittest.TestCase):
    def test_angles_are_proportional(self) -> None:
        points = [ChartDataPoint(label, value) for label, value in (("a", 40), ("b", 30), ("c", 20), ("d", 10))]
        slices = compute_pie_slices(points)

        self.assertEqual([round(math.degrees(s.angle)) for s in slices], [144, 108, 72, 36])
        self.assertAlmostEqual(slices[0].start_angle, -math.pi / 2)
        self.assertAlmostEqual(sum(s.angle for s in slices), 2 * math.pi)
        self.assertAlmostEqual(sum(s.fraction for s in slices), 1.0)

    def test_non_positive_values_are_skipped(self) -> None:
        points = [ChartDataPoint("a", 0), ChartDataPoint("b", -5), ChartDataPoint("c", 3)]
        slices = compute_pie_slices(points)

        self.assertEqual(len(slices), 1)
        self.assertEqual(slices[0].label, "c")
        self.assertEqual(slices[0].index, 2)
        self.assertEqual(slices[0].fraction, 1.0)


class ChartGeneratorTests(unittest.TestCase):
    def test_line_chart_is_well_formed(self) -> None:
        svg = ChartGenerator(ChartConfig(title="GDP growth", x_label="Year", y_label="%")).generate_line_chart(two_series())
        root = parse(svg)

        self.assertEqual(root.tag, f"{SVG}svg")
        self.assertEqual(root.get("width"), "800")
        self.assertEqual(root.get("height"), "400")
        self.assertEqual(len(root.findall(f"{SVG}path")), 2)
        self.assertEqual(len(root.findall(f"{SVG}circle")), 3)
        texts = [el.text for el in root.iter(f"{SVG}text")]
        self.assertIn("GDP growth", texts)
        self.assertIn("Year", texts)
        self.assertIn("2020", texts)

    def test_series_colors_follow_palette(self) -> None:
        svg = ChartGenerator().generate_line_chart(two_series())
        paths = parse(svg).findall(f"{SVG}path")
        self.assertEqual([p.get("stroke") for p in paths], DEFAULT_COLORS[:2])

    def test_legend_top_right_for_few_short_series(self) -> None:
        generator = ChartGenerator()
        self.assertFalse(generator.legend_at_bottom(two_series()))

        many = [ChartSeries(name=f"S{i}", data=[ChartDataPoint("x", i)]) for i in range(4)]
        self.assertTrue(generator.legend_at_bottom(many))

        long_name = [ChartSeries(name="A very long series name for the legend box", data=[])]
        self.assertTrue(generator.legend_at_bottom(long_name))

    def test_bar_chart(self) -> None:
        svg = ChartGenerator(ChartConfig(title="Bars")).generate_bar_chart(two_series())
        root = parse(svg)
        bars = [rect for rect in root.iter(f"{SVG}rect") if rect.get("opacity") == "0.8"]

        self.assertEqual(len(bars), 3)
        for bar in bars:
            self.assertGreaterEqual(float(bar.get("height")), 0)
        texts = [el.text for el in root.iter(f"{SVG}text")]
        self.assertIn("5.10", texts)

    def test_pie_chart_single_slice_is_circle(self) -> None:
        svg = ChartGenerator().generate_pie_chart([ChartDataPoint("only", 7)])
        root = parse(svg)
        self.assertEqual(len(root.findall(f"{SVG}circle")), 1)
        self.assertEqual(len(root.findall(f"{SVG}path")), 0)

    def test_pie_chart_slices(self) -> None:
        points = [ChartDataPoint("A & B", 3), ChartDataPoint("C", 1)]
        svg = ChartGenerator().generate_pie_chart(points)
        root = parse(svg)

        self.assertEqual(len(root.findall(f"{SVG}path")), 2)
        texts = [el.text for el in root.iter(f"{SVG}text")]
        self.assertIn("A & B", texts)
        self.assertIn("75.0%", texts)
        self.assertIn("&amp;", svg)

    def test_pie_legend_lists_only_drawn_slices(self) -> None:
        points = [ChartDataPoint("A", 3), ChartDataPoint("Zero", 0), ChartDataPoint("C", 1)]
        root = parse(ChartGenerator().generate_pie_chart(points))

        slice_fills = [path.get("fill") for path in root.findall(f"{SVG}path")]
        legend_fills = [rect.get("fill") for rect in root.iter(f"{SVG}rect") if rect.get("width") == "20"]
        self.assertEqual(slice_fills, [DEFAULT_COLORS[0], DEFAULT_COLORS[2]])
        self.assertEqual(legend_fills, slice_fills)
        texts = [el.text for el in root.iter(f"{SVG}text")]
        self.assertFalse(any(text and text.startswith("Zero") for text in texts))

    def test_attribution_adds_height(self) -> None:
        attribution = get_attribution("worldbank", indicator_code="NY.GDP.MKTP.CD")
        svg = ChartGenerator(ChartConfig(height=400, attribution=attribution)).generate_line_chart(two_series())
        root = parse(svg)

        self.assertEqual(root.get("height"), str(400 + ATTRIBUTION_HEIGHT))
        texts = [el.text for el in root.iter(f"{SVG}text")]
        self.assertIn("Source: World Bank", texts)
        self.assertIn("Indicator: NY.GDP.MKTP.CD", texts)
        self.assertIn("License: CC BY 4.0 | https://data.worldbank.org", texts)

    def test_generate_dispatch_and_empty_input(self) -> None:
        generator = ChartGenerator()
        for chart_type in ChartType:
            with self.subTest(chart_type=chart_type):
                svg = generator.generate(chart_type, [], [])
                self.assertEqual(parse(svg).tag, f"{SVG}svg")

    def test_rotated_labels_when_many(self) -> None:
        series = [ChartSeries(name="s", data=[ChartDataPoint(f"{i:02d}", i) for i in range(12)])]
        svg = ChartGenerator().generate_line_chart(series)
        self.assertIn("rotate(-45", svg)

    def test_data_uri(self) -> None:
        svg = ChartGenerator().generate_pie_chart([ChartDataPoint("a", 1), ChartDataPoint("b", 2)])
        uri = svg_data_uri(svg)
        self.assertTrue(uri.startswith("data:image/svg+xml;base64,"))
        self.assertEqual(base64.b64decode(uri.split(",", 1)[1]).decode("utf-8"), svg)


class AttributionTests(unittest.TestCase):
    def test_sources(self) -> None:
        self.assertEqual(get_attribution("estat", stats_data_id="0003410379").additionalInfo, "Table ID: 0003410379")
        self.assertEqual(get_attribution("oecd").additionalInfo, "OECD Data")
        self.assertEqual(get_attribution("eurostat", dataset_id="nama_10_gdp").additionalInfo, "Dataset: nama_10_gdp")
        self.assertEqual(get_attribution("imf").sourceName, "Unknown Source")

    def test_format_attribution(self) -> None:
        info = AttributionInfo(sourceName="OECD", sourceUrl="https://data.oecd.org", license="OECD Terms and Conditions")
        self.assertEqual(
            format_attribution(info),
            "Source: OECD | License: OECD Terms and Conditions | URL: https://data.oecd.org",
        )


class ChartDataTests(unittest.TestCase):
    def test_worldbank_defaults(self) -> None:
        rows = [{"country_code": "JPN", "country_name": "Japan", "year": "2020", "value": 1.0}]
        columns = resolve_chart_columns("worldbank", rows)
        self.assertEqual((columns.label, columns.value, columns.series), ("year", "value", "country_name"))

    def test_estat_series_is_first_category(self) -> None:
        rows = [{"index": 0, "cat01": "Male", "cat01_code": "1", "time": "2020", "time_code": "2020", "value": 1}]
        columns = resolve_chart_columns("estat", rows)
        self.assertEqual((columns.label, columns.series), ("time", "cat01"))

    def test_label_fallback_prefers_readable_columns(self) -> None:
        rows = [{"index": 0, "cat01": "Male", "cat01_code": "1", "area": "Tokyo", "area_code": "13000", "value": 1}]
        columns = resolve_chart_columns("estat", rows)
        self.assertEqual((columns.label, columns.series), ("area", "cat01"))

        rows = [{"index": 0, "cat01": "Male", "cat01_code": "1", "value": 1}]
        columns = resolve_chart_columns("estat", rows)
        self.assertEqual((columns.label, columns.series), ("cat01", None))

        rows = [{"freq": "A", "geo": "DE", "geo_label": "Germany", "value": 1}]
        self.assertEqual(resolve_chart_columns("eurostat", rows).label, "geo_label")

    def test_unknown_column_is_validation_error(self) -> None:
        rows = [{"year": "2020", "value": 1.0}]
        with self.assertRaises(ValidationError) as ctx:
            resolve_chart_columns("worldbank", rows, series_column="region")
        self.assertEqual(ctx.exception.field, "seriesColumn")

    def test_rows_to_series_sums_duplicates(self) -> None:
        rows = [
            {"year": "2020", "area": "Tokyo", "value": 1},
            {"year": "2020", "area": "Tokyo", "value": 2},
            {"year": "2021", "area": "Tokyo", "value": None},
            {"year": "2021", "area": "Osaka", "value": "5"},
        ]
        series, points = rows_to_series(rows, "year", "value", "area")

        self.assertEqual([s.name for s in series], ["Tokyo", "Osaka"])
        self.assertEqual([(p.label, p.value) for p in series[0].data], [("2020", 3)])
        # Several series: one pie point per series, its latest value
        self.assertEqual([(p.label, p.value) for p in points], [("Tokyo", 3), ("Osaka", 5)])

    def test_single_series_pie_uses_labels(self) -> None:
        rows = [{"k": "a", "value": 1}, {"k": "b", "value": 2}]
        series, points = rows_to_series(rows, "k", "value")

        self.assertEqual(series[0].name, DEFAULT_SERIES_NAME)
        self.assertEqual([p.label for p in points], ["a", "b"])


if __name__ == "__main__":
    unittest.main()
