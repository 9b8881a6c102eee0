from __future__ import annotations

import unittest

from statsmcp.exceptions import ResponseFormatError
from statsmcp.models import ClassObject, DataSource, IndicatorPoint, StatsData, StatsRecord
from statsmcp.services.normalizer import (
    columns_of,
    ensure_uniform_columns,
    estat_rows,
    generic_rows,
    jsonstat_rows,
    normalize,
    sdmx_rows,
    summarize_by_category,
    worldbank_rows,
)
from statsmcp.utils.values import parse_stat_value


def build_stats_data() -> StatsData:
    return StatsData(
        classes=[
            ClassObject(id="cat01", name="Industry", codes={"A": "Agriculture", "B": "Mining"}),
            ClassObject(id="area", name="Area", codes={"13000": "Tokyo", "27000": "Osaka"}),
        ],
        records=[
            StatsRecord(cat01="A", area="13000", time="2020", value=parse_stat_value("1,000")),
            StatsRecord(cat01="B", area="13000", time="2020", value=parse_stat_value("300")),
            StatsRecord(cat01="A", area="27000", time="2020", value=parse_stat_value("X")),
            StatsRecord(cat01="Z", area="27000", time="2020", value=parse_stat_value("200")),
        ],
    )


def jsonstat_document() -> dict:
    return {
        "version": "2.0",
        "class": "dataset",
        "label": "GDP and main components",
        "id": ["geo", "time"],
        "size": [2, 2],
        "dimension": {
            "geo": {"category": {"index": {"DE": 0, "FR": 1}, "label": {"DE": "Germany", "FR": "France"}}},
            "time": {"category": {"index": ["2020", "2021"], "label": {"2020": "2020", "2021": "2021"}}},
        },
        "value": {"0": 3400.5, "1": 3600.0, "3": 2500.25},
    }


class EStatRowsTests(unittest.TestCase):
    def test_rows_carry_labels_and_codes(self) -> None:
        rows = estat_rows(build_stats_data())

        self.assertEqual(len(rows), 4)
        self.assertEqual(columns_of(rows), ["index", "cat01", "cat01_code", "area", "area_code", "time", "time_code", "value"])
        self.assertEqual(rows[0]["cat01"], "Agriculture")
        self.assertEqual(rows[0]["cat01_code"], "A")
        self.assertEqual(rows[0]["area"], "Tokyo")
        self.assertEqual(rows[0]["value"], 1000)
        # Unmapped codes keep the raw code as their label
        self.assertEqual(rows[3]["cat01"], "Z")
        # Suppressed values become None
        self.assertIsNone(rows[2]["value"])
        # Dimensions without a class map fall back to the code
        self.assertEqual(rows[0]["time"], "2020")

    def test_unit_column_only_when_present(self) -> None:
        data = StatsData(records=[
            StatsRecord(time="2020", unit="people", value=parse_stat_value("5")),
            StatsRecord(time="2021", value=parse_stat_value("6")),
        ])
        rows = estat_rows(data)
        self.assertEqual(rows[0]["unit"], "people")
        self.assertIsNone(rows[1]["unit"])
        self.assertNotIn("unit", estat_rows(build_stats_data())[0])

    def test_summarize_by_category_excludes_suppressed(self) -> None:
        summary = summarize_by_category(build_stats_data())

        self.assertEqual(summary.total, 1500)
        self.assertEqual(summary.observations, 4)
        self.assertEqual(summary.missing, 1)
        self.assertEqual(summary.breakdowns["cat01"], {"Agriculture": 1000, "Mining": 300, "Z": 200})
        self.assertEqual(summary.breakdowns["area"], {"Tokyo": 1300, "Osaka": 200})
        self.assertEqual(summary.class_names["cat01"], "Industry")

        top = summary.top("cat01", 2)
        self.assertEqual([label for label, _, _ in top], ["Agriculture", "Mining"])
        self.assertAlmostEqual(top[0][2], 1000 / 1500 * 100)
        self.assertEqual(summary.top("cat02"), [])


class WorldBankRowsTests(unittest.TestCase):
    def test_drops_null_values(self) -> None:
        points = [
            IndicatorPoint(countryCode="JPN", countryName="Japan", date="2022", value=1.5, indicatorId="X", indicatorName="Ind"),
            IndicatorPoint(countryCode="JPN", countryName="Japan", date="2023", value=None),
            {"countryCode": "USA", "countryName": "", "date": "2022", "value": 2.0},
        ]
        rows = worldbank_rows(points)

        self.assertEqual(len(rows), 2)
        self.assertEqual(
            rows[0],
            {
                "country_code": "JPN",
                "country_name": "Japan",
                "year": "2022",
                "value": 1.5,
                "indicator_id": "X",
                "indicator_name": "Ind",
            },
        )
        # Missing names fall back to the code
        self.assertEqual(rows[1]["country_name"], "USA")


class JsonStatRowsTests(unittest.TestCase):
    def test_row_major_decoding_skips_missing_cells(self) -> None:
        rows = jsonstat_rows(jsonstat_document())

        self.assertEqual(len(rows), 3)
        self.assertEqual(
            rows[0],
            {"geo": "DE", "geo_label": "Germany", "time": "2020", "time_label": "2020", "value": 3400.5},
        )
        self.assertEqual((rows[1]["geo"], rows[1]["time"]), ("DE", "2021"))
        self.assertEqual((rows[2]["geo"], rows[2]["time"]), ("FR", "2021"))
        self.assertEqual(rows[2]["geo_label"], "France")

    def test_dense_value_array(self) -> None:
        document = jsonstat_document()
        document["value"] = [1, None, 3, 4]
        rows = jsonstat_rows(document)
        self.assertEqual([row["value"] for row in rows], [1, 3, 4])
        self.assertEqual((rows[1]["geo"], rows[1]["time"]), ("FR", "2020"))

    def test_version_one_dataset_wrapper(self) -> None:
        document = {
            "dataset": {
                "dimension": {
                    "id": ["unit"],
                    "size": [1],
                    "unit": {"category": {"label": {"CP_MEUR": "Current prices, million euro"}}},
                },
                "value": [42.0],
            }
        }
        rows = jsonstat_rows(document)
        self.assertEqual(rows, [{"unit": "CP_MEUR", "unit_label": "Current prices, million euro", "value": 42.0}])

    def test_size_mismatch_is_response_format_error(self) -> None:
        document = jsonstat_document()
        document["size"] = [2, 3]
        with self.assertRaises(ResponseFormatError):
            jsonstat_rows(document)

        document = jsonstat_document()
        document["id"] = ["geo"]
        with self.assertRaises(ResponseFormatError):
            jsonstat_rows(document)

    def test_non_numeric_value_index_is_response_format_error(self) -> None:
        document = jsonstat_document()
        document["value"] = {"0": 1.0, "x": 2.0}
        with self.assertRaises(ResponseFormatError) as ctx:
            jsonstat_rows(document)
        self.assertEqual(ctx.exception.source, "Eurostat")

    def test_value_index_outside_cells_is_response_format_error(self) -> None:
        document = jsonstat_document()
        document["value"] = {"4": 1.0}
        with self.assertRaises(ResponseFormatError):
            jsonstat_rows(document)


class SdmxRowsTests(unittest.TestCase):
    def test_all_dimensions_observations(self) -> None:
        document = {
            "dataSets": [{"observations": {"0:0": [1.5, 0], "1:1": [2.5], "0:1": [None]}}],
            "structure": {
                "dimensions": {
                    "observation": [
                        {"id": "REF_AREA", "values": [{"id": "USA", "name": "United States"}, {"id": "JPN", "name": "Japan"}]},
                        {"id": "TIME_PERIOD", "values": [{"id": "2020", "name": "2020"}, {"id": "2021", "name": "2021"}]},
                    ]
                }
            },
        }
        rows = sdmx_rows(document)

        self.assertEqual(len(rows), 3)
        self.assertEqual(
            rows[0],
            {"REF_AREA": "USA", "REF_AREA_label": "United States", "TIME_PERIOD": "2020", "TIME_PERIOD_label": "2020", "value": 1.5},
        )
        self.assertEqual(rows[1]["REF_AREA_label"], "Japan")
        self.assertIsNone(rows[2]["value"])

    def test_series_keyed_version_two_message(self) -> None:
        document = {
            "data": {
                "dataSets": [{"series": {"0": {"observations": {"0": [10], "1": ["11"]}}}}],
                "structures": [{
                    "dimensions": {
                        "series": [{"id": "REF_AREA", "values": [{"id": "DEU", "names": {"en": "Germany"}}]}],
                        "observation": [{"id": "TIME_PERIOD", "values": [{"id": "2020"}, {"id": "2021"}]}],
                    }
                }],
            }
        }
        rows = sdmx_rows(document)

        self.assertEqual([row["value"] for row in rows], [10, 11])
        self.assertEqual(rows[0]["REF_AREA_label"], "Germany")
        self.assertEqual(rows[1]["TIME_PERIOD"], "2021")
        self.assertEqual(rows[1]["TIME_PERIOD_label"], "2021")

    def test_key_out_of_range(self) -> None:
        document = {
            "dataSets": [{"observations": {"5": [1]}}],
            "structure": {"dimensions": {"observation": [{"id": "TIME_PERIOD", "values": [{"id": "2020"}]}]}},
        }
        with self.assertRaises(ResponseFormatError):
            sdmx_rows(document)

    def test_non_numeric_key_is_response_format_error(self) -> None:
        document = {
            "data": {
                "dataSets": [{"observations": {"x:0": [1.0]}}],
                "structure": {
                    "dimensions": {
                        "observation": [
                            {"id": "REF_AREA", "values": [{"id": "USA"}]},
                            {"id": "TIME_PERIOD", "values": [{"id": "2020"}]},
                        ]
                    }
                },
            }
        }
        with self.assertRaises(ResponseFormatError) as ctx:
            sdmx_rows(document)
        self.assertEqual(ctx.exception.source, "OECD")


class UniformColumnTests(unittest.TestCase):
    def test_union_of_keys_in_first_seen_order(self) -> None:
        rows = ensure_uniform_columns([{"a": 1}, {"b": 2, "a": 3}, {"c": 4}])
        self.assertEqual(rows, [
            {"a": 1, "b": None, "c": None},
            {"a": 3, "b": 2, "c": None},
            {"a": None, "b": None, "c": 4},
        ])

    def test_generic_rows(self) -> None:
        self.assertEqual(generic_rows([{"x": 1}, 5]), [{"index": 0, "x": 1}, {"index": 1, "value": 5}])
        self.assertEqual(generic_rows({"x": 1}), [{"x": 1}])
        self.assertEqual(generic_rows(None), [])

    def test_normalize_dispatches_by_source(self) -> None:
        rows = normalize(DataSource.EUROSTAT, jsonstat_document())
        self.assertEqual(len(rows), 3)
        self.assertEqual(normalize("estat", build_stats_data())[0]["cat01"], "Agriculture")
        self.assertEqual(normalize(DataSource.WORLDBANK, None), [])

        with self.assertRaises(ValueError):
            normalize("imf", {})

    def test_every_row_shares_the_column_set(self) -> None:
        for source, raw in (
            (DataSource.ESTAT, build_stats_data()),
            (DataSource.EUROSTAT, jsonstat_document()),
        ):
            with self.subTest(source=source):
                rows = normalize(source, raw)
                columns = columns_of(rows)
                for row in rows:
                    self.assertEqual(list(row.keys()), columns)


if __name__ == "__main__":
    unittest.main()
