from __future__ import annotations

import unittest

from statsmcp.models import PivotSpec, SortSpec, TimeSeriesSpec, TransformSpec
from statsmcp.services.transform import apply_transform, filter_rows, sort_rows, to_pivot, to_time_series


def gdp_rows():
    return [
        {"country": "JP", "year": "2021", "value": 5.0},
        {"country": "US", "year": "2020", "value": 21.0},
        {"country": "JP", "year": "2020", "value": 5.1},
        {"country": "US", "year": "2021", "value": 23.3},
    ]


class FilterTests(unittest.TestCase):
    def test_predicates_are_anded(self) -> None:
        rows = filter_rows(gdp_rows(), {"country": "JP", "year": "2020"})
        self.assertEqual(rows, [{"country": "JP", "year": "2020", "value": 5.1}])

    def test_missing_column_never_matches(self) -> None:
        self.assertEqual(filter_rows(gdp_rows(), {"region": None}), [])

    def test_empty_predicates_keep_everything(self) -> None:
        self.assertEqual(len(filter_rows(gdp_rows(), {})), 4)


class SortTests(unittest.TestCase):
    def test_multi_key_sort(self) -> None:
        rows = sort_rows(gdp_rows(), [SortSpec(column="country"), SortSpec(column="value", order="desc")])
        self.assertEqual([(r["country"], r["value"]) for r in rows], [("JP", 5.1), ("JP", 5.0), ("US", 23.3), ("US", 21.0)])

    def test_numbers_compare_numerically(self) -> None:
        rows = sort_rows([{"v": 10}, {"v": 9}, {"v": 100}], [SortSpec(column="v")])
        self.assertEqual([r["v"] for r in rows], [9, 10, 100])

    def test_mixed_values_compare_as_text(self) -> None:
        rows = sort_rows([{"v": "b"}, {"v": 10}, {"v": "a"}], [SortSpec(column="v")])
        self.assertEqual([r["v"] for r in rows], [10, "a", "b"])

    def test_sort_is_stable(self) -> None:
        rows = sort_rows(gdp_rows(), [SortSpec(column="country")])
        self.assertEqual([r["year"] for r in rows], ["2021", "2020", "2020", "2021"])


class ReshapeTests(unittest.TestCase):
    def test_time_series_projection(self) -> None:
        rows = to_time_series(gdp_rows()[:1], TimeSeriesSpec(dateColumn="year", valueColumn="value", groupColumn="country"))
        self.assertEqual(rows, [{"date": "2021", "value": 5.0, "group": "JP"}])

    def test_time_series_passes_other_columns_through(self) -> None:
        rows = to_time_series(gdp_rows()[:1], TimeSeriesSpec(dateColumn="year", valueColumn="value"))
        self.assertEqual(rows, [{"date": "2021", "value": 5.0, "country": "JP"}])

    def test_pivot(self) -> None:
        rows = to_pivot(gdp_rows(), PivotSpec(indexColumn="year", columnsColumn="country", valuesColumn="value"))
        self.assertEqual(rows, [
            {"year": "2021", "JP": 5.0, "US": 23.3},
            {"year": "2020", "JP": 5.1, "US": 21.0},
        ])

    def test_pivot_first_match_wins_and_gaps_are_none(self) -> None:
        rows = [
            {"k": 1, "c": "a", "v": 1},
            {"k": 1, "c": "a", "v": 2},
            {"k": 2, "c": "b", "v": 3},
        ]
        pivot = to_pivot(rows, PivotSpec(indexColumn="k", columnsColumn="c", valuesColumn="v"))
        self.assertEqual(pivot, [{"k": "1", "a": 1, "b": None}, {"k": "2", "a": None, "b": 3}])


class ApplyTransformTests(unittest.TestCase):
    def test_no_spec_returns_copy(self) -> None:
        rows = gdp_rows()
        result = apply_transform(rows, None)
        self.assertEqual(result, rows)
        self.assertIsNot(result, rows)

    def test_filter_then_sort_then_pivot(self) -> None:
        spec = TransformSpec(
            filter={"country": "US"},
            sort=[SortSpec(column="year")],
            asPivot=PivotSpec(indexColumn="country", columnsColumn="year", valuesColumn="value"),
        )
        self.assertEqual(apply_transform(gdp_rows(), spec), [{"country": "US", "2020": 21.0, "2021": 23.3}])

    def test_sort_then_time_series(self) -> None:
        spec = TransformSpec(
            sort=[SortSpec(column="year"), SortSpec(column="country")],
            asTimeSeries=TimeSeriesSpec(dateColumn="year", valueColumn="value", groupColumn="country"),
        )
        rows = apply_transform(gdp_rows(), spec)
        self.assertEqual([(r["date"], r["group"]) for r in rows], [("2020", "JP"), ("2020", "US"), ("2021", "JP"), ("2021", "US")])


if __name__ == "__main__":
    unittest.main()
