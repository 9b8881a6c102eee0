from __future__ import annotations

import math
import unittest

from statsmcp.models import StatisticKind
from statsmcp.services.statistics import (
    calculate_grouped_statistics,
    calculate_mode,
    calculate_quartiles,
    calculate_statistics,
    numeric_values,
    summarize_rows,
)

ALL_KINDS = [kind.value for kind in StatisticKind]


class StatisticsTests(unittest.TestCase):
    def test_basic_statistics(self) -> None:
        result = calculate_statistics([2, 4, 4, 4, 5, 5, 7, 9], ALL_KINDS)

        self.assertEqual(result["count"], 8)
        self.assertEqual(result["mean"], 5.0)
        self.assertEqual(result["median"], 4.5)
        self.assertEqual(result["mode"], 4.0)
        # Population variance and standard deviation
        self.assertEqual(result["variance"], 4.0)
        self.assertEqual(result["std"], 2.0)
        self.assertEqual(result["min"], 2.0)
        self.assertEqual(result["max"], 9.0)
        self.assertEqual(result["range"], 7.0)
        self.assertEqual(result["q1"], 4.0)
        self.assertEqual(result["q3"], 6.0)
        self.assertEqual(result["iqr"], 2.0)
        self.assertEqual(result["sum"], 40.0)

    def test_key_order_follows_request(self) -> None:
        result = calculate_statistics([1, 2, 3], ["max", "mean"])
        self.assertEqual(list(result), ["count", "max", "mean", "sum"])

    def test_quartiles_exclude_midpoint_for_odd_n(self) -> None:
        quartiles = calculate_quartiles([1, 2, 3, 4, 5, 6, 7])
        self.assertEqual(quartiles, {"q1": 2.0, "q2": 4.0, "q3": 6.0})

    def test_quartiles_of_single_value(self) -> None:
        self.assertEqual(calculate_quartiles([3.5]), {"q1": 3.5, "q2": 3.5, "q3": 3.5})
        result = calculate_statistics([3.5], ["iqr", "std"])
        self.assertEqual(result["iqr"], 0.0)
        self.assertEqual(result["std"], 0.0)

    def test_mode_tie_goes_to_smallest(self) -> None:
        self.assertEqual(calculate_mode([3, 1, 3, 1, 2]), 1.0)

    def test_empty_input_is_nan(self) -> None:
        result = calculate_statistics([], ["mean", "q1"])
        self.assertEqual(result["count"], 0)
        self.assertTrue(math.isnan(result["mean"]))
        self.assertTrue(math.isnan(result["q1"]))
        self.assertTrue(math.isnan(result["sum"]))

    def test_numeric_values_drop_missing(self) -> None:
        self.assertEqual(numeric_values([1, None, "2,000", "-", "abc", 3.5]), [1.0, 2000.0, 3.5])

    def test_ordering_invariants(self) -> None:
        for values in ([5], [3, 1], [9, 1, 4, 4, 7], [2.5, -1, 8, 8, 0.5, 3, 12, -4]):
            with self.subTest(values=values):
                result = calculate_statistics(values, ALL_KINDS)
                self.assertLessEqual(result["q1"], result["median"])
                self.assertLessEqual(result["median"], result["q3"])
                self.assertLessEqual(result["min"], result["mean"])
                self.assertLessEqual(result["mean"], result["max"])
                self.assertEqual(result["iqr"], result["q3"] - result["q1"])

    def test_invalid_kind(self) -> None:
        with self.assertRaises(ValueError):
            calculate_statistics([1.0], ["kurtosis"])


class GroupedStatisticsTests(unittest.TestCase):
    rows = [
        {"country": "JP", "value": 1},
        {"country": "US", "value": 10},
        {"country": "JP", "value": 3},
        {"country": "US", "value": None},
        {"country": None, "value": 7},
        {"country": "FR", "value": "-"},
    ]

    def test_groups_in_first_seen_order(self) -> None:
        result = calculate_grouped_statistics(self.rows, "country", "value", ["mean"])

        self.assertEqual([group["country"] for group in result], ["JP", "US", ""])
        self.assertEqual(result[0], {"country": "JP", "count": 2, "mean": 2.0, "sum": 4.0})
        # Null values are dropped rather than counted
        self.assertEqual(result[1]["count"], 1)

    def test_summarize_rows(self) -> None:
        overall = summarize_rows(self.rows, [StatisticKind.MAX])
        self.assertEqual(overall, {"count": 4, "max": 10.0, "sum": 21.0})

        grouped = summarize_rows(self.rows, ["min"], group_by="country")
        self.assertEqual(len(grouped), 3)

    def test_each_group_has_its_own_count(self) -> None:
        rows = [{"k": "a", "v": 1}, {"k": "b", "v": 10}, {"k": "a", "v": 2}, {"k": "a", "v": 3}]
        result = calculate_grouped_statistics(rows, "k", "v", ["mean"])
        self.assertEqual(result, [
            {"k": "a", "count": 3, "mean": 2.0, "sum": 6.0},
            {"k": "b", "count": 1, "mean": 10.0, "sum": 10.0},
        ])

    def test_empty_rows(self) -> None:
        self.assertEqual(calculate_grouped_statistics([], "country", "value", ["mean"]), [])


if __name__ == "__main__":
    unittest.main()
