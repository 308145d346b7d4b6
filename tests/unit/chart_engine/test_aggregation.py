import unittest

import pytest

from chart_engine.aggregation import apply_raw_data, enforce_bucket_limit
from chart_engine.classifier import classify_row
from chart_engine.errors import ChartErrorCode
from chart_engine.limits import ChartLimits
from tests._support.charts import feed, make_chart

BAR = {"chartType": "bar", "xdef": {"field": "k"}, "ydefs": [{"field": "v"}]}
TIMELINE = {
    "chartType": "timeline",
    "xdef": {"field": "created", "transformFunction": "date:day"},
    "ydefs": [{"field": "__count", "aggregateFunction": "count"}],
}


class TestApplyRawData(unittest.TestCase):
    """Unit tests for folding rows into chart buckets."""

    def test_rows_without_x_are_skipped(self):
        """Missing or null X values never touch the chart."""
        chart = feed(make_chart(BAR), {"v": 1}, {"k": None, "v": 2})
        self.assertEqual(chart.rows_added, 0)
        self.assertEqual(chart.buckets, {})
        self.assertEqual(chart.invalid_x_rows, 0)

    def test_unparseable_date_counts_invalid_x(self):
        """A date transform with a non-date X value is counted, not bucketed."""
        chart = feed(make_chart(TIMELINE), {"created": "soon"}, {"created": "2024-01-02"})
        self.assertEqual(chart.invalid_x_rows, 1)
        self.assertEqual(chart.rows_added, 1)
        self.assertEqual(list(chart.bucket_keys), ["2024-01-02"])
        self.assertEqual(chart.buckets["2024-01-02"], {"__count": 1})

    def test_numeric_x_keys_are_stringified(self):
        """Integral numbers render without a decimal part."""
        chart = feed(make_chart(BAR), {"k": 3.0, "v": 1}, {"k": 2.5, "v": 1})
        self.assertEqual(list(chart.bucket_keys), ["3", "2.5"])

    def test_min_and_max_x_track_keys(self):
        chart = feed(
            make_chart(TIMELINE),
            {"created": "2024-01-05"},
            {"created": "2024-01-01"},
            {"created": "2024-01-03"},
        )
        self.assertEqual(chart.min_x, "2024-01-01")
        self.assertEqual(chart.max_x, "2024-01-05")
        self.assertEqual(list(chart.bucket_keys), ["2024-01-05", "2024-01-01", "2024-01-03"])

    def test_grouped_storage_keys(self):
        """Grouped charts store buckets under group::key."""
        chart = feed(
            make_chart({**BAR, "groupingField": "region"}),
            {"k": "A", "region": "EU", "v": 2},
            {"k": "A", "region": "US", "v": 3},
            {"k": "A", "region": "EU", "v": 4},
        )
        self.assertEqual(chart.buckets, {"EU::A": {"v": 6}, "US::A": {"v": 3}})
        self.assertEqual(chart.storage_key_parts["EU::A"], ("EU", "A"))
        self.assertEqual(list(chart.groups), ["EU", "US"])
        self.assertEqual(list(chart.bucket_keys), ["A"])

    def test_invalid_and_valid_y_rows(self):
        """Non-numeric values count as invalid; nulls count as neither."""
        chart = feed(
            make_chart(BAR),
            {"k": "a", "v": 1},
            {"k": "a", "v": "abc"},
            {"k": "a", "v": None},
        )
        self.assertEqual(chart.valid_y_rows, {"v": 1})
        self.assertEqual(chart.invalid_y_rows, {"v": 1})
        self.assertEqual(chart.rows_added, 3)
        self.assertEqual(chart.buckets["a"], {"v": 1})


class TestHardCaps(unittest.TestCase):
    """Unit tests for group and bucket caps."""

    def test_group_cap_freezes_chart(self):
        """The row that crosses the group cap is applied; later rows are not."""
        limits = ChartLimits(chart_group_limit=2)
        chart = make_chart({**BAR, "groupingField": "region"})
        feed(
            chart,
            {"k": "A", "region": "EU", "v": 1},
            {"k": "A", "region": "US", "v": 1},
            {"k": "A", "region": "APAC", "v": 1},
            {"k": "B", "region": "EU", "v": 1},
            limits=limits,
        )
        self.assertTrue(chart.is_errored)
        self.assertEqual(chart.state.code, ChartErrorCode.TOO_MANY_GROUPS)
        self.assertEqual(chart.error_message, "Chart has too many groups, limit is 2.")
        self.assertEqual(chart.rows_added, 3)
        self.assertEqual(chart.buckets["APAC::A"], {"v": 1})
        self.assertNotIn("B", chart.bucket_keys)

    def test_crossing_row_writes_its_grouped_bucket(self):
        chart = feed(
            make_chart({**BAR, "groupingField": "region"}),
            {"k": "a", "region": "x", "v": 1},
            {"k": "b", "region": "y", "v": 2},
            limits=ChartLimits(chart_group_limit=1),
        )
        self.assertTrue(chart.is_errored)
        self.assertEqual(chart.buckets, {"x::a": {"v": 1}, "y::b": {"v": 2}})
        self.assertEqual(list(chart.bucket_keys), ["a", "b"])

    def test_bucket_cap_freezes_chart(self):
        """Exceeding the fill limit errors the chart; later rows are ignored."""
        limits = ChartLimits(chart_fill_limit=3)
        chart = make_chart(BAR)
        for key in ("a", "b", "c", "d", "e"):
            apply_raw_data(chart, classify_row({"k": key, "v": 1}, {}, 100), limits)
            enforce_bucket_limit(chart, limits)

        self.assertTrue(chart.is_errored)
        self.assertEqual(chart.state.code, ChartErrorCode.TOO_MANY_BUCKETS)
        self.assertEqual(chart.error_message, "Chart has too many buckets, limit is 3.")
        self.assertEqual(len(chart.buckets), 4)
        self.assertEqual(chart.rows_added, 4)

    def test_first_failure_wins(self):
        chart = make_chart(BAR)
        self.assertTrue(chart.fail("first", ChartErrorCode.TOO_MANY_GROUPS))
        self.assertFalse(chart.fail("second", ChartErrorCode.TOO_MANY_BUCKETS))
        self.assertEqual(chart.error_message, "first")


@pytest.mark.parametrize(
    "function, expected",
    [
        ("sum", 12),
        ("min", 2),
        ("max", 6),
        ("avg", 4),
        ("first", 4),
        ("last", 6),
        ("count", 3),
    ],
)
def test_aggregate_functions(function, expected):
    """Each aggregate folds 4, 2, 6 into one bucket."""
    chart = make_chart(
        {
            "chartType": "bar",
            "xdef": {"field": "k"},
            "ydefs": [{"field": "v", "aggregateFunction": function}],
        }
    )
    feed(chart, {"k": "a", "v": 4}, {"k": "a", "v": "2"}, {"k": "a", "v": 6})
    assert chart.buckets["a"]["v"] == pytest.approx(expected)
    assert chart.value_counts["a"]["v"] == 3
