import unittest

from chart_engine.classifier import classify_row
from chart_engine.detection import run_auto_detect_charts
from chart_engine.limits import ChartLimits
from chart_engine.models import AggregateFunction, ChartType, XTransform

INVOICE = {
    "created": "2024-01-05",
    "region": "EU",
    "status": "paid",
    "amount": 120.5,
    "customer_id": 42,
}


def _detect(charts, row, rows_added, limits):
    classified = classify_row(row, {}, limits.max_string_length)
    return run_auto_detect_charts(charts, classified, rows_added, limits)


class TestAutoDetect(unittest.TestCase):
    """Unit tests for candidate chart synthesis."""

    def test_invoice_row_candidates(self):
        """One date and two strings yield three timelines and four bar charts."""
        charts = []
        created = _detect(charts, INVOICE, 0, ChartLimits())

        self.assertEqual(len(created), 7)
        self.assertEqual(created, charts)
        signatures = [
            (c.definition.chart_type, c.definition.xdef.field, c.definition.grouping_field)
            for c in charts
        ]
        self.assertEqual(
            signatures,
            [
                (ChartType.TIMELINE, "created", None),
                (ChartType.TIMELINE, "created", "region"),
                (ChartType.TIMELINE, "created", "status"),
                (ChartType.BAR, "region", None),
                (ChartType.BAR, "region", "status"),
                (ChartType.BAR, "status", None),
                (ChartType.BAR, "status", "region"),
            ],
        )
        for chart in charts:
            self.assertFalse(chart.is_given_definition)
            self.assertEqual(
                [(y.field, y.aggregate_function) for y in chart.definition.ydefs],
                [("__count", AggregateFunction.COUNT), ("amount", AggregateFunction.SUM)],
            )
        self.assertEqual(charts[0].definition.xdef.transform_function, XTransform.DATE_DAY)
        self.assertEqual(charts[3].definition.xdef.transform_function, XTransform.IDENTITY)

    def test_repeat_rows_do_not_duplicate(self):
        charts = []
        limits = ChartLimits()
        _detect(charts, INVOICE, 0, limits)
        created = _detect(charts, INVOICE, 1, limits)
        self.assertEqual(created, [])
        self.assertEqual(len(charts), 7)

    def test_new_measures_widen_existing_charts(self):
        charts = []
        limits = ChartLimits()
        _detect(charts, INVOICE, 0, limits)
        _detect(charts, {**INVOICE, "tax": "3.5"}, 1, limits)
        self.assertEqual(
            [y.field for y in charts[0].definition.ydefs], ["__count", "amount", "tax"]
        )

    def test_chart_cap_applies_after_row_threshold(self):
        """Past the threshold, no chart is created once the cap is reached."""
        limits = ChartLimits(apply_limit_after_rows=1, autodetect_chart_limit=2)
        charts = []
        _detect(charts, INVOICE, 0, limits)
        self.assertEqual(len(charts), 7)

        created = _detect(charts, {**INVOICE, "channel": "web"}, 1, limits)
        self.assertEqual(created, [])
        self.assertEqual(len(charts), 7)

    def test_chart_cap_leaves_room_below_limit(self):
        limits = ChartLimits(apply_limit_after_rows=1, autodetect_chart_limit=3)
        charts = []
        _detect(charts, {"region": "EU"}, 0, limits)
        created = _detect(charts, {"region": "EU", "status": "paid"}, 1, limits)
        self.assertEqual(len(charts), 3)
        self.assertEqual(len(created), 2)

    def test_measure_cap_applies_after_row_threshold(self):
        limits = ChartLimits(apply_limit_after_rows=1, autodetect_measures_limit=2)
        charts = []
        _detect(charts, INVOICE, 0, limits)
        _detect(charts, {**INVOICE, "tax": 3}, 1, limits)
        for chart in charts:
            self.assertEqual([y.field for y in chart.definition.ydefs], ["__count", "amount"])

    def test_identifier_columns_are_not_measures(self):
        charts = []
        _detect(charts, {"region": "EU", "order_id": 5, "customerId": 8}, 0, ChartLimits())
        self.assertEqual([y.field for y in charts[0].definition.ydefs], ["__count"])
