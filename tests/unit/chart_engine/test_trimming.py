import unittest

from chart_engine.limits import ChartLimits
from chart_engine.scoring import get_chart_score
from chart_engine.trimming import apply_limits_on_charts
from tests._support.charts import feed, make_chart

TIMELINE = {
    "chartType": "timeline",
    "xdef": {"field": "created", "transformFunction": "date:day"},
    "ydefs": [{"field": "__count", "aggregateFunction": "count"}],
}
MEASURES = {
    "chartType": "bar",
    "xdef": {"field": "k"},
    "ydefs": [{"field": "m1"}, {"field": "m2"}, {"field": "m3"}],
}
MEASURE_ROWS = (
    {"k": "a", "m1": 1, "m2": 1, "m3": 5},
    {"k": "b", "m1": 2, "m2": 1, "m3": 6},
    {"k": "c", "m1": 3, "m2": "x", "m3": 7},
)


def _timeline_with_days(days, given=False):
    chart = make_chart(TIMELINE, given=given)
    return feed(chart, *({"created": f"2024-01-{day:02d}"} for day in range(1, days + 1)))


class TestApplyLimitsOnCharts(unittest.TestCase):
    """Unit tests for auto chart and measure caps."""

    def test_keeps_best_auto_charts_after_given(self):
        """Given charts survive and lead; auto charts keep the top scores."""
        limits = ChartLimits(autodetect_chart_limit=2)
        given = _timeline_with_days(1, given=True)
        small, medium, large = (_timeline_with_days(days) for days in (2, 5, 10))
        self.assertGreater(get_chart_score(large), get_chart_score(medium))
        self.assertGreater(get_chart_score(medium), get_chart_score(small))

        result = apply_limits_on_charts([small, given, medium, large], limits)

        self.assertEqual(result, [given, large, medium])

    def test_under_cap_keeps_everything(self):
        charts = [_timeline_with_days(2), _timeline_with_days(3)]
        self.assertEqual(apply_limits_on_charts(charts, ChartLimits()), charts)

    def test_trims_auto_measures_by_score(self):
        """Constant and partly invalid measures go first."""
        chart = feed(make_chart(MEASURES, given=False), *MEASURE_ROWS)

        apply_limits_on_charts([chart], ChartLimits(autodetect_measures_limit=2))

        self.assertEqual([y.field for y in chart.definition.ydefs], ["m1", "m3"])

    def test_given_measures_are_never_trimmed(self):
        chart = feed(make_chart(MEASURES, given=True), *MEASURE_ROWS)

        apply_limits_on_charts([chart], ChartLimits(autodetect_measures_limit=1))

        self.assertEqual([y.field for y in chart.definition.ydefs], ["m1", "m2", "m3"])
