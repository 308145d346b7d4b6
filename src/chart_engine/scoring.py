"""Ranking heuristics for auto-detected charts and their measures.

Scores only order candidates against each other; their absolute values carry no
meaning.
"""

from __future__ import annotations

from chart_engine.models import COUNT_FIELD, ChartType, ChartYFieldDefinition
from chart_engine.state import ProcessedChart
from chart_engine.tools import get_chart_y_range

_PREFERRED_BUCKET_COUNT = 20
_CROWDED_BUCKET_COUNT = 100
_MAX_SCORED_MEASURES = 4
_READABLE_GROUP_RANGE = (2, 8)


def get_chart_score(chart: ProcessedChart) -> float:
    """Higher is a more useful chart to show first."""
    if chart.is_errored:
        return -1.0
    bucket_count = len(chart.bucket_keys)
    if chart.rows_added == 0 or bucket_count < 2:
        return 0.0

    score = min(bucket_count, _PREFERRED_BUCKET_COUNT) / _PREFERRED_BUCKET_COUNT
    if bucket_count > _CROWDED_BUCKET_COUNT:
        score -= 0.5

    if chart.definition.chart_type == ChartType.TIMELINE:
        score += 0.5
    elif chart.rows_added / bucket_count < 1.5:
        # nearly one row per category: a bar chart of unique labels
        score -= 0.5

    measures = [ydef for ydef in chart.definition.ydefs if ydef.field != COUNT_FIELD]
    score += 0.25 * min(len(measures), _MAX_SCORED_MEASURES)

    if chart.definition.grouping_field:
        low, high = _READABLE_GROUP_RANGE
        score += 0.25 if low <= len(chart.groups) <= high else -0.5
    return score


def get_chart_y_field_score(chart: ProcessedChart, ydef: ChartYFieldDefinition) -> float:
    """Higher is a more informative measure for this chart."""
    if ydef.field == COUNT_FIELD:
        return 0.5
    if chart.rows_added == 0:
        return 0.0

    score = chart.valid_y_rows.get(ydef.field, 0) / chart.rows_added
    y_range = get_chart_y_range(chart, ydef.field)
    if y_range.min is not None and y_range.min != y_range.max:
        score += 0.5
    if chart.invalid_y_rows.get(ydef.field):
        score -= 0.5
    return score
