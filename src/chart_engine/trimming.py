"""Chart and measure caps for auto-detected charts."""

from __future__ import annotations

import logging
from typing import List

from chart_engine.limits import ChartLimits
from chart_engine.scoring import get_chart_score, get_chart_y_field_score
from chart_engine.state import ProcessedChart

logger = logging.getLogger(__name__)


def apply_limits_on_charts(
    charts: List[ProcessedChart], limits: ChartLimits
) -> List[ProcessedChart]:
    """Keep every given chart plus the best-scoring auto charts, each with its best measures.

    Given charts keep their order and are never trimmed. Auto measures are trimmed
    in place on each surviving chart.
    """
    given = [chart for chart in charts if chart.is_given_definition]
    auto = [chart for chart in charts if not chart.is_given_definition]

    if len(auto) > limits.autodetect_chart_limit:
        ranked = sorted(auto, key=lambda chart: -get_chart_score(chart))
        kept = ranked[: limits.autodetect_chart_limit]
        logger.info("Trimmed auto-detected charts from %d to %d", len(auto), len(kept))
        auto = kept

    for chart in auto:
        ydefs = chart.definition.ydefs
        if len(ydefs) <= limits.autodetect_measures_limit:
            continue
        ranked_ydefs = sorted(ydefs, key=lambda ydef: -get_chart_y_field_score(chart, ydef))
        chart.definition.ydefs = ranked_ydefs[: limits.autodetect_measures_limit]
        logger.debug(
            "Trimmed measures on %s from %d to %d",
            chart.definition.xdef.field,
            len(ydefs),
            len(chart.definition.ydefs),
        )

    return [*given, *auto]
