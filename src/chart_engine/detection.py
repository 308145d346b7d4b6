"""Candidate chart synthesis for streams without given definitions."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from chart_engine.classifier import ClassifiedRow
from chart_engine.limits import ChartLimits
from chart_engine.models import (
    COUNT_FIELD,
    AggregateFunction,
    ChartDefinition,
    ChartType,
    ChartXFieldDefinition,
    ChartYFieldDefinition,
    XTransform,
)
from chart_engine.state import ProcessedChart

logger = logging.getLogger(__name__)

# (x field, date transform?, grouping field)
_ChartSignature = Tuple[str, bool, Optional[str]]


def _signature(chart: ProcessedChart) -> _ChartSignature:
    definition = chart.definition
    return (
        definition.xdef.field,
        definition.xdef.transform_function.is_date,
        definition.grouping_field,
    )


def _new_auto_chart(
    chart_type: ChartType, field: str, transform: XTransform, grouping_field: Optional[str]
) -> ProcessedChart:
    definition = ChartDefinition(
        chart_type=chart_type,
        xdef=ChartXFieldDefinition(field=field, transform_function=transform),
        ydefs=[
            ChartYFieldDefinition(field=COUNT_FIELD, aggregate_function=AggregateFunction.COUNT)
        ],
        grouping_field=grouping_field,
    )
    return ProcessedChart.from_definition(definition, is_given_definition=False)


def run_auto_detect_charts(
    charts: List[ProcessedChart],
    classified: ClassifiedRow,
    rows_added: int,
    limits: ChartLimits,
) -> List[ProcessedChart]:
    """Create or widen auto charts for the row's date and string columns.

    New charts are appended to ``charts``; the newly created ones are returned.
    Creation stays open while ``rows_added`` is below the row threshold or while
    the chart cap is not reached, and likewise for measures per chart.
    """
    existing: Dict[_ChartSignature, ProcessedChart] = {
        _signature(chart): chart for chart in charts if not chart.is_given_definition
    }
    strings = classified.strings
    measures = classified.measure_candidates
    below_row_threshold = rows_added < limits.apply_limit_after_rows
    created: List[ProcessedChart] = []

    passes = (
        (classified.dates, ChartType.TIMELINE, XTransform.DATE_DAY),
        (strings, ChartType.BAR, XTransform.IDENTITY),
    )
    for columns, chart_type, transform in passes:
        for xcol in columns:
            for grouping_field in [None, *strings]:
                if grouping_field == xcol:
                    continue

                signature = (xcol, transform.is_date, grouping_field)
                chart = existing.get(signature)
                if chart is None:
                    if not below_row_threshold and len(existing) >= limits.autodetect_chart_limit:
                        continue
                    chart = _new_auto_chart(chart_type, xcol, transform, grouping_field)
                    charts.append(chart)
                    existing[signature] = chart
                    created.append(chart)
                    logger.debug(
                        "Auto-detected %s chart on %s grouped by %s",
                        chart_type.value,
                        xcol,
                        grouping_field,
                    )

                ydefs = chart.definition.ydefs
                for name in measures:
                    if chart.definition.find_ydef(name) is not None:
                        continue
                    if not below_row_threshold and len(ydefs) >= limits.autodetect_measures_limit:
                        continue
                    ydefs.append(
                        ChartYFieldDefinition(field=name, aggregate_function=AggregateFunction.SUM)
                    )
    return created
