"""Shared builders for chart engine tests."""

from typing import Any, Dict, Optional

from chart_engine.aggregation import apply_raw_data
from chart_engine.classifier import classify_row
from chart_engine.limits import ChartLimits
from chart_engine.models import ChartDefinition
from chart_engine.state import ProcessedChart


def make_chart(
    definition: Dict[str, Any], *, given: bool = True, **state: Any
) -> ProcessedChart:
    """Build a processed chart from a camelCase definition payload."""
    chart = ProcessedChart.from_definition(
        ChartDefinition.model_validate(definition), is_given_definition=given
    )
    for name, value in state.items():
        setattr(chart, name, value)
    return chart


def feed(chart: ProcessedChart, *rows: Dict[str, Any], limits: Optional[ChartLimits] = None):
    """Classify and apply rows to one chart."""
    limits = limits or ChartLimits()
    for row in rows:
        apply_raw_data(chart, classify_row(row, {}, limits.max_string_length), limits)
    return chart
