"""Streaming chart processor: the engine's single entry point."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from chart_engine.aggregation import apply_raw_data, enforce_bucket_limit
from chart_engine.classifier import AvailableColumn, classify_row
from chart_engine.detection import run_auto_detect_charts
from chart_engine.finalize import finalize_charts
from chart_engine.limits import ChartLimits
from chart_engine.models import ChartDefinition, ChartType
from chart_engine.state import ProcessedChart
from chart_engine.tools import compact_timeline_chart
from chart_engine.trimming import apply_limits_on_charts
from common.observability.metrics import chart_metrics

logger = logging.getLogger(__name__)

DefinitionInput = Union[ChartDefinition, Mapping[str, Any]]


@dataclass
class FinalizeResult:
    """Ordered output charts plus the inferred columns of the whole stream."""

    charts: List[ProcessedChart] = field(default_factory=list)
    available_columns: List[AvailableColumn] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "charts": [chart.to_payload() for chart in self.charts],
            "availableColumns": [column.to_payload() for column in self.available_columns],
        }


def _coerce_definition(definition: DefinitionInput) -> ChartDefinition:
    if isinstance(definition, ChartDefinition):
        return definition.model_copy(deep=True)
    return ChartDefinition.model_validate(definition)


class ChartProcessor:
    """Aggregates a row stream into charts.

    With given definitions only those charts are built. Without them, charts are
    auto-detected from the classified columns, bounded by ``ChartLimits``.
    Not thread-safe; feed one instance from one consumer.
    """

    def __init__(
        self,
        given_definitions: Optional[Sequence[DefinitionInput]] = None,
        *,
        limits: Optional[ChartLimits] = None,
    ) -> None:
        """Validate definitions up front; malformed ones raise pydantic's ValidationError."""
        self.limits = limits if limits is not None else ChartLimits.from_env()
        self.given_definitions = [_coerce_definition(item) for item in given_definitions or []]
        self.charts_processing: List[ProcessedChart] = [
            ProcessedChart.from_definition(definition, is_given_definition=True)
            for definition in self.given_definitions
        ]
        self.available_columns_dict: Dict[str, AvailableColumn] = {}
        self.auto_detect_charts = not self.given_definitions
        self.rows_added = 0

    @property
    def available_columns(self) -> List[AvailableColumn]:
        return list(self.available_columns_dict.values())

    def add_row(self, row: Mapping[str, Any]) -> None:
        """Classify one row and apply it to every active chart."""
        classified = classify_row(row, self.available_columns_dict, self.limits.max_string_length)

        if self.auto_detect_charts:
            run_auto_detect_charts(self.charts_processing, classified, self.rows_added, self.limits)

        for chart in self.charts_processing:
            if chart.is_errored:
                continue
            apply_raw_data(chart, classified, self.limits)
            enforce_bucket_limit(chart, self.limits)

        for chart in self.charts_processing:
            if not chart.is_errored and chart.definition.chart_type == ChartType.TIMELINE:
                compact_timeline_chart(chart, self.limits)

        self.rows_added += 1
        if self.rows_added == self.limits.apply_limit_after_rows:
            self.charts_processing = apply_limits_on_charts(self.charts_processing, self.limits)

    def add_rows(self, *rows: Mapping[str, Any]) -> None:
        for row in rows:
            self.add_row(row)

    def finalize(self) -> FinalizeResult:
        """Build the output chart set; processing state is left untouched."""
        available_columns = self.available_columns
        charts = finalize_charts(self.charts_processing, available_columns, self.limits)

        given_count = sum(1 for chart in charts if chart.is_given_definition)
        logger.info(
            "Finalized %d charts (%d given, %d auto-detected) from %d rows",
            len(charts),
            given_count,
            len(charts) - given_count,
            self.rows_added,
        )
        chart_metrics.record_histogram(
            "chart_engine.finalize.rows",
            self.rows_added,
            description="Rows ingested before finalize",
        )
        chart_metrics.record_histogram(
            "chart_engine.finalize.charts",
            len(charts),
            description="Charts produced by finalize",
        )
        return FinalizeResult(charts=charts, available_columns=available_columns)
