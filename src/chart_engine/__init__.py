"""Chart auto-detection and aggregation engine.

Turns a stream of query result rows into render-ready chart series.

Design Notes:
-------------
Pipeline per row:
  - Classify: infer date / number / string per column, widening column types.
  - Detect: without given definitions, synthesize timeline and bar candidates.
  - Aggregate: fold the row into each chart's buckets.

Finalize:
  - Split auto charts by measure range, re-apply caps, order keys, prune weak
    measures and collapse long-tail buckets of pie charts.

Limits:
  - Every cap lives in ``ChartLimits``; charts exceeding a hard cap are frozen
    and reported through their error message instead of raising.
"""

from chart_engine.classifier import AvailableColumn, DataType
from chart_engine.limits import ChartLimits
from chart_engine.models import (
    AggregateFunction,
    ChartDefinition,
    ChartType,
    ChartXFieldDefinition,
    ChartYFieldDefinition,
    SortOrder,
    XTransform,
)
from chart_engine.processor import ChartProcessor, FinalizeResult
from chart_engine.state import Active, Errored, OrderedKeySet, ProcessedChart

__all__ = [
    "Active",
    "AggregateFunction",
    "AvailableColumn",
    "ChartDefinition",
    "ChartLimits",
    "ChartProcessor",
    "ChartType",
    "ChartXFieldDefinition",
    "ChartYFieldDefinition",
    "DataType",
    "Errored",
    "FinalizeResult",
    "OrderedKeySet",
    "ProcessedChart",
    "SortOrder",
    "XTransform",
]
