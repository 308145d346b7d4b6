"""Applying one classified row to one chart."""

from __future__ import annotations

from typing import Optional

from chart_engine.classifier import ClassifiedRow
from chart_engine.dates import ParsedDate
from chart_engine.errors import (
    ChartErrorCode,
    too_many_buckets_message,
    too_many_groups_message,
)
from chart_engine.limits import ChartLimits
from chart_engine.state import ProcessedChart
from chart_engine.tools import (
    aggregate_chart_numeric_values,
    compute_chart_bucket_key,
    run_transform_function,
)


def apply_raw_data(chart: ProcessedChart, classified: ClassifiedRow, limits: ChartLimits) -> None:
    """Accumulate one row into the chart's buckets.

    Row-local anomalies are skipped (missing X, unparseable date, no bucket key).
    The only failure is the group cap: the row that crosses it is still applied,
    then the chart is frozen for every later row.
    """
    if chart.is_errored:
        return

    definition = chart.definition
    x_field = definition.xdef.field
    if not x_field or classified.row.get(x_field) is None:
        return

    parsed = classified.date(x_field)
    if parsed is None and definition.xdef.transform_function.is_date:
        chart.invalid_x_rows += 1
        return

    bucket_key, key_date = compute_chart_bucket_key(parsed, chart, classified.row)

    group = None
    too_many_groups = False
    if definition.grouping_field:
        group = run_transform_function(
            classified.row.get(definition.grouping_field), definition.group_transform_function
        )
        if group:
            chart.groups.add(group)
        too_many_groups = len(chart.groups) > limits.chart_group_limit

    if bucket_key:
        _add_to_bucket(chart, classified, group, bucket_key, key_date)

    if too_many_groups:
        chart.fail(
            too_many_groups_message(limits.chart_group_limit), ChartErrorCode.TOO_MANY_GROUPS
        )


def _add_to_bucket(
    chart: ProcessedChart,
    classified: ClassifiedRow,
    group: Optional[str],
    bucket_key: str,
    key_date: Optional[ParsedDate],
) -> None:
    if key_date is not None:
        chart.bucket_key_date_parsed[bucket_key] = key_date
    if chart.min_x is None or bucket_key < chart.min_x:
        chart.min_x = bucket_key
    if chart.max_x is None or bucket_key > chart.max_x:
        chart.max_x = bucket_key

    storage_key = chart.storage_key(group, bucket_key)
    if storage_key not in chart.buckets:
        chart.buckets[storage_key] = {}
        chart.storage_key_parts[storage_key] = (group, bucket_key)
    chart.bucket_keys.add(bucket_key)

    aggregate_chart_numeric_values(chart, storage_key, classified)
    chart.rows_added += 1


def enforce_bucket_limit(chart: ProcessedChart, limits: ChartLimits) -> None:
    """Freeze the chart once its bucket map outgrows the fill limit."""
    if len(chart.buckets) > limits.chart_fill_limit:
        chart.fail(
            too_many_buckets_message(limits.chart_fill_limit), ChartErrorCode.TOO_MANY_BUCKETS
        )
