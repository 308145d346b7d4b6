"""Turning processed charts into the render-ready chart set."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from chart_engine.classifier import AvailableColumn
from chart_engine.limits import ChartLimits
from chart_engine.models import ChartType, SortOrder
from chart_engine.scoring import get_chart_score
from chart_engine.state import Bucket, ProcessedChart
from chart_engine.tools import (
    bucket_key_cardinalities,
    charts_have_similar_range,
    compact_timeline_chart,
    fill_chart_timeline_buckets,
    get_chart_y_range,
    merge_buckets,
)
from chart_engine.trimming import apply_limits_on_charts


def split_charts_by_ydefs(
    charts: Sequence[ProcessedChart], limits: ChartLimits
) -> List[ProcessedChart]:
    """Split each auto chart into clones whose measures share a comparable range.

    Every returned chart is a clone; the inputs are left untouched.
    """
    result: List[ProcessedChart] = []
    for chart in charts:
        if chart.is_given_definition:
            result.append(chart.clone())
            continue

        ydefs = chart.definition.ydefs
        maxima = {ydef.field: get_chart_y_range(chart, ydef.field).max for ydef in ydefs}
        unassigned = [ydef.field for ydef in ydefs]
        while unassigned:
            first = unassigned.pop(0)
            cluster = [first] + [
                name
                for name in unassigned
                if charts_have_similar_range(
                    maxima[first], maxima[name], limits.similar_range_ratio
                )
            ]
            unassigned = [name for name in unassigned if name not in cluster]

            definition = chart.definition.model_copy(deep=True)
            definition.ydefs = [ydef for ydef in definition.ydefs if ydef.field in cluster]
            result.append(chart.clone(definition=definition, fields=cluster))
    return result


def sort_bucket_keys(chart: ProcessedChart, limits: ChartLimits) -> None:
    """Assign ``bucket_keys_ordered`` according to the X sort order (default ascKeys).

    Date timelines are compacted and gap-filled before key sorting, which may freeze
    the chart when filling would exceed the fill limit.
    """
    sort_order = chart.definition.xdef.sort_order or SortOrder.ASC_KEYS

    if sort_order == SortOrder.NATURAL:
        chart.bucket_keys_ordered = list(chart.bucket_keys)
        return

    if sort_order in (SortOrder.ASC_KEYS, SortOrder.DESC_KEYS):
        if (
            chart.definition.chart_type == ChartType.TIMELINE
            and chart.definition.xdef.transform_function.is_date
        ):
            compact_timeline_chart(chart, limits)
            fill_chart_timeline_buckets(chart, limits)
            if chart.is_errored:
                return
        ordered = sorted(chart.bucket_keys)
    else:
        cardinalities = bucket_key_cardinalities(chart)
        ordered = sorted(chart.bucket_keys, key=lambda key: cardinalities.get(key, 0.0))

    if sort_order in (SortOrder.DESC_KEYS, SortOrder.DESC_VALUES):
        ordered.reverse()
    chart.bucket_keys_ordered = ordered


def prune_measures(chart: ProcessedChart, limits: ChartLimits) -> None:
    """Drop auto measures with any invalid row or too few valid rows."""
    rows = chart.rows_added

    def _is_valid(name: str) -> bool:
        if chart.invalid_y_rows.get(name):
            return False
        if rows == 0:
            return False
        return chart.valid_y_rows.get(name, 0) / rows >= limits.valid_value_ratio_limit

    chart.definition.ydefs = [ydef for ydef in chart.definition.ydefs if _is_valid(ydef.field)]


def group_pie_other_buckets(chart: ProcessedChart, limits: ChartLimits) -> None:
    """Collapse low-share and overflow bucket keys of proportion charts into one aggregate.

    Shares are computed per bucket key across groups; grouped charts get one aggregate
    per group.
    """
    if not chart.definition.chart_type.is_proportion:
        return

    definition = chart.definition
    ratio_limit = (
        definition.pie_ratio_limit
        if definition.pie_ratio_limit is not None
        else limits.pie_ratio_limit
    )
    count_limit = (
        definition.pie_count_limit
        if definition.pie_count_limit is not None
        else limits.pie_count_limit
    )
    if count_limit < 1 or count_limit > limits.max_pie_count_limit:
        count_limit = limits.max_pie_count_limit

    cardinalities = bucket_key_cardinalities(chart)
    total = sum(cardinalities.values())
    if total == 0:
        return

    collapsed = {key for key, value in cardinalities.items() if value / total < ratio_limit}
    kept = [key for key in cardinalities if key not in collapsed]
    if len(kept) > count_limit:
        ranked = sorted(kept, key=lambda key: -cardinalities[key])
        collapsed.update(ranked[count_limit:])
    if not collapsed:
        return

    other_key = limits.other_bucket_key
    buckets: Dict[str, Bucket] = {}
    others: Dict[Optional[str], Bucket] = {}
    for storage, bucket in chart.buckets.items():
        group, key = chart.storage_key_parts.get(storage, (None, storage))
        if key in collapsed:
            merge_buckets(others.setdefault(group, {}), [bucket])
        else:
            merge_buckets(buckets.setdefault(storage, {}), [bucket])

    # collapsed buckets without any measure value leave no aggregate behind
    for group, other in others.items():
        if not other:
            continue
        storage = chart.storage_key(group, other_key)
        chart.storage_key_parts[storage] = (group, other_key)
        merge_buckets(buckets.setdefault(storage, {}), [other])

    remaining = {key for key in cardinalities if key not in collapsed}
    ordered = list(chart.bucket_keys_ordered)
    if any(others.values()):
        chart.bucket_keys.add(other_key)
        remaining.add(other_key)
        ordered.append(other_key)
    chart.buckets = buckets
    chart.bucket_keys_ordered = [key for key in dict.fromkeys(ordered) if key in remaining]


def finalize_charts(
    charts: Sequence[ProcessedChart],
    available_columns: List[AvailableColumn],
    limits: ChartLimits,
) -> List[ProcessedChart]:
    """Produce the ordered output: given charts first, then surviving auto charts by score."""
    given: List[ProcessedChart] = []
    auto: List[ProcessedChart] = []

    for chart in apply_limits_on_charts(split_charts_by_ydefs(charts, limits), limits):
        chart.available_columns = available_columns
        target = given if chart.is_given_definition else auto

        if not chart.is_errored:
            if chart.rows_added == 0 and not chart.is_given_definition:
                continue
            sort_bucket_keys(chart, limits)

        if chart.is_errored:
            if not chart.bucket_keys_ordered:
                chart.bucket_keys_ordered = list(chart.bucket_keys)
            target.append(chart)
            continue

        if not chart.is_given_definition:
            prune_measures(chart, limits)

        trim = chart.definition.trim_x_count_limit
        if trim is not None and len(chart.bucket_keys_ordered) > trim:
            chart.bucket_keys_ordered = chart.bucket_keys_ordered[:trim]

        group_pie_other_buckets(chart, limits)
        target.append(chart)

    ranked_auto = sorted(
        (chart for chart in auto if not chart.is_errored and chart.definition.ydefs),
        key=lambda chart: -get_chart_score(chart),
    )
    return [*given, *ranked_auto]
