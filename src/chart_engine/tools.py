"""Bucket-level primitives shared by aggregation and finalization.

These implement the collaborator contracts the processor depends on: bucket key
derivation, group transforms, numeric accumulation, timeline compaction and gap
filling, value ranges and bucket cardinality.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from chart_engine.classifier import ClassifiedRow
from chart_engine.dates import ParsedDate, next_bucket_start, try_parse_chart_date
from chart_engine.errors import ChartErrorCode, too_many_buckets_message
from chart_engine.limits import ChartLimits
from chart_engine.models import (
    COUNT_FIELD,
    DATE_TRANSFORMS,
    AggregateFunction,
    ChartType,
    XTransform,
)
from chart_engine.state import Bucket, OrderedKeySet, ProcessedChart

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChartYRange:
    """Observed value range of one measure; both ends None when nothing was seen."""

    min: Optional[float] = None
    max: Optional[float] = None


def stringify_key(value: Any) -> str:
    """Render an X or group value as a stable string key."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Decimal) and value.is_finite() and value == value.to_integral_value():
        try:
            return str(int(value))
        except ValueError:
            # beyond the int-to-str digit limit
            return str(value)
    if isinstance(value, int):
        try:
            return str(value)
        except ValueError:
            return hex(value)
    return str(value)


def compute_chart_bucket_key(
    parsed: Optional[ParsedDate], chart: ProcessedChart, row: Mapping[str, Any]
) -> Tuple[Optional[str], Optional[ParsedDate]]:
    """Derive ``(bucket_key, parsed_date_for_key)``; a None key means no bucket."""
    transform = chart.x_transform or XTransform.IDENTITY
    if transform.is_date:
        if parsed is None:
            return None, None
        key_date = parsed.truncate(transform)
        return key_date.format(transform), key_date

    value = row.get(chart.definition.xdef.field)
    if value is None:
        return None, None
    key = stringify_key(value)
    return (key or None), None


def run_transform_function(value: Any, transform: Optional[XTransform]) -> Optional[str]:
    """Apply a transform to a grouping value."""
    if value is None:
        return None
    if transform is None or not transform.is_date:
        return stringify_key(value)
    parsed = try_parse_chart_date(value)
    if parsed is None:
        return None
    return parsed.truncate(transform).format(transform)


def _accumulate(
    function: AggregateFunction, current: Optional[float], value: float, count: int
) -> float:
    # count is the number of values in the bucket including this one
    if current is None:
        return 1.0 if function == AggregateFunction.COUNT else value
    if function == AggregateFunction.SUM:
        return current + value
    if function == AggregateFunction.COUNT:
        return current + 1
    if function == AggregateFunction.MIN:
        return min(current, value)
    if function == AggregateFunction.MAX:
        return max(current, value)
    if function == AggregateFunction.FIRST:
        return current
    if function == AggregateFunction.LAST:
        return value
    return current + (value - current) / count


def aggregate_chart_numeric_values(
    chart: ProcessedChart, storage_key: str, classified: ClassifiedRow
) -> None:
    """Fold the row's numeric columns into one bucket and track validity counters."""
    bucket = chart.buckets[storage_key]
    counts = chart.value_counts.setdefault(storage_key, {})
    for ydef in chart.definition.ydefs:
        name = ydef.field
        if name == COUNT_FIELD:
            bucket[name] = bucket.get(name, 0) + 1
            chart.valid_y_rows[name] = chart.valid_y_rows.get(name, 0) + 1
            continue

        value = classified.number(name)
        if value is None:
            if classified.row.get(name) is not None:
                chart.invalid_y_rows[name] = chart.invalid_y_rows.get(name, 0) + 1
            continue

        chart.valid_y_rows[name] = chart.valid_y_rows.get(name, 0) + 1
        counts[name] = counts.get(name, 0) + 1
        bucket[name] = _accumulate(ydef.aggregate_function, bucket.get(name), value, counts[name])


def _merge_value(
    function: AggregateFunction,
    current: Optional[float],
    current_count: int,
    incoming: float,
    incoming_count: int,
) -> float:
    # incoming buckets are merged in chronological order
    if current is None:
        return incoming
    if function in (AggregateFunction.SUM, AggregateFunction.COUNT):
        return current + incoming
    if function == AggregateFunction.MIN:
        return min(current, incoming)
    if function == AggregateFunction.MAX:
        return max(current, incoming)
    if function == AggregateFunction.FIRST:
        return current
    if function == AggregateFunction.LAST:
        return incoming
    total = current_count + incoming_count
    if total <= 0:
        return current
    return (current * current_count + incoming * incoming_count) / total


def _coarser_transform(transform: XTransform) -> Optional[XTransform]:
    index = DATE_TRANSFORMS.index(transform)
    if index + 1 >= len(DATE_TRANSFORMS):
        return None
    return DATE_TRANSFORMS[index + 1]


def _regroup_timeline(chart: ProcessedChart, transform: XTransform) -> None:
    functions = {ydef.field: ydef.aggregate_function for ydef in chart.definition.ydefs}
    functions[COUNT_FIELD] = AggregateFunction.COUNT

    key_map: Dict[str, Tuple[str, ParsedDate]] = {}
    for key in chart.bucket_keys:
        parsed = chart.bucket_key_date_parsed.get(key)
        if parsed is None:
            continue
        coarse = parsed.truncate(transform)
        key_map[key] = (coarse.format(transform), coarse)

    buckets: Dict[str, Bucket] = {}
    value_counts: Dict[str, Dict[str, int]] = {}
    parts: Dict[str, Tuple[Optional[str], str]] = {}
    ordered_storage = sorted(
        chart.buckets, key=lambda storage: chart.storage_key_parts.get(storage, (None, storage))[1]
    )
    for storage in ordered_storage:
        group, key = chart.storage_key_parts.get(storage, (None, storage))
        if key not in key_map:
            continue
        new_key = key_map[key][0]
        new_storage = chart.storage_key(group, new_key)
        target = buckets.setdefault(new_storage, {})
        target_counts = value_counts.setdefault(new_storage, {})
        source_counts = chart.value_counts.get(storage, {})
        for name, value in chart.buckets[storage].items():
            function = functions.get(name, AggregateFunction.SUM)
            incoming_count = source_counts.get(name, 1)
            target[name] = _merge_value(
                function, target.get(name), target_counts.get(name, 0), value, incoming_count
            )
            target_counts[name] = target_counts.get(name, 0) + incoming_count
        parts[new_storage] = (group, new_key)

    bucket_keys: OrderedKeySet[str] = OrderedKeySet()
    date_parsed: Dict[str, ParsedDate] = {}
    for key in chart.bucket_keys:
        if key not in key_map:
            continue
        new_key, coarse = key_map[key]
        if bucket_keys.add(new_key):
            date_parsed[new_key] = coarse

    chart.buckets = buckets
    chart.value_counts = value_counts
    chart.storage_key_parts = parts
    chart.bucket_keys = bucket_keys
    chart.bucket_key_date_parsed = date_parsed
    chart.min_x = min(bucket_keys, default=None)
    chart.max_x = max(bucket_keys, default=None)
    chart.x_transform = transform


def compact_timeline_chart(chart: ProcessedChart, limits: ChartLimits) -> bool:
    """Coarsen a date timeline until its key count fits the compaction limit.

    Re-applying to an already compact chart is a no-op. Returns True when the
    granularity changed.
    """
    if chart.definition.chart_type != ChartType.TIMELINE or chart.is_errored:
        return False
    if chart.x_transform is None or not chart.x_transform.is_date:
        return False

    changed = False
    while len(chart.bucket_keys) > limits.timeline_compact_limit:
        coarser = _coarser_transform(chart.x_transform)
        if coarser is None:
            break
        previous = chart.x_transform
        _regroup_timeline(chart, coarser)
        changed = True
        logger.debug(
            "Compacted timeline on %s from %s to %s (%d buckets)",
            chart.definition.xdef.field,
            previous.value,
            coarser.value,
            len(chart.bucket_keys),
        )
    return changed


def fill_chart_timeline_buckets(chart: ProcessedChart, limits: ChartLimits) -> None:
    """Add every missing key between min_x and max_x so the series is contiguous."""
    transform = chart.x_transform
    if chart.is_errored or transform is None or not transform.is_date:
        return
    if chart.min_x is None or chart.max_x is None:
        return
    start = chart.bucket_key_date_parsed.get(chart.min_x)
    end = chart.bucket_key_date_parsed.get(chart.max_x)
    if start is None or end is None:
        return

    missing = []
    current = start.to_datetime()
    end_value = end.to_datetime()
    seen = 0
    while True:
        seen += 1
        if seen > limits.chart_fill_limit:
            chart.fail(
                too_many_buckets_message(limits.chart_fill_limit),
                ChartErrorCode.TOO_MANY_BUCKETS,
            )
            return
        parsed = ParsedDate.from_datetime(current).truncate(transform)
        key = parsed.format(transform)
        if key not in chart.bucket_keys:
            missing.append((key, parsed))
        # the last bucket has no successor at year 9999
        if current >= end_value:
            break
        current = next_bucket_start(current, transform)

    grouped = bool(chart.definition.grouping_field)
    for key, parsed in missing:
        chart.bucket_keys.add(key)
        chart.bucket_key_date_parsed[key] = parsed
        if not grouped:
            chart.buckets.setdefault(key, {})
            chart.storage_key_parts[key] = (None, key)


def compute_chart_bucket_cardinality(bucket: Optional[Mapping[str, float]]) -> float:
    """Total of all measure values in a bucket."""
    if not bucket:
        return 0.0
    return float(sum(bucket.values()))


def bucket_key_cardinalities(chart: ProcessedChart) -> Dict[str, float]:
    """Cardinality per plain bucket key, summed across groups."""
    totals: Dict[str, float] = {}
    for storage, bucket in chart.buckets.items():
        _, key = chart.storage_key_parts.get(storage, (None, storage))
        totals[key] = totals.get(key, 0.0) + compute_chart_bucket_cardinality(bucket)
    return totals


def get_chart_y_range(chart: ProcessedChart, field: str) -> ChartYRange:
    """Min and max of one measure across all buckets."""
    values = [bucket[field] for bucket in chart.buckets.values() if field in bucket]
    if not values:
        return ChartYRange()
    return ChartYRange(min=min(values), max=max(values))


def charts_have_similar_range(
    first: Optional[float], second: Optional[float], ratio: float
) -> bool:
    """Whether two maxima belong on one axis: same sign, within ``ratio`` of each other."""
    first = first or 0.0
    second = second or 0.0
    if first == second:
        return True
    if (first < 0) != (second < 0):
        return False
    low, high = sorted((abs(first), abs(second)))
    if low == 0:
        return False
    return high / low <= ratio


def merge_buckets(target: Bucket, sources: Iterable[Bucket]) -> None:
    """Field-wise sum of ``sources`` into ``target``."""
    for source in sources:
        for name, value in source.items():
            target[name] = target.get(name, 0) + value
