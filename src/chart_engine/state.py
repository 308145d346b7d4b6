"""Per-chart aggregation state."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Iterable, Iterator, List, Optional, Tuple, TypeVar, Union

from chart_engine.classifier import AvailableColumn
from chart_engine.dates import ParsedDate
from chart_engine.errors import ChartErrorCode
from chart_engine.models import ChartDefinition, XTransform
from common.observability.metrics import chart_metrics

logger = logging.getLogger(__name__)

K = TypeVar("K")


class OrderedKeySet(Generic[K]):
    """Insertion-ordered set with O(1) membership."""

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[K] = ()) -> None:
        self._items: Dict[K, None] = dict.fromkeys(items)

    def add(self, key: K) -> bool:
        """Add ``key``; return True when it was not present yet."""
        if key in self._items:
            return False
        self._items[key] = None
        return True

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __iter__(self) -> Iterator[K]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, OrderedKeySet):
            return list(self._items) == list(other._items)
        return NotImplemented

    def __repr__(self) -> str:
        return f"OrderedKeySet({list(self._items)!r})"

    def copy(self) -> "OrderedKeySet[K]":
        return OrderedKeySet(self._items)


@dataclass(frozen=True)
class Active:
    """Chart still accepts rows."""


@dataclass(frozen=True)
class Errored:
    """Chart hit a hard cap and is frozen."""

    reason: str
    code: ChartErrorCode


ChartState = Union[Active, Errored]

ACTIVE = Active()

Bucket = Dict[str, float]


@dataclass
class ProcessedChart:
    """The mutable aggregation unit for one chart definition.

    ``buckets`` is keyed by storage key, which is ``group::bucketKey`` for grouped
    charts and the plain bucket key otherwise. ``bucket_keys`` holds plain bucket
    keys in first-seen order; ``bucket_keys_ordered`` is assigned at finalize.
    """

    definition: ChartDefinition
    is_given_definition: bool = False
    rows_added: int = 0
    buckets: Dict[str, Bucket] = field(default_factory=dict)
    bucket_keys: OrderedKeySet[str] = field(default_factory=OrderedKeySet)
    bucket_keys_ordered: List[str] = field(default_factory=list)
    groups: OrderedKeySet[str] = field(default_factory=OrderedKeySet)
    storage_key_parts: Dict[str, Tuple[Optional[str], str]] = field(default_factory=dict)
    value_counts: Dict[str, Dict[str, int]] = field(default_factory=dict)
    invalid_x_rows: int = 0
    invalid_y_rows: Dict[str, int] = field(default_factory=dict)
    valid_y_rows: Dict[str, int] = field(default_factory=dict)
    bucket_key_date_parsed: Dict[str, ParsedDate] = field(default_factory=dict)
    min_x: Optional[str] = None
    max_x: Optional[str] = None
    x_transform: Optional[XTransform] = None
    state: ChartState = ACTIVE
    available_columns: List[AvailableColumn] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.x_transform is None:
            self.x_transform = self.definition.xdef.transform_function

    @classmethod
    def from_definition(
        cls, definition: ChartDefinition, *, is_given_definition: bool
    ) -> "ProcessedChart":
        return cls(definition=definition, is_given_definition=is_given_definition)

    @property
    def is_errored(self) -> bool:
        return isinstance(self.state, Errored)

    @property
    def error_message(self) -> Optional[str]:
        return self.state.reason if isinstance(self.state, Errored) else None

    def fail(self, reason: str, code: ChartErrorCode) -> bool:
        """Freeze the chart; only the first failure is recorded."""
        if self.is_errored:
            return False
        self.state = Errored(reason=reason, code=code)
        logger.warning(
            "Chart on %s (%s) stopped aggregating: %s",
            self.definition.xdef.field,
            self.definition.chart_type.value,
            reason,
        )
        chart_metrics.add_counter(
            "chart_engine.chart_errored_total",
            description="Charts frozen after exceeding a hard cap",
            attributes={"code": code.value},
        )
        return True

    def storage_key(self, group: Optional[str], bucket_key: str) -> str:
        if self.definition.grouping_field:
            return f"{group or ''}::{bucket_key}"
        return bucket_key

    def clone(
        self,
        *,
        definition: Optional[ChartDefinition] = None,
        fields: Optional[Iterable[str]] = None,
    ) -> "ProcessedChart":
        """Copy every container so the clone can be finalized independently.

        ``fields`` restricts each bucket to those measures.
        """
        keep = set(fields) if fields is not None else None
        return ProcessedChart(
            definition=(
                definition if definition is not None else self.definition.model_copy(deep=True)
            ),
            is_given_definition=self.is_given_definition,
            rows_added=self.rows_added,
            buckets={
                key: {
                    name: value
                    for name, value in bucket.items()
                    if keep is None or name in keep
                }
                for key, bucket in self.buckets.items()
            },
            bucket_keys=self.bucket_keys.copy(),
            bucket_keys_ordered=list(self.bucket_keys_ordered),
            groups=self.groups.copy(),
            storage_key_parts=dict(self.storage_key_parts),
            value_counts={key: dict(counts) for key, counts in self.value_counts.items()},
            invalid_x_rows=self.invalid_x_rows,
            invalid_y_rows=dict(self.invalid_y_rows),
            valid_y_rows=dict(self.valid_y_rows),
            bucket_key_date_parsed=dict(self.bucket_key_date_parsed),
            min_x=self.min_x,
            max_x=self.max_x,
            x_transform=self.x_transform,
            state=self.state,
            available_columns=list(self.available_columns),
        )

    def to_payload(self) -> Dict[str, Any]:
        """Render a JSON-safe snapshot for the rendering layer."""
        payload: Dict[str, Any] = {
            "definition": self.definition.to_payload(),
            "isGivenDefinition": self.is_given_definition,
            "rowsAdded": self.rows_added,
            "bucketKeysOrdered": list(self.bucket_keys_ordered),
            "buckets": {key: dict(bucket) for key, bucket in self.buckets.items()},
            "groups": list(self.groups),
            "invalidXRows": self.invalid_x_rows,
            "invalidYRows": dict(self.invalid_y_rows),
            "validYRows": dict(self.valid_y_rows),
            "minX": self.min_x,
            "maxX": self.max_x,
            "xTransform": self.x_transform.value if self.x_transform else None,
            "availableColumns": [column.to_payload() for column in self.available_columns],
        }
        if isinstance(self.state, Errored):
            payload["errorMessage"] = self.state.reason
            payload["errorCode"] = self.state.code.value
        return payload
