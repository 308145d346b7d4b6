"""Chart definition models.

Definitions arrive from the UI as camelCase JSON; both camelCase aliases and
snake_case field names are accepted, and payloads are emitted with aliases.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

COUNT_FIELD = "__count"


class ChartType(str, Enum):
    """Supported render types."""

    BAR = "bar"
    LINE = "line"
    TIMELINE = "timeline"
    PIE = "pie"
    POLAR_AREA = "polarArea"

    @property
    def is_proportion(self) -> bool:
        return self in (ChartType.PIE, ChartType.POLAR_AREA)


class XTransform(str, Enum):
    """Transform applied to the X value (or the group value) before bucketing."""

    IDENTITY = "identity"
    DATE_MINUTE = "date:minute"
    DATE_HOUR = "date:hour"
    DATE_DAY = "date:day"
    DATE_MONTH = "date:month"
    DATE_YEAR = "date:year"

    @property
    def is_date(self) -> bool:
        return self.value.startswith("date:")


# finest first
DATE_TRANSFORMS = (
    XTransform.DATE_MINUTE,
    XTransform.DATE_HOUR,
    XTransform.DATE_DAY,
    XTransform.DATE_MONTH,
    XTransform.DATE_YEAR,
)


class SortOrder(str, Enum):
    """Ordering policy for the finalized X axis."""

    NATURAL = "natural"
    ASC_KEYS = "ascKeys"
    DESC_KEYS = "descKeys"
    ASC_VALUES = "ascValues"
    DESC_VALUES = "descValues"


class AggregateFunction(str, Enum):
    """Per-bucket accumulation for one measure."""

    SUM = "sum"
    FIRST = "first"
    LAST = "last"
    MIN = "min"
    MAX = "max"
    COUNT = "count"
    AVG = "avg"


class _ChartModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ChartXFieldDefinition(_ChartModel):
    """X axis definition."""

    field: str
    transform_function: XTransform = Field(XTransform.IDENTITY, alias="transformFunction")
    sort_order: Optional[SortOrder] = Field(None, alias="sortOrder")


class ChartYFieldDefinition(_ChartModel):
    """One measure: a field and how it aggregates per bucket."""

    field: str
    aggregate_function: AggregateFunction = Field(AggregateFunction.SUM, alias="aggregateFunction")


class ChartDefinition(_ChartModel):
    """Full chart definition, given by the caller or synthesized by auto-detection."""

    chart_type: ChartType = Field(..., alias="chartType")
    xdef: ChartXFieldDefinition
    ydefs: List[ChartYFieldDefinition] = Field(default_factory=list)
    grouping_field: Optional[str] = Field(None, alias="groupingField")
    group_transform_function: Optional[XTransform] = Field(None, alias="groupTransformFunction")
    pie_ratio_limit: Optional[float] = Field(None, alias="pieRatioLimit", ge=0, le=1)
    pie_count_limit: Optional[int] = Field(None, alias="pieCountLimit")
    trim_x_count_limit: Optional[int] = Field(None, alias="trimXCountLimit", ge=0)
    title: Optional[str] = None

    def find_ydef(self, field: str) -> Optional[ChartYFieldDefinition]:
        for ydef in self.ydefs:
            if ydef.field == field:
                return ydef
        return None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
