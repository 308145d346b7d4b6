"""Caps and thresholds bounding chart detection and aggregation."""

from __future__ import annotations

from dataclasses import dataclass

from common.config.env import get_env_float, get_env_int, get_env_str

_DEFAULT_APPLY_LIMIT_AFTER_ROWS = 100
_DEFAULT_AUTODETECT_CHART_LIMIT = 10
_DEFAULT_AUTODETECT_MEASURES_LIMIT = 10
_DEFAULT_CHART_FILL_LIMIT = 10_000
_DEFAULT_CHART_GROUP_LIMIT = 32
_DEFAULT_VALID_VALUE_RATIO_LIMIT = 0.5
_DEFAULT_PIE_RATIO_LIMIT = 0.05
_DEFAULT_PIE_COUNT_LIMIT = 10
_DEFAULT_MAX_PIE_COUNT_LIMIT = 50
_DEFAULT_TIMELINE_COMPACT_LIMIT = 100
_DEFAULT_MAX_STRING_LENGTH = 100
_DEFAULT_SIMILAR_RANGE_RATIO = 10.0
_DEFAULT_OTHER_BUCKET_KEY = "Other"


@dataclass(frozen=True)
class ChartLimits:
    """Typed engine settings; one immutable value per processor."""

    apply_limit_after_rows: int = _DEFAULT_APPLY_LIMIT_AFTER_ROWS
    autodetect_chart_limit: int = _DEFAULT_AUTODETECT_CHART_LIMIT
    autodetect_measures_limit: int = _DEFAULT_AUTODETECT_MEASURES_LIMIT
    chart_fill_limit: int = _DEFAULT_CHART_FILL_LIMIT
    chart_group_limit: int = _DEFAULT_CHART_GROUP_LIMIT
    valid_value_ratio_limit: float = _DEFAULT_VALID_VALUE_RATIO_LIMIT
    pie_ratio_limit: float = _DEFAULT_PIE_RATIO_LIMIT
    pie_count_limit: int = _DEFAULT_PIE_COUNT_LIMIT
    max_pie_count_limit: int = _DEFAULT_MAX_PIE_COUNT_LIMIT
    timeline_compact_limit: int = _DEFAULT_TIMELINE_COMPACT_LIMIT
    max_string_length: int = _DEFAULT_MAX_STRING_LENGTH
    similar_range_ratio: float = _DEFAULT_SIMILAR_RANGE_RATIO
    other_bucket_key: str = _DEFAULT_OTHER_BUCKET_KEY

    @classmethod
    def from_env(cls) -> "ChartLimits":
        """Load and validate engine limits from environment."""
        limits = cls(
            apply_limit_after_rows=int(
                get_env_int("CHART_APPLY_LIMIT_AFTER_ROWS", _DEFAULT_APPLY_LIMIT_AFTER_ROWS)
            ),
            autodetect_chart_limit=int(
                get_env_int("CHART_AUTODETECT_CHART_LIMIT", _DEFAULT_AUTODETECT_CHART_LIMIT)
            ),
            autodetect_measures_limit=int(
                get_env_int("CHART_AUTODETECT_MEASURES_LIMIT", _DEFAULT_AUTODETECT_MEASURES_LIMIT)
            ),
            chart_fill_limit=int(get_env_int("CHART_FILL_LIMIT", _DEFAULT_CHART_FILL_LIMIT)),
            chart_group_limit=int(get_env_int("CHART_GROUP_LIMIT", _DEFAULT_CHART_GROUP_LIMIT)),
            valid_value_ratio_limit=float(
                get_env_float("CHART_VALID_VALUE_RATIO_LIMIT", _DEFAULT_VALID_VALUE_RATIO_LIMIT)
            ),
            pie_ratio_limit=float(get_env_float("CHART_PIE_RATIO_LIMIT", _DEFAULT_PIE_RATIO_LIMIT)),
            pie_count_limit=int(get_env_int("CHART_PIE_COUNT_LIMIT", _DEFAULT_PIE_COUNT_LIMIT)),
            max_pie_count_limit=int(
                get_env_int("CHART_MAX_PIE_COUNT_LIMIT", _DEFAULT_MAX_PIE_COUNT_LIMIT)
            ),
            timeline_compact_limit=int(
                get_env_int("CHART_TIMELINE_COMPACT_LIMIT", _DEFAULT_TIMELINE_COMPACT_LIMIT)
            ),
            max_string_length=int(
                get_env_int("CHART_MAX_STRING_LENGTH", _DEFAULT_MAX_STRING_LENGTH)
            ),
            similar_range_ratio=float(
                get_env_float("CHART_SIMILAR_RANGE_RATIO", _DEFAULT_SIMILAR_RANGE_RATIO)
            ),
            other_bucket_key=str(
                get_env_str("CHART_OTHER_BUCKET_KEY", _DEFAULT_OTHER_BUCKET_KEY)
                or _DEFAULT_OTHER_BUCKET_KEY
            ),
        )
        limits.validate()
        return limits

    def validate(self) -> None:
        """Fail closed on invalid or unsafe limit configuration."""
        positive = {
            "apply_limit_after_rows": self.apply_limit_after_rows,
            "autodetect_chart_limit": self.autodetect_chart_limit,
            "autodetect_measures_limit": self.autodetect_measures_limit,
            "chart_fill_limit": self.chart_fill_limit,
            "chart_group_limit": self.chart_group_limit,
            "pie_count_limit": self.pie_count_limit,
            "max_pie_count_limit": self.max_pie_count_limit,
            "timeline_compact_limit": self.timeline_compact_limit,
            "max_string_length": self.max_string_length,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ValueError(f"{name} must be > 0, got {value}.")
        for name, value in (
            ("valid_value_ratio_limit", self.valid_value_ratio_limit),
            ("pie_ratio_limit", self.pie_ratio_limit),
        ):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}.")
        if self.pie_count_limit > self.max_pie_count_limit:
            raise ValueError(
                "pie_count_limit must not exceed max_pie_count_limit "
                f"({self.pie_count_limit} > {self.max_pie_count_limit})."
            )
        if self.similar_range_ratio < 1.0:
            raise ValueError(
                f"similar_range_ratio must be >= 1, got {self.similar_range_ratio}."
            )
        if not self.other_bucket_key:
            raise ValueError("other_bucket_key must be a non-empty string.")
