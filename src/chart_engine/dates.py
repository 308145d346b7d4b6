"""Date parsing and date-bucket arithmetic for timeline charts."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional

from chart_engine.models import XTransform

_ISO_DATE_PATTERN = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})"
    r"(?:[ T](\d{2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?)?"
    r"(?:Z|[+-]\d{2}:?\d{2})?$"
)


@dataclass(frozen=True, order=True)
class ParsedDate:
    """Calendar components of a date value, timezone dropped."""

    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0
    second: int = 0

    @classmethod
    def from_datetime(cls, value: datetime) -> "ParsedDate":
        return cls(value.year, value.month, value.day, value.hour, value.minute, value.second)

    def to_datetime(self) -> datetime:
        return datetime(self.year, self.month, self.day, self.hour, self.minute, self.second)

    def truncate(self, transform: XTransform) -> "ParsedDate":
        """Drop every component finer than the transform's granularity."""
        if transform == XTransform.DATE_YEAR:
            return ParsedDate(self.year, 1, 1)
        if transform == XTransform.DATE_MONTH:
            return ParsedDate(self.year, self.month, 1)
        if transform == XTransform.DATE_DAY:
            return ParsedDate(self.year, self.month, self.day)
        if transform == XTransform.DATE_HOUR:
            return ParsedDate(self.year, self.month, self.day, self.hour)
        if transform == XTransform.DATE_MINUTE:
            return ParsedDate(self.year, self.month, self.day, self.hour, self.minute)
        return self

    def format(self, transform: XTransform) -> str:
        """Render the bucket key; keys of one transform sort chronologically."""
        if transform == XTransform.DATE_YEAR:
            return f"{self.year:04d}"
        if transform == XTransform.DATE_MONTH:
            return f"{self.year:04d}-{self.month:02d}"
        if transform == XTransform.DATE_DAY:
            return f"{self.year:04d}-{self.month:02d}-{self.day:02d}"
        if transform == XTransform.DATE_HOUR:
            return f"{self.year:04d}-{self.month:02d}-{self.day:02d} {self.hour:02d}"
        return (
            f"{self.year:04d}-{self.month:02d}-{self.day:02d} "
            f"{self.hour:02d}:{self.minute:02d}"
        )


def try_parse_chart_date(value: Any) -> Optional[ParsedDate]:
    """Parse date objects and ISO-like strings; anything else is not a date."""
    if isinstance(value, datetime):
        return ParsedDate.from_datetime(value)
    if isinstance(value, date):
        return ParsedDate(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None

    match = _ISO_DATE_PATTERN.match(value.strip())
    if not match:
        return None

    parts = [int(part) if part is not None else 0 for part in match.groups()]
    try:
        # rejects out-of-range components such as month 13
        datetime(*parts)
    except ValueError:
        return None
    return ParsedDate(*parts)


def next_bucket_start(value: datetime, transform: XTransform) -> datetime:
    """Return the start of the bucket following the one containing ``value``."""
    if transform == XTransform.DATE_YEAR:
        return value.replace(year=value.year + 1)
    if transform == XTransform.DATE_MONTH:
        if value.month == 12:
            return value.replace(year=value.year + 1, month=1)
        return value.replace(month=value.month + 1)
    if transform == XTransform.DATE_DAY:
        return value + timedelta(days=1)
    if transform == XTransform.DATE_HOUR:
        return value + timedelta(hours=1)
    return value + timedelta(minutes=1)
