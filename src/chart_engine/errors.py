"""Canonical codes for chart-fatal conditions."""

from __future__ import annotations

from enum import Enum


class ChartErrorCode(str, Enum):
    """Bounded reasons a chart stops accepting rows."""

    TOO_MANY_BUCKETS = "TOO_MANY_BUCKETS"
    TOO_MANY_GROUPS = "TOO_MANY_GROUPS"


def too_many_buckets_message(limit: int) -> str:
    """Render the user-facing reason for an exceeded bucket cap."""
    return f"Chart has too many buckets, limit is {limit}."


def too_many_groups_message(limit: int) -> str:
    """Render the user-facing reason for an exceeded group cap."""
    return f"Chart has too many groups, limit is {limit}."
