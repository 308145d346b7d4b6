"""Shared observability helpers."""

from common.observability.metrics import chart_metrics

__all__ = ["chart_metrics"]
