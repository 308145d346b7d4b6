"""Optional OTEL metrics for the chart engine.

Metrics are off unless explicitly enabled through a flag variable or implied by an OTLP
exporter configuration. Instruments are created lazily, one per (kind, name).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from opentelemetry import metrics

from common.config.env import get_env_bool

logger = logging.getLogger(__name__)

_OTLP_ENDPOINT_VARS = ("OTEL_EXPORTER_OTLP_ENDPOINT", "OTEL_EXPORTER_OTLP_METRICS_ENDPOINT")

Attributes = Optional[Dict[str, Any]]


def _env_text(name: str) -> str:
    return (os.getenv(name) or "").strip()


def is_otel_exporter_configured() -> bool:
    """Whether the OTEL environment points metrics at an external collector."""
    if get_env_bool("OTEL_DISABLE_EXPORTER", False):
        return False
    if _env_text("OTEL_METRICS_EXPORTER").lower() == "none":
        return False
    return any(_env_text(name) for name in _OTLP_ENDPOINT_VARS)


def is_metrics_enabled(enabled_env_var: str) -> bool:
    """An explicit flag wins; otherwise follow the exporter configuration."""
    raw = os.getenv(enabled_env_var)
    if raw is None:
        return is_otel_exporter_configured()
    try:
        return get_env_bool(enabled_env_var, False) is True
    except ValueError:
        logger.warning("Invalid %s value '%s'; metrics disabled.", enabled_env_var, raw)
        return False


def _normalize_attributes(attributes: Attributes) -> Dict[str, Any]:
    # OTEL attribute values must be primitives; None entries are dropped
    normalized: Dict[str, Any] = {}
    for key, value in (attributes or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif not isinstance(value, (str, int, float)):
            value = str(value)
        normalized[key] = value
    return normalized


@dataclass
class OptionalMetrics:
    """Counters and histograms under one meter, gated by ``enabled_env_var``.

    Enablement is resolved on every emission so tests and operators can flip it at
    runtime. Emission failures are logged at debug level and never reach the caller.
    """

    meter_name: str
    enabled_env_var: str
    _meter: Any = None
    _instruments: Dict[Tuple[str, str], Any] = field(default_factory=dict)

    @property
    def enabled(self) -> bool:
        return is_metrics_enabled(self.enabled_env_var)

    def _instrument(self, kind: str, name: str, description: str, unit: str) -> Any:
        instrument = self._instruments.get((kind, name))
        if instrument is None:
            if self._meter is None:
                self._meter = metrics.get_meter(self.meter_name)
            factory = getattr(self._meter, f"create_{kind}")
            instrument = factory(name=name, description=description, unit=unit)
            self._instruments[(kind, name)] = instrument
        return instrument

    def add_counter(
        self,
        name: str,
        value: int = 1,
        *,
        description: str = "",
        unit: str = "1",
        attributes: Attributes = None,
    ) -> None:
        """Add to a monotonic counter."""
        if not self.enabled:
            return
        try:
            counter = self._instrument("counter", name, description, unit)
            counter.add(int(value), _normalize_attributes(attributes))
        except Exception as exc:
            logger.debug("Counter %s not emitted: %s", name, exc)

    def record_histogram(
        self,
        name: str,
        value: float,
        *,
        description: str = "",
        unit: str = "1",
        attributes: Attributes = None,
    ) -> None:
        """Record one histogram datapoint."""
        if not self.enabled:
            return
        try:
            histogram = self._instrument("histogram", name, description, unit)
            histogram.record(float(value), _normalize_attributes(attributes))
        except Exception as exc:
            logger.debug("Histogram %s not emitted: %s", name, exc)


chart_metrics = OptionalMetrics(
    meter_name="chart-engine",
    enabled_env_var="CHART_ENGINE_METRICS_ENABLED",
)
