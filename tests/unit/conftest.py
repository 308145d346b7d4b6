"""Unit test environment helpers."""

import os

import pytest


@pytest.fixture(autouse=True)
def _minimal_env(monkeypatch):
    """Strip engine and OTEL overrides so defaults apply and metrics stay off."""
    for name in list(os.environ):
        if name.startswith("CHART_") or name.startswith("OTEL_EXPORTER_OTLP"):
            monkeypatch.delenv(name, raising=False)
    yield
