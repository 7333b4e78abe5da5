"""Tests for the optional OpenTelemetry span helpers."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from quickpr.infra import otel_tracing


def test_trace_span_is_a_no_op_without_opentelemetry() -> None:
    with patch.object(otel_tracing, "_import_trace", return_value=None):
        with otel_tracing.trace_span("quickpr.test", {"a": 1}) as attrs:
            attrs["b"] = True
    assert attrs == {"b": True}


def test_trace_span_sets_attributes_on_the_span() -> None:
    trace_mod = MagicMock()
    tracer = trace_mod.get_tracer.return_value
    span = tracer.start_as_current_span.return_value.__enter__.return_value
    with patch.object(otel_tracing, "_import_trace", return_value=trace_mod):
        with otel_tracing.trace_span("quickpr.test", {"quickpr.ceiling": 4800}) as attrs:
            attrs["quickpr.fallback"] = False
    trace_mod.get_tracer.assert_called_once_with(otel_tracing.TRACER_NAME)
    span.set_attribute.assert_any_call("quickpr.ceiling", 4800)
    span.set_attribute.assert_any_call("quickpr.fallback", False)


def test_configure_skipped_without_endpoint(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OTEL_EXPORTER_OTLP_ENDPOINT", raising=False)
    monkeypatch.setattr(otel_tracing, "_configured", False)
    assert otel_tracing.configure() is False


def test_configure_without_packages_is_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    monkeypatch.setattr(otel_tracing, "_configured", False)
    monkeypatch.setattr(otel_tracing, "_import_trace", lambda: None)
    assert otel_tracing.configure() is False


def test_configure_installs_provider_once(monkeypatch: pytest.MonkeyPatch) -> None:
    trace_mod = MagicMock()
    provider = object()
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    monkeypatch.setattr(otel_tracing, "_configured", False)
    monkeypatch.setattr(otel_tracing, "_import_trace", lambda: trace_mod)
    monkeypatch.setattr(otel_tracing, "_build_provider", lambda endpoint: provider)
    assert otel_tracing.configure() is True
    assert otel_tracing.configure() is True
    trace_mod.set_tracer_provider.assert_called_once_with(provider)


def test_configure_without_sdk_is_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    trace_mod = MagicMock()
    monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
    monkeypatch.setattr(otel_tracing, "_configured", False)
    monkeypatch.setattr(otel_tracing, "_import_trace", lambda: trace_mod)
    monkeypatch.setattr(otel_tracing, "_build_provider", lambda endpoint: None)
    assert otel_tracing.configure() is False
    trace_mod.set_tracer_provider.assert_not_called()
