"""OpenTelemetry spans around pipeline stages.

Spans are exported over OTLP/gRPC once ``OTEL_EXPORTER_OTLP_ENDPOINT`` is set
and the ``otel`` extra is installed; otherwise :func:`trace_span` only yields
its attribute dict.

Dependencies: (stdlib only, optional opentelemetry)
Wired in: pipeline.py → run_stage(), cli.py → main()
"""

from __future__ import annotations

import logging
import os
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from types import ModuleType
from typing import Any

_log = logging.getLogger(__name__)

TRACER_NAME = "quickpr"
_configured = False


def _import_trace() -> ModuleType | None:
    try:
        from opentelemetry import trace
    except ModuleNotFoundError:
        return None
    return trace


def _build_provider(endpoint: str) -> Any | None:
    """Tracer provider batching spans to *endpoint*, or None without the SDK."""
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ModuleNotFoundError:
        return None

    resource = Resource.create(
        {
            "service.name": os.getenv("OTEL_SERVICE_NAME", TRACER_NAME),
            "quickpr.component": "pipeline",
        }
    )
    provider = TracerProvider(resource=resource)
    plaintext = os.getenv("OTEL_EXPORTER_OTLP_INSECURE", "true").lower() == "true"
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=plaintext))
    )
    return provider


def _set_attributes(span: Any, attributes: Mapping[str, Any]) -> None:
    for key, value in attributes.items():
        span.set_attribute(key, value)


@contextmanager
def trace_span(
    name: str,
    attributes: dict[str, str | int | float | bool] | None = None,
) -> Generator[dict[str, Any], None, None]:
    """Wrap a block in span *name*.

    Keys the caller adds to the yielded dict are recorded on the span when the
    block exits.
    """
    span_attrs: dict[str, Any] = {}
    trace_mod = _import_trace()
    if trace_mod is None:
        yield span_attrs
        return

    with trace_mod.get_tracer(TRACER_NAME).start_as_current_span(name) as span:
        _set_attributes(span, attributes or {})
        yield span_attrs
        _set_attributes(span, span_attrs)


def configure() -> bool:
    """Install the OTLP exporter when an endpoint is set; idempotent once it succeeds."""
    global _configured
    if _configured:
        return True
    endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not endpoint:
        return False
    trace_mod = _import_trace()
    provider = _build_provider(endpoint) if trace_mod is not None else None
    if trace_mod is None or provider is None:
        _log.warning("OTLP endpoint %s ignored: install quickpr[otel] to export spans", endpoint)
        return False
    trace_mod.set_tracer_provider(provider)
    _log.info("Exporting quickpr spans to %s", endpoint)
    _configured = True
    return True
