"""
planmarket/core/tracing.py

Optional OpenTelemetry spans around the document paths.

Only preview and download are traced: they are the calls that parse and
copy whole PDFs, so their latency is what operators need to see. Without
the SDK (the "tracing" extra) or with OTEL_ENABLED off, start_span yields
None and costs nothing.

Exporters:
- console: spans printed by the SDK (default)
- memory: spans kept in-process, read back with get_exported_spans()
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Optional

from planmarket.core.config import settings

try:  # Optional dependency (install the "tracing" extra)
    from opentelemetry import trace
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
except ImportError:  # pragma: no cover - tracing stays disabled without the SDK
    trace = None

SERVICE_NAME = "planmarket"
PREVIEW_SPAN = "plans.preview"
DOWNLOAD_SPAN = "plans.download"

_tracer = None
_enabled = False
_exporter = None


def setup_tracing(enabled: Optional[bool] = None, exporter_name: Optional[str] = None) -> None:
    """Install a tracer provider when tracing is enabled and the SDK is importable."""
    global _tracer, _enabled, _exporter
    _enabled = (settings.OTEL_ENABLED if enabled is None else bool(enabled)) and trace is not None
    if not _enabled:
        _tracer = None
        return

    choice = exporter_name or settings.OTEL_EXPORTER
    _exporter = InMemorySpanExporter() if choice == "memory" else ConsoleSpanExporter()

    provider = TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    provider.add_span_processor(SimpleSpanProcessor(_exporter))
    trace.set_tracer_provider(provider)
    # Bind to this provider directly; the global one can only be set once per process.
    _tracer = provider.get_tracer(SERVICE_NAME)


@contextmanager
def start_span(name: str, attributes: Optional[Dict[str, object]] = None):
    """Span named ``name`` with ``attributes``; yields None when tracing is off."""
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name, attributes=attributes or {}) as span:
        yield span


def get_exported_spans():
    if _exporter is not None and hasattr(_exporter, "get_finished_spans"):
        return _exporter.get_finished_spans()
    return []


def reset_exported_spans() -> None:
    if _exporter is not None and hasattr(_exporter, "clear"):
        _exporter.clear()
