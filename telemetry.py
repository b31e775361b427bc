#!/usr/bin/env python3
"""
OpenTelemetry tracing for the feed sync engine.

Spans are opened around feed fetches, sync cycles and timer-driven polls, and
aiohttp client requests are instrumented automatically. Spans leave the
process only when an Azure Monitor connection string is configured and the
optional exporter package is installed.

Environment variables:
  - APPLICATIONINSIGHTS_CONNECTION_STRING or AZURE_MONITOR_CONNECTION_STRING
  - OTEL_SERVICE_NAME (default: feed-sync)
  - OTEL_ENVIRONMENT (maps to deployment.environment)
  - DISABLE_TELEMETRY=true to fully disable
"""

from __future__ import annotations

import atexit
import functools
import inspect
import logging
import os
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

from opentelemetry import trace
from opentelemetry.instrumentation.aiohttp_client import AioHttpClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode

try:
    # Optional extra: pip install feed-sync[azure]
    from azure.monitor.opentelemetry.exporter import AzureMonitorTraceExporter  # type: ignore
except ImportError:
    AzureMonitorTraceExporter = None  # type: ignore

DEFAULT_SERVICE_NAME = "feed-sync"

_init_lock = threading.Lock()
_provider: Optional[TracerProvider] = None

_logger = logging.getLogger("FeedSync.telemetry")


def telemetry_disabled() -> bool:
    return os.environ.get("DISABLE_TELEMETRY", "false").lower() == "true"


def _connection_string() -> Optional[str]:
    return os.environ.get("APPLICATIONINSIGHTS_CONNECTION_STRING") or os.environ.get(
        "AZURE_MONITOR_CONNECTION_STRING"
    )


def _resource(service_name: str) -> Resource:
    attrs = {"service.name": service_name}
    environment = os.environ.get("OTEL_ENVIRONMENT")
    if environment:
        attrs["deployment.environment"] = environment
    return Resource.create(attrs)


def _attach_exporter(provider: TracerProvider, service_name: str) -> bool:
    """Add the Azure Monitor exporter when configured. Returns True if attached."""
    conn = _connection_string()
    if not conn:
        _logger.debug("No Azure Monitor connection string; spans stay in-process (service=%s)", service_name)
        return False
    if AzureMonitorTraceExporter is None:
        _logger.warning("Azure Monitor connection string set but 'azure-monitor-opentelemetry-exporter' is not installed")
        return False
    try:
        exporter = AzureMonitorTraceExporter.from_connection_string(conn)
    except ValueError as e:
        _logger.warning("Invalid Azure Monitor connection string, spans will not be exported: %s", e)
        return False
    provider.add_span_processor(BatchSpanProcessor(exporter))
    _logger.info("Exporting spans to Azure Monitor (service=%s)", service_name)
    return True


def init_telemetry(service_name: Optional[str] = None) -> None:
    """Install the tracer provider and instrumentation once per process.

    A provider already installed by external auto-instrumentation is reused.
    No-op when DISABLE_TELEMETRY=true.
    """
    global _provider
    if telemetry_disabled() or _provider is not None:
        return
    with _init_lock:
        if _provider is not None:
            return
        svc = service_name or os.environ.get("OTEL_SERVICE_NAME", DEFAULT_SERVICE_NAME)

        existing = trace.get_tracer_provider()
        provider = existing if isinstance(existing, TracerProvider) else TracerProvider(resource=_resource(svc))
        _attach_exporter(provider, svc)
        if provider is not existing:
            trace.set_tracer_provider(provider)

        AioHttpClientInstrumentor().instrument()
        # Adds trace/span ids to log records; the log format is left alone
        LoggingInstrumentor().instrument(set_logging_format=False)

        _provider = provider
        atexit.register(provider.shutdown)


def get_tracer(name: str = DEFAULT_SERVICE_NAME):
    return trace.get_tracer(name)


@contextmanager
def _span(tracer, name: str, attrs: Dict[str, Any]) -> Iterator[Any]:
    with tracer.start_as_current_span(name, record_exception=False) as span:
        for key, value in attrs.items():
            if value is not None:
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR))
            raise


def trace_span(
    span_name: Optional[str] = None,
    *,
    tracer_name: Optional[str] = None,
    static_attrs: Optional[Dict[str, Any]] = None,
    attr_from_args: Optional[Callable[..., Dict[str, Any]]] = None,
):
    """Wrap a sync or async function in a span.

    Args:
        span_name: Span name, defaults to module.function.
        tracer_name: Tracer name, defaults to the first segment of span_name.
        static_attrs: Attributes set on every span.
        attr_from_args: Called with the function's arguments; returns extra
            attributes (e.g. the feed URL).

    Exceptions are recorded on the span and re-raised unchanged.
    """

    def _decorator(func):
        name = span_name or f"{func.__module__}.{func.__name__}"
        tracer = get_tracer(tracer_name or name.split(".")[0] or DEFAULT_SERVICE_NAME)

        def _attrs(args, kwargs) -> Dict[str, Any]:
            attrs = dict(static_attrs or {})
            if attr_from_args is not None:
                attrs.update(attr_from_args(*args, **kwargs) or {})
            return attrs

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def _async_wrapper(*args, **kwargs):
                with _span(tracer, name, _attrs(args, kwargs)):
                    return await func(*args, **kwargs)

            return _async_wrapper

        @functools.wraps(func)
        def _wrapper(*args, **kwargs):
            with _span(tracer, name, _attrs(args, kwargs)):
                return func(*args, **kwargs)

        return _wrapper

    return _decorator
