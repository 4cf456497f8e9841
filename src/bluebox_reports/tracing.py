"""Optional OpenTelemetry tracing for report runs.

With OTEL_EXPORTER_OTLP_ENDPOINT set, each run becomes a ``run`` span with
one ``report <name>`` child per materialized report, exported over OTLP
gRPC; psycopg queries are auto-instrumented underneath. Without it every
helper here is a no-op and OpenTelemetry is never imported.
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Sequence

from .config import Config

log = logging.getLogger(__name__)

_tracer = None
_provider = None


def _build_provider(config: Config):
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    provider = TracerProvider(
        resource=Resource.create({"service.name": config.otel_service_name})
    )
    exporter = OTLPSpanExporter(
        endpoint=config.otel_endpoint,
        headers=_parse_headers(config.otel_headers) or None,
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    return provider


def init_tracing(config: Config) -> None:
    """Install the tracer provider and psycopg instrumentation, if configured."""
    global _tracer, _provider

    if not config.otel_enabled:
        log.debug("OTel tracing disabled (OTEL_EXPORTER_OTLP_ENDPOINT not set)")
        return

    from opentelemetry import trace
    from opentelemetry.instrumentation.psycopg import PsycopgInstrumentor

    _provider = _build_provider(config)
    trace.set_tracer_provider(_provider)
    _tracer = trace.get_tracer("bluebox-reports")
    PsycopgInstrumentor().instrument()

    log.info("OTel tracing initialized (endpoint=%s, service=%s)",
             config.otel_endpoint, config.otel_service_name)


def shutdown_tracing() -> None:
    """Flush pending spans and drop the provider."""
    global _provider, _tracer
    if _provider is not None:
        _provider.shutdown()
        _provider = None
        _tracer = None
        log.info("OTel tracing shut down")


def current_context():
    """The active trace context, for handing to worker threads (None if disabled)."""
    if _tracer is None:
        return None
    from opentelemetry import context
    return context.get_current()


@contextmanager
def _span(name: str, attributes: dict[str, Any], parent=None) -> Generator:
    if _tracer is None:
        yield None
        return

    from opentelemetry.trace import SpanKind, StatusCode

    with _tracer.start_as_current_span(
        name, context=parent, kind=SpanKind.INTERNAL, attributes=attributes,
    ) as span:
        try:
            yield span
            span.set_status(StatusCode.OK)
        except Exception as exc:
            span.set_status(StatusCode.ERROR, str(exc))
            span.record_exception(exc)
            raise


def run_span(targets: Sequence[str], planned: int) -> Generator:
    """Span covering one engine run."""
    return _span("run", {"run.targets": ",".join(targets), "run.reports": planned})


def report_span(report: str, parent=None, **extra_attrs: Any) -> Generator:
    """Span covering the computation of one report.

    ``parent`` is a context from ``current_context()``; pass it when the
    report runs on a different thread from the run span.
    """
    return _span(f"report {report}", {"report.name": report, **extra_attrs}, parent)


def _parse_headers(header_str: str) -> dict[str, str]:
    """Parse 'key1=val1,key2=val2' into a dict."""
    headers = {}
    for pair in header_str.split(","):
        key, sep, value = pair.partition("=")
        if sep:
            headers[key.strip()] = value.strip()
    return headers
