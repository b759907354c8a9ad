"""OpenTelemetry wiring for balance report runs.

Each report run can export one span per instrument computation (see
``services.balance``). Exporters default to OTLP gRPC and can be replaced,
which is how the test suite inspects spans in memory.
"""

from __future__ import annotations

import logging
from typing import Any

from opentelemetry import trace
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.semconv.resource import ResourceAttributes

from broker_balance.config import BalanceSettings

logger = logging.getLogger(__name__)

REPORT_TRACER_NAME = "broker_balance.report"

_TELEMETRY_INITIALISED = False


def _build_resource(settings: BalanceSettings) -> Resource:
    attributes: dict[str, Any] = {
        ResourceAttributes.SERVICE_NAME: settings.telemetry_service_name or settings.app_name,
        ResourceAttributes.SERVICE_NAMESPACE: "broker-balance",
        "broker.account_id": settings.invest_account_id or "default",
    }
    return Resource.create(attributes)


def setup_telemetry(
    settings: BalanceSettings,
    *,
    span_exporter: SpanExporter | None = None,
) -> TracerProvider | None:
    """Build the tracer provider for a report run.

    Returns ``None`` when telemetry is disabled or was already set up in this
    process; callers then fall back to the global (no-op by default) tracer.
    """

    global _TELEMETRY_INITIALISED  # noqa: PLW0603 - single initialisation guard

    if _TELEMETRY_INITIALISED:
        logger.debug("Telemetry already initialised")
        return None

    if not settings.telemetry_enabled:
        logger.info("Telemetry disabled via configuration")
        return None

    resource = _build_resource(settings)
    sampler = ParentBased(TraceIdRatioBased(settings.telemetry_sample_ratio))
    exporter_options = _build_exporter_options(settings)

    tracer_provider = TracerProvider(resource=resource, sampler=sampler)
    tracer_provider.add_span_processor(
        BatchSpanProcessor(span_exporter or OTLPSpanExporter(**exporter_options))
    )
    _install(tracer_provider)
    _configure_logging(resource, exporter_options)

    _TELEMETRY_INITIALISED = True
    logger.info(
        "Telemetry initialised for %s (sample ratio %.2f)",
        settings.telemetry_service_name,
        settings.telemetry_sample_ratio,
    )
    return tracer_provider


def report_tracer(provider: TracerProvider | None = None) -> trace.Tracer:
    """Tracer used for per-instrument balance spans."""

    if provider is None:
        return trace.get_tracer(REPORT_TRACER_NAME)
    return provider.get_tracer(REPORT_TRACER_NAME)


def shutdown_telemetry(provider: TracerProvider | None) -> None:
    """Flush pending spans at the end of a run and allow a fresh setup."""

    global _TELEMETRY_INITIALISED  # noqa: PLW0603

    if provider is None:
        return
    provider.force_flush()
    provider.shutdown()
    _TELEMETRY_INITIALISED = False


# Helpers

def _build_exporter_options(settings: BalanceSettings) -> dict[str, Any]:
    options: dict[str, Any] = {"insecure": settings.telemetry_otlp_insecure}
    if settings.telemetry_otlp_endpoint:
        options["endpoint"] = settings.telemetry_otlp_endpoint
    return options


def _install(tracer_provider: TracerProvider) -> None:
    # Broker calls become child spans of the instrument span that issued them.
    trace.set_tracer_provider(tracer_provider)
    HTTPXClientInstrumentor().instrument(tracer_provider=tracer_provider)


def _configure_logging(resource: Resource, exporter_options: dict[str, Any]) -> None:
    logger_provider = LoggerProvider(resource=resource)
    log_exporter = OTLPLogExporter(**exporter_options)
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(log_exporter))
    set_logger_provider(logger_provider)
    LoggingInstrumentor().instrument(set_logging_format=False)


__all__ = ["REPORT_TRACER_NAME", "report_tracer", "setup_telemetry", "shutdown_telemetry"]
