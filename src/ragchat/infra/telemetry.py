"""OpenTelemetry tracing for both tiers.

Nothing here runs unless ``TracingConfig.enabled`` is set and an OTLP
endpoint is configured; local runs and tests keep the default no-op
tracer.

The global ``TracerProvider`` is installed once per process.  Each tier
then adds the instrumentation it needs:

- gateway: inbound FastAPI spans and outbound httpx spans (the forward)
- storage: inbound FastAPI spans, plus SQLAlchemy spans once ``build_db``
  has an engine
"""

from __future__ import annotations

import base64
import logging

from fastapi import FastAPI
from opentelemetry import trace

from ragchat.configs.system import TracingConfig

logger = logging.getLogger(__name__)

_provider_installed = False
_httpx_instrumented = False


def _exporter_headers(settings: TracingConfig) -> dict[str, str]:
    if not settings.username:
        return {}
    token = base64.b64encode(
        f"{settings.username}:{settings.password}".encode()
    ).decode()
    return {"Authorization": f"Basic {token}"}


def _install_provider(settings: TracingConfig) -> None:
    global _provider_installed  # noqa: PLW0603
    if _provider_installed:
        return

    from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
        OTLPSpanExporter,
    )
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

    provider = TracerProvider(
        resource=Resource.create({"service.name": settings.service_name}),
        sampler=ParentBased(root=TraceIdRatioBased(settings.sample_rate)),
    )
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(
                endpoint=settings.endpoint, headers=_exporter_headers(settings)
            )
        )
    )
    trace.set_tracer_provider(provider)
    _provider_installed = True


def init_telemetry(
    app: FastAPI,
    settings: TracingConfig,
    *,
    trace_outbound_http: bool = False,
) -> bool:
    """Trace *app*'s requests; with *trace_outbound_http*, httpx calls too.

    Returns ``True`` when tracing is active for this app.
    """
    global _httpx_instrumented  # noqa: PLW0603

    if not settings.enabled:
        logger.info("OpenTelemetry tracing disabled.")
        return False
    if not settings.endpoint:
        logger.warning("Tracing enabled without an OTLP endpoint; not tracing.")
        return False

    _install_provider(settings)

    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

    FastAPIInstrumentor.instrument_app(
        app, excluded_urls=",".join(settings.excluded_urls)
    )

    if trace_outbound_http and not _httpx_instrumented:
        from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

        HTTPXClientInstrumentor().instrument()
        _httpx_instrumented = True

    logger.info("Tracing %s as service %s", app.title, settings.service_name)
    return True


def instrument_sqlalchemy(engine: object) -> None:
    """Emit DB spans for *engine*; no-op until a provider is installed."""
    if not _provider_installed:
        return

    from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

    SQLAlchemyInstrumentor().instrument(
        engine=getattr(engine, "sync_engine", engine)
    )
