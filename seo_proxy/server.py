import logging
from contextlib import asynccontextmanager
from typing import Optional, Sequence

import httpx
from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from seo_proxy.cache import CacheStore, cache_store
from seo_proxy.classifier import BotClassifier, default_classifier
from seo_proxy.config import ProxyConfig, load_config
from seo_proxy.routes import router
from seo_proxy.routing import PrerenderRouter
from seo_proxy.upstream import UpstreamProxy
from seo_proxy.vars import OTLP_ENDPOINT, OTLP_HEADERS, SERVICE_NAME

logger = logging.getLogger("uvicorn.error")


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out noisy ASGI body spans from streamed
    passthrough responses.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


def configure_tracing() -> None:
    trace.set_tracer_provider(
        TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
    )
    if OTLP_ENDPOINT:
        otlp_exporter = OTLPSpanExporter(
            endpoint=OTLP_ENDPOINT,
            headers=((OTLP_HEADERS).split(",") if OTLP_HEADERS else None),
        )
        trace.get_tracer_provider().add_span_processor(
            BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
        )


def build_prerender_router(
    config: ProxyConfig,
    store: Optional[CacheStore] = None,
    classifier: Optional[BotClassifier] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> PrerenderRouter:
    return PrerenderRouter(
        config=config,
        classifier=classifier or default_classifier,
        store=store or cache_store(config),
        proxy=UpstreamProxy(http_client),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    prerender_router: PrerenderRouter = app.state.prerender_router
    config = prerender_router.config
    logger.info(
        f"Proxying {config.upstream_origin} as {config.canonical_origin} "
        f"(cache store: {type(prerender_router.store).__name__}, debug: {config.debug})"
    )
    yield
    prerender_router = app.state.prerender_router
    await prerender_router.proxy.aclose()
    await prerender_router.store.close()


def create_app(prerender_router: Optional[PrerenderRouter] = None) -> FastAPI:
    """
    Build the ASGI app. Configuration is resolved here, so invalid origins
    fail before any request is served.
    """
    if prerender_router is None:
        prerender_router = build_prerender_router(load_config())

    # Docs routes would shadow upstream paths
    application = FastAPI(
        lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None
    )
    application.state.prerender_router = prerender_router
    Instrumentator().instrument(application).expose(application)
    FastAPIInstrumentor.instrument_app(application, excluded_urls="/metrics")
    application.include_router(router)
    return application


configure_tracing()

# Add app_name to the metrics
app_info = Info("fastapi_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})

app = create_app()
