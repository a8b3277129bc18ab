import asyncio
import logging
from enum import Enum
from typing import Awaitable, Optional

from fastapi import Request
from fastapi.responses import Response
from opentelemetry import trace
from prometheus_client import Counter

from seo_proxy.cache import CachedDocument, CacheStore, cache_key, lookup_document
from seo_proxy.classifier import BotClassifier
from seo_proxy.config import ProxyConfig
from seo_proxy.rewrite import HTML_CONTENT_TYPE
from seo_proxy.upstream import UpstreamProxy
from seo_proxy.utils.traced_requests import traced_request

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

# Prefixes that bypass bot handling and go straight upstream
SKIP_PATH_PREFIXES = ("/_next", "/favicon.ico")

# Well-known documents served from the snapshot store for every visitor
INFRASTRUCTURE_DOCUMENTS = {
    "/robots.txt": "text/plain; charset=utf-8",
    "/sitemap.xml": "application/xml",
}

CACHEABLE_METHODS = {"GET", "HEAD"}

SERVED_BY_CACHE = "prerender-cache"
SERVED_BY_PROXY = "upstream-proxy"

# Non-standard "client closed request" status; never reaches the client
CLIENT_CLOSED_REQUEST = 499
DISCONNECT_POLL_INTERVAL = 0.25

ROUTE_DECISIONS = Counter(
    "seo_proxy_route_decisions_total",
    "Requests by routing decision and bot classification",
    ["decision", "bot"],
)


class RouteDecision(str, Enum):
    SERVE_CACHED_DOCUMENT = "serve_cached_document"
    PROXY_TO_UPSTREAM = "proxy_to_upstream"
    PROXY_PASSTHROUGH_INFRASTRUCTURE = "proxy_passthrough_infrastructure"


def is_infrastructure_path(path: str) -> bool:
    return path in INFRASTRUCTURE_DOCUMENTS or path.startswith(SKIP_PATH_PREFIXES)


async def run_until_disconnected(
    request: Request,
    work: Awaitable[Response],
    poll_interval: float = DISCONNECT_POLL_INTERVAL,
) -> Response:
    """
    Await `work`, cancelling it as soon as the client goes away.

    The request body must already have been consumed, otherwise polling for a
    disconnect would swallow body chunks.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=poll_interval)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info(f"[Router] Client disconnected, aborting {request.url.path}")
                task.cancel()
                await asyncio.wait({task})
                return Response(status_code=CLIENT_CLOSED_REQUEST)
    finally:
        if not task.done():
            task.cancel()


class PrerenderRouter:
    """
    Decides per request whether to serve a prerendered snapshot or proxy live.

    Order: infrastructure paths, bot classification, snapshot lookup for bots,
    live proxy fallback. Every branch produces exactly one response.
    """

    def __init__(
        self,
        config: ProxyConfig,
        classifier: BotClassifier,
        store: CacheStore,
        proxy: UpstreamProxy,
    ):
        self.config = config
        self.classifier = classifier
        self.store = store
        self.proxy = proxy

    async def handle(self, request: Request) -> Response:
        # Consume the body up front so disconnect polling cannot eat it
        await request.body()
        return await run_until_disconnected(request, self.route(request))

    async def route(self, request: Request) -> Response:
        path = request.url.path
        with traced_request(
            tracer,
            operation="route_request",
            request=request,
            start_message=f"[Router] {request.method} {path}",
        ) as span:
            if is_infrastructure_path(path):
                response, decision = await self._route_infrastructure(request, path)
                return self._finish(response, decision, None, span)

            bot_detected = self.classifier.classify(request.headers.get("user-agent"))
            span.set_attribute("route.bot_detected", bot_detected)

            if bot_detected and request.method.upper() in CACHEABLE_METHODS:
                document = await self._fresh_document(cache_key(path))
                if document is not None:
                    response = self._snapshot_response(document, HTML_CONTENT_TYPE)
                    return self._finish(
                        response, RouteDecision.SERVE_CACHED_DOCUMENT, True, span
                    )
                logger.info(
                    f"[Router] No prerendered content for {path}, falling back to upstream"
                )

            response = await self.proxy.forward(request, self.config)
            return self._finish(
                response, RouteDecision.PROXY_TO_UPSTREAM, bot_detected, span
            )

    async def _route_infrastructure(self, request: Request, path: str):
        content_type = INFRASTRUCTURE_DOCUMENTS.get(path)
        if content_type and request.method.upper() in CACHEABLE_METHODS:
            document = await self._fresh_document(path)
            if document is not None:
                return (
                    self._snapshot_response(document, content_type),
                    RouteDecision.SERVE_CACHED_DOCUMENT,
                )
        response = await self.proxy.forward(request, self.config)
        return response, RouteDecision.PROXY_PASSTHROUGH_INFRASTRUCTURE

    async def _fresh_document(self, key: str) -> Optional[CachedDocument]:
        document = await lookup_document(self.store, key, self.config.cache_timeout)
        if document is None:
            return None
        if not document.is_fresh(self.config.snapshot_max_age):
            logger.info(
                f"[Router] Snapshot for {key} generated at {document.generated_at} is stale"
            )
            return None
        return document

    def _snapshot_response(self, document: CachedDocument, content_type: str) -> Response:
        response = Response(content=document.content, status_code=200)
        response.headers["content-type"] = content_type
        response.headers["cache-control"] = (
            f"public, max-age={self.config.snapshot_cache_control_max_age}"
        )
        return response

    def _finish(
        self,
        response: Response,
        decision: RouteDecision,
        bot_detected: Optional[bool],
        span,
    ) -> Response:
        span.set_attribute("route.decision", decision.value)
        ROUTE_DECISIONS.labels(
            decision=decision.value,
            bot="unknown" if bot_detected is None else str(bot_detected).lower(),
        ).inc()

        if self.config.debug:
            served_by = (
                SERVED_BY_CACHE
                if decision == RouteDecision.SERVE_CACHED_DOCUMENT
                else SERVED_BY_PROXY
            )
            response.headers["x-served-by"] = served_by
            if bot_detected is not None:
                response.headers["x-bot-detected"] = "true" if bot_detected else "false"

        logger.debug(f"[Router] Decision {decision.value}, status {response.status_code}")
        return response
