import asyncio
import logging
from typing import AsyncIterator, Dict, Iterable, Mapping, Optional

import httpx
from fastapi import Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from opentelemetry import trace
from starlette.background import BackgroundTask

from seo_proxy.config import ProxyConfig
from seo_proxy.rewrite import (
    HTML_CONTENT_TYPE,
    is_html,
    rewrite_body,
    rewrite_redirect_location,
)
from seo_proxy.utils.exception_logging import format_exception_message

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

# Only these request headers reach the upstream; cookies, auth and host never do
FORWARDED_REQUEST_HEADERS = (
    "accept",
    "accept-encoding",
    "accept-language",
    "user-agent",
    "cache-control",
)

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Invalid once the body has been decoded and rewritten
REWRITTEN_BODY_HEADERS = {"content-encoding", "content-length", "content-type"}

METHODS_WITHOUT_BODY = {"GET", "HEAD", "OPTIONS"}

BAD_GATEWAY_MESSAGE = "Error loading page"


def get_target_url(path: str, query: str, config: ProxyConfig) -> str:
    """Resolve the inbound path against the upstream origin, keeping the query string."""
    # Always anchored to the upstream origin; a path never supplies the host
    if not path.startswith("/"):
        path = "/" + path
    target = config.upstream_origin + path
    if query:
        target = f"{target}?{query}"
    return target


def prepare_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    """Copy the allow-listed request headers, dropping everything else."""
    prepared = {}
    for name in FORWARDED_REQUEST_HEADERS:
        value = headers.get(name)
        if value:
            prepared[name] = value
    return prepared


def bad_gateway() -> Response:
    return PlainTextResponse(BAD_GATEWAY_MESSAGE, status_code=502)


def _copy_headers(
    response: Response, upstream_headers: httpx.Headers, exclude: Iterable[str] = ()
) -> None:
    skipped = HOP_BY_HOP_HEADERS.union(exclude)
    for name, value in upstream_headers.multi_items():
        if name.lower() not in skipped:
            response.headers.append(name, value)


async def _passthrough(response: httpx.Response) -> AsyncIterator[bytes]:
    """Stream the upstream body exactly as received, still encoded."""
    try:
        async for chunk in response.aiter_raw():
            yield chunk
    finally:
        await response.aclose()


class UpstreamProxy:
    """
    Forwards requests to the rendering origin.

    Redirects are never followed: 3xx responses are re-emitted with only a
    rewritten Location header. HTML bodies are rewritten to the canonical
    origin; anything else is streamed through untouched. Transport failures
    become a plain-text 502 and are not retried.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.client = client or httpx.AsyncClient(follow_redirects=False)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def forward(self, request: Request, config: ProxyConfig) -> Response:
        target_url = get_target_url(request.url.path, str(request.url.query), config)

        with tracer.start_as_current_span("proxy_request") as span:
            span.set_attribute("proxy.target_url", target_url)
            span.set_attribute("proxy.method", request.method)
            logger.debug(f"[Proxy] {request.method} {request.url.path} -> {target_url}")

            body = None
            if request.method.upper() not in METHODS_WITHOUT_BODY:
                body = await request.body()

            # Built directly so client default headers (user-agent, accept-encoding)
            # are never merged in; only allow-listed headers go out
            upstream_request = httpx.Request(
                request.method,
                target_url,
                headers=prepare_headers(request.headers),
                content=body,
                extensions={"timeout": httpx.Timeout(config.proxy_timeout).as_dict()},
            )

            try:
                upstream_response = await asyncio.wait_for(
                    self.client.send(upstream_request, stream=True),
                    config.proxy_timeout,
                )
            except (httpx.TimeoutException, asyncio.TimeoutError) as e:
                logger.error(
                    f"[Proxy] Timeout for {target_url}: {format_exception_message(e)}"
                )
                span.set_attribute("proxy.error", "timeout")
                return bad_gateway()
            except httpx.HTTPError as e:
                logger.error(
                    f"[Proxy] Failed to reach {target_url}: "
                    f"{format_exception_message(e)}"
                )
                span.set_attribute("proxy.error", "connection_failed")
                return bad_gateway()

            span.set_attribute("proxy.status_code", upstream_response.status_code)
            try:
                return await self._build_response(upstream_response, config, span)
            except (httpx.HTTPError, asyncio.TimeoutError) as e:
                await upstream_response.aclose()
                logger.error(
                    f"[Proxy] Failed reading body from {target_url}: "
                    f"{format_exception_message(e)}"
                )
                span.set_attribute("proxy.error", "body_read_failed")
                return bad_gateway()
            except BaseException:
                await upstream_response.aclose()
                raise

    async def _build_response(
        self, upstream: httpx.Response, config: ProxyConfig, span
    ) -> Response:
        location = upstream.headers.get("location")
        if 300 <= upstream.status_code < 400 and location:
            await upstream.aclose()
            rewritten = rewrite_redirect_location(location, config)
            span.set_attribute("proxy.rewritten_location", rewritten)
            return Response(status_code=upstream.status_code, headers={"location": rewritten})

        content_type = upstream.headers.get("content-type", "")
        if is_html(content_type):
            await asyncio.wait_for(upstream.aread(), config.proxy_timeout)
            html = rewrite_body(upstream.text, config)
            response = Response(content=html, status_code=upstream.status_code)
            _copy_headers(response, upstream.headers, exclude=REWRITTEN_BODY_HEADERS)
            response.headers["content-type"] = HTML_CONTENT_TYPE
            span.set_attribute("proxy.rewritten", True)
            return response

        response = StreamingResponse(
            _passthrough(upstream),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        _copy_headers(response, upstream.headers)
        return response
