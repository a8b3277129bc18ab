import logging
from contextlib import contextmanager
from typing import Iterator

from fastapi import Request
from opentelemetry.trace import Span, Tracer

logger = logging.getLogger("uvicorn.error")


@contextmanager
def traced_request(
    tracer: Tracer, operation: str, request: Request, start_message: str
) -> Iterator[Span]:
    """Open a span tagged with the inbound method, path and user agent."""
    with tracer.start_as_current_span(operation) as span:
        span.set_attribute("http.method", request.method)
        span.set_attribute("route.path", request.url.path)
        user_agent = request.headers.get("user-agent")
        if user_agent:
            span.set_attribute("http.user_agent", user_agent)
        logger.debug(start_message)
        yield span
