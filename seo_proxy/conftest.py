from unittest.mock import AsyncMock, Mock

import httpx
import pytest
from fastapi import Request

from seo_proxy.config import load_config

UPSTREAM_ORIGIN = "https://upstream.example"
CANONICAL_ORIGIN = "https://public.example"


@pytest.fixture
def proxy_config():
    """Resolved configuration pointing at the test origins, debug headers on."""
    return load_config(
        upstream_origin=UPSTREAM_ORIGIN, canonical_origin=CANONICAL_ORIGIN, debug=True
    )


@pytest.fixture
def mock_request():
    """Create mock FastAPI Request objects."""

    def _create_request(
        path="/", query="", method="GET", headers=None, body=b"", disconnected=False
    ):
        request = Mock(spec=Request)
        request.method = method
        request.url.path = path
        request.url.query = query
        request.headers = headers or {}
        request.body = AsyncMock(return_value=body)
        request.is_disconnected = AsyncMock(return_value=disconnected)
        return request

    return _create_request


@pytest.fixture
def upstream_client():
    """Build an httpx client whose transport is a handler function."""

    def _create_client(handler):
        return httpx.AsyncClient(
            transport=httpx.MockTransport(handler), follow_redirects=False
        )

    return _create_client
