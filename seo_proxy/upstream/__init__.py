from .proxy import (
    BAD_GATEWAY_MESSAGE,
    FORWARDED_REQUEST_HEADERS,
    UpstreamProxy,
    bad_gateway,
    get_target_url,
    prepare_headers,
)

__all__ = [
    "BAD_GATEWAY_MESSAGE",
    "FORWARDED_REQUEST_HEADERS",
    "UpstreamProxy",
    "bad_gateway",
    "get_target_url",
    "prepare_headers",
]
