"""
Textual rewriting of upstream origin references to the canonical origin.

No HTML parsing is involved: substitutions are case-insensitive regex matches
that tolerate partial or malformed markup. A host only matches when it is not
followed by further host characters, so `//web.example.com` does not match
`//web.example.community` and re-running a rewrite is a no-op.
"""

import re
from functools import lru_cache
from typing import Optional

from seo_proxy.config import ProxyConfig

HTML_CONTENT_TYPE = "text/html; charset=utf-8"

# Port, label or subdomain continuation after a matched host
_HOST_BOUNDARY = r"(?![\w:-]|\.[A-Za-z0-9])"


@lru_cache(maxsize=16)
def _patterns(upstream_origin: str, upstream_host: str) -> tuple[re.Pattern, re.Pattern]:
    absolute = re.compile(re.escape(upstream_origin) + _HOST_BOUNDARY, re.IGNORECASE)
    protocol_relative = re.compile(
        "//" + re.escape(upstream_host) + _HOST_BOUNDARY, re.IGNORECASE
    )
    return absolute, protocol_relative


def _replace_hosts(text: str, config: ProxyConfig) -> str:
    absolute, protocol_relative = _patterns(config.upstream_origin, config.upstream_host)
    canonical_origin = config.canonical_origin
    canonical_host = "//" + config.canonical_host
    text = absolute.sub(lambda _: canonical_origin, text)
    return protocol_relative.sub(lambda _: canonical_host, text)


def is_html(content_type: Optional[str]) -> bool:
    return bool(content_type) and "text/html" in content_type.lower()


def rewrite_body(html: str, config: ProxyConfig) -> str:
    """Point absolute and protocol-relative upstream references at the canonical origin."""
    if not html:
        return html
    return _replace_hosts(html, config)


def rewrite_redirect_location(location: Optional[str], config: ProxyConfig) -> Optional[str]:
    """Apply the host substitution to a redirect target. Relative targets are unchanged."""
    if not location:
        return location
    return _replace_hosts(location, config)
