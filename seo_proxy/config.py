"""
Resolved, validated configuration for the proxy.

`seo_proxy.vars` holds the raw environment values; `load_config()` turns them
into a single frozen `ProxyConfig` that is built once at startup and passed
explicitly to every component that needs it.
"""

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

from seo_proxy import vars as env_vars


class ConfigurationError(ValueError):
    """Raised when the deployment configuration cannot be used."""


@dataclass(frozen=True)
class ProxyConfig:
    upstream_origin: str
    canonical_origin: str
    debug: bool = False
    proxy_timeout: float = 30.0
    cache_timeout: float = 2.0
    snapshot_cache_control_max_age: int = 3600
    snapshot_max_age: int = 0
    cache_store: str = "InMemoryCacheStore"
    cache_dir: str = "./dist"
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "prerender:"

    @property
    def upstream_host(self) -> str:
        return urlparse(self.upstream_origin).netloc

    @property
    def canonical_host(self) -> str:
        return urlparse(self.canonical_origin).netloc


def _normalize_origin(name: str, value: str) -> str:
    """Validate an origin URL and return it without a trailing slash."""
    value = (value or "").strip()
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigurationError(
            f"{name} must be an absolute http(s) URL, got {value!r}"
        )
    if parsed.path not in ("", "/") or parsed.query or parsed.fragment:
        raise ConfigurationError(
            f"{name} must be a bare origin without path, query or fragment, got {value!r}"
        )
    return f"{parsed.scheme}://{parsed.netloc}"


def _positive_number(name: str, value: Any, cast=float, allow_zero: bool = False):
    try:
        number = cast(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if number < 0 or (number == 0 and not allow_zero):
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return number


def load_config(**overrides: Any) -> ProxyConfig:
    """
    Build the process-wide configuration from the environment.

    Keyword arguments override the environment values and are mainly used by
    tests and embedding code. Raises ConfigurationError on invalid input.
    """
    raw = {
        "upstream_origin": env_vars.UPSTREAM_ORIGIN,
        "canonical_origin": env_vars.CANONICAL_ORIGIN,
        "debug": env_vars.DEBUG,
        "proxy_timeout": env_vars.PROXY_TIMEOUT,
        "cache_timeout": env_vars.CACHE_TIMEOUT,
        "snapshot_cache_control_max_age": env_vars.SNAPSHOT_CACHE_CONTROL_MAX_AGE,
        "snapshot_max_age": env_vars.SNAPSHOT_MAX_AGE,
        "cache_store": env_vars.CACHE_STORE,
        "cache_dir": env_vars.CACHE_DIR,
        "redis_url": env_vars.REDIS_URL,
        "redis_key_prefix": env_vars.REDIS_KEY_PREFIX,
    }
    unknown = set(overrides) - set(raw)
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")
    raw.update(overrides)

    upstream_origin = _normalize_origin("UPSTREAM_ORIGIN", raw["upstream_origin"])
    canonical_origin = _normalize_origin("CANONICAL_ORIGIN", raw["canonical_origin"])
    if urlparse(upstream_origin).netloc.lower() == urlparse(canonical_origin).netloc.lower():
        raise ConfigurationError(
            "UPSTREAM_ORIGIN and CANONICAL_ORIGIN must point to different hosts"
        )

    return ProxyConfig(
        upstream_origin=upstream_origin,
        canonical_origin=canonical_origin,
        debug=bool(raw["debug"]),
        proxy_timeout=_positive_number("PROXY_TIMEOUT", raw["proxy_timeout"]),
        cache_timeout=_positive_number("CACHE_TIMEOUT", raw["cache_timeout"]),
        snapshot_cache_control_max_age=_positive_number(
            "SNAPSHOT_CACHE_CONTROL_MAX_AGE",
            raw["snapshot_cache_control_max_age"],
            cast=int,
            allow_zero=True,
        ),
        snapshot_max_age=_positive_number(
            "SNAPSHOT_MAX_AGE", raw["snapshot_max_age"], cast=int, allow_zero=True
        ),
        cache_store=raw["cache_store"],
        cache_dir=raw["cache_dir"],
        redis_url=raw["redis_url"],
        redis_key_prefix=raw["redis_key_prefix"],
    )
