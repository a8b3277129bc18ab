import asyncio
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from opentelemetry import trace
from redis import asyncio as redis_asyncio

from seo_proxy.config import ConfigurationError, ProxyConfig
from seo_proxy.utils.exception_logging import log_exception_with_details

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

ROOT_CACHE_KEY = "/index"


def cache_key(path: str) -> str:
    """
    Map a request path to the key the prerender pipeline stores it under.

    Only the path participates; callers must not pass the query string. A single
    trailing slash is dropped, matching the keys the pipeline uploads.
    """
    key = path[:-1] if path.endswith("/") else path
    return key or ROOT_CACHE_KEY


@dataclass(frozen=True)
class CachedDocument:
    content: str
    generated_at: Optional[datetime] = None

    def is_fresh(self, max_age_seconds: int, now: Optional[datetime] = None) -> bool:
        """Documents without a timestamp, or with no limit configured, never expire."""
        if max_age_seconds <= 0 or self.generated_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now - self.generated_at <= timedelta(seconds=max_age_seconds)


class CacheStore(ABC):
    """Read side of the snapshot store. Writes belong to the offline pipeline."""

    @abstractmethod
    async def get_document(self, key: str) -> CachedDocument | None:
        pass

    async def get(self, key: str) -> str | None:
        document = await self.get_document(key)
        return document.content if document is not None else None

    async def close(self) -> None:
        return None


class InMemoryCacheStore(CacheStore):
    def __init__(self, documents: Optional[dict[str, str | CachedDocument]] = None):
        self._documents: dict[str, CachedDocument] = {}
        for key, value in (documents or {}).items():
            self.put(key, value)

    def put(self, key: str, value: str | CachedDocument) -> None:
        if not isinstance(value, CachedDocument):
            value = CachedDocument(value)
        self._documents[key] = value

    async def get_document(self, key: str) -> CachedDocument | None:
        return self._documents.get(key)


class FileSystemCacheStore(CacheStore):
    """
    Serves the prerender output directory.

    `/index` maps to `index.html`, `/pricing` to `pricing/index.html`, and keys
    with a file extension (`/robots.txt`, `/sitemap.xml`) to that file.
    """

    def __init__(self, root: str):
        self.root = os.path.realpath(root)

    def _resolve(self, key: str) -> Optional[str]:
        relative = key.strip("/")
        if not relative:
            return None
        if relative == "index":
            relative = "index.html"
        elif not os.path.splitext(relative)[1]:
            relative = os.path.join(relative, "index.html")
        candidate = os.path.realpath(os.path.join(self.root, relative))
        if os.path.commonpath([self.root, candidate]) != self.root:
            return None
        return candidate

    def _read(self, path: str) -> CachedDocument | None:
        try:
            with open(path, "r", encoding="utf-8") as fh:
                content = fh.read()
            mtime = os.stat(path).st_mtime
        except FileNotFoundError:
            return None
        return CachedDocument(
            content, generated_at=datetime.fromtimestamp(mtime, tz=timezone.utc)
        )

    async def get_document(self, key: str) -> CachedDocument | None:
        path = self._resolve(key)
        if path is None:
            return None
        return await asyncio.to_thread(self._read, path)


class RedisCacheStore(CacheStore):
    def __init__(self, url: str, key_prefix: str = "prerender:", client=None):
        if client is None:
            client = redis_asyncio.from_url(url, decode_responses=True)
        self.client = client
        self.key_prefix = key_prefix

    async def get_document(self, key: str) -> CachedDocument | None:
        content = await self.client.get(f"{self.key_prefix}{key}")
        if content is None:
            return None
        if isinstance(content, bytes):
            content = content.decode("utf-8")
        return CachedDocument(content)

    async def close(self) -> None:
        await self.client.aclose()


def cache_store(config: ProxyConfig, name: Optional[str] = None) -> CacheStore:
    name = name or config.cache_store
    if name == "InMemoryCacheStore":
        return InMemoryCacheStore()
    if name == "FileSystemCacheStore":
        return FileSystemCacheStore(config.cache_dir)
    if name == "RedisCacheStore":
        return RedisCacheStore(config.redis_url, config.redis_key_prefix)
    raise ConfigurationError(f"Unknown cache store type: {name}")


async def lookup_document(
    store: CacheStore, key: str, timeout: float
) -> CachedDocument | None:
    """
    Fetch a snapshot, treating backend failures and timeouts as a miss.

    Cancellation propagates so a disconnected client aborts the lookup.
    """
    with tracer.start_as_current_span("cache_lookup") as span:
        span.set_attribute("cache.key", key)
        try:
            document = await asyncio.wait_for(store.get_document(key), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[Cache] Lookup for {key} timed out after {timeout}s")
            span.set_attribute("cache.error", "timeout")
            return None
        except Exception as e:
            log_exception_with_details(
                logger, f"[Cache] Lookup for {key} failed", e, level=logging.WARNING
            )
            span.set_attribute("cache.error", type(e).__name__)
            return None
        span.set_attribute("cache.hit", document is not None)
        return document
