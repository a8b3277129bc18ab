from .store import (
    ROOT_CACHE_KEY,
    CachedDocument,
    CacheStore,
    FileSystemCacheStore,
    InMemoryCacheStore,
    RedisCacheStore,
    cache_key,
    cache_store,
    lookup_document,
)

__all__ = [
    "ROOT_CACHE_KEY",
    "CachedDocument",
    "CacheStore",
    "FileSystemCacheStore",
    "InMemoryCacheStore",
    "RedisCacheStore",
    "cache_key",
    "cache_store",
    "lookup_document",
]
