import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "seo-prerender-proxy")

# Fallbacks only apply when the deployment provides no value
UPSTREAM_ORIGIN = os.environ.get(
    "UPSTREAM_ORIGIN", os.environ.get("FIGMA_SITE_URL", "https://web.example.com")
)
CANONICAL_ORIGIN = os.environ.get(
    "CANONICAL_ORIGIN", os.environ.get("MAIN_DOMAIN", "https://example.com")
)
DEBUG = os.environ.get("DEBUG", "false").lower() == "true"

# Numeric settings stay raw here; load_config() validates them
PROXY_TIMEOUT = os.getenv("PROXY_TIMEOUT", "30")
CACHE_TIMEOUT = os.getenv("CACHE_TIMEOUT", "2")
SNAPSHOT_CACHE_CONTROL_MAX_AGE = os.getenv("SNAPSHOT_CACHE_CONTROL_MAX_AGE", "3600")
SNAPSHOT_MAX_AGE = os.getenv("SNAPSHOT_MAX_AGE", "0")

CACHE_STORE = os.getenv("CACHE_STORE", "InMemoryCacheStore")
CACHE_DIR = os.getenv("CACHE_DIR", "./dist")
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
REDIS_KEY_PREFIX = os.getenv("REDIS_KEY_PREFIX", "prerender:")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
