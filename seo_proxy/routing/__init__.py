from .router import (
    INFRASTRUCTURE_DOCUMENTS,
    SKIP_PATH_PREFIXES,
    PrerenderRouter,
    RouteDecision,
    is_infrastructure_path,
    run_until_disconnected,
)

__all__ = [
    "INFRASTRUCTURE_DOCUMENTS",
    "SKIP_PATH_PREFIXES",
    "PrerenderRouter",
    "RouteDecision",
    "is_infrastructure_path",
    "run_until_disconnected",
]
