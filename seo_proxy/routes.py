from fastapi import APIRouter, Request

router = APIRouter()

PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


# Register catch-all route; /metrics is registered first and wins
@router.api_route("/{path:path}", methods=PROXY_METHODS, include_in_schema=False)
async def prerender_proxy(request: Request, path: str):
    """Serve a prerendered snapshot or proxy the request to the upstream origin."""
    return await request.app.state.prerender_router.handle(request)
