from .content_rewriter import (
    HTML_CONTENT_TYPE,
    is_html,
    rewrite_body,
    rewrite_redirect_location,
)

__all__ = [
    "HTML_CONTENT_TYPE",
    "is_html",
    "rewrite_body",
    "rewrite_redirect_location",
]
