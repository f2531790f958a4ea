"""
Rate limiting dependencies for API endpoints.

Uses slowapi; storage defaults to in-process memory and can point at Redis
(RATE_LIMIT_STORAGE_URI=redis://...) when several relay instances share limits.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from ...core.config import get_settings

# Initialize rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200/minute"],  # Global default: 200 requests per minute
    storage_uri=get_settings().rate_limit_storage_uri,
)


def ask_rate_limit() -> str:
    """Current per-client limit for /api/ask (read per request from settings)."""
    return get_settings().rate_limit_ask


def rate_limit_ask(func):
    """
    Rate limit for relay requests (each one opens a paid upstream LLM stream).

    Usage:
        @router.post("/ask")
        @rate_limit_ask
        async def ask(request: Request):
            pass
    """
    return limiter.limit(ask_rate_limit)(func)
