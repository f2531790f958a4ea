"""
Ask relay API module.

The module is organized as:
- handlers.py: POST /api/ask relay handler
- helpers.py: Body parsing, stream headers and response construction

Usage:
    from ask_relay.api.ask import router
"""

from fastapi import APIRouter

from .handlers import ask
from .helpers import STREAM_HEADERS, create_stream_response

router = APIRouter(prefix="/api", tags=["ask"])

router.add_api_route(
    "/ask",
    ask,
    methods=["POST"],
    name="ask",
)

__all__ = ["router", "STREAM_HEADERS", "create_stream_response"]
