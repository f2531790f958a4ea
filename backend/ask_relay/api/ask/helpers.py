"""
Shared helpers for the ask relay endpoint.

The stream carries raw UTF-8 text fragments with no SSE framing; the event
stream content type and the headers below only keep proxies and browsers
from buffering, caching or rewriting it.
"""

import json
from collections.abc import AsyncIterator
from typing import Any

import structlog
from fastapi import Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ...core.exceptions import AppError
from ...shared.sanitizers import sanitize_exception_message

logger = structlog.get_logger()

STREAM_MEDIA_TYPE = "text/event-stream"

STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # nginx: do not buffer the stream
}


async def read_json_body(request: Request) -> Any:
    """
    Decode the request body as JSON.

    Raises:
        AppError: Body is not valid JSON (reported as a 500, like any failure
            while preparing the upstream call)
    """
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error(
            "Failed to parse ask request body",
            error=sanitize_exception_message(e),
            error_type=type(e).__name__,
        )
        raise AppError("Failed to parse request body.") from e


def create_stream_response(
    chunks: AsyncIterator[str], on_close: BackgroundTask | None = None
) -> StreamingResponse:
    """
    Wrap a text fragment iterator in a proxy-safe streaming response.

    `on_close` runs after the response ends, including when the client
    disconnected before the body was read.
    """
    return StreamingResponse(
        chunks,
        media_type=STREAM_MEDIA_TYPE,
        headers=STREAM_HEADERS,
        background=on_close,
    )
