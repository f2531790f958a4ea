"""
Ask relay handler.

POST /api/ask validates the prompt, opens a streaming completion upstream and
re-streams every delta to the caller as it arrives.
"""

import structlog
from fastapi import Depends, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from ...core.config import Settings, get_settings
from ...core.exceptions import AppError, UpstreamError
from ...llm.client import UPSTREAM_SERVICE, UpstreamClientFactory
from ...services.prompt_validation import PromptRules, parse_relay_request
from ...services.relay_service import RelayService
from ...shared.sanitizers import sanitize_exception_message
from ..dependencies.rate_limit import rate_limit_ask
from ..dependencies.relay_deps import get_upstream_client_factory
from .helpers import create_stream_response, read_json_body

logger = structlog.get_logger()


@rate_limit_ask
async def ask(
    request: Request,
    settings: Settings = Depends(get_settings),
    client_factory: UpstreamClientFactory = Depends(get_upstream_client_factory),
) -> StreamingResponse:
    """
    Relay a prompt to the upstream model and stream the answer back.

    **Request:**
    ```json
    {
      "prompt": "Compare Python web frameworks",
      "previousC1Response": "..."   // Optional: previous answer for follow-ups
    }
    ```

    **Response:** `text/event-stream` body of raw text fragments, closed when
    the model finishes.

    **Errors:** JSON `{"error": "..."}`
    - 400: prompt missing, blank, not a string, or too long
    - 500: upstream credential missing, or the upstream call could not start
    """
    body = await read_json_body(request)
    relay_request = parse_relay_request(body, PromptRules.from_settings(settings))

    logger.info(
        "Ask request accepted",
        prompt_length=len(relay_request.prompt),
        has_previous_response=relay_request.previous_response is not None,
    )

    try:
        service = RelayService(client_factory(settings))
        stream = await service.open_stream(relay_request)
    except AppError:
        raise
    except Exception as e:
        logger.error(
            "Unexpected error preparing upstream call",
            error=sanitize_exception_message(e),
            error_type=type(e).__name__,
        )
        raise UpstreamError(
            "Failed to start the upstream completion.", service=UPSTREAM_SERVICE
        ) from e

    return create_stream_response(
        service.relay(stream), on_close=BackgroundTask(service.aclose, stream)
    )
