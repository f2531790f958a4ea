"""
Relay service: forwards a validated prompt upstream and re-streams the deltas.

Setup (message building, client creation, opening the upstream stream) and
streaming are separate steps. Setup failures happen before the HTTP response
starts and map to JSON errors; failures while streaming can only terminate
the already-started response.
"""

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator
from typing import Any

import structlog

from ..api.schemas.ask_models import ConversationTurn, RelayRequest
from ..core.exceptions import UpstreamError
from ..llm.client import UPSTREAM_SERVICE, UpstreamCompletionClient
from ..shared.sanitizers import sanitize_exception_message

logger = structlog.get_logger()


def build_messages(
    prompt: str, previous_response: str | None = None
) -> list[ConversationTurn]:
    """
    Build the ordered upstream message list.

    The prior assistant answer (if any) comes first, the new user prompt last.

    Examples:
        >>> [t.role for t in build_messages("next", "earlier answer")]
        ['assistant', 'user']
    """
    messages: list[ConversationTurn] = []
    if isinstance(previous_response, str) and previous_response:
        messages.append(ConversationTurn(role="assistant", content=previous_response))
    messages.append(ConversationTurn(role="user", content=prompt))
    return messages


def extract_delta(chunk: Any) -> str:
    """Return the first choice's text delta, or "" when the chunk carries none."""
    choices = getattr(chunk, "choices", None) or []
    if not choices:
        return ""
    delta = getattr(choices[0], "delta", None)
    content = getattr(delta, "content", None)
    return content if isinstance(content, str) else ""


class RelayService:
    """One relay exchange against the upstream provider."""

    def __init__(self, client: UpstreamCompletionClient):
        self.client = client
        self._closed = False

    async def open_stream(self, request: RelayRequest) -> AsyncIterator[Any]:
        """
        Open the upstream streaming completion.

        Raises:
            UpstreamError: The upstream call could not be started
        """
        messages = build_messages(request.prompt, request.previous_response)
        try:
            return await self.client.open_stream(
                [turn.model_dump() for turn in messages]
            )
        except Exception as e:
            logger.error(
                "Failed to open upstream stream",
                error=sanitize_exception_message(e),
                error_type=type(e).__name__,
                model=self.client.model,
            )
            await self.aclose()
            raise UpstreamError(
                "Failed to start the upstream completion.",
                service=UPSTREAM_SERVICE,
                model=self.client.model,
            ) from e

    async def relay(self, stream: AsyncIterator[Any]) -> AsyncGenerator[str, None]:
        """
        Yield each upstream delta as soon as it arrives.

        Empty deltas (role-only or finish chunks) are skipped on the wire.
        Mid-stream errors are logged and re-raised so the server aborts the
        response; a partially delivered stream is never retried.
        """
        chunk_count = 0
        delta_count = 0
        try:
            async for chunk in stream:
                chunk_count += 1
                delta = extract_delta(chunk)
                if not delta:
                    continue
                delta_count += 1
                if delta_count == 1:
                    logger.info("Relay first delta", chunk_index=chunk_count)
                yield delta

            logger.info(
                "Relay stream completed",
                chunk_count=chunk_count,
                delta_count=delta_count,
            )
        except asyncio.CancelledError:
            logger.info(
                "Relay stream cancelled (client disconnected)",
                chunk_count=chunk_count,
            )
            raise
        except Exception as e:
            logger.error(
                "Relay stream failed mid-stream",
                error=sanitize_exception_message(e),
                error_type=type(e).__name__,
                chunk_count=chunk_count,
            )
            raise
        finally:
            await self.aclose(stream)

    async def aclose(self, stream: AsyncIterator[Any] | None = None) -> None:
        """
        Release the upstream stream and client. Runs at most once.

        Called from the end of relay() and again as the response's background
        task, which also runs when the body was never iterated (client gone
        before the first read).
        """
        if self._closed:
            return
        self._closed = True
        if stream is not None:
            await _close_stream(stream)
        await self.client.aclose()


async def _close_stream(stream: Any) -> None:
    """Close the upstream stream if it supports it (openai AsyncStream does)."""
    close = getattr(stream, "close", None)
    if close is None:
        return
    result = close()
    if asyncio.iscoroutine(result):
        await result
