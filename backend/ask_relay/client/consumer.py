"""
Streaming consumer for the relay's POST /api/ask endpoint.

One exchange = one request → chunked text stream → growing accumulated
response, reported to the caller after every chunk. The consumer owns the
exchange lifecycle:

- Supersede: starting an exchange cancels the previous one first
- Cancellation: ExchangeHandle.cancel() cancels the exchange's task, so the
  pending network await raises CancelledError at its next suspension point
- Timeout: a loop timer, armed when the request is sent, calls the same
  cancel() after `timeout_seconds`
- Cleanup: timer disarmed, loading cleared and handle released on every path

Self-inflicted cancellation (supersede, explicit cancel, timeout) is silent.
Any other failure is logged and passed to the optional error sink; nothing is
raised past the exchange boundary except a cancellation of the caller's own
task that did not come from the handle.
"""

import asyncio
import itertools
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from ..core.config import Settings
from ..shared.sanitizers import sanitize_exception_message
from .decoder import IncrementalTextDecoder

logger = structlog.get_logger()

DEFAULT_EXCHANGE_TIMEOUT_SECONDS = 30.0

# Statuses that never carry a body
_NO_BODY_STATUSES = frozenset({204, 205, 304})

ResponseSink = Callable[[str], None]
LoadingSink = Callable[[bool], None]
ErrorSink = Callable[[Exception], None]

_exchange_ids = itertools.count(1)


class StreamBodyError(RuntimeError):
    """Relay answered without a readable stream body."""


class RelayResponseError(RuntimeError):
    """Relay answered with a non-2xx status (validation/configuration error)."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"Relay returned {status_code}: {message}")
        self.status_code = status_code
        self.message = message


@dataclass(eq=False)
class ExchangeHandle:
    """
    One in-flight exchange: its cancellation signal and loading flag.

    The handle is bound to the task running the exchange; cancel() sets the
    signal and cancels that task so the pending await unwinds immediately.
    When called from inside that task (a sink reacting to an update) only the
    signal is set; the exchange checks it right after each sink call.

    The handle also owns the exchange's loading sink, so the sink sees
    exactly one True and one False whichever way the exchange ends.
    """

    exchange_id: int = field(default_factory=lambda: next(_exchange_ids))
    is_loading: bool = False
    cancel_reason: str | None = None
    _cancelled: bool = field(default=False, repr=False)
    _cancelled_task: bool = field(default=False, repr=False)
    _task: asyncio.Task[Any] | None = field(default=None, repr=False)
    _loading_sink: LoadingSink | None = field(default=None, repr=False)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def cancelled_task(self) -> bool:
        """True when cancel() issued Task.cancel() (not just set the signal)."""
        return self._cancelled_task

    def bind(self, task: asyncio.Task[Any] | None) -> None:
        self._task = task

    def cancel(self, reason: str = "cancelled") -> None:
        """Signal cancellation; does not wait for the exchange to unwind."""
        if self._cancelled:
            return
        self._cancelled = True
        self.cancel_reason = reason
        task = self._task
        if task is None or task.done() or task is _running_task():
            return
        self._cancelled_task = True
        task.cancel(msg=reason)

    def start_loading(self, sink: LoadingSink) -> None:
        self._loading_sink = sink
        self.is_loading = True
        sink(True)

    def end_loading(self) -> None:
        """Report loading=False once; later calls do nothing."""
        if not self.is_loading:
            return
        self.is_loading = False
        if self._loading_sink is not None:
            self._loading_sink(False)


def _running_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        # Called outside an event loop
        return None


def _noop(*_args: Any) -> None:
    return None


def _has_stream_body(response: httpx.Response) -> bool:
    if response.status_code in _NO_BODY_STATUSES:
        return False
    return response.headers.get("content-length") != "0"


async def _relay_error(response: httpx.Response) -> RelayResponseError:
    """Build an error from a non-2xx relay response ({"error": ...} body)."""
    await response.aread()
    try:
        message = str(response.json().get("error") or response.text)
    except (ValueError, AttributeError):
        message = response.text or response.reason_phrase
    return RelayResponseError(response.status_code, message)


async def make_api_call(
    search_query: str,
    *,
    previous_c1_response: str | None = None,
    on_response_update: ResponseSink = _noop,
    on_loading_change: LoadingSink = _noop,
    get_handle: Callable[[], ExchangeHandle | None],
    set_handle: Callable[[ExchangeHandle | None], None],
    client: httpx.AsyncClient,
    relay_url: str,
    timeout_seconds: float = DEFAULT_EXCHANGE_TIMEOUT_SECONDS,
    on_error: ErrorSink | None = None,
) -> str:
    """
    Run one exchange against the relay and stream it into the sinks.

    Args:
        search_query: Prompt to send
        previous_c1_response: Optional prior assistant answer for follow-ups
        on_response_update: Called with the FULL accumulated text after every chunk
        on_loading_change: Called with True at start and exactly once with False
            at the end (immediately, when a later exchange supersedes this one)
        get_handle: Accessor for the currently active exchange handle
        set_handle: Setter for the active exchange handle
        client: httpx client used for the request
        relay_url: Full URL of the relay's ask endpoint
        timeout_seconds: Upper bound on the whole exchange, headers included
        on_error: Optional diagnostic sink for non-cancellation failures

    Returns:
        The accumulated response (partial if cancelled or failed)
    """
    previous = get_handle()
    if previous is not None:
        # The superseded exchange's sink sees loading=False before ours sees True
        previous.cancel("superseded")
        previous.end_loading()

    handle = ExchangeHandle()
    handle.bind(asyncio.current_task())
    set_handle(handle)
    handle.start_loading(on_loading_change)

    accumulated = ""
    timer: asyncio.TimerHandle | None = None
    log = logger.bind(exchange_id=handle.exchange_id)

    try:
        # A sink may have cancelled us already; skip the network entirely
        if handle.cancelled:
            log.debug("Exchange cancelled before request", reason=handle.cancel_reason)
            return accumulated

        payload: dict[str, str] = {"prompt": search_query}
        if previous_c1_response:
            payload["previousC1Response"] = previous_c1_response

        log.info(
            "Starting exchange",
            prompt_length=len(search_query),
            has_previous_response=bool(previous_c1_response),
        )

        # Armed before the request so the wait for headers is bounded too,
        # whatever timeout the (possibly injected) client has
        timer = asyncio.get_running_loop().call_later(
            timeout_seconds, handle.cancel, "timeout"
        )

        async with client.stream("POST", relay_url, json=payload) as response:
            if response.is_error:
                raise await _relay_error(response)
            if not _has_stream_body(response):
                raise StreamBodyError("response.body not found")

            decoder = IncrementalTextDecoder()
            chunk_count = 0

            async for raw in response.aiter_bytes():
                chunk_count += 1
                accumulated += decoder.decode(raw)
                on_response_update(accumulated)
                if handle.cancelled:
                    break

            if not handle.cancelled:
                # Final flush; the sink always sees the completed state
                accumulated += decoder.flush()
                on_response_update(accumulated)
                log.info(
                    "Exchange completed",
                    chunk_count=chunk_count,
                    response_length=len(accumulated),
                )

    except asyncio.CancelledError:
        task = asyncio.current_task()
        if task is not None and handle.cancelled_task:
            task.uncancel()
        if not handle.cancelled or (task is not None and task.cancelling()):
            # Caller's own task was cancelled from outside: propagate
            raise
        log.debug(
            "Exchange cancelled",
            reason=handle.cancel_reason,
            response_length=len(accumulated),
        )
    except Exception as e:
        if handle.cancelled:
            # Teardown noise from a cancelled read (e.g. closed stream)
            log.debug(
                "Exchange error after cancellation",
                reason=handle.cancel_reason,
                error_type=type(e).__name__,
            )
        else:
            log.error(
                "Exchange failed",
                error=sanitize_exception_message(e),
                error_type=type(e).__name__,
            )
            if on_error is not None:
                on_error(e)
    finally:
        if timer is not None:
            timer.cancel()
        handle.bind(None)
        # A superseding exchange owns the active slot now; leave it alone
        if get_handle() is handle:
            set_handle(None)
        handle.end_loading()

    return accumulated


class StreamingConsumer:
    """
    Client for the relay with at-most-one active exchange.

    Usage:
        async with StreamingConsumer("http://localhost:8000/api/ask") as consumer:
            text = await consumer.run_exchange("hello", on_update=print)
    """

    def __init__(
        self,
        relay_url: str,
        timeout_seconds: float = DEFAULT_EXCHANGE_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the consumer.

        Args:
            relay_url: Full URL of the relay's ask endpoint
            timeout_seconds: Exchange timeout (also bounds connect/header wait)
            client: Optional httpx AsyncClient for connection pooling
        """
        self.relay_url = relay_url
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = client is None
        self._active: ExchangeHandle | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, client: httpx.AsyncClient | None = None
    ) -> "StreamingConsumer":
        return cls(
            relay_url=settings.relay_url,
            timeout_seconds=settings.exchange_timeout_seconds,
            client=client,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    async def aclose(self) -> None:
        """Cancel any active exchange and close the HTTP client if we own it."""
        self.cancel("closed")
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "StreamingConsumer":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    @property
    def active_handle(self) -> ExchangeHandle | None:
        return self._active

    @property
    def is_loading(self) -> bool:
        return self._active is not None and self._active.is_loading

    def _set_handle(self, handle: ExchangeHandle | None) -> None:
        self._active = handle

    def cancel(self, reason: str = "cancelled") -> bool:
        """Cancel the active exchange, if any. Returns True if one was cancelled."""
        handle = self._active
        if handle is None:
            return False
        handle.cancel(reason)
        return True

    async def run_exchange(
        self,
        prompt: str,
        previous_response: str | None = None,
        on_update: ResponseSink = _noop,
        on_loading_change: LoadingSink = _noop,
        on_error: ErrorSink | None = None,
    ) -> str:
        """Run one exchange, superseding any in-flight one. See make_api_call."""
        client = await self._get_client()
        return await make_api_call(
            prompt,
            previous_c1_response=previous_response,
            on_response_update=on_update,
            on_loading_change=on_loading_change,
            get_handle=lambda: self._active,
            set_handle=self._set_handle,
            client=client,
            relay_url=self.relay_url,
            timeout_seconds=self.timeout_seconds,
            on_error=on_error,
        )
