"""
Request timing middleware for relay latency profiling.

For a streamed answer `call_next` returns as soon as the response starts, so
the middleware measures the exchange in stages:

- time to headers: validation, client creation, the upstream connection
- time to first chunk: until the model produced its first delta
- stream duration and chunk count: until the last delta, or the disconnect

Event-stream bodies are wrapped so the later stages are recorded when the
stream ends, however it ends. Per-endpoint summaries are exposed via
GET /api/health/timing.
"""

import statistics
import time
from collections import defaultdict, deque
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = structlog.get_logger()

STREAM_MEDIA_TYPE = "text/event-stream"


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


@dataclass
class SampleWindow:
    """The most recent `max_samples` values of one measurement."""

    max_samples: int = 1000
    values: deque[float] = field(init=False)

    def __post_init__(self) -> None:
        self.values = deque(maxlen=self.max_samples)

    def add(self, value: float) -> None:
        self.values.append(value)

    def summary(self) -> dict[str, float | None]:
        """P50/P95/P99 (linear interpolation), count, min, max, avg."""
        if not self.values:
            return {"p50": None, "p95": None, "p99": None, "count": 0}

        data = sorted(self.values)
        if len(data) == 1:
            p50 = p95 = p99 = data[0]
        else:
            cuts = statistics.quantiles(data, n=100, method="inclusive")
            p50, p95, p99 = cuts[49], cuts[94], cuts[98]

        return {
            "p50": p50,
            "p95": p95,
            "p99": p99,
            "count": len(data),
            "min": data[0],
            "max": data[-1],
            "avg": statistics.mean(data),
        }


@dataclass
class EndpointTiming:
    """All stages recorded for one "METHOD /path"."""

    headers_ms: SampleWindow = field(default_factory=SampleWindow)
    first_chunk_ms: SampleWindow = field(default_factory=SampleWindow)
    stream_ms: SampleWindow = field(default_factory=SampleWindow)
    chunks: SampleWindow = field(default_factory=SampleWindow)

    def summary(self) -> dict[str, dict[str, float | None]]:
        result = {"time_to_headers_ms": self.headers_ms.summary()}
        if self.stream_ms.values:
            result["time_to_first_chunk_ms"] = self.first_chunk_ms.summary()
            result["stream_duration_ms"] = self.stream_ms.summary()
            result["chunks_per_stream"] = self.chunks.summary()
        return result


class TimingMiddleware(BaseHTTPMiddleware):
    """
    Records per-endpoint timings and logs slow requests and finished streams.

    Adds an `X-Response-Time-Ms` header (time to headers) to every response.
    """

    # Class-level storage (shared across requests and app instances)
    timings: dict[str, EndpointTiming] = defaultdict(EndpointTiming)

    def __init__(
        self,
        app: ASGIApp,
        log_all_requests: bool = False,
        slow_threshold_ms: float = 500.0,
    ) -> None:
        """
        Initialize timing middleware.

        Args:
            app: The FastAPI application
            log_all_requests: If True, log every request. If False, only slow ones.
            slow_threshold_ms: Time to headers above which a request is logged
                as slow.
        """
        super().__init__(app)
        self.log_all_requests = log_all_requests
        self.slow_threshold_ms = slow_threshold_ms

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        headers_ms = _elapsed_ms(started)

        endpoint = f"{request.method} {request.url.path}"
        timing = self.timings[endpoint]
        timing.headers_ms.add(headers_ms)
        response.headers["X-Response-Time-Ms"] = f"{headers_ms:.2f}"

        streaming = response.headers.get("content-type", "").startswith(
            STREAM_MEDIA_TYPE
        )
        if streaming:
            response.body_iterator = self._observe_stream(  # type: ignore[attr-defined]
                endpoint, timing, response.body_iterator, started  # type: ignore[attr-defined]
            )

        is_slow = headers_ms > self.slow_threshold_ms
        if self.log_all_requests or is_slow:
            log_method = logger.warning if is_slow else logger.info
            log_method(
                "Request headers sent",
                endpoint=endpoint,
                status_code=response.status_code,
                time_to_headers_ms=round(headers_ms, 2),
                streaming=streaming,
                slow=is_slow,
            )

        return response

    async def _observe_stream(
        self,
        endpoint: str,
        timing: EndpointTiming,
        body: AsyncIterator[Any],
        started: float,
    ) -> AsyncIterator[Any]:
        """Pass the body through, recording first-chunk time, duration and count."""
        chunk_count = 0
        first_chunk_ms: float | None = None
        completed = False
        try:
            async for chunk in body:
                if first_chunk_ms is None:
                    first_chunk_ms = _elapsed_ms(started)
                chunk_count += 1
                yield chunk
            completed = True
        finally:
            stream_ms = _elapsed_ms(started)
            if first_chunk_ms is not None:
                timing.first_chunk_ms.add(first_chunk_ms)
            timing.stream_ms.add(stream_ms)
            timing.chunks.add(float(chunk_count))

            if self.log_all_requests or not completed:
                log_method = logger.info if completed else logger.warning
                log_method(
                    "Stream finished",
                    endpoint=endpoint,
                    completed=completed,
                    chunk_count=chunk_count,
                    time_to_first_chunk_ms=(
                        round(first_chunk_ms, 2) if first_chunk_ms is not None else None
                    ),
                    stream_duration_ms=round(stream_ms, 2),
                )

    @classmethod
    def snapshot(cls) -> dict[str, dict[str, dict[str, float | None]]]:
        """Summaries for every endpoint seen so far."""
        return {endpoint: timing.summary() for endpoint, timing in cls.timings.items()}

    @classmethod
    def reset(cls) -> None:
        cls.timings.clear()
