"""
Health check endpoints for monitoring and configuration verification.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends

from .. import __version__
from ..core.config import Settings, get_settings
from .dependencies.timing_middleware import TimingMiddleware

logger = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    """
    Relay health check.

    The relay has no stateful dependencies; it is "ok" when the upstream
    credential is configured and "degraded" otherwise (every ask would fail
    with a configuration error).
    """
    logger.info("Health check requested")

    upstream_configured = settings.has_upstream_credential

    health_response = {
        "status": "ok" if upstream_configured else "degraded",
        "environment": settings.environment,
        "version": __version__,
        "configuration": {
            "upstream_configured": upstream_configured,
            "upstream_model": settings.upstream_model,
            "max_prompt_length": settings.max_prompt_length,
        },
    }

    if upstream_configured:
        logger.info("Health check passed", status="healthy")
    else:
        logger.warning("Health check degraded", reason="upstream credential missing")

    return health_response


@router.get("/health/live")
async def liveness_check() -> dict[str, Any]:
    """Liveness check: the process is up and serving."""
    return {"alive": True, "status": "ok"}


@router.get("/health/timing")
async def timing_metrics() -> dict[str, dict[str, dict[str, float | None]]]:
    """
    Timing summaries per endpoint (P50, P95, P99, count, min, max, avg).

    Every endpoint has `time_to_headers_ms`; streamed endpoints also carry
    `time_to_first_chunk_ms`, `stream_duration_ms` and `chunks_per_stream`.
    Sorted by time-to-headers P95 descending so the slowest endpoints come first.
    """
    metrics = TimingMiddleware.snapshot()

    sorted_metrics = dict(
        sorted(
            metrics.items(),
            key=lambda x: x[1]["time_to_headers_ms"].get("p95") or 0,
            reverse=True,
        )
    )

    logger.info("Timing metrics requested", endpoint_count=len(sorted_metrics))

    return sorted_metrics
