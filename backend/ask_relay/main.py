"""
FastAPI application entry point for the ask relay.

Run with:
    uvicorn ask_relay.main:app --reload
    python -m ask_relay.main
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from . import __version__
from .api.ask import router as ask_router
from .api.dependencies.rate_limit import limiter
from .api.dependencies.timing_middleware import TimingMiddleware
from .api.health import router as health_router
from .core.config import get_settings
from .core.exceptions import AppError

# Set the root logger level to INFO so we can see detailed logs
logging.basicConfig(level=logging.INFO)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Log start-up configuration; the relay holds no connections between requests."""
    settings = get_settings()

    logger.info(
        "Starting ask relay",
        environment=settings.environment,
        upstream_model=settings.upstream_model,
        upstream_configured=settings.has_upstream_credential,
    )
    if not settings.has_upstream_credential:
        logger.warning(
            "THESYS_API_KEY is not set; ask requests will fail until it is configured"
        )

    yield

    logger.info("Ask relay stopped")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Ask Relay API",
        description="Streaming relay between clients and an upstream chat model",
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Security middleware - only in production
    if settings.is_production:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.allowed_hosts,
        )

    # CORS middleware for browser consumers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.add_middleware(
        TimingMiddleware,
        slow_threshold_ms=settings.slow_request_threshold_ms,
    )

    # Rate limiting - SlowAPI integration
    app.state.limiter = limiter
    # Only add middleware in non-test environments (middleware breaks FastAPI TestClient)
    if settings.environment != "test":
        app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """Answer throttled clients in the same JSON error shape as other failures."""
        logger.warning(
            "Rate limit exceeded",
            path=request.url.path,
            limit=str(exc.detail),
        )
        return JSONResponse(
            status_code=429,
            content={
                "error": f"Rate limit exceeded: {exc.detail}",
                "error_type": "rate_limit_error",
            },
            headers={"Retry-After": str(60)},
        )

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        """
        Map AppError subclasses to their HTTP status with a JSON `error` body.

        Only reachable before a stream starts; once the response has begun,
        failures can only abort it.
        """
        error_dict = exc.to_dict()

        log_method = logger.warning if exc.status_code < 500 else logger.error
        log_method(
            "Application error occurred",
            path=request.url.path,
            method=request.method,
            **error_dict,
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response_body(),
        )

    # Include routers
    app.include_router(health_router, prefix="/api", tags=["health"])
    app.include_router(ask_router)

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint for basic connectivity check."""
        return {
            "message": "Ask Relay API",
            "version": __version__,
            "environment": settings.environment,
        }

    return app


# Create app instance
app = create_app()

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "ask_relay.main:app",
        host="0.0.0.0",  # nosec B104 - Required for Docker container
        port=8000,
        reload=settings.environment == "development",
        log_config=None,  # Use structlog configuration
    )
