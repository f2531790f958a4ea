"""
Shared pytest configuration.

Runs the app in the "test" environment (no SlowAPI middleware) and resets the
in-memory rate limit counters between tests.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

import pytest  # noqa: E402

from ask_relay.api.dependencies.rate_limit import limiter  # noqa: E402
from ask_relay.api.dependencies.timing_middleware import TimingMiddleware  # noqa: E402
from ask_relay.core.config import get_settings  # noqa: E402


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Rate limit storage, timing samples and cached settings are process-wide."""
    limiter.reset()
    TimingMiddleware.reset()
    get_settings.cache_clear()
    yield
    limiter.reset()
    TimingMiddleware.reset()
    get_settings.cache_clear()
