"""
Shared utilities module.

Provides common utility functions used across the relay and the consumer.
"""

from .sanitizers import (
    sanitize_exception_message,
    sanitize_text,
)

__all__ = [
    "sanitize_text",
    "sanitize_exception_message",
]
