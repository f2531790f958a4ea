"""
Custom exception hierarchy for proper error categorization and HTTP status mapping.

Maps internal errors to HTTP status codes so the relay can answer with a
structured JSON body before any streaming begins:
- User errors (400-level): Client sent a bad prompt
- Server errors (500-level): Relay misconfigured or upstream call could not start

Usage:
    from ask_relay.core.exceptions import ConfigurationError, ValidationError

    # Bad input → 400 Bad Request
    raise ValidationError("Prompt is required")

    # Missing credential → 500 Internal Server Error
    raise ConfigurationError("THESYS_API_KEY is not configured")
"""

from typing import Any


class AppError(Exception):
    """
    Base application error with HTTP status mapping.

    All custom exceptions inherit from this to enable consistent error handling.
    """

    # Default status code (subclasses override)
    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str, **context: Any):
        """
        Initialize error with message and optional context.

        Args:
            message: Human-readable error description
            **context: Additional key-value pairs for logging (e.g., prompt_length)
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for structured logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "status_code": self.status_code,
            **self.context,
        }

    def to_response_body(self) -> dict[str, str]:
        """Client-facing JSON body (context stays in the logs)."""
        return {"error": self.message, "error_type": self.error_type}


# ===== 400-level: Client Errors =====


class ValidationError(AppError):
    """User provided invalid input (e.g., empty or oversized prompt)."""

    status_code = 400
    error_type = "validation_error"


# ===== 500-level: Server Errors =====


class ConfigurationError(AppError):
    """
    Application misconfigured (e.g., missing upstream API key).

    Not retryable by the client without operator intervention.
    """

    status_code = 500
    error_type = "configuration_error"


class UpstreamError(AppError):
    """
    Upstream completion call could not be prepared or started.

    Raised only before the response stream begins; failures after the first
    byte terminate the stream instead.
    """

    status_code = 500
    error_type = "upstream_error"

    def __init__(self, message: str, service: str, **context: Any):
        """
        Initialize with service name for easier debugging.

        Args:
            message: Error description
            service: Service identifier (e.g., "thesys")
            **context: Additional context (e.g., model)
        """
        super().__init__(message, service=service, **context)
