"""
Shared sanitization utilities.

Provides secure text sanitization to prevent API key leakage in logs, error
messages, and user-facing responses. Upstream SDK errors frequently echo the
request headers or a truncated key, so every exception string that leaves the
relay goes through here first.
"""

import re

# Pre-compiled regex patterns for performance
_API_KEY_PATTERN = re.compile(r"(api[_ ]?key[=:]\s*)([A-Za-z0-9_-]+)", re.IGNORECASE)
_BEARER_TOKEN_PATTERN = re.compile(r"(Bearer\s+)([A-Za-z0-9._-]+)", re.IGNORECASE)
_PASSWORD_PATTERN = re.compile(r"(password[=:]\s*)([^\s&]+)", re.IGNORECASE)
_SECRET_KEY_PATTERN = re.compile(r"\bsk-[A-Za-z0-9_-]{8,}")

# Keywords that indicate sensitive content
_SENSITIVE_KEYWORDS = frozenset(
    {"api key", "apikey", "api_key", "bearer", "token", "password", "secret", "sk-"}
)


def sanitize_text(text: str, mask: str = "****") -> str:
    """
    Remove sensitive information from text strings.

    Sanitizes API keys, bearer tokens, and passwords from text before
    logging or displaying to users.

    Args:
        text: Text to sanitize
        mask: Replacement mask for sensitive values

    Returns:
        Sanitized text with sensitive values masked

    Examples:
        >>> sanitize_text("Error: Invalid apikey=ABC123DEF")
        "Error: Invalid apikey=****"
        >>> sanitize_text("Incorrect API key provided: sk-abcdef123456")
        "Incorrect API key provided: ****"
    """
    if not text:
        return text

    # Quick check for sensitive keywords (optimization)
    text_lower = text.lower()
    has_sensitive = any(keyword in text_lower for keyword in _SENSITIVE_KEYWORDS)

    if not has_sensitive:
        return text

    # Apply sanitization patterns
    result = _SECRET_KEY_PATTERN.sub(mask, text)
    result = _API_KEY_PATTERN.sub(rf"\1{mask}", result)
    result = _BEARER_TOKEN_PATTERN.sub(rf"\1{mask}", result)
    result = _PASSWORD_PATTERN.sub(rf"\1{mask}", result)

    return result


def sanitize_exception_message(exc: BaseException, mask: str = "****") -> str:
    """
    Sanitize an exception message for safe logging/display.

    Falls back to the exception class name when the message is empty
    (e.g. a bare ``httpx.ReadError()``).
    """
    return sanitize_text(str(exc), mask) or type(exc).__name__
