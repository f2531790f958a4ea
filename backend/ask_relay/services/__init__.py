"""
Relay business logic.

Public API:
    RelayService: Opens the upstream stream and re-yields its deltas
    build_messages / extract_delta: Message list and chunk helpers
    PromptRules / parse_relay_request: Prompt validation
"""

from .prompt_validation import PromptRules, parse_relay_request
from .relay_service import RelayService, build_messages, extract_delta

__all__ = [
    "PromptRules",
    "RelayService",
    "build_messages",
    "extract_delta",
    "parse_relay_request",
]
