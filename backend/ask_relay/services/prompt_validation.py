"""
Prompt validation for the ask relay.

Validation runs on the raw JSON body (not a Pydantic body model) so that bad
prompts map to 400 with a readable message instead of FastAPI's 422, and so
the rules stay parameterized by configuration rather than baked into a schema.
"""

from dataclasses import dataclass
from typing import Any

from ..api.schemas.ask_models import RelayRequest
from ..core.config import Settings
from ..core.exceptions import ValidationError

PROMPT_REQUIRED_MESSAGE = "Prompt is required and must be a non-empty string."


@dataclass(frozen=True)
class PromptRules:
    """Validation rules for incoming prompts."""

    max_length: int = 10_000

    @classmethod
    def from_settings(cls, settings: Settings) -> "PromptRules":
        return cls(max_length=settings.max_prompt_length)

    @property
    def too_long_message(self) -> str:
        return f"Prompt is too long. Maximum {self.max_length:,} characters allowed."


def parse_relay_request(body: Any, rules: PromptRules) -> RelayRequest:
    """
    Validate a decoded JSON body and build a RelayRequest.

    Args:
        body: Decoded JSON (any type; non-objects have no prompt)
        rules: Prompt rules to enforce

    Returns:
        RelayRequest with the trimmed prompt and the previous response, if any

    Raises:
        ValidationError: Prompt missing, not a string, blank, or too long
    """
    fields = body if isinstance(body, dict) else {}
    prompt = fields.get("prompt")

    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError(
            PROMPT_REQUIRED_MESSAGE, prompt_type=type(prompt).__name__
        )

    if len(prompt) > rules.max_length:
        raise ValidationError(
            rules.too_long_message,
            prompt_length=len(prompt),
            max_length=rules.max_length,
        )

    previous = fields.get("previousC1Response")
    # Non-string or empty prior turns are ignored, not rejected
    if not isinstance(previous, str) or not previous:
        previous = None

    return RelayRequest(prompt=prompt.strip(), previous_response=previous)
