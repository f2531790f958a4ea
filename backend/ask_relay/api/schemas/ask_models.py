"""
Request models for the ask relay endpoint.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# ===== Conversation Models =====


class ConversationTurn(BaseModel):
    """One message sent upstream (prior assistant answer or new user prompt)."""

    role: Literal["user", "assistant"]
    content: str


# ===== Request Models =====


class RelayRequest(BaseModel):
    """Validated ask request (see services.prompt_validation)."""

    model_config = ConfigDict(populate_by_name=True)

    prompt: str = Field(..., description="User prompt, trimmed, non-empty")
    previous_response: str | None = Field(
        None,
        alias="previousC1Response",
        description="Previous assistant answer for a follow-up question",
    )
