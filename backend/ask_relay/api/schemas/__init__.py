"""API request/response schemas."""

from .ask_models import ConversationTurn, RelayRequest

__all__ = [
    "ConversationTurn",
    "RelayRequest",
]
