"""
Client side of the relay: the streaming consumer and its decoder.

Public API:
    StreamingConsumer: Stateful consumer with at-most-one active exchange
    make_api_call: Functional form taking handle accessors
    ExchangeHandle: Cancellation signal + loading flag for one exchange
"""

from .consumer import (
    ExchangeHandle,
    RelayResponseError,
    StreamBodyError,
    StreamingConsumer,
    make_api_call,
)
from .decoder import IncrementalTextDecoder

__all__ = [
    "ExchangeHandle",
    "IncrementalTextDecoder",
    "RelayResponseError",
    "StreamBodyError",
    "StreamingConsumer",
    "make_api_call",
]
