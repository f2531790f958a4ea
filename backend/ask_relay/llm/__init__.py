"""
Upstream LLM provider integration.

Public API:
    UpstreamCompletionClient: Streaming chat-completion client (openai SDK)
    UpstreamClientFactory: Callable that builds a client from Settings
"""

from .client import UPSTREAM_SERVICE, UpstreamClientFactory, UpstreamCompletionClient

__all__ = ["UPSTREAM_SERVICE", "UpstreamClientFactory", "UpstreamCompletionClient"]
