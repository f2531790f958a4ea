"""Streaming ask relay: HTTP relay to an upstream model plus a streaming consumer."""

__version__ = "0.1.0"
