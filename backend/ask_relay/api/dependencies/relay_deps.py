"""
Dependencies for the ask relay endpoint.
"""

from ...llm.client import UpstreamClientFactory, UpstreamCompletionClient


def get_upstream_client_factory() -> UpstreamClientFactory:
    """
    Get the factory that builds the upstream client for one request.

    The client is built inside the handler, after prompt validation, so a bad
    prompt is rejected with 400 even when the credential is missing. Tests
    override this dependency with a fake factory.
    """
    return UpstreamCompletionClient
