"""
Unit tests for the upstream completion client wrapper.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from ask_relay.core.config import Settings
from ask_relay.core.exceptions import ConfigurationError
from ask_relay.llm.client import UpstreamCompletionClient


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        thesys_api_key="test-key",
        upstream_model="c1/test-model",
    )


@pytest.fixture
def mock_openai():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value="stream")
    client.close = AsyncMock()
    return client


class TestUpstreamCompletionClient:
    """Credential checks and request shape."""

    def test_missing_credential(self):
        with pytest.raises(ConfigurationError) as exc_info:
            UpstreamCompletionClient(Settings(_env_file=None, thesys_api_key=""))

        assert "THESYS_API_KEY" in exc_info.value.message
        assert exc_info.value.status_code == 500

    def test_builds_sdk_client_from_settings(self, settings):
        client = UpstreamCompletionClient(settings)

        assert client.model == "c1/test-model"
        assert str(client._client.base_url).startswith("https://api.thesys.dev/v1/embed")
        assert client._client.api_key == "test-key"

    @pytest.mark.asyncio
    async def test_open_stream_uses_fixed_model(self, settings, mock_openai):
        client = UpstreamCompletionClient(settings, client=mock_openai)
        messages = [{"role": "user", "content": "hi"}]

        result = await client.open_stream(messages)

        assert result == "stream"
        mock_openai.chat.completions.create.assert_awaited_once_with(
            model="c1/test-model",
            messages=messages,
            stream=True,
        )

    @pytest.mark.asyncio
    async def test_aclose(self, settings, mock_openai):
        client = UpstreamCompletionClient(settings, client=mock_openai)
        await client.aclose()
        mock_openai.close.assert_awaited_once()
