"""
OpenAI-compatible client wrapper for the upstream completion provider.

The provider (Thesys C1 embed API by default) speaks the OpenAI chat
completions protocol, so the official `openai` SDK is used with a custom
base URL. Clients are created per request from the current settings: a
missing credential surfaces as a ConfigurationError at request time instead
of breaking application start-up.
"""

from collections.abc import Callable, Sequence

import structlog
from openai import AsyncOpenAI, AsyncStream
from openai.types.chat import ChatCompletionChunk

from ..core.config import Settings
from ..core.exceptions import ConfigurationError

logger = structlog.get_logger()

UPSTREAM_SERVICE = "thesys"


class UpstreamCompletionClient:
    """
    Streaming chat-completion client for the configured upstream model.

    The model identifier is fixed by configuration; callers only supply the
    ordered message list.
    """

    def __init__(self, settings: Settings, client: AsyncOpenAI | None = None):
        """
        Initialize the upstream client.

        Args:
            settings: Application settings with the upstream credential
            client: Optional preconfigured AsyncOpenAI (tests, pooling)

        Raises:
            ConfigurationError: THESYS_API_KEY is not set
        """
        if not settings.has_upstream_credential:
            raise ConfigurationError(
                "THESYS_API_KEY is missing. Set it in the environment to call the API.",
                setting="thesys_api_key",
            )

        self.model = settings.upstream_model
        self._client = client or AsyncOpenAI(
            base_url=settings.upstream_base_url,
            api_key=settings.thesys_api_key,
            timeout=settings.upstream_timeout_seconds,
        )
        logger.debug(
            "Upstream client initialized",
            model=self.model,
            base_url=settings.upstream_base_url,
        )

    async def open_stream(
        self, messages: Sequence[dict[str, str]]
    ) -> AsyncStream[ChatCompletionChunk]:
        """
        Start a streaming chat completion.

        Args:
            messages: Ordered list of {"role", "content"} dicts

        Returns:
            Async iterator of completion chunks (already connected)
        """
        logger.info(
            "Opening upstream completion stream",
            model=self.model,
            message_count=len(messages),
        )
        return await self._client.chat.completions.create(
            model=self.model,
            messages=list(messages),  # type: ignore[arg-type]  # role/content dicts
            stream=True,
        )

    async def aclose(self) -> None:
        await self._client.close()


# Factory signature injected into the ask route (overridden in tests)
UpstreamClientFactory = Callable[[Settings], UpstreamCompletionClient]
