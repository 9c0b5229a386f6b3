"""
LLM transport: a single chat-completion call against an OpenAI-compatible API.

The default target is Qwen through DashScope's compatible mode. The caller's
credential is forwarded verbatim as the bearer key for every call, so a fresh
client is created per request. Retries are disabled: one attempt, and any
failure surfaces immediately.
"""

import logging
from typing import Protocol

from openai import APIError, AsyncOpenAI

from ...config import Settings, get_settings
from ...exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class LLMTransport(Protocol):
    """Anything that can turn a system/user prompt pair into raw reply text."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        credential: str,
        timeout: float,
    ) -> str | None: ...


class OpenAICompatibleTransport:
    """
    Chat-completion transport using the official ``openai`` async client.

    Args:
        base_url: API root of the OpenAI-compatible service.
        model: Model name sent with each request.
        temperature: Sampling temperature.
    """

    def __init__(self, base_url: str, model: str, temperature: float = 0.3):
        self.base_url = base_url
        self.model = model
        self.temperature = temperature

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        credential: str,
        timeout: float,
    ) -> str | None:
        """
        Send one chat-completion request and return the message content.

        Raises:
            UpstreamUnavailableError: On connection errors, timeouts and non-2xx replies.
        """
        client = AsyncOpenAI(
            api_key=credential,
            base_url=self.base_url,
            timeout=timeout,
            max_retries=0,
        )
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.temperature,
            )
        except APIError as e:
            logger.error("LLM request to %s failed: %s", self.base_url, e)
            raise UpstreamUnavailableError(f"LLM service unavailable: {e}") from e
        finally:
            await client.close()

        if not response.choices:
            return None
        return response.choices[0].message.content


_transport: OpenAICompatibleTransport | None = None


def get_transport() -> LLMTransport:
    """Get or create the transport singleton from settings."""
    global _transport
    if _transport is None:
        settings: Settings = get_settings()
        _transport = OpenAICompatibleTransport(
            base_url=settings.llm_base_url,
            model=settings.llm_model,
            temperature=settings.llm_temperature,
        )
    return _transport
