from __future__ import annotations

from typing import Protocol, runtime_checkable

import httpx
import openai
from loguru import logger
from tenacity import retry_if_not_exception_type, stop_after_attempt, wait_fixed, wait_none

from clip_gpt.app_config import AppConfig
from clip_gpt.errors import ConfigurationError, ProviderResponseError
from clip_gpt.request_builder import ChatRequest
from clip_gpt.session import Message

MAX_ATTEMPTS = 5

SUPPORTED_API_TYPES = ("openai", "azure")


@runtime_checkable
class ChatCompletionClient(Protocol):
    async def complete(self, request: ChatRequest) -> Message:
        """Send one chat-completion request and return the first choice's message."""
        ...

    async def close(self) -> None: ...


def _on_retry(retry_state):
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = type(exc).__name__ if exc else "Unknown"
    logger.warning(f"{reason}: {exc}. Retrying in {wait:.0f}s (attempt {attempt}/{MAX_ATTEMPTS})...")


def call_retry_kwargs(delay_seconds: float = 0.0) -> dict:
    """Retry policy for a chat-completion call.

    Every failure is retried the same way until ``MAX_ATTEMPTS`` is used up;
    the last exception is re-raised.
    """
    return {
        "retry": retry_if_not_exception_type(ConfigurationError),
        "wait": wait_fixed(delay_seconds) if delay_seconds > 0 else wait_none(),
        "stop": stop_after_attempt(MAX_ATTEMPTS),
        "before_sleep": _on_retry,
        "reraise": True,
    }


class OpenAIChatClient:
    def __init__(self, client: openai.AsyncOpenAI):
        self._client = client

    async def complete(self, request: ChatRequest) -> Message:
        payload = request.to_payload()
        logger.debug(
            f"API request: model={request.model}, messages={len(payload['messages'])}, "
            f"temperature={request.temperature}"
        )
        response = await self._client.chat.completions.create(**payload)

        choices = getattr(response, "choices", None)
        if not choices:
            raise ProviderResponseError("Chat completion response contained no choices")
        message = choices[0].message
        if message is None or message.content is None:
            raise ProviderResponseError("Chat completion response contained no message content")

        logger.debug(f"API response: len={len(message.content)}")
        return Message(message.role or "assistant", message.content)

    async def close(self) -> None:
        await self._client.close()


def create_chat_client(config: AppConfig, *, http_client: httpx.AsyncClient | None = None) -> OpenAIChatClient:
    """Factory: build a client for the configured API flavour."""
    if config.api_type not in SUPPORTED_API_TYPES:
        raise ConfigurationError(f"unsupported api type: {config.api_type}")
    if not config.api_key:
        raise ConfigurationError(f"An API key is required for api type {config.api_type!r}")

    if http_client is None and config.proxy:
        http_client = httpx.AsyncClient(proxy=config.proxy, timeout=config.timeout_seconds)

    # Retries are handled by the dispatcher, not the SDK.
    common = dict(
        api_key=config.api_key,
        base_url=config.api_base,
        timeout=config.timeout_seconds,
        max_retries=0,
        http_client=http_client,
    )
    if config.api_type == "azure":
        # Key travels in the api-key header, version as the api-version query parameter.
        return OpenAIChatClient(openai.AsyncAzureOpenAI(api_version=config.api_version, **common))
    return OpenAIChatClient(openai.AsyncOpenAI(**common))
