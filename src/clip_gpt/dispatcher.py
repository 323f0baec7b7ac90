from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping

from loguru import logger
from tenacity import retry

from clip_gpt.actions import ChatAction
from clip_gpt.app_config import AppConfig
from clip_gpt.chat_client import ChatCompletionClient, call_retry_kwargs, create_chat_client
from clip_gpt.errors import ConfigurationError
from clip_gpt.invocation import ActionKind, Host, Invocation


class Outcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DENIED = "denied"


@dataclass(frozen=True)
class DispatchResult:
    outcome: Outcome
    text: str | None = None


class Dispatcher:
    """Runs one host invocation: cleanup, guard, build, call with retry, settle."""

    def __init__(
        self,
        actions: Mapping[ActionKind, ChatAction],
        host: Host,
        *,
        client_factory: Callable[[AppConfig], ChatCompletionClient] = create_chat_client,
    ):
        self._actions = actions
        self._host = host
        self._client_factory = client_factory

    def cleanup(self) -> None:
        for action in self._actions.values():
            action.cleanup()

    async def run(self, invocation: Invocation, config: AppConfig) -> DispatchResult:
        self.cleanup()

        action = self._actions[invocation.action]
        logger.info(f"Action {invocation.action.value} from {invocation.context.app_identifier!r}")

        # A history clear waits for an in-flight exchange on the same identity.
        async with action.exchange_lock(invocation):
            return await self._guarded(action, invocation, config)

    async def _guarded(self, action: ChatAction, invocation: Invocation, config: AppConfig) -> DispatchResult:
        guard = action.evaluate_guard(invocation, config)
        if not guard.allow:
            logger.debug(f"Action {invocation.action.value} denied: {guard.reason or 'disabled'}")
            if guard.reason:
                self._host.show_text(guard.reason)
                self._host.show_success()
            return DispatchResult(Outcome.DENIED, guard.reason)

        try:
            client = self._client_factory(config)
        except ConfigurationError as ex:
            logger.error(f"Configuration error: {ex}")
            return self._fail(str(ex))

        try:
            return await self._exchange(action, client, invocation, config)
        finally:
            await client.close()

    async def _exchange(
        self,
        action: ChatAction,
        client: ChatCompletionClient,
        invocation: Invocation,
        config: AppConfig,
    ) -> DispatchResult:
        try:
            prepared = action.build_request(invocation, config)
        except ValueError as ex:
            logger.error(f"Could not build request: {ex}")
            return self._fail(str(ex))

        call = retry(**call_retry_kwargs(config.retry_delay_seconds))(client.complete)
        try:
            reply = await call(prepared.request)
        except Exception as ex:
            logger.error(f"Request failed after retries: {type(ex).__name__}: {ex}")
            action.on_failure(prepared, ex)
            return self._fail(str(ex))

        result = action.on_success(prepared, reply)
        self._host.copy_text(result)
        self._host.show_text(result, preview=False)
        return DispatchResult(Outcome.SUCCEEDED, result)

    def _fail(self, text: str) -> DispatchResult:
        self._host.show_text(text)
        return DispatchResult(Outcome.FAILED, text)
