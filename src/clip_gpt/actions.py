from __future__ import annotations

import contextlib
from dataclasses import dataclass
from types import MappingProxyType
from typing import AsyncContextManager, Mapping, Protocol, runtime_checkable

from loguru import logger

from clip_gpt.app_config import AppConfig
from clip_gpt.invocation import ActionKind, Invocation
from clip_gpt.prompts import resolve_prompt
from clip_gpt.request_builder import ChatRequest, build_chat_request, build_one_time_request
from clip_gpt.session import Message, Session, SessionStore


@dataclass(frozen=True)
class GuardResult:
    allow: bool
    reason: str | None = None


@dataclass(frozen=True)
class PreparedRequest:
    request: ChatRequest
    # Transcript the exchange settles against; None for one-time actions.
    session: Session | None = None


@runtime_checkable
class ChatAction(Protocol):
    def evaluate_guard(self, invocation: Invocation, config: AppConfig) -> GuardResult: ...

    def build_request(self, invocation: Invocation, config: AppConfig) -> PreparedRequest: ...

    def on_success(self, prepared: PreparedRequest, reply: Message) -> str:
        """Record the reply where needed and return the text handed back to the host."""
        ...

    def on_failure(self, prepared: PreparedRequest, error: BaseException) -> None: ...
    def cleanup(self) -> None: ...

    def exchange_lock(self, invocation: Invocation) -> AsyncContextManager:
        """Context held from guard evaluation until the call settles."""
        ...


class StatefulAction:
    """Multi-turn chat, one conversation per calling application."""

    def __init__(self, store: SessionStore):
        self._store = store

    @property
    def store(self) -> SessionStore:
        return self._store

    def evaluate_guard(self, invocation: Invocation, config: AppConfig) -> GuardResult:
        if invocation.modifiers.shift:
            ctx = invocation.context
            self._store.delete(ctx.app_identifier)
            logger.info(f"Chat history cleared for {ctx.app_identifier!r}")
            return GuardResult(
                allow=False,
                reason=f"{ctx.app_name}({ctx.app_identifier})'s chat history has been cleared",
            )
        return GuardResult(allow=True)

    def build_request(self, invocation: Invocation, config: AppConfig) -> PreparedRequest:
        session = self._store.get(invocation.context.app_identifier)
        request = build_chat_request(
            session,
            invocation.text,
            model=config.model,
            temperature=config.temperature,
            now=self._store.clock(),
        )
        return PreparedRequest(request, session)

    def on_success(self, prepared: PreparedRequest, reply: Message) -> str:
        prepared.session.append(reply, now=self._store.clock())
        return reply.content.strip()

    def on_failure(self, prepared: PreparedRequest, error: BaseException) -> None:
        # Drop the unanswered user turn.
        prepared.session.undo_last()

    def cleanup(self) -> None:
        self._store.cleanup_stale()

    def exchange_lock(self, invocation: Invocation) -> AsyncContextManager:
        return self._store.exchange(invocation.context.app_identifier)


class StatelessAction:
    """Single-turn transform of the selected text with a resolved prompt."""

    def __init__(self, kind: ActionKind):
        if kind.is_stateful:
            raise ValueError(f"{kind.value} is not a one-time action")
        self._kind = kind

    @property
    def kind(self) -> ActionKind:
        return self._kind

    def evaluate_guard(self, invocation: Invocation, config: AppConfig) -> GuardResult:
        return GuardResult(allow=config.is_enabled(self._kind))

    def build_request(self, invocation: Invocation, config: AppConfig) -> PreparedRequest:
        options = config.action_options(self._kind)
        prompt = resolve_prompt(
            self._kind,
            custom_prompt=config.custom_prompt,
            language=options.language(invocation.modifiers.shift),
            mode=config.prompt_language_mode,
        )
        return PreparedRequest(
            build_one_time_request(
                prompt,
                invocation.text,
                model=config.model,
                temperature=config.temperature,
            )
        )

    def on_success(self, prepared: PreparedRequest, reply: Message) -> str:
        return reply.content.strip()

    def on_failure(self, prepared: PreparedRequest, error: BaseException) -> None:
        pass

    def cleanup(self) -> None:
        pass

    def exchange_lock(self, invocation: Invocation) -> AsyncContextManager:
        return contextlib.nullcontext()


def build_action_table(store: SessionStore | None = None) -> Mapping[ActionKind, ChatAction]:
    """Build the read-only action lookup used by the dispatcher."""
    store = store if store is not None else SessionStore()
    table: dict[ActionKind, ChatAction] = {}
    for kind in ActionKind:
        table[kind] = StatefulAction(store) if kind.is_stateful else StatelessAction(kind)
    return MappingProxyType(table)
