from __future__ import annotations

from collections.abc import Awaitable, Callable

from clip_gpt.invocation import ActionKind


class CommandRouter:
    """Routes console input: ``/<action> text``, ``/clear``, ``/shift``, ``/app``, ``/help``.

    Plain text runs the default action.
    """

    def __init__(
        self,
        *,
        on_action: Callable[[ActionKind, str], Awaitable[None]],
        on_clear: Callable[[], Awaitable[None]],
        on_shift: Callable[[], None],
        on_app: Callable[[str], None],
        on_help: Callable[[], None],
        on_unknown: Callable[[str], None],
        default_action: ActionKind = ActionKind.CHAT,
    ) -> None:
        self._on_action = on_action
        self._on_clear = on_clear
        self._on_shift = on_shift
        self._on_app = on_app
        self._on_help = on_help
        self._on_unknown = on_unknown
        self._default_action = default_action

    async def handle(self, line: str) -> None:
        trimmed = line.strip()
        if not trimmed.startswith("/"):
            await self._on_action(self._default_action, trimmed)
            return

        command, _, rest = trimmed[1:].partition(" ")
        rest = rest.strip()

        if command == "help":
            self._on_help()
            return
        if command == "clear":
            await self._on_clear()
            return
        if command == "shift":
            self._on_shift()
            return
        if command == "app":
            self._on_app(rest)
            return

        try:
            action = ActionKind(command)
        except ValueError:
            self._on_unknown(trimmed)
            return
        if not rest:
            self._on_unknown(trimmed)
            return
        await self._on_action(action, rest)
