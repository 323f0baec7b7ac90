from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable


class ActionKind(str, Enum):
    CHAT = "chat"
    CUSTOM = "custom"
    WRITING = "writing"
    DIALOGUE = "dialogue"
    TRANSLATE = "translate"
    SPELL = "spell"

    @property
    def is_stateful(self) -> bool:
        return self is ActionKind.CHAT


ONE_TIME_ACTIONS: tuple[ActionKind, ...] = tuple(a for a in ActionKind if not a.is_stateful)


@dataclass(frozen=True)
class Modifiers:
    shift: bool = False
    control: bool = False
    option: bool = False
    command: bool = False

    @classmethod
    def from_flags(cls, flags: int) -> Modifiers:
        """Decode a macOS modifier bitmask (as sent in POPCLIP_MODIFIER_FLAGS)."""
        return cls(
            shift=bool(flags & (1 << 17)),
            control=bool(flags & (1 << 18)),
            option=bool(flags & (1 << 19)),
            command=bool(flags & (1 << 20)),
        )


@dataclass(frozen=True)
class CallerContext:
    app_identifier: str
    app_name: str = ""


@dataclass(frozen=True)
class Invocation:
    action: ActionKind
    text: str
    context: CallerContext
    modifiers: Modifiers = field(default_factory=Modifiers)


@runtime_checkable
class Host(Protocol):
    def show_text(self, text: str, *, preview: bool = True) -> None: ...
    def show_success(self) -> None: ...
    def copy_text(self, text: str) -> None: ...
