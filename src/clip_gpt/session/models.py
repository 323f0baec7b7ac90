from __future__ import annotations

from dataclasses import dataclass

# 20 minutes of inactivity resets a conversation.
INACTIVITY_THRESHOLD_SECONDS = 20 * 60

ROLES = ("user", "system", "assistant")


@dataclass(frozen=True)
class Message:
    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r}")

    @classmethod
    def user(cls, content: str) -> Message:
        return cls("user", content)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls("system", content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        return cls("assistant", content)

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}
