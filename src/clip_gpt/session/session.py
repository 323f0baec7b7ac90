from __future__ import annotations

import time

from clip_gpt.session.models import INACTIVITY_THRESHOLD_SECONDS, Message


class Session:
    """Conversation transcript for one caller identity.

    The transcript only grows, except for ``undo_last`` which drops the newest
    entry when an exchange could not be completed.
    """

    def __init__(self, owner_id: str, *, now: float | None = None):
        self.owner_id = owner_id
        self._transcript: list[Message] = []
        self._last_active_at = time.time() if now is None else now

    @property
    def last_active_at(self) -> float:
        return self._last_active_at

    def __len__(self) -> int:
        return len(self._transcript)

    def append(self, message: Message, *, now: float | None = None) -> None:
        self._transcript.append(message)
        self._last_active_at = time.time() if now is None else now

    def undo_last(self) -> Message | None:
        if not self._transcript:
            return None
        return self._transcript.pop()

    def is_stale(self, now: float) -> bool:
        return now - self._last_active_at >= INACTIVITY_THRESHOLD_SECONDS

    def snapshot(self) -> tuple[Message, ...]:
        return tuple(self._transcript)
