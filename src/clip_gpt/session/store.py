from __future__ import annotations

import asyncio
import contextlib
import threading
import time
from typing import AsyncIterator, Callable

from loguru import logger

from clip_gpt.session.session import Session


class SessionStore:
    """In-memory sessions keyed by caller identity, evicted lazily when stale."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        # owner_id -> (lock, number of holders and waiters)
        self._exchange_locks: dict[str, tuple[asyncio.Lock, int]] = {}
        self._mutex = threading.Lock()

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock

    def __len__(self) -> int:
        with self._mutex:
            return len(self._sessions)

    def __contains__(self, owner_id: object) -> bool:
        with self._mutex:
            return owner_id in self._sessions

    def get(self, owner_id: str) -> Session:
        with self._mutex:
            session = self._sessions.get(owner_id)
            if session is None:
                session = Session(owner_id, now=self._clock())
                self._sessions[owner_id] = session
                logger.debug(f"Session created for {owner_id!r}")
            return session

    def delete(self, owner_id: str) -> None:
        with self._mutex:
            if self._sessions.pop(owner_id, None) is not None:
                logger.debug(f"Session deleted for {owner_id!r}")

    def cleanup_stale(self, now: float | None = None) -> None:
        if now is None:
            now = self._clock()
        with self._mutex:
            stale = [owner_id for owner_id, session in self._sessions.items() if session.is_stale(now)]
            for owner_id in stale:
                del self._sessions[owner_id]
        if stale:
            logger.debug(f"Evicted {len(stale)} stale session(s)")

    def is_exchange_tracked(self, owner_id: str) -> bool:
        with self._mutex:
            return owner_id in self._exchange_locks

    @contextlib.asynccontextmanager
    async def exchange(self, owner_id: str) -> AsyncIterator[None]:
        """Serialise guard, append, call and undo for one identity.

        The lock lives only while someone holds or waits for it.
        """
        with self._mutex:
            lock, users = self._exchange_locks.get(owner_id, (None, 0))
            if lock is None:
                lock = asyncio.Lock()
            self._exchange_locks[owner_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            with self._mutex:
                lock, users = self._exchange_locks[owner_id]
                if users <= 1:
                    del self._exchange_locks[owner_id]
                else:
                    self._exchange_locks[owner_id] = (lock, users - 1)
