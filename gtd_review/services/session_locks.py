"""
In-process serialization of review transitions.

One asyncio.Lock per key. A transition that finds its session's lock held
is rejected straight away instead of queueing behind it, so a
double-clicked "next" cannot apply twice. Starting a review waits instead,
so two concurrent starts of the same type resolve to one session.

Locks only live while someone holds or waits on them; idle keys are
dropped so paused and finished reviews leave nothing behind.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Tuple

from gtd_review.core.exceptions import TransitionInProgressError


class SessionLocks:
    """Registry of per-session and per-(user, type) locks."""

    def __init__(self) -> None:
        self._session_locks: Dict[str, asyncio.Lock] = {}
        # key -> [lock, holders and waiters]
        self._start_locks: Dict[Tuple[str, str], List] = {}

    @asynccontextmanager
    async def transition(self, session_id: str) -> AsyncIterator[None]:
        """
        Hold the session's lock for one transition.

        Raises:
            TransitionInProgressError: If another transition holds it
        """
        lock = self._session_locks.setdefault(session_id, asyncio.Lock())
        if lock.locked():
            raise TransitionInProgressError(
                f"Another transition on review session {session_id} is in progress"
            )
        try:
            async with lock:
                yield
        finally:
            if self._session_locks.get(session_id) is lock:
                del self._session_locks[session_id]

    @asynccontextmanager
    async def starting(self, user_id: str, review_type: str) -> AsyncIterator[None]:
        key = (user_id, review_type)
        entry = self._start_locks.setdefault(key, [asyncio.Lock(), 0])
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._start_locks[key]
