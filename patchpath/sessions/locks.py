# FILE: patchpath/sessions/locks.py
"""
Per-session advisory locks (in-process).

The store's update is read-merge-write, so two concurrent refinements of the
same session would race and the later write would drop the earlier one. A
keyed asyncio.Lock serializes mutators per session inside one process; the
version token checked on commit covers writers in other processes.

Entries are dropped once nobody holds or waits on them.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

logger = logging.getLogger(__name__)


class SessionLockRegistry:
    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        self._holders[session_id] = self._holders.get(session_id, 0) + 1
        try:
            if lock.locked():
                logger.debug(f"[session_lock] Waiting for session {session_id}")
            async with lock:
                yield
        finally:
            remaining = self._holders.get(session_id, 1) - 1
            if remaining <= 0:
                self._holders.pop(session_id, None)
                self._locks.pop(session_id, None)
            else:
                self._holders[session_id] = remaining

    def is_locked(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return bool(lock and lock.locked())

    def __len__(self) -> int:
        return len(self._locks)
