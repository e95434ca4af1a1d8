# FILE: patchpath/refinement/history.py
"""
Bounded patch history (undo stack).

Conceptually the stack is `snapshots + [current]`:
- push(new): current moves onto the snapshots, new becomes current;
  the oldest snapshot is evicted past capacity.
- undo(): the newest snapshot becomes current again.
- can_undo(): at least two entries (a current patch and something beneath it).
- clear(): nothing left, no current patch.

Full snapshots rather than inverse modifications: restoring is O(1).
The Session persists `snapshots` as patch_history (oldest first).
"""
from __future__ import annotations

from collections import deque
from typing import Deque, Iterable, List, Optional

from config.settings import DEFAULT_HISTORY_CAPACITY
from patchpath.patches import Patch


class PatchHistory:
    def __init__(
        self,
        snapshots: Iterable[Patch] = (),
        current: Optional[Patch] = None,
        capacity: int = DEFAULT_HISTORY_CAPACITY,
    ):
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        self._snapshots: Deque[Patch] = deque(snapshots, maxlen=capacity)
        self.current = current

    @classmethod
    def from_session(cls, session, capacity: int = DEFAULT_HISTORY_CAPACITY) -> "PatchHistory":
        return cls(session.patch_history, session.current_patch, capacity)

    def push(self, patch: Patch) -> Optional[Patch]:
        """Make `patch` current. Returns the snapshot evicted, if any."""
        evicted = None
        if self.current is not None:
            if len(self._snapshots) == self.capacity:
                evicted = self._snapshots[0]
            self._snapshots.append(self.current)
        self.current = patch
        return evicted

    def can_undo(self) -> bool:
        return self.current is not None and len(self._snapshots) > 0

    def undo(self) -> Optional[Patch]:
        """Drop the current patch and restore the one beneath it."""
        if not self.can_undo():
            return None
        self.current = self._snapshots.pop()
        return self.current

    def clear(self) -> None:
        self._snapshots.clear()
        self.current = None

    @property
    def snapshots(self) -> List[Patch]:
        return list(self._snapshots)

    def __len__(self) -> int:
        """Entries on the conceptual stack, current included."""
        return len(self._snapshots) + (1 if self.current is not None else 0)
