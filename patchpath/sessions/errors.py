# FILE: patchpath/sessions/errors.py
"""Session store error taxonomy."""
from __future__ import annotations

from typing import Optional


class SessionStoreError(Exception):
    """Base class for session store failures."""


class SessionStoreUnavailable(SessionStoreError):
    """Backing key-value store is down, timed out, or answered garbage.

    The only error that crosses the refinement core boundary: there is no
    safe fallback for losing session durability.
    """


class SessionNotFound(SessionStoreError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class SessionConflict(SessionStoreError):
    """Optimistic version check failed: someone else wrote first."""

    def __init__(self, session_id: str, expected_version: int, actual_version: Optional[int] = None):
        detail = f"expected v{expected_version}"
        if actual_version is not None:
            detail += f", found v{actual_version}"
        super().__init__(f"Session {session_id} was modified concurrently ({detail})")
        self.session_id = session_id
        self.expected_version = expected_version
        self.actual_version = actual_version
