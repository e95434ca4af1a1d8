# FILE: patchpath/sessions/__init__.py
"""
Session layer: conversation state, persistence and per-session locking.

Usage:
    from patchpath.sessions import build_session_store

    store = build_session_store()
    session = await store.create(owner="user-42")
    session = await store.update(session.session_id, {"demo_mode": True})
"""

from .backends import (
    InMemoryBackend,
    KeyValueBackend,
    RedisBackend,
)
from .errors import (
    SessionConflict,
    SessionNotFound,
    SessionStoreError,
    SessionStoreUnavailable,
)
from .locks import SessionLockRegistry
from .models import (
    Message,
    MessageRole,
    Session,
    generate_session_id,
)
from .store import (
    SessionStore,
    build_session_store,
    deserialize_session,
    serialize_session,
)

__all__ = [
    # Models
    "Message",
    "MessageRole",
    "Session",
    "generate_session_id",
    # Store
    "SessionStore",
    "build_session_store",
    "serialize_session",
    "deserialize_session",
    # Backends
    "KeyValueBackend",
    "RedisBackend",
    "InMemoryBackend",
    # Locks
    "SessionLockRegistry",
    # Errors
    "SessionStoreError",
    "SessionStoreUnavailable",
    "SessionNotFound",
    "SessionConflict",
]
