# FILE: patchpath/sessions/store.py
"""
Session Store: persist/retrieve Session records in a TTL key-value store.

Contract:
    create(owner, demo_mode) -> Session
    get(session_id) -> Session | None       (missing OR undecodable -> None)
    update(session_id, changes, expected_version=None) -> Session
    delete(session_id)

update() is a full read-merge-write, NOT an atomic partial patch: without an
expected_version the last writer wins at session granularity. Passing
expected_version turns the write into a compare-and-set that raises
SessionConflict when another writer got there first.

Every successful write refreshes the TTL to the configured value and bumps
Session.version.

Degraded mode: when the primary backend is unavailable and a fallback
backend is configured, operations continue against the fallback
(non-persistent) and the store reports degraded=True. Without a fallback,
SessionStoreUnavailable propagates. Once the primary answers again, a record
that only exists in the fallback moves to the primary on its next update, and
deletes made during the outage are replayed on the primary.
"""
from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, TypeVar

from patchpath.patches import RackInventory

from .backends import InMemoryBackend, KeyValueBackend, RedisBackend
from .errors import SessionConflict, SessionNotFound, SessionStoreUnavailable
from .models import Message, MessageRole, Session, generate_session_id

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 86400
DEFAULT_KEY_PREFIX = "session:"


def serialize_session(session: Session) -> bytes:
    return json.dumps(session.to_dict(), ensure_ascii=False).encode("utf-8")


def deserialize_session(data: bytes) -> Session:
    """Raises ValueError/KeyError/TypeError (or pydantic ValidationError) on bad data."""
    return Session.from_dict(json.loads(data.decode("utf-8")))


class SessionStore:
    def __init__(
        self,
        backend: KeyValueBackend,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        fallback: Optional[KeyValueBackend] = None,
    ):
        self._backend = backend
        self._fallback = fallback
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix
        self._degraded = False
        # Deletes made while degraded, replayed on the primary once it answers
        self._pending_deletes: Set[str] = set()

    @property
    def degraded(self) -> bool:
        return self._degraded

    def key_for(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    async def _call(self, op: str, fn: Callable[[KeyValueBackend], Awaitable[T]]) -> T:
        """Run against the primary backend, falling back when it is down."""
        try:
            if self._pending_deletes:
                await self._replay_deletes()
            result = await fn(self._backend)
        except SessionStoreUnavailable:
            if self._fallback is None:
                raise
            if not self._degraded:
                logger.warning(
                    f"[session_store] {self._backend.name} unavailable during {op}; "
                    f"continuing in non-persistent mode ({self._fallback.name})"
                )
            self._degraded = True
            return await fn(self._fallback)
        if self._degraded:
            logger.info(f"[session_store] {self._backend.name} reachable again")
            self._degraded = False
        return result

    async def _replay_deletes(self) -> None:
        for key in sorted(self._pending_deletes):
            await self._backend.delete(key)
            self._pending_deletes.discard(key)
        logger.info(f"[session_store] Replayed deletes on {self._backend.name}")

    async def _read_raw(self, key: str) -> Tuple[Optional[bytes], Optional[KeyValueBackend]]:
        """Returns the record and the backend holding it."""
        raw = await self._call("get", lambda b: b.get(key))
        if self._degraded:
            return raw, self._fallback
        if raw is None and self._fallback is not None:
            # Sessions created while degraded live only in the fallback
            raw = await self._fallback.get(key)
            if raw is not None:
                return raw, self._fallback
        return raw, self._backend

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    async def create(self, owner: Optional[str] = None, demo_mode: bool = False) -> Session:
        session = Session(
            session_id=generate_session_id(),
            owner=owner,
            ttl_seconds=self.ttl_seconds,
            demo_mode=demo_mode,
        )
        key = self.key_for(session.session_id)
        data = serialize_session(session)
        await self._call("create", lambda b: b.set_with_ttl(key, data, self.ttl_seconds))
        logger.info(
            f"[session_store] Created session {session.session_id} "
            f"(owner={owner or 'anonymous'}, demo={demo_mode}, ttl={self.ttl_seconds}s)"
        )
        return session

    async def get(self, session_id: str) -> Optional[Session]:
        raw, _ = await self._read_raw(self.key_for(session_id))
        if raw is None:
            logger.debug(f"[session_store] Session {session_id} not found")
            return None
        try:
            session = deserialize_session(raw)
        except Exception as exc:
            logger.warning(f"[session_store] Undecodable session {session_id}, treating as missing: {exc}")
            return None
        logger.debug(
            f"[session_store] Retrieved {session_id}: messages={len(session.messages)}, "
            f"rack={session.has_rack}, patch={session.has_patch}, v{session.version}"
        )
        return session

    async def update(
        self,
        session_id: str,
        changes: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Session:
        key = self.key_for(session_id)
        raw, holder = await self._read_raw(key)
        if raw is None:
            logger.warning(f"[session_store] Cannot update non-existent session {session_id}")
            raise SessionNotFound(session_id)
        try:
            current = deserialize_session(raw)
        except Exception as exc:
            logger.warning(f"[session_store] Undecodable session {session_id} on update: {exc}")
            raise SessionNotFound(session_id) from exc

        if expected_version is not None and current.version != expected_version:
            raise SessionConflict(session_id, expected_version, current.version)

        merged = current.merged(changes)
        merged.last_activity = datetime.now(timezone.utc)
        merged.ttl_seconds = self.ttl_seconds
        merged.version = current.version + 1
        data = serialize_session(merged)

        # A fallback-held record moves to the primary whenever the primary takes
        # the write: the swap expects no key there.
        migrating = holder is self._fallback and holder is not None

        def expected_for(b: KeyValueBackend) -> Optional[bytes]:
            return None if migrating and b is self._backend else raw

        if expected_version is None:
            await self._call("update", lambda b: b.set_with_ttl(key, data, self.ttl_seconds))
        else:
            swapped = await self._call(
                "update", lambda b: b.compare_and_set(key, expected_for(b), data, self.ttl_seconds)
            )
            if not swapped:
                raise SessionConflict(session_id, expected_version)

        if migrating and not self._degraded:
            await self._fallback.delete(key)
            logger.info(f"[session_store] Moved {session_id} from {self._fallback.name} to {self._backend.name}")

        logger.debug(
            f"[session_store] Updated {session_id} fields={sorted(changes)} -> v{merged.version}"
        )
        return merged

    async def delete(self, session_id: str) -> None:
        key = self.key_for(session_id)
        await self._call("delete", lambda b: b.delete(key))
        if self._degraded:
            self._pending_deletes.add(key)
        elif self._fallback is not None:
            await self._fallback.delete(key)
        logger.info(f"[session_store] Deleted session {session_id}")

    # -------------------------------------------------------------------------
    # Convenience mutators
    # -------------------------------------------------------------------------

    async def add_message(
        self,
        session_id: str,
        role: MessageRole,
        content: str,
        image_ref: Optional[str] = None,
    ) -> Message:
        session = await self.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        message = Message(role=MessageRole(role), content=content, image_ref=image_ref)
        await self.update(session_id, {"messages": [*session.messages, message]})
        logger.debug(
            f"[session_store] Message added to {session_id}: role={message.role.value}, "
            f"count={len(session.messages) + 1}"
        )
        return message

    async def attach_rack(
        self,
        session_id: str,
        rack: RackInventory,
        image_ref: Optional[str] = None,
    ) -> Session:
        changes: Dict[str, Any] = {"rack_snapshot": rack}
        if image_ref:
            changes["rack_image_ref"] = image_ref
        return await self.update(session_id, changes)

    # -------------------------------------------------------------------------
    # Aggregates (keysMatching, off the hot path)
    # -------------------------------------------------------------------------

    async def _all_sessions(self) -> List[Session]:
        keys = await self._call("scan", lambda b: b.keys_matching(self.key_prefix))
        sessions: List[Session] = []
        for key in keys:
            raw = await self._call("get", lambda b, k=key: b.get(k))
            if raw is None:
                continue
            try:
                sessions.append(deserialize_session(raw))
            except Exception as exc:
                logger.warning(f"[session_store] Skipping undecodable record {key}: {exc}")
        return sessions

    async def list_user_sessions(self, owner: str) -> List[Session]:
        sessions = [s for s in await self._all_sessions() if s.owner == owner]
        logger.info(f"[session_store] Found {len(sessions)} sessions for {owner}")
        return sessions

    async def statistics(self) -> Dict[str, int]:
        sessions = await self._all_sessions()
        demo = sum(1 for s in sessions if s.demo_mode)
        return {
            "total_sessions": len(sessions),
            "authenticated_sessions": len(sessions) - demo,
            "demo_sessions": demo,
        }

    async def cleanup_stale_sessions(self) -> int:
        """Delete session keys that somehow lost their TTL. Returns count deleted."""
        keys = await self._call("scan", lambda b: b.keys_matching(self.key_prefix))
        deleted = 0
        for key in keys:
            ttl = await self._call("ttl", lambda b, k=key: b.ttl(k))
            if ttl == -1:
                await self._call("delete", lambda b, k=key: b.delete(k))
                deleted += 1
                logger.debug(f"[session_store] Deleted session without TTL: {key}")
        logger.info(f"[session_store] Cleanup complete: scanned={len(keys)}, deleted={deleted}")
        return deleted

    async def health(self) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            await self._backend.ping()
        except SessionStoreUnavailable as exc:
            return {"healthy": False, "error": str(exc), "degraded": self._fallback is not None}
        return {
            "healthy": True,
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
            "degraded": False,
        }


def build_session_store(settings=None) -> SessionStore:
    """Wire a SessionStore from settings (Redis primary, optional memory fallback)."""
    from config.settings import get_settings

    settings = settings or get_settings()
    backend = RedisBackend(
        url=settings.redis_url,
        password=settings.redis_password,
        connect_timeout=settings.redis_connect_timeout,
    )
    fallback = InMemoryBackend() if settings.degraded_mode == "memory" else None
    return SessionStore(
        backend,
        ttl_seconds=settings.session_ttl_seconds,
        key_prefix=settings.session_key_prefix,
        fallback=fallback,
    )
