# FILE: patchpath/sessions/backends.py
"""
Key-value backends for the session store.

Contract (all async):
    get(key) -> bytes | None
    set_with_ttl(key, value, ttl_seconds)
    compare_and_set(key, expected, value, ttl_seconds) -> bool
    delete(key)
    keys_matching(prefix) -> list[str]      # stats/cleanup only, never hot path
    ttl(key) -> int                          # -2 missing, -1 no expiry
    ping()

Every backend failure surfaces as SessionStoreUnavailable. Nothing from the
redis client leaks past this module.

Backends:
- RedisBackend: redis.asyncio, lazy connection, WATCH/MULTI/EXEC for CAS
- InMemoryBackend: process-local, non-persistent (degraded mode + tests)
"""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Dict, List, Optional, Protocol, Tuple

import redis.asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from .errors import SessionStoreUnavailable

logger = logging.getLogger(__name__)


class KeyValueBackend(Protocol):
    name: str

    async def get(self, key: str) -> Optional[bytes]: ...

    async def set_with_ttl(self, key: str, value: bytes, ttl_seconds: int) -> None: ...

    async def compare_and_set(
        self, key: str, expected: Optional[bytes], value: bytes, ttl_seconds: int
    ) -> bool: ...

    async def delete(self, key: str) -> None: ...

    async def keys_matching(self, prefix: str) -> List[str]: ...

    async def ttl(self, key: str) -> int: ...

    async def ping(self) -> None: ...


# =============================================================================
# REDIS
# =============================================================================

class RedisBackend:
    """Session backend on Redis (or any server speaking the Redis protocol)."""

    name = "redis"

    def __init__(
        self,
        url: str = "redis://localhost:6379",
        password: Optional[str] = None,
        connect_timeout: float = 10.0,
        client: Optional[aioredis.Redis] = None,
    ):
        self._url = url
        self._password = password
        self._connect_timeout = connect_timeout
        self._client = client

    def _get_client(self) -> aioredis.Redis:
        if self._client is None:
            logger.info(f"[redis] Connecting to {self._url}")
            self._client = aioredis.Redis.from_url(
                self._url,
                password=self._password,
                socket_connect_timeout=self._connect_timeout,
                socket_timeout=self._connect_timeout,
                decode_responses=False,
            )
        return self._client

    @asynccontextmanager
    async def _translate(self, op: str):
        try:
            yield
        except (RedisError, OSError) as exc:
            logger.warning(f"[redis] {op} failed: {exc}")
            raise SessionStoreUnavailable(f"Redis {op} failed: {exc}") from exc

    async def get(self, key: str) -> Optional[bytes]:
        async with self._translate("GET"):
            return await self._get_client().get(key)

    async def set_with_ttl(self, key: str, value: bytes, ttl_seconds: int) -> None:
        async with self._translate("SETEX"):
            await self._get_client().setex(key, ttl_seconds, value)

    async def compare_and_set(
        self, key: str, expected: Optional[bytes], value: bytes, ttl_seconds: int
    ) -> bool:
        async with self._translate("CAS"):
            async with self._get_client().pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    current = await pipe.get(key)
                    if current != expected:
                        await pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.setex(key, ttl_seconds, value)
                    await pipe.execute()
                    return True
                except WatchError:
                    logger.debug(f"[redis] WATCH aborted CAS on {key}")
                    return False

    async def delete(self, key: str) -> None:
        async with self._translate("DEL"):
            await self._get_client().delete(key)

    async def keys_matching(self, prefix: str) -> List[str]:
        keys: List[str] = []
        async with self._translate("SCAN"):
            async for raw in self._get_client().scan_iter(match=f"{prefix}*"):
                keys.append(raw.decode("utf-8") if isinstance(raw, bytes) else str(raw))
        return keys

    async def ttl(self, key: str) -> int:
        async with self._translate("TTL"):
            return int(await self._get_client().ttl(key))

    async def ping(self) -> None:
        async with self._translate("PING"):
            await self._get_client().ping()

    async def close(self) -> None:
        if self._client is not None:
            logger.info("[redis] Disconnecting")
            await self._client.aclose()
            self._client = None


# =============================================================================
# IN-MEMORY
# =============================================================================

class InMemoryBackend:
    """
    Process-local backend with TTL semantics.

    Used as the degraded, non-persistent mode when Redis is unreachable and
    as the store under test. A ttl_seconds <= 0 stores the key without expiry
    (like a bare SET).
    """

    name = "memory"

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[bytes, Optional[float]]] = {}

    def _live(self, key: str) -> Optional[Tuple[bytes, Optional[float]]]:
        item = self._data.get(key)
        if item is None:
            return None
        _, expires_at = item
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return item

    async def get(self, key: str) -> Optional[bytes]:
        item = self._live(key)
        return item[0] if item else None

    async def set_with_ttl(self, key: str, value: bytes, ttl_seconds: int) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds > 0 else None
        self._data[key] = (value, expires_at)

    async def compare_and_set(
        self, key: str, expected: Optional[bytes], value: bytes, ttl_seconds: int
    ) -> bool:
        # No await between read and write: atomic on the event loop.
        item = self._live(key)
        current = item[0] if item else None
        if current != expected:
            return False
        expires_at = self._clock() + ttl_seconds if ttl_seconds > 0 else None
        self._data[key] = (value, expires_at)
        return True

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys_matching(self, prefix: str) -> List[str]:
        return [k for k in list(self._data) if k.startswith(prefix) and self._live(k)]

    async def ttl(self, key: str) -> int:
        item = self._live(key)
        if item is None:
            return -2
        _, expires_at = item
        if expires_at is None:
            return -1
        return max(0, int(expires_at - self._clock()))

    async def ping(self) -> None:
        return None
