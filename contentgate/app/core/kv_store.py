"""Key-value store abstraction with TTL semantics.

Provides a Redis-backed store for deployments and an in-memory store with
faithful TTL emulation for environments without Redis. Both expose the same
six async operations; callers branch on ``ttl()``'s three-way result, so the
in-memory store reproduces it exactly:

    >= 0  seconds remaining
    -1    key exists without expiry
    -2    key does not exist
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

from contentgate.app.core.logging import get_logger

logger = get_logger(__name__)

TTL_NO_EXPIRY = -1
TTL_NO_KEY = -2


class StoreBackend(str, Enum):
    """Which implementation backs the store."""

    REDIS = "redis"
    MEMORY = "memory"


class KVStore(ABC):
    """Abstract base class for key-value stores.

    All operations are asynchronous and safe to call concurrently.
    ``incr`` is the only operation that must be atomic across callers.
    """

    backend: StoreBackend

    @property
    def is_remote(self) -> bool:
        """True when state is shared across processes."""
        return self.backend is StoreBackend.REDIS

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value for ``key`` or None if missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        """Store ``value``, replacing any previous value and TTL.

        Args:
            key: The key.
            value: The value to store.
            ttl_seconds: Relative expiry; None or <= 0 stores without expiry.
        """

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Remove ``key``. Returns the number of keys removed (0 or 1)."""

    @abstractmethod
    async def incr(self, key: str) -> int:
        """Atomically increment ``key``, initialising a missing key to 1.

        The existing TTL, if any, is preserved.
        """

    @abstractmethod
    async def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set a TTL on an existing key. Returns False if the key is missing."""

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Seconds remaining, TTL_NO_EXPIRY or TTL_NO_KEY."""

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryKVStore(KVStore):
    """Process-local store backed by two dicts (values and expiry times).

    Expired entries are purged lazily on access. Every operation runs under
    one asyncio lock, which makes ``incr`` atomic within the process.

    Note: state is per process. It must not back quota enforcement in a
    load-balanced deployment.
    """

    backend = StoreBackend.MEMORY

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Returns the current epoch time in seconds (injectable for tests).
        """
        self._values: dict[str, str] = {}
        self._expiry: dict[str, float] = {}
        self._clock = clock
        self._lock = asyncio.Lock()

    def _purge_if_expired(self, key: str) -> None:
        expires_at = self._expiry.get(key)
        if expires_at is not None and expires_at <= self._clock():
            self._values.pop(key, None)
            self._expiry.pop(key, None)

    async def get(self, key: str) -> Optional[str]:
        async with self._lock:
            self._purge_if_expired(key)
            return self._values.get(key)

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        async with self._lock:
            self._values[key] = str(value)
            if ttl_seconds is not None and ttl_seconds > 0:
                self._expiry[key] = self._clock() + ttl_seconds
            else:
                self._expiry.pop(key, None)
            return True

    async def delete(self, key: str) -> int:
        async with self._lock:
            self._purge_if_expired(key)
            self._expiry.pop(key, None)
            return 1 if self._values.pop(key, None) is not None else 0

    async def incr(self, key: str) -> int:
        async with self._lock:
            self._purge_if_expired(key)
            current = self._values.get(key, "0")
            try:
                new_value = int(current) + 1
            except ValueError:
                raise ValueError("value is not an integer or out of range") from None
            self._values[key] = str(new_value)
            return new_value

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        async with self._lock:
            self._purge_if_expired(key)
            if key not in self._values:
                return False
            if ttl_seconds <= 0:
                # Redis deletes keys given a non-positive expiry.
                self._values.pop(key, None)
                self._expiry.pop(key, None)
                return True
            self._expiry[key] = self._clock() + ttl_seconds
            return True

    async def ttl(self, key: str) -> int:
        async with self._lock:
            self._purge_if_expired(key)
            if key not in self._values:
                return TTL_NO_KEY
            expires_at = self._expiry.get(key)
            if expires_at is None:
                return TTL_NO_EXPIRY
            return max(0, math.ceil(expires_at - self._clock()))

    async def clear(self) -> None:
        async with self._lock:
            self._values.clear()
            self._expiry.clear()


class RedisKVStore(KVStore):
    """Redis-backed store.

    Every operation maps to one Redis command, so INCR is atomic across all
    application instances. Connection errors propagate to the caller.

    Example:
        >>> store = RedisKVStore("redis://localhost:6379/0")
        >>> await store.set("key", "value", ttl_seconds=300)
    """

    backend = StoreBackend.REDIS

    def __init__(
        self,
        redis_url: Optional[str] = None,
        redis_client: Optional[Any] = None,
        socket_timeout: float = 5.0,
    ) -> None:
        """Initialize the Redis store.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
            redis_client: Pre-built redis.asyncio client (takes priority)
            socket_timeout: Network timeout in seconds for every command
        """
        if redis_client is None and not redis_url:
            raise ValueError("RedisKVStore requires redis_url or redis_client")
        self._redis_url = redis_url
        self._redis = redis_client
        self._socket_timeout = socket_timeout

    def _get_client(self) -> Any:
        if self._redis is None:
            import redis.asyncio as aioredis

            self._redis = aioredis.from_url(
                self._redis_url,
                decode_responses=True,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._socket_timeout,
            )
        return self._redis

    @staticmethod
    def _decode(value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    async def get(self, key: str) -> Optional[str]:
        return self._decode(await self._get_client().get(key))

    async def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> bool:
        client = self._get_client()
        if ttl_seconds is not None and ttl_seconds > 0:
            await client.set(key, value, ex=ttl_seconds)
        else:
            await client.set(key, value)
        return True

    async def delete(self, key: str) -> int:
        return int(await self._get_client().delete(key))

    async def incr(self, key: str) -> int:
        return int(await self._get_client().incr(key))

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return bool(await self._get_client().expire(key, ttl_seconds))

    async def ttl(self, key: str) -> int:
        return int(await self._get_client().ttl(key))

    async def ping(self) -> bool:
        return bool(await self._get_client().ping())

    async def close(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


# Global store instance (singleton pattern)
_store_instance: Optional[KVStore] = None


def create_kv_store(redis_url: Optional[str] = None, socket_timeout: float = 5.0) -> KVStore:
    """Build a store: Redis when a URL is given, in-memory otherwise."""
    if redis_url:
        return RedisKVStore(redis_url, socket_timeout=socket_timeout)
    return InMemoryKVStore()


def get_kv_store(force_new: bool = False) -> KVStore:
    """Get or create the global store instance.

    The backend follows settings.redis_url: set selects Redis, empty selects
    the in-memory fallback.

    Example:
        >>> from contentgate.app.core.kv_store import get_kv_store
        >>> store = get_kv_store()
        >>> store.backend
        <StoreBackend.MEMORY: 'memory'>
    """
    global _store_instance

    if _store_instance is not None and not force_new:
        return _store_instance

    from contentgate.app.core.config import settings

    _store_instance = create_kv_store(
        settings.redis_url.strip() or None,
        socket_timeout=settings.redis_socket_timeout,
    )
    if not _store_instance.is_remote:
        logger.warning(
            "REDIS_URL not set; using in-memory key-value store (per-process state)"
        )
    return _store_instance


def reset_kv_store() -> None:
    """Reset the global store instance.

    This is primarily useful for testing.
    """
    global _store_instance
    _store_instance = None
