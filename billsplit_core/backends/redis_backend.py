"""Redis key-value backend implementation."""

import json
import re
from datetime import datetime, timedelta
from typing import Optional, Any, List

import redis.asyncio as redis
from redis.exceptions import RedisError

from billsplit_core.backends.base import ICacheBackend, CacheStats
from billsplit_core.core.errors import BackendUnavailable
from billsplit_core.core.logging import get_logger

logger = get_logger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


def _escape_glob(text: str) -> str:
    """Escape Redis MATCH wildcards so user ids are matched literally."""
    return _GLOB_SPECIAL.sub(r"\\\1", text)


def _to_millis(when: datetime) -> int:
    return int(when.timestamp() * 1000)


class RedisBackend(ICacheBackend):
    """Redis-based key-value backend.

    Provides a production-ready backend using Redis with:
    - Automatic JSON serialization/deserialization
    - Absolute and relative expirations
    - Statistics tracking
    - Transport errors surfaced as BackendUnavailable
    """

    def __init__(self, redis_url: str, client: Optional[redis.Redis] = None):
        """Initialize Redis backend.

        Args:
            redis_url: Redis connection URL.
            client: Pre-built client (used by tests).
        """
        self._redis_url = redis_url
        self._client: Optional[redis.Redis] = client
        self._enabled = client is not None
        self._stats = CacheStats()

    @property
    def enabled(self) -> bool:
        """Check if Redis is enabled and connected."""
        return self._enabled and self._client is not None

    @property
    def stats(self) -> CacheStats:
        """Get backend statistics."""
        return self._stats

    async def connect(self) -> None:
        """Connect to Redis.

        A failed connection leaves the backend disabled; every later
        operation then raises BackendUnavailable.
        """
        try:
            self._client = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            # Test connection
            await self._client.ping()
            self._enabled = True
            logger.info("Connected to Redis backend")
        except (RedisError, OSError) as e:
            logger.error(f"Failed to connect to Redis: {e}")
            self._enabled = False
            self._client = None

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._enabled = False
            logger.info("Disconnected from Redis backend")

    def _require_client(self, operation: str, key: Optional[str] = None) -> redis.Redis:
        if not self.enabled:
            raise BackendUnavailable("Redis backend is not connected", operation=operation, key=key)
        return self._client

    def _fail(self, operation: str, key: Optional[str], error: Exception) -> BackendUnavailable:
        logger.error(f"Redis {operation} error for key {key}: {error}")
        self._stats.record_error()
        return BackendUnavailable(f"Redis {operation} failed: {error}", operation=operation, key=key)

    async def get(self, key: str) -> Optional[Any]:
        """Get a value from Redis."""
        client = self._require_client("get", key)

        try:
            value = await client.get(key)
        except (RedisError, OSError) as e:
            raise self._fail("get", key, e) from e

        if value is None:
            self._stats.record_miss()
            return None

        self._stats.record_hit()
        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        expire_at: Optional[datetime] = None
    ) -> bool:
        """Set a value in Redis with a single atomic SET."""
        client = self._require_client("set", key)
        serialized = json.dumps(value, default=str)

        try:
            if expire_at is not None:
                result = await client.set(key, serialized, pxat=_to_millis(expire_at))
            elif ttl:
                result = await client.set(key, serialized, ex=timedelta(seconds=ttl))
            else:
                result = await client.set(key, serialized)
        except (RedisError, OSError) as e:
            raise self._fail("set", key, e) from e

        self._stats.record_set()
        return bool(result)

    async def delete(self, key: str) -> bool:
        """Delete a key from Redis."""
        client = self._require_client("delete", key)

        try:
            result = await client.delete(key)
        except (RedisError, OSError) as e:
            raise self._fail("delete", key, e) from e
        return result > 0

    async def exists(self, key: str) -> bool:
        """Check if a key exists in Redis."""
        client = self._require_client("exists", key)

        try:
            return await client.exists(key) > 0
        except (RedisError, OSError) as e:
            raise self._fail("exists", key, e) from e

    async def scan(self, prefix: str) -> List[str]:
        """Collect keys by prefix using SCAN (never KEYS)."""
        client = self._require_client("scan", prefix)

        try:
            return [
                key async for key in client.scan_iter(match=f"{_escape_glob(prefix)}*", count=500)
            ]
        except (RedisError, OSError) as e:
            raise self._fail("scan", prefix, e) from e

    async def ttl(self, key: str) -> int:
        """Remaining TTL as reported by Redis (-1 no expiry, -2 missing)."""
        client = self._require_client("ttl", key)

        try:
            return int(await client.ttl(key))
        except (RedisError, OSError) as e:
            raise self._fail("ttl", key, e) from e

    async def expire_at(self, key: str, when: datetime) -> bool:
        """Attach an absolute expiration with PEXPIREAT."""
        client = self._require_client("expire_at", key)

        try:
            return bool(await client.pexpireat(key, _to_millis(when)))
        except (RedisError, OSError) as e:
            raise self._fail("expire_at", key, e) from e

    async def incr(self, key: str, amount: int = 1, ttl: Optional[int] = None) -> int:
        """Increment a counter with INCRBY."""
        client = self._require_client("incr", key)

        try:
            value = await client.incrby(key, amount)
            if ttl and value == amount:
                await client.expire(key, ttl)
            return int(value)
        except (RedisError, OSError) as e:
            raise self._fail("incr", key, e) from e

    async def incr_float(self, key: str, amount: float, ttl: Optional[int] = None) -> float:
        """Increment a float counter with INCRBYFLOAT."""
        client = self._require_client("incr_float", key)

        try:
            value = await client.incrbyfloat(key, amount)
            if ttl and await client.ttl(key) == -1:
                await client.expire(key, ttl)
            return float(value)
        except (RedisError, OSError) as e:
            raise self._fail("incr_float", key, e) from e
