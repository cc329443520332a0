"""Fail-open cache for upstream language-model responses.

Caching is strictly an optimization: every backend failure is logged and
reported to the caller as a miss (reads) or as "not stored" (writes). No
method here ever raises because the backend is down, and nothing is retried.
"""

import json
from typing import Optional, Any

from pydantic_core import PydanticSerializationError

from billsplit_core.backends.base import ICacheBackend
from billsplit_core.core.errors import BackendUnavailable, ValidationError
from billsplit_core.core.interfaces import IClock
from billsplit_core.core.logging import get_logger
from billsplit_core.models.cache import CacheEntry, RequestDescriptor
from billsplit_core.services.metrics import MetricsRecorder
from billsplit_core.services.key_generator import CacheKeyGenerator
from billsplit_core.services.response_cache.ttl_policy import TTLPolicy

logger = get_logger(__name__)

# Rough characters-per-token ratio used when the upstream did not report usage
CHARS_PER_TOKEN = 4


def _serialized_size(value: Any) -> int:
    return len(json.dumps(value, default=str).encode("utf-8"))


class ResponseCacheService:
    """Response cache with adaptive TTLs.

    Usage:
        cache = ResponseCacheService(backend, ttl_policy, metrics, clock)

        cached = await cache.get_cached(descriptor)
        if cached is None:
            response = await llm.ask(...)
            await cache.put_cached(descriptor, response)
    """

    def __init__(
        self,
        backend: ICacheBackend,
        ttl_policy: TTLPolicy,
        metrics: MetricsRecorder,
        clock: IClock
    ):
        """Initialize response cache service.

        Args:
            backend: The key-value backend (Redis, Memory, Null).
            ttl_policy: Decides entry lifetimes.
            metrics: Hit/miss/set counters.
            clock: Time source for creation stamps and peak detection.
        """
        self.backend = backend
        self.ttl_policy = ttl_policy
        self.metrics = metrics
        self.clock = clock
        self.key_generator = CacheKeyGenerator

    @property
    def enabled(self) -> bool:
        """Check if caching is enabled."""
        return self.backend.enabled

    # =========================================================================
    # Raw key operations
    # =========================================================================

    async def get(self, key: str) -> Optional[Any]:
        """Get a cached value, or None on miss or backend failure."""
        try:
            stored = await self.backend.get(key)
        except BackendUnavailable as e:
            logger.warning(f"Cache read failed open for key {key}: {e.message}")
            self.metrics.record_error()
            await self.metrics.record_miss()
            return None

        if stored is None:
            await self.metrics.record_miss()
            return None

        await self.metrics.record_hit()
        if isinstance(stored, dict) and {"key", "value", "ttl_seconds"} <= stored.keys():
            return CacheEntry.model_validate(stored).value
        return stored

    async def set(self, key: str, value: Any, ttl_seconds: int) -> Optional[CacheEntry]:
        """Store a value for ``ttl_seconds``.

        Returns:
            The stored entry, or None if the backend refused it.

        Raises:
            ValidationError: If ``ttl_seconds`` is not positive.
        """
        if ttl_seconds <= 0:
            raise ValidationError("Cache TTL must be positive", field="ttl_seconds", value=ttl_seconds)

        entry = CacheEntry(
            key=key,
            value=value,
            created_at=self.clock.now(),
            ttl_seconds=ttl_seconds,
            size_bytes=_serialized_size(value),
        )

        try:
            payload = entry.model_dump(mode="json")
        except (PydanticSerializationError, TypeError, ValueError) as e:
            logger.warning(f"Cache write skipped for key {key}, value not serializable: {e}")
            self.metrics.record_error()
            return None

        try:
            await self.backend.set(key, payload, ttl=ttl_seconds)
        except BackendUnavailable as e:
            logger.warning(f"Cache write skipped for key {key}: {e.message}")
            self.metrics.record_error()
            return None

        await self.metrics.record_set()
        return entry

    async def exists(self, key: str) -> bool:
        """Cheap presence check; False when the backend is unreachable."""
        try:
            return await self.backend.exists(key)
        except BackendUnavailable as e:
            logger.warning(f"Cache presence check failed open for key {key}: {e.message}")
            self.metrics.record_error()
            return False

    async def delete(self, key: str) -> bool:
        """Drop a cached value."""
        try:
            return await self.backend.delete(key)
        except BackendUnavailable as e:
            logger.warning(f"Cache delete skipped for key {key}: {e.message}")
            self.metrics.record_error()
            return False

    # =========================================================================
    # Request-level operations
    # =========================================================================

    async def get_cached(self, descriptor: RequestDescriptor) -> Optional[Any]:
        """Cached upstream response for a request, if any."""
        return await self.get(self.key_generator.response(descriptor))

    async def put_cached(
        self,
        descriptor: RequestDescriptor,
        response: Any,
        response_size_tokens: Optional[int] = None
    ) -> Optional[CacheEntry]:
        """Cache an upstream response under the adaptive TTL.

        Args:
            descriptor: The request that produced ``response``.
            response: The upstream response payload.
            response_size_tokens: Token count; taken from ``response["tokens_used"]``
                or estimated from the payload size when omitted.

        Returns:
            The stored entry, or None if caching was skipped.
        """
        if response_size_tokens is None:
            response_size_tokens = self.estimate_tokens(response)

        ttl = self.ttl_policy.compute_ttl(descriptor.model, response_size_tokens, self.clock.now())
        key = self.key_generator.response(descriptor)
        logger.debug(f"Caching response for model {descriptor.model} with TTL {ttl}s")
        return await self.set(key, response, ttl)

    @staticmethod
    def estimate_tokens(response: Any) -> int:
        if isinstance(response, dict):
            reported = response.get("tokens_used")
            if isinstance(reported, int) and reported >= 0:
                return reported
        return _serialized_size(response) // CHARS_PER_TOKEN
