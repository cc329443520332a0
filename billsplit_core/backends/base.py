"""Base interface for key-value backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Any, List

# Redis TTL sentinels, shared by every backend
KEY_MISSING = -2
NO_EXPIRY = -1


@dataclass
class CacheStats:
    """Statistics for cache performance monitoring."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    errors: int = 0
    evictions: int = 0

    @property
    def total_requests(self) -> int:
        """Total number of cache requests."""
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        if self.total_requests == 0:
            return 0.0
        return self.hits / self.total_requests

    def record_hit(self) -> None:
        """Record a cache hit."""
        self.hits += 1

    def record_miss(self) -> None:
        """Record a cache miss."""
        self.misses += 1

    def record_set(self) -> None:
        """Record a cache write."""
        self.sets += 1

    def record_error(self) -> None:
        """Record a cache error."""
        self.errors += 1


class ICacheBackend(ABC):
    """Abstract base class for key-value backends.

    Values are JSON-serializable objects. Every operation that cannot reach
    the store raises ``BackendUnavailable``; callers decide whether that is
    fatal (memory, consent) or a miss (response cache).
    """

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Check if the backend is enabled and connected."""
        ...

    @property
    @abstractmethod
    def stats(self) -> CacheStats:
        """Get backend statistics."""
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the backend."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect from the backend."""
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Get a value.

        Args:
            key: The key.

        Returns:
            The stored value, or None if not found or expired.
        """
        ...

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        expire_at: Optional[datetime] = None
    ) -> bool:
        """Set a value, atomically replacing any previous one.

        Args:
            key: The key.
            value: The value to store (JSON serialized).
            ttl: Time-to-live in seconds.
            expire_at: Absolute expiration instant. Takes precedence over ``ttl``.

        Returns:
            True if stored.
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key.

        Returns:
            True if deleted, False if the key didn't exist.
        """
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        ...

    @abstractmethod
    async def scan(self, prefix: str) -> List[str]:
        """List every live key starting with ``prefix``."""
        ...

    @abstractmethod
    async def ttl(self, key: str) -> int:
        """Remaining lifetime in seconds.

        Returns:
            Seconds left, ``NO_EXPIRY`` if the key never expires,
            ``KEY_MISSING`` if the key does not exist.
        """
        ...

    @abstractmethod
    async def expire_at(self, key: str, when: datetime) -> bool:
        """Attach an absolute expiration to an existing key.

        An instant in the past removes the key immediately.

        Returns:
            True if the key existed.
        """
        ...

    @abstractmethod
    async def incr(self, key: str, amount: int = 1, ttl: Optional[int] = None) -> int:
        """Atomically increment an integer counter.

        ``ttl`` is only applied when the counter is created.
        """
        ...

    @abstractmethod
    async def incr_float(self, key: str, amount: float, ttl: Optional[int] = None) -> float:
        """Atomically increment a float counter."""
        ...
