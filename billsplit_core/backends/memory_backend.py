"""In-memory key-value backend for testing and local development."""

import json
import math
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Any, List, Dict

from billsplit_core.backends.base import ICacheBackend, CacheStats, KEY_MISSING, NO_EXPIRY
from billsplit_core.core.errors import BackendUnavailable
from billsplit_core.core.interfaces import IClock


@dataclass
class StoredEntry:
    """A stored value with optional expiration (epoch seconds)."""

    payload: str
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        """Check if the entry has expired."""
        if self.expires_at is None:
            return False
        return now >= self.expires_at


class MemoryBackend(ICacheBackend):
    """In-memory backend that mimics Redis behavior.

    Values go through JSON exactly as they would on the wire, so callers
    never share mutable state with the store. Time comes from the injected
    clock, which lets tests move past expirations without sleeping.
    """

    def __init__(self, clock: Optional[IClock] = None, auto_cleanup: bool = True):
        """Initialize memory backend.

        Args:
            clock: Time source; wall time when omitted.
            auto_cleanup: If True, expired entries are cleaned up on access.
        """
        self._storage: Dict[str, StoredEntry] = {}
        self._enabled = False
        self._stats = CacheStats()
        self._clock = clock
        self._auto_cleanup = auto_cleanup

    @property
    def enabled(self) -> bool:
        """Check if the backend is enabled."""
        return self._enabled

    @property
    def stats(self) -> CacheStats:
        """Get backend statistics."""
        return self._stats

    async def connect(self) -> None:
        """Enable the backend."""
        self._enabled = True

    async def disconnect(self) -> None:
        """Disable the backend and clear storage."""
        self._enabled = False
        self._storage.clear()

    def _now(self) -> float:
        if self._clock is not None:
            return self._clock.now().timestamp()
        return time.time()

    def _require_enabled(self, operation: str, key: Optional[str] = None) -> None:
        if not self._enabled:
            raise BackendUnavailable("Memory backend is not connected", operation=operation, key=key)

    def _cleanup_expired(self) -> None:
        """Remove expired entries from storage."""
        if not self._auto_cleanup:
            return

        now = self._now()
        expired_keys = [
            key for key, entry in self._storage.items()
            if entry.is_expired(now)
        ]

        for key in expired_keys:
            del self._storage[key]
            self._stats.evictions += 1

    def _live_entry(self, key: str) -> Optional[StoredEntry]:
        entry = self._storage.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._now()):
            del self._storage[key]
            self._stats.evictions += 1
            return None

        return entry

    async def get(self, key: str) -> Optional[Any]:
        """Get a value."""
        self._require_enabled("get", key)
        self._cleanup_expired()

        entry = self._live_entry(key)
        if entry is None:
            self._stats.record_miss()
            return None

        self._stats.record_hit()
        return json.loads(entry.payload)

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        expire_at: Optional[datetime] = None
    ) -> bool:
        """Set a value."""
        self._require_enabled("set", key)

        expires_at = None
        if expire_at is not None:
            expires_at = expire_at.timestamp()
        elif ttl:
            expires_at = self._now() + ttl

        self._storage[key] = StoredEntry(
            payload=json.dumps(value, default=str),
            expires_at=expires_at
        )
        self._stats.record_set()
        return True

    async def delete(self, key: str) -> bool:
        """Delete a key."""
        self._require_enabled("delete", key)

        if self._live_entry(key) is not None:
            del self._storage[key]
            return True
        return False

    async def exists(self, key: str) -> bool:
        """Check if a key exists."""
        self._require_enabled("exists", key)
        return self._live_entry(key) is not None

    async def scan(self, prefix: str) -> List[str]:
        """List live keys by prefix."""
        self._require_enabled("scan", prefix)
        self._cleanup_expired()
        return [
            key for key in list(self._storage)
            if key.startswith(prefix) and self._live_entry(key) is not None
        ]

    async def ttl(self, key: str) -> int:
        """Remaining TTL in whole seconds, Redis style."""
        self._require_enabled("ttl", key)

        entry = self._live_entry(key)
        if entry is None:
            return KEY_MISSING
        if entry.expires_at is None:
            return NO_EXPIRY
        return max(0, math.ceil(entry.expires_at - self._now()))

    async def expire_at(self, key: str, when: datetime) -> bool:
        """Attach an absolute expiration to an existing key."""
        self._require_enabled("expire_at", key)

        entry = self._live_entry(key)
        if entry is None:
            return False

        entry.expires_at = when.timestamp()
        if entry.is_expired(self._now()):
            del self._storage[key]
            self._stats.evictions += 1
        return True

    async def incr(self, key: str, amount: int = 1, ttl: Optional[int] = None) -> int:
        """Increment an integer counter."""
        self._require_enabled("incr", key)
        entry = self._live_entry(key)

        if entry is None:
            value = amount
            expires_at = self._now() + ttl if ttl else None
        else:
            value = int(json.loads(entry.payload)) + amount
            expires_at = entry.expires_at

        self._storage[key] = StoredEntry(payload=json.dumps(value), expires_at=expires_at)
        return value

    async def incr_float(self, key: str, amount: float, ttl: Optional[int] = None) -> float:
        """Increment a float counter."""
        self._require_enabled("incr_float", key)
        entry = self._live_entry(key)

        if entry is None:
            value = float(amount)
            expires_at = self._now() + ttl if ttl else None
        else:
            value = float(json.loads(entry.payload)) + amount
            expires_at = entry.expires_at if entry.expires_at is not None else (
                self._now() + ttl if ttl else None
            )

        self._storage[key] = StoredEntry(payload=json.dumps(value), expires_at=expires_at)
        return value

    # Testing utilities

    def get_all_keys(self) -> List[str]:
        """Get all keys in the store (testing utility)."""
        self._cleanup_expired()
        return list(self._storage.keys())

    def put_raw(self, key: str, value: Any) -> None:
        """Store a value with no expiration, bypassing every service (testing utility)."""
        self._storage[key] = StoredEntry(payload=json.dumps(value, default=str))
