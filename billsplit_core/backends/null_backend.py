"""Null backend selected when no key-value store is configured."""

from datetime import datetime
from typing import Optional, Any, List

from billsplit_core.backends.base import ICacheBackend, CacheStats, KEY_MISSING
from billsplit_core.core.errors import BackendUnavailable
from billsplit_core.core.logging import get_logger

logger = get_logger(__name__)


class NullBackend(ICacheBackend):
    """Backend that stores nothing.

    Reads always miss. Writes raise BackendUnavailable: the response cache
    turns that into a pass-through, while memory and consent writes surface
    it, because durability cannot be faked.
    """

    def __init__(self):
        self._stats = CacheStats()

    @property
    def enabled(self) -> bool:
        return False

    @property
    def stats(self) -> CacheStats:
        return self._stats

    async def connect(self) -> None:
        logger.warning(
            "NullBackend active: no key-value store configured. "
            "Responses will not be cached and memory/consent writes will fail."
        )

    async def disconnect(self) -> None:
        return None

    def _reject(self, operation: str, key: Optional[str] = None) -> BackendUnavailable:
        self._stats.record_error()
        return BackendUnavailable("No key-value backend configured", operation=operation, key=key)

    async def get(self, key: str) -> Optional[Any]:
        self._stats.record_miss()
        return None

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        expire_at: Optional[datetime] = None
    ) -> bool:
        raise self._reject("set", key)

    async def delete(self, key: str) -> bool:
        raise self._reject("delete", key)

    async def exists(self, key: str) -> bool:
        return False

    async def scan(self, prefix: str) -> List[str]:
        return []

    async def ttl(self, key: str) -> int:
        return KEY_MISSING

    async def expire_at(self, key: str, when: datetime) -> bool:
        raise self._reject("expire_at", key)

    async def incr(self, key: str, amount: int = 1, ttl: Optional[int] = None) -> int:
        raise self._reject("incr", key)

    async def incr_float(self, key: str, amount: float, ttl: Optional[int] = None) -> float:
        raise self._reject("incr_float", key)
