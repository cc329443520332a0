"""Key-value backend implementations.

Provides different storage backends for the cache and memory services:
- RedisBackend: Production Redis-based storage
- MemoryBackend: In-memory storage for testing
- NullBackend: Explicit no-store mode when nothing is configured
"""

from billsplit_core.backends.base import ICacheBackend, CacheStats, KEY_MISSING, NO_EXPIRY
from billsplit_core.backends.redis_backend import RedisBackend
from billsplit_core.backends.memory_backend import MemoryBackend
from billsplit_core.backends.null_backend import NullBackend

__all__ = [
    "ICacheBackend",
    "CacheStats",
    "KEY_MISSING",
    "NO_EXPIRY",
    "RedisBackend",
    "MemoryBackend",
    "NullBackend",
]
