"""Adaptive response cache for upstream language-model calls.

Pieces:
- CacheKeyGenerator: deterministic keys for every persisted namespace
- TimeWindowClassifier: peak/off-peak in the region's civil time
- TTLPolicy: cost tier, size and load driven lifetimes
- ResponseCacheService: fail-open get/set/exists
- CacheWarmer: bounded background warm-up

Usage:
    from billsplit_core.services.response_cache import ResponseCacheService

    cached = await cache.get_cached(descriptor)
    if cached is None:
        response = await llm.ask(descriptor)
        await cache.put_cached(descriptor, response)
"""

from billsplit_core.services.key_generator import CacheKeyGenerator
from billsplit_core.services.response_cache.time_windows import TimeWindow, TimeWindowClassifier
from billsplit_core.services.response_cache.ttl_policy import TTLPolicy
from billsplit_core.services.response_cache.response_cache import ResponseCacheService
from billsplit_core.services.response_cache.warmer import CacheWarmer

__all__ = [
    "CacheKeyGenerator",
    "TimeWindow",
    "TimeWindowClassifier",
    "TTLPolicy",
    "ResponseCacheService",
    "CacheWarmer",
]
