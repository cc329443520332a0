"""Cache and usage counters.

Counters live in the shared metrics sink so every worker process
contributes to the same totals; an in-process ``CacheStats`` mirrors them
for cheap local inspection. Recording never raises.
"""

from datetime import date
from typing import Optional

from billsplit_core.backends.base import CacheStats
from billsplit_core.core.errors import BackendUnavailable
from billsplit_core.core.interfaces import IClock, IMetricsSink
from billsplit_core.core.logging import get_logger
from billsplit_core.models.optimization import PerformanceAnalytics
from billsplit_core.services.key_generator import CacheKeyGenerator

logger = get_logger(__name__)

NETWORK_CONDITIONS = ("fast", "medium", "slow")
DAILY_COUNTER_TTL = 7 * 86400  # keep a week of daily counters


def _as_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


class MetricsRecorder:
    """Records hit/miss/set and peak/mobile usage counters."""

    def __init__(self, sink: IMetricsSink, clock: IClock, tz_name: str = "America/Sao_Paulo"):
        self.sink = sink
        self.clock = clock
        self.tz_name = tz_name
        self.local = CacheStats()

    def _today(self) -> date:
        return self.clock.to_local(self.clock.now(), self.tz_name).date()

    async def _incr(self, key: str, ttl: Optional[int] = None) -> None:
        try:
            await self.sink.incr(key, 1, ttl=ttl)
        except BackendUnavailable as e:
            logger.warning(f"Metrics counter {key} not recorded: {e.message}")

    async def record_hit(self) -> None:
        self.local.record_hit()
        await self._incr(CacheKeyGenerator.CACHE_HITS)

    async def record_miss(self) -> None:
        self.local.record_miss()
        await self._incr(CacheKeyGenerator.CACHE_MISSES)

    async def record_set(self) -> None:
        self.local.record_set()
        await self._incr(CacheKeyGenerator.CACHE_SETS)

    def record_error(self) -> None:
        self.local.record_error()

    async def record_peak_hour(self, region: str) -> None:
        await self._incr(CacheKeyGenerator.peak_hour(region, self._today()), ttl=DAILY_COUNTER_TTL)

    async def record_mobile(self, network_condition: str) -> None:
        await self._incr(CacheKeyGenerator.mobile(network_condition, self._today()), ttl=DAILY_COUNTER_TTL)

    async def read(self, key: str) -> int:
        try:
            return _as_int(await self.sink.get(key))
        except BackendUnavailable as e:
            logger.warning(f"Metrics counter {key} unreadable: {e.message}")
            return 0

    async def analytics(self, region: str, day: Optional[date] = None) -> PerformanceAnalytics:
        """Aggregate counters for ``region`` on ``day`` (local today by default)."""
        day = day or self._today()

        hits = await self.read(CacheKeyGenerator.CACHE_HITS)
        misses = await self.read(CacheKeyGenerator.CACHE_MISSES)
        sets = await self.read(CacheKeyGenerator.CACHE_SETS)
        peak = await self.read(CacheKeyGenerator.peak_hour(region, day))
        mobile = {
            condition: await self.read(CacheKeyGenerator.mobile(condition, day))
            for condition in NETWORK_CONDITIONS
        }

        total = hits + misses
        return PerformanceAnalytics(
            cache_hits=hits,
            cache_misses=misses,
            cache_sets=sets,
            cache_hit_rate=round(hits / total, 2) if total else 0.0,
            total_cache_operations=total,
            peak_hour_usage=peak,
            mobile_usage=mobile,
            local={
                "hits": self.local.hits,
                "misses": self.local.misses,
                "sets": self.local.sets,
                "errors": self.local.errors,
                "hit_rate": self.local.hit_rate,
            },
        )
