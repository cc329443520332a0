"""Single entry point used by request handlers.

Handlers talk to ``CoreGateway`` only; it routes each call to the cache,
memory or advisory service that owns it.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Union

from billsplit_core.core.logging import get_logger
from billsplit_core.models.cache import CacheEntry, RequestDescriptor
from billsplit_core.models.consent import ConsentPurpose, ConsentRecord
from billsplit_core.models.memory import (
    ExportBundle,
    MemoryAnalytics,
    MemoryCategory,
    MemoryRecord,
    ReconcileReport,
    UserPreferences,
)
from billsplit_core.models.optimization import (
    CostOptimization,
    MobileOptimization,
    PeakHourOptimization,
    PerformanceAnalytics,
)
from billsplit_core.services.memory.consent import ConsentLedger
from billsplit_core.services.memory.reconciler import ExpiryReconciler
from billsplit_core.services.memory.store import MemoryStore
from billsplit_core.services.metrics import MetricsRecorder
from billsplit_core.services.optimization.cost_optimizer import CostOptimizer
from billsplit_core.services.optimization.device_optimizer import DeviceOptimizer
from billsplit_core.services.response_cache.response_cache import ResponseCacheService

logger = get_logger(__name__)


class CoreGateway:
    """Operations exposed to the rest of the assistant."""

    def __init__(
        self,
        cache: ResponseCacheService,
        store: MemoryStore,
        ledger: ConsentLedger,
        reconciler: ExpiryReconciler,
        metrics: MetricsRecorder,
        cost_optimizer: CostOptimizer,
        device_optimizer: DeviceOptimizer,
        region: str = "BR",
        daily_budget: float = 2.0
    ):
        self.cache = cache
        self.store = store
        self.ledger = ledger
        self.reconciler = reconciler
        self.metrics = metrics
        self.cost_optimizer = cost_optimizer
        self.device_optimizer = device_optimizer
        self.region = region
        self.daily_budget = daily_budget

    # Response cache

    async def get_cached(self, descriptor: RequestDescriptor) -> Optional[Any]:
        return await self.cache.get_cached(descriptor)

    async def put_cached(
        self,
        descriptor: RequestDescriptor,
        response: Any,
        response_size_tokens: Optional[int] = None
    ) -> Optional[CacheEntry]:
        return await self.cache.put_cached(descriptor, response, response_size_tokens)

    # Memory

    async def write_memory(
        self,
        user_id: str,
        category: Union[str, MemoryCategory],
        payload: Any,
        created_at: Optional[datetime] = None
    ) -> str:
        return await self.store.write(user_id, category, payload, created_at)

    async def read_memory(self, user_id: str, record_id: str) -> MemoryRecord:
        return await self.store.read(user_id, record_id)

    async def delete_memory(self, user_id: str, record_id: str) -> bool:
        return await self.store.delete(user_id, record_id)

    async def export_user(self, user_id: str) -> ExportBundle:
        return await self.store.export_all(user_id)

    async def erase_user(self, user_id: str) -> int:
        return await self.store.delete_all(user_id)

    async def update_preferences(self, user_id: str, changes: Dict[str, Any]) -> UserPreferences:
        return await self.store.update_preferences(user_id, changes)

    async def get_preferences(self, user_id: str) -> Optional[UserPreferences]:
        return await self.store.get_preferences(user_id)

    async def memory_analytics(self, user_id: str) -> MemoryAnalytics:
        return await self.store.memory_analytics(user_id)

    # Consent

    async def get_consent(self, user_id: str, purpose: Union[str, ConsentPurpose]) -> ConsentRecord:
        return await self.ledger.get_consent(user_id, purpose)

    async def set_consent(self, record: ConsentRecord) -> ConsentRecord:
        """Record a decision; a revocation also purges what it authorized.

        The decision is stored before the purge so writes racing with the
        revocation are already refused while the purge runs.
        """
        stored = await self.ledger.set_consent(record)
        if not record.granted:
            purged = await self.store.purge_purpose(record.user_id, record.purpose)
            logger.info(f"Revocation of '{record.purpose.value}' for {record.user_id} purged {purged} keys")
        return stored

    # Maintenance and analytics

    async def reconcile(self) -> ReconcileReport:
        return await self.reconciler.run()

    async def analytics(self, region: Optional[str] = None) -> PerformanceAnalytics:
        return await self.metrics.analytics(region or self.region)

    # Advisory

    async def optimize_cost(
        self,
        user_id: str,
        text: str,
        user_tier: Optional[str] = None,
        daily_usage: Optional[float] = None,
        daily_budget: Optional[float] = None
    ) -> CostOptimization:
        """Cost advice; today's recorded spend is used when ``daily_usage`` is omitted."""
        if daily_usage is None:
            daily_usage = await self.cost_optimizer.daily_usage(user_id)
        return await self.cost_optimizer.optimize(
            user_id,
            text,
            daily_usage,
            self.daily_budget if daily_budget is None else daily_budget,
            user_tier,
        )

    async def record_usage(self, user_id: str, cost_brl: float) -> Optional[float]:
        return await self.cost_optimizer.record_usage(user_id, cost_brl)

    async def optimize_for_peak_hours(self, user_id: str, region: Optional[str] = None) -> PeakHourOptimization:
        return await self.device_optimizer.optimize_for_peak_hours(user_id, region or self.region)

    async def optimize_for_mobile(self, user_agent: Optional[str], network_condition: str) -> MobileOptimization:
        return await self.device_optimizer.optimize_for_mobile(user_agent, network_condition)
