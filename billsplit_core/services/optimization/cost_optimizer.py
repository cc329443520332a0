"""Advisory cost optimization for upstream model calls."""

from typing import Optional

from billsplit_core.backends.base import ICacheBackend
from billsplit_core.core.config import Settings
from billsplit_core.core.errors import BackendUnavailable
from billsplit_core.core.interfaces import IClock
from billsplit_core.core.logging import get_logger
from billsplit_core.models.optimization import CostOptimization
from billsplit_core.services.key_generator import CacheKeyGenerator
from billsplit_core.services.optimization.complexity import ComplexityScorer

logger = get_logger(__name__)

FREE_TIER = "free"
REDUCE_TOKENS_RATIO = 0.8
FALLBACK_RATIO = 0.9
USAGE_TTL = 2 * 86400


class CostOptimizer:
    """Suggests cheaper handling when requests are simple or budgets run low.

    Results are advice only. Nothing here raises on backend trouble; the
    audit trail and usage counters are best effort.
    """

    def __init__(
        self,
        scorer: ComplexityScorer,
        backend: ICacheBackend,
        clock: IClock,
        tz_name: str = "America/Sao_Paulo",
        cheap_model_threshold: int = 3,
        compress_context_threshold: int = 5,
        audit_ttl: int = 86400
    ):
        self.scorer = scorer
        self.backend = backend
        self.clock = clock
        self.tz_name = tz_name
        self.cheap_model_threshold = cheap_model_threshold
        self.compress_context_threshold = compress_context_threshold
        self.audit_ttl = audit_ttl

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        scorer: ComplexityScorer,
        backend: ICacheBackend,
        clock: IClock
    ) -> "CostOptimizer":
        return cls(
            scorer,
            backend,
            clock,
            tz_name=settings.region_timezone,
            cheap_model_threshold=settings.cheap_model_threshold,
            compress_context_threshold=settings.compress_context_threshold,
            audit_ttl=settings.audit_ttl,
        )

    def _today(self):
        return self.clock.to_local(self.clock.now(), self.tz_name).date()

    async def optimize(
        self,
        user_id: str,
        text: str,
        daily_usage: float,
        daily_budget: float,
        user_tier: Optional[str] = None
    ) -> CostOptimization:
        """Advise on model choice, token budget and fallback.

        Args:
            user_id: Requesting user.
            text: The user message.
            daily_usage: Spend so far today (BRL).
            daily_budget: Daily budget (BRL).
            user_tier: Subscription tier; unknown tiers count as free.
        """
        complexity = self.scorer.score(text)
        tier = user_tier or FREE_TIER

        advice = CostOptimization(
            use_cheaper_model=complexity <= self.cheap_model_threshold or tier == FREE_TIER,
            reduce_tokens=daily_usage > daily_budget * REDUCE_TOKENS_RATIO,
            enable_caching=True,
            compress_context=complexity > self.compress_context_threshold,
            use_fallback=daily_usage > daily_budget * FALLBACK_RATIO,
            complexity=complexity,
        )

        await self._audit(user_id, complexity, daily_usage, daily_budget, tier)
        return advice

    async def _audit(
        self,
        user_id: str,
        complexity: int,
        daily_usage: float,
        daily_budget: float,
        tier: str
    ) -> None:
        key = CacheKeyGenerator.cost_audit(user_id, self._today())
        record = {
            "complexity": complexity,
            "daily_usage": daily_usage,
            "budget": daily_budget,
            "tier": tier,
            "percentage_used": (daily_usage / daily_budget) * 100 if daily_budget else None,
            "recorded_at": self.clock.now().isoformat(),
        }
        try:
            await self.backend.set(key, record, ttl=self.audit_ttl)
        except BackendUnavailable as e:
            logger.warning(f"Cost optimization audit not recorded for {user_id}: {e.message}")

    async def daily_usage(self, user_id: str) -> float:
        """Spend recorded today for ``user_id``; 0.0 when unknown."""
        key = CacheKeyGenerator.usage(user_id, self._today())
        try:
            value = await self.backend.get(key)
        except BackendUnavailable as e:
            logger.warning(f"Daily usage unreadable for {user_id}: {e.message}")
            return 0.0

        try:
            return float(value or 0.0)
        except (TypeError, ValueError):
            return 0.0

    async def record_usage(self, user_id: str, cost_brl: float) -> Optional[float]:
        """Add ``cost_brl`` to today's spend and return the new total."""
        key = CacheKeyGenerator.usage(user_id, self._today())
        try:
            return await self.backend.incr_float(key, cost_brl, ttl=USAGE_TTL)
        except BackendUnavailable as e:
            logger.warning(f"Usage of {cost_brl} BRL not recorded for {user_id}: {e.message}")
            return None
