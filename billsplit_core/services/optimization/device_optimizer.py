"""Peak-hour and mobile-client advice."""

from typing import Optional

from billsplit_core.core.errors import ValidationError
from billsplit_core.core.interfaces import IClock
from billsplit_core.core.logging import get_logger
from billsplit_core.models.optimization import MobileOptimization, PeakHourOptimization
from billsplit_core.services.metrics import MetricsRecorder, NETWORK_CONDITIONS
from billsplit_core.services.response_cache.time_windows import TimeWindowClassifier
from billsplit_core.services.response_cache.warmer import CacheWarmer

logger = get_logger(__name__)

MOBILE_KEYWORDS = (
    "Mobile",
    "Android",
    "iPhone",
    "iPad",
    "Windows Phone",
    "BlackBerry",
    "Opera Mini",
    "IEMobile",
)


def is_mobile_user_agent(user_agent: Optional[str]) -> bool:
    if not user_agent:
        return False
    lowered = user_agent.lower()
    return any(keyword.lower() in lowered for keyword in MOBILE_KEYWORDS)


class DeviceOptimizer:
    """Advice for load peaks and constrained clients.

    During a peak window the warmer (when configured) is asked to preload
    the region's common requests so the rush hits a warm cache.
    """

    def __init__(
        self,
        classifier: TimeWindowClassifier,
        metrics: MetricsRecorder,
        clock: IClock,
        warmer: Optional[CacheWarmer] = None,
        warmup_model: str = "claude-3-haiku-20240307"
    ):
        self.classifier = classifier
        self.metrics = metrics
        self.clock = clock
        self.warmer = warmer
        self.warmup_model = warmup_model

    async def optimize_for_peak_hours(self, user_id: str, region: str) -> PeakHourOptimization:
        now = self.clock.now()
        window = self.classifier.active_window(now)
        is_peak = window is not None

        if is_peak:
            logger.debug(f"Peak window '{window}' active for {user_id} in {region}")
            await self.metrics.record_peak_hour(region)
            if self.warmer is not None and self.warmer.running:
                self.warmer.warm_region(region, self.warmup_model)

        return PeakHourOptimization(
            is_peak=is_peak,
            use_faster_model=is_peak,
            reduce_context_length=is_peak,
            increase_cache_ttl=not is_peak,
            enable_compression=True,
        )

    async def optimize_for_mobile(self, user_agent: Optional[str], network_condition: str) -> MobileOptimization:
        """Advice for a client identified by its user agent.

        Raises:
            ValidationError: If ``network_condition`` is not fast, medium or slow.
        """
        if network_condition not in NETWORK_CONDITIONS:
            raise ValidationError(
                "Unknown network condition",
                field="network_condition",
                value=network_condition
            )

        is_mobile = is_mobile_user_agent(user_agent)
        constrained = is_mobile and network_condition == "slow"

        await self.metrics.record_mobile(network_condition)

        return MobileOptimization(
            is_mobile=is_mobile,
            reduce_image_quality=is_mobile,
            enable_compression=True,
            reduce_context_length=constrained,
            use_faster_model=constrained,
            enable_offline_mode=is_mobile,
            reduce_animations=is_mobile,
        )
