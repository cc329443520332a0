"""Adaptive TTL for cached upstream responses."""

import math
from datetime import datetime
from typing import Iterable, Optional

from billsplit_core.core.config import Settings
from billsplit_core.services.response_cache.time_windows import TimeWindowClassifier

BASE_TTL = 3600  # 1 hour


class TTLPolicy:
    """Computes how long a response may be cached.

    Rules are evaluated in order and the first match wins:

    1. top cost tier model      -> 4 x base
    2. response over threshold  -> 2 x base
    3. peak window              -> base / 2 (floored)
    4. otherwise                -> base

    Peak-hour shortening therefore never applies to an expensive or large
    response.
    """

    def __init__(
        self,
        classifier: TimeWindowClassifier,
        base_ttl: int = BASE_TTL,
        top_tier_models: Optional[Iterable[str]] = None,
        top_tier_markers: Iterable[str] = ("opus",),
        large_response_tokens: int = 2000
    ):
        if base_ttl <= 0:
            raise ValueError("base_ttl must be positive")
        self.classifier = classifier
        self.base_ttl = base_ttl
        self.top_tier_models = set(top_tier_models or ())
        self.top_tier_markers = tuple(marker.lower() for marker in top_tier_markers)
        self.large_response_tokens = large_response_tokens

    @classmethod
    def from_settings(cls, settings: Settings, classifier: TimeWindowClassifier) -> "TTLPolicy":
        return cls(
            classifier,
            base_ttl=settings.cache_base_ttl,
            top_tier_models=settings.top_tier_models,
            top_tier_markers=settings.top_tier_markers,
            large_response_tokens=settings.large_response_tokens,
        )

    def is_top_tier(self, model: str) -> bool:
        if model in self.top_tier_models:
            return True
        lowered = model.lower()
        return any(marker in lowered for marker in self.top_tier_markers)

    def compute_ttl(self, model: str, response_size_tokens: int, now: datetime) -> int:
        """TTL in seconds for a response produced by ``model`` at ``now``."""
        if self.is_top_tier(model):
            return self.base_ttl * 4

        if response_size_tokens > self.large_response_tokens:
            return self.base_ttl * 2

        if self.classifier.is_peak(now):
            # Never drop to zero, an entry must always live at least a second
            return max(1, math.floor(self.base_ttl * 0.5))

        return self.base_ttl
