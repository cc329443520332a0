"""Advisory optimization and analytics models."""

from typing import Any, Dict
from pydantic import BaseModel, Field


class CostOptimization(BaseModel):
    """Advice for the upstream call. Never binding."""
    use_cheaper_model: bool
    reduce_tokens: bool
    enable_caching: bool = True
    compress_context: bool
    use_fallback: bool
    complexity: int = Field(..., ge=1, le=10)


class PeakHourOptimization(BaseModel):
    """Advice derived from the region's current load window."""
    is_peak: bool
    use_faster_model: bool
    reduce_context_length: bool
    increase_cache_ttl: bool
    enable_compression: bool = True


class MobileOptimization(BaseModel):
    """Advice derived from the client device and network."""
    is_mobile: bool
    reduce_image_quality: bool
    enable_compression: bool = True
    reduce_context_length: bool
    use_faster_model: bool
    enable_offline_mode: bool
    reduce_animations: bool


class PerformanceAnalytics(BaseModel):
    """Snapshot of cache and usage counters."""
    cache_hits: int = 0
    cache_misses: int = 0
    cache_sets: int = 0
    cache_hit_rate: float = 0.0
    total_cache_operations: int = 0
    peak_hour_usage: int = 0
    mobile_usage: Dict[str, int] = Field(default_factory=dict)
    local: Dict[str, Any] = Field(default_factory=dict, description="In-process counters")
