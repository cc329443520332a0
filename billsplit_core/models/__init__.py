"""Data models for the cache and retention core."""

from billsplit_core.models.cache import RequestDescriptor, CacheEntry, WarmupResult
from billsplit_core.models.consent import ConsentPurpose, ConsentRecord
from billsplit_core.models.memory import (
    MemoryCategory,
    MemoryRecord,
    PrivacySettings,
    UserPreferences,
    ExportBundle,
    MemoryAnalytics,
    ReconcileReport,
)
from billsplit_core.models.optimization import (
    CostOptimization,
    PeakHourOptimization,
    MobileOptimization,
    PerformanceAnalytics,
)

__all__ = [
    "RequestDescriptor",
    "CacheEntry",
    "WarmupResult",
    "ConsentPurpose",
    "ConsentRecord",
    "MemoryCategory",
    "MemoryRecord",
    "PrivacySettings",
    "UserPreferences",
    "ExportBundle",
    "MemoryAnalytics",
    "ReconcileReport",
    "CostOptimization",
    "PeakHourOptimization",
    "MobileOptimization",
    "PerformanceAnalytics",
]
