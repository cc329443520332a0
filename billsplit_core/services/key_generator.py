"""Key generation for every namespace the core persists.

Layout:
    cache:{region}:{model}:{hash}     cached upstream responses
    memory:{userId}:{id}              memory records
    consent:{userId}:{purpose}        consent decisions
    preferences:{userId}              learned preferences
    usage:{userId}:{date}             daily spend
    cost_optimization:{userId}:{date} optimizer audit trail
"""

import hashlib
import json
from datetime import date, datetime
from typing import Any, Dict, Union

from billsplit_core.models.cache import RequestDescriptor


class CacheKeyGenerator:
    """Single source of truth for backend keys."""

    CACHE_PREFIX = "cache"
    MEMORY_PREFIX = "memory"
    CONSENT_PREFIX = "consent"
    PREFERENCES_PREFIX = "preferences"

    CACHE_HITS = "cache:hits"
    CACHE_MISSES = "cache:misses"
    CACHE_SETS = "cache:sets"

    @classmethod
    def canonicalize(cls, request: Any) -> str:
        """Serialize a request so equal content always gives equal bytes.

        Nested mappings are key-sorted at every depth.
        """
        return json.dumps(
            request,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            default=str
        )

    @classmethod
    def derive(cls, region: str, model: str, canonical_request: Union[Dict[str, Any], str]) -> str:
        """Derive the cache key for an upstream request.

        Args:
            region: Region code (e.g. "BR", "SP").
            model: Upstream model id.
            canonical_request: Request mapping, or an already canonical string.

        Returns:
            Cache key string.
        """
        if not isinstance(canonical_request, str):
            canonical_request = cls.canonicalize(canonical_request)
        return f"{cls.CACHE_PREFIX}:{region}:{model}:{cls.hash_content(canonical_request)}"

    @classmethod
    def response(cls, descriptor: RequestDescriptor) -> str:
        """Cache key for a request descriptor."""
        return cls.derive(descriptor.region, descriptor.model, descriptor.canonical_request())

    @classmethod
    def memory(cls, user_id: str, record_id: str) -> str:
        return f"{cls.MEMORY_PREFIX}:{user_id}:{record_id}"

    @classmethod
    def memory_prefix(cls, user_id: str) -> str:
        return f"{cls.MEMORY_PREFIX}:{user_id}:"

    @classmethod
    def record_id(cls, user_id: str, category: str, created_at: datetime) -> str:
        """Deterministic record id, so a retried write lands on the same key."""
        content = cls.canonicalize([user_id, category, created_at.isoformat()])
        return cls.hash_content(content)

    @classmethod
    def consent(cls, user_id: str, purpose: str) -> str:
        return f"{cls.CONSENT_PREFIX}:{user_id}:{purpose}"

    @classmethod
    def consent_prefix(cls, user_id: str) -> str:
        return f"{cls.CONSENT_PREFIX}:{user_id}:"

    @classmethod
    def preferences(cls, user_id: str) -> str:
        return f"{cls.PREFERENCES_PREFIX}:{user_id}"

    @classmethod
    def usage(cls, user_id: str, day: date) -> str:
        return f"usage:{user_id}:{day.isoformat()}"

    @classmethod
    def cost_audit(cls, user_id: str, day: date) -> str:
        return f"cost_optimization:{user_id}:{day.isoformat()}"

    @classmethod
    def peak_hour(cls, region: str, day: date) -> str:
        return f"peak_hour:{region}:{day.isoformat()}"

    @classmethod
    def mobile(cls, network_condition: str, day: date) -> str:
        return f"mobile_optimization:{network_condition}:{day.isoformat()}"

    @classmethod
    def hash_content(cls, content: str) -> str:
        """MD5 hex digest of arbitrary content."""
        return hashlib.md5(content.encode('utf-8')).hexdigest()
