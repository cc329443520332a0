"""LGPD retention windows and consent gating.

The windows are legal upper bounds, so they are constants rather than
settings.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Union

from billsplit_core.core.errors import ValidationError
from billsplit_core.models.consent import ConsentPurpose
from billsplit_core.models.memory import MemoryCategory

ANALYTICS = "analytics"

RETENTION_DAYS: Dict[str, int] = {
    MemoryCategory.CONVERSATION.value: 90,
    MemoryCategory.PREFERENCE.value: 365,
    MemoryCategory.GROUP_PATTERN.value: 180,
    MemoryCategory.CULTURAL_CONTEXT.value: 365,
    ANALYTICS: 90,
}

CATEGORY_WITH_LONGEST_RETENTION = max(RETENTION_DAYS, key=RETENTION_DAYS.get)

# Revoked consent is kept as proof of the revocation
REVOKED_CONSENT_DAYS = 730

GATING_PURPOSE: Dict[MemoryCategory, ConsentPurpose] = {
    MemoryCategory.CONVERSATION: ConsentPurpose.MEMORY_RETENTION,
    MemoryCategory.CULTURAL_CONTEXT: ConsentPurpose.MEMORY_RETENTION,
    MemoryCategory.GROUP_PATTERN: ConsentPurpose.MEMORY_RETENTION,
    MemoryCategory.PREFERENCE: ConsentPurpose.PREFERENCE_LEARNING,
}


def parse_category(category: Union[str, MemoryCategory]) -> MemoryCategory:
    """Raises ValidationError for unknown categories."""
    try:
        return MemoryCategory(category)
    except ValueError as e:
        raise ValidationError("Unknown memory category", field="category", value=category) from e


def parse_purpose(purpose: Union[str, ConsentPurpose]) -> ConsentPurpose:
    """Raises ValidationError for unknown purposes."""
    try:
        return ConsentPurpose(purpose)
    except ValueError as e:
        raise ValidationError("Unknown consent purpose", field="purpose", value=purpose) from e


def max_age(category: Union[str, MemoryCategory]) -> timedelta:
    key = category.value if isinstance(category, MemoryCategory) else category
    if key not in RETENTION_DAYS:
        raise ValidationError("No retention window for category", field="category", value=category)
    return timedelta(days=RETENTION_DAYS[key])


def expires_at(category: Union[str, MemoryCategory], created_at: datetime) -> datetime:
    return created_at + max_age(category)


def gating_purpose(category: MemoryCategory) -> ConsentPurpose:
    return GATING_PURPOSE[category]


def gated_categories(purpose: ConsentPurpose) -> List[MemoryCategory]:
    """Memory categories a purpose authorizes."""
    return [category for category, gate in GATING_PURPOSE.items() if gate == purpose]


def category_for_key(key: str, stored: Optional[dict] = None) -> Optional[str]:
    """Retention category of a stored key, from its record or its namespace."""
    if key.startswith("preferences:"):
        return MemoryCategory.PREFERENCE.value
    if isinstance(stored, dict):
        category = stored.get("category")
        if category in RETENTION_DAYS:
            return category
    return None
