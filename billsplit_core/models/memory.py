"""Memory, preference and export models."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from billsplit_core.models.consent import ConsentRecord


class MemoryCategory(str, Enum):
    """Kinds of memory records, each with its own retention window."""
    CONVERSATION = "conversation"
    PREFERENCE = "preference"
    CULTURAL_CONTEXT = "culturalContext"
    GROUP_PATTERN = "groupPattern"


class MemoryRecord(BaseModel):
    """A stored memory record. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Record id, unique per user")
    user_id: str = Field(..., description="Owner")
    category: MemoryCategory = Field(..., description="Retention category")
    payload: Any = Field(..., description="Stored content")
    created_at: datetime = Field(..., description="Creation instant")
    expires_at: datetime = Field(..., description="created_at plus the category retention window")
    consent_ref: str = Field(..., description="Consent key the write was checked against")


class PrivacySettings(BaseModel):
    """User-facing privacy toggles."""
    allow_memory_retention: bool = False
    allow_preference_learning: bool = False
    allow_analytics: bool = False
    data_retention_period: int = 90
    allow_data_export: bool = False
    allow_data_deletion: bool = False


class UserPreferences(BaseModel):
    """Learned splitting preferences."""
    preferred_splitting_method: str = ""
    cultural_context: str = ""
    regional_variations: List[str] = Field(default_factory=list)
    payment_methods: List[str] = Field(default_factory=list)
    group_interaction_patterns: List[str] = Field(default_factory=list)
    language_preference: str = "pt-BR"
    privacy_settings: PrivacySettings = Field(default_factory=PrivacySettings)
    created_at: Optional[datetime] = Field(None, description="First time preferences were stored")
    updated_at: Optional[datetime] = Field(None, description="Last update")


class ExportBundle(BaseModel):
    """Everything held about a user (right to portability)."""
    user_id: str
    exported_at: datetime
    records: List[MemoryRecord] = Field(default_factory=list)
    consents: List[ConsentRecord] = Field(default_factory=list)
    preferences: Optional[UserPreferences] = None

    @property
    def is_empty(self) -> bool:
        """True when no stored data (records, preferences, granted consent) exists."""
        return (
            not self.records
            and self.preferences is None
            and not any(consent.granted for consent in self.consents)
        )


class MemoryAnalytics(BaseModel):
    """Per-user summary of stored memory."""
    total_records: int = 0
    records_per_category: Dict[str, int] = Field(default_factory=dict)
    retention_days: Dict[str, int] = Field(default_factory=dict)


class ReconcileReport(BaseModel):
    """Outcome of an expiry reconciliation sweep."""
    scanned: int = 0
    repaired: int = 0
    expired: int = 0
    skipped: int = 0
    repaired_keys: List[str] = Field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.repaired > 0 or self.expired > 0 or self.skipped > 0
