"""LGPD consent models."""

from datetime import datetime
from enum import Enum
from typing import Set
from pydantic import BaseModel, Field


class ConsentPurpose(str, Enum):
    """Named categories of data use that need separate authorization."""
    MEMORY_RETENTION = "memory_retention"
    PREFERENCE_LEARNING = "preference_learning"
    ANALYTICS = "analytics"


class ConsentRecord(BaseModel):
    """A user's current decision for one purpose.

    A newer record for the same (user_id, purpose) replaces this one
    entirely.
    """
    user_id: str = Field(..., min_length=1, description="User the decision belongs to")
    purpose: ConsentPurpose = Field(..., description="Purpose being authorized")
    granted: bool = Field(..., description="Whether consent is given")
    granted_at: datetime = Field(..., description="When the decision was recorded")
    retention_days: int = Field(0, ge=0, description="How long the decision stays valid")
    data_categories: Set[str] = Field(default_factory=set, description="Data categories covered")
    purpose_description: str = Field("", description="Human-readable purpose text shown to the user")
