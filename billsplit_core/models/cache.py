"""Response cache models."""

from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class RequestDescriptor(BaseModel):
    """Everything that determines an upstream model answer."""
    region: str = Field("BR", description="Region code the request is served for")
    model: str = Field(..., description="Upstream model identifier")
    message: str = Field(..., description="User message sent upstream")
    context: Dict[str, Any] = Field(default_factory=dict, description="Conversation context sent upstream")

    def canonical_request(self) -> Dict[str, Any]:
        """The request part of the cache key; region and model are key segments."""
        return {"message": self.message, "context": self.context}


class CacheEntry(BaseModel):
    """Envelope stored for every cached response."""
    key: str = Field(..., description="Backend key")
    value: Any = Field(..., description="Opaque serialized upstream response")
    created_at: datetime = Field(..., description="When the entry was written")
    ttl_seconds: int = Field(..., gt=0, description="Lifetime granted by the TTL policy")
    size_bytes: int = Field(..., ge=0, description="Size of the serialized value")


class WarmupResult(BaseModel):
    """Outcome of a single cache warm-up job."""
    key: str = Field(..., description="Warmed cache key")
    warmed: bool = Field(..., description="True if a value was written")
    skipped: bool = Field(False, description="True if the key was already present")
    error: Optional[str] = Field(None, description="Failure description, if any")
