"""Protocol definitions for collaborators consumed by the core.

The key-value backend contract lives in ``billsplit_core.backends.base``;
this module covers the smaller seams.
"""

from datetime import datetime
from typing import Protocol, Optional, Any, runtime_checkable


@runtime_checkable
class IClock(Protocol):
    """Interface for time sources."""

    def now(self) -> datetime:
        """Current instant as a timezone-aware UTC datetime."""
        ...

    def to_local(self, moment: datetime, tz_name: str) -> datetime:
        """Convert an instant into a region's civil time."""
        ...


@runtime_checkable
class IMetricsSink(Protocol):
    """Interface for counter storage."""

    async def incr(self, key: str, amount: int = 1, ttl: Optional[int] = None) -> int:
        """Increment a counter and return its new value."""
        ...

    async def get(self, key: str) -> Optional[Any]:
        """Read a counter value."""
        ...
