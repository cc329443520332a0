"""Clock sources with region-aware time-zone conversion."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from billsplit_core.core.errors import ValidationError


def resolve_timezone(name: str) -> ZoneInfo:
    """Resolve an IANA time-zone name.

    Raises:
        ValidationError: If the name is unknown.
    """
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown time zone: {name}", field="timezone", value=name) from e


class SystemClock:
    """Wall clock. Always returns timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def to_local(self, moment: datetime, tz_name: str) -> datetime:
        """Convert ``moment`` into the civil time of ``tz_name``."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(resolve_timezone(tz_name))
