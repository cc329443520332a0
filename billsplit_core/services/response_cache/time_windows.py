"""Peak-load time windows evaluated in the region's civil time."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import FrozenSet, List, Optional

from billsplit_core.core.clock import resolve_timezone
from billsplit_core.core.config import Settings
from billsplit_core.core.errors import ValidationError

WEEKEND = frozenset({5, 6})


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive local-hour interval, optionally limited to some weekdays."""

    name: str
    start_hour: int
    end_hour: int
    weekdays: Optional[FrozenSet[int]] = None  # Monday=0; None means every day

    def __post_init__(self):
        for hour in (self.start_hour, self.end_hour):
            if not 0 <= hour <= 23:
                raise ValidationError(f"Hour out of range in window '{self.name}'", field="hour", value=hour)
        if self.start_hour > self.end_hour:
            raise ValidationError(f"Window '{self.name}' starts after it ends", field="start_hour", value=self.start_hour)

    def contains(self, local: datetime) -> bool:
        if self.weekdays is not None and local.weekday() not in self.weekdays:
            return False
        return self.start_hour <= local.hour <= self.end_hour


def default_windows(settings: Settings) -> List[TimeWindow]:
    """Morning, lunch, evening and weekend windows from settings."""
    return [
        TimeWindow("morning", settings.peak_morning_start, settings.peak_morning_end),
        TimeWindow("lunch", settings.peak_lunch_start, settings.peak_lunch_end),
        TimeWindow("evening", settings.peak_evening_start, settings.peak_evening_end),
        TimeWindow("weekend", settings.peak_weekend_start, settings.peak_weekend_end, WEEKEND),
    ]


class TimeWindowClassifier:
    """Classifies an instant as peak or off-peak for one region."""

    def __init__(self, windows: List[TimeWindow], tz_name: str = "America/Sao_Paulo"):
        self.windows = list(windows)
        self.tz_name = tz_name
        self._tz = resolve_timezone(tz_name)

    @classmethod
    def from_settings(cls, settings: Settings) -> "TimeWindowClassifier":
        return cls(default_windows(settings), settings.region_timezone)

    def to_local(self, moment: datetime) -> datetime:
        # Naive datetimes are taken as UTC, never as server-local time
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self._tz)

    def active_window(self, moment: datetime) -> Optional[str]:
        """Name of the first window containing ``moment``, if any."""
        local = self.to_local(moment)
        for window in self.windows:
            if window.contains(local):
                return window.name
        return None

    def is_peak(self, moment: datetime) -> bool:
        return self.active_window(moment) is not None
