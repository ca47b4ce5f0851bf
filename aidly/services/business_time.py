from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import FrozenSet, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..util.timestamps import parse_timestamp

# Python weekday numbers (Mon=0). Numeric config values use 0=Sun..6=Sat, 7=Sun.
WEEKDAY_MAP = {
    'Mon': 0, 'Tue': 1, 'Wed': 2, 'Thu': 3, 'Fri': 4, 'Sat': 5, 'Sun': 6
}

# One full week is enough to reach any configured business day.
MAX_SCAN_DAYS = 7

class BusinessHoursConfigError(ValueError):
    pass

def parse_business_days(csv: str) -> FrozenSet[int]:
    days = set()
    for part in (csv or "").split(","):
        p = part.strip()
        if not p:
            continue
        if p.isdigit():
            n = int(p)
            if n > 7:
                raise BusinessHoursConfigError(f"Invalid business day number: {p!r}")
            days.add((n - 1) % 7)
            continue
        key = p[:3].title()
        if key not in WEEKDAY_MAP:
            raise BusinessHoursConfigError(f"Invalid business day name: {p!r}")
        days.add(WEEKDAY_MAP[key])
    if not days:
        raise BusinessHoursConfigError("At least one business day must be configured")
    return frozenset(days)

def parse_hhmm(s: str) -> time:
    try:
        parts = (s or "").strip().split(":")
        if len(parts) not in (2, 3):
            raise ValueError(s)
        return time(int(parts[0]), int(parts[1]))
    except ValueError:
        raise BusinessHoursConfigError(f"Invalid time of day {s!r}, expected HH:MM") from None

@dataclass(frozen=True)
class BusinessHoursConfig:
    business_days: FrozenSet[int]
    start: time
    end: time
    timezone: str = "UTC"

    def __post_init__(self):
        if not self.business_days:
            raise BusinessHoursConfigError("At least one business day must be configured")
        if any(d not in range(7) for d in self.business_days):
            raise BusinessHoursConfigError(f"Invalid weekday in {sorted(self.business_days)}")
        if self.end <= self.start:
            raise BusinessHoursConfigError(
                f"Business hours end {self.end:%H:%M} must be after start {self.start:%H:%M}"
            )
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise BusinessHoursConfigError(f"Unknown timezone {self.timezone!r}") from None

    @classmethod
    def from_strings(cls, days: str = "1,2,3,4,5", start: str = "09:00", end: str = "18:00", timezone: str = "UTC") -> "BusinessHoursConfig":
        return cls(
            business_days=parse_business_days(days),
            start=parse_hhmm(start),
            end=parse_hhmm(end),
            timezone=(timezone or "UTC").strip(),
        )

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

class BusinessHoursCalculator:
    """Business-hours arithmetic for SLA metrics.

    Windows are half-open: a timestamp exactly at the configured start is
    inside business hours, one exactly at the end is not.
    """

    def __init__(self, config: BusinessHoursConfig):
        self.config = config
        self.tz = config.tzinfo

    def _localize(self, value: datetime) -> datetime:
        # Naive timestamps are taken to be in the configured timezone
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def _window(self, day: date):
        return (
            datetime.combine(day, self.config.start, tzinfo=self.tz),
            datetime.combine(day, self.config.end, tzinfo=self.tz),
        )

    def is_business_day(self, day: date) -> bool:
        return day.weekday() in self.config.business_days

    def calculate_business_hours(self, start: datetime, end: datetime) -> float:
        """Hours between start and end that fall inside business hours, rounded to 2 places."""
        start = self._localize(start)
        end = self._localize(end)
        # Datetimes sharing a ZoneInfo compare by wall clock; elapsed time is measured in UTC
        start_utc = start.astimezone(timezone.utc)
        end_utc = end.astimezone(timezone.utc)
        if start_utc >= end_utc:
            return 0.0

        total_minutes = 0
        day = start.date()
        while day <= end.date():
            if self.is_business_day(day):
                day_start, day_end = (t.astimezone(timezone.utc) for t in self._window(day))
                window_start = max(day_start, start_utc)
                window_end = min(day_end, end_utc)
                if window_end > window_start:
                    total_minutes += int((window_end - window_start).total_seconds() // 60)
            day += timedelta(days=1)

        return round(total_minutes / 60, 2)

    def calculate_response_time(self, created_at: Union[datetime, str], responded_at: Union[datetime, str]) -> float:
        start = created_at if isinstance(created_at, datetime) else parse_timestamp(created_at)
        end = responded_at if isinstance(responded_at, datetime) else parse_timestamp(responded_at)
        if start is None or end is None:
            raise ValueError(f"Unparseable timestamps: {created_at!r}, {responded_at!r}")
        return self.calculate_business_hours(start, end)

    def is_business_hours(self, when: Optional[datetime] = None) -> bool:
        when = self._localize(when) if when is not None else datetime.now(self.tz)
        if not self.is_business_day(when.date()):
            return False
        day_start, day_end = self._window(when.date())
        return day_start <= when < day_end

    def next_business_hours_start(self, from_: Optional[datetime] = None) -> datetime:
        current = self._localize(from_) if from_ is not None else datetime.now(self.tz)

        if self.is_business_hours(current):
            return current

        today = current.date()
        if self.is_business_day(today):
            day_start, _ = self._window(today)
            if current < day_start:
                return day_start

        for offset in range(1, MAX_SCAN_DAYS + 1):
            day = today + timedelta(days=offset)
            if self.is_business_day(day):
                return self._window(day)[0]

        raise BusinessHoursConfigError(
            f"No business day found within {MAX_SCAN_DAYS} days of {current.isoformat()}"
        )
