"""
Operating windows and timezone normalization.

All arithmetic happens on aware UTC instants. Tenant-local clock time only
appears at the edges: when a window is anchored to a calendar date and when a
slot start is formatted for presentation.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from agenda.core import config
from agenda.core.errors import ConfigurationError


def get_zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown timezone '{name}'.") from exc


def sunday_based_weekday(day: date) -> int:
    """Weekday number as stored in business_hours: 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def to_utc_instant(value: datetime, zone_name: str) -> datetime:
    """Normalize a datetime to an aware UTC instant.

    Naive values are read as wall-clock time in the given zone.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=get_zone(zone_name))
    return value.astimezone(timezone.utc)


def local_day_bounds(day: date, zone_name: str) -> tuple[datetime, datetime]:
    """Return the UTC instants of local midnight and the following local midnight."""
    zone = get_zone(zone_name)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_date(instant: datetime, zone_name: str) -> date:
    return instant.astimezone(get_zone(zone_name)).date()


def format_slot_time(instant: datetime, zone_name: str) -> str:
    """Render an instant as HH:MM in the tenant's timezone."""
    if instant.tzinfo is None:
        raise ValueError('Slot instants must be timezone-aware.')
    return instant.astimezone(get_zone(zone_name)).strftime('%H:%M')


@dataclass(frozen=True)
class OperatingHours:
    """Opening hours for one weekday as configured by a business."""
    open_time: time | None = None
    close_time: time | None = None
    is_open: bool = True

    @classmethod
    def closed(cls) -> 'OperatingHours':
        return cls(is_open=False)


@dataclass(frozen=True)
class TimeWindow:
    """
    A business's operating window on one calendar date.

    Invariant: when open, open_time < close_time.
    """
    date: date
    open_time: time | None
    close_time: time | None
    slot_granularity_minutes: int
    timezone: str
    is_open: bool = True

    def __post_init__(self):
        if self.slot_granularity_minutes <= 0:
            raise ConfigurationError('Slot granularity must be a positive number of minutes.')
        get_zone(self.timezone)
        if not self.is_open:
            return
        if self.open_time is None or self.close_time is None:
            raise ConfigurationError('Open and close times are required for an open day.')
        if self.open_time >= self.close_time:
            raise ConfigurationError(
                f'Close time {self.close_time:%H:%M} must be after open time {self.open_time:%H:%M}.'
            )

    @classmethod
    def closed(cls, day: date, zone_name: str) -> 'TimeWindow':
        return cls(
            date=day,
            open_time=None,
            close_time=None,
            slot_granularity_minutes=config.DEFAULT_SLOT_GRANULARITY_MINUTES,
            timezone=zone_name,
            is_open=False,
        )

    @classmethod
    def default(cls, day: date, zone_name: str | None = None) -> 'TimeWindow':
        return cls(
            date=day,
            open_time=config.DEFAULT_OPEN_TIME,
            close_time=config.DEFAULT_CLOSE_TIME,
            slot_granularity_minutes=config.DEFAULT_SLOT_GRANULARITY_MINUTES,
            timezone=zone_name or config.DEFAULT_TIMEZONE,
        )

    @property
    def opens_at(self) -> datetime:
        return self._anchor(self.open_time)

    @property
    def closes_at(self) -> datetime:
        return self._anchor(self.close_time)

    @property
    def granularity(self) -> timedelta:
        return timedelta(minutes=self.slot_granularity_minutes)

    def length(self) -> timedelta:
        if not self.is_open:
            return timedelta(0)
        return self.closes_at - self.opens_at

    def contains(self, start: datetime, end: datetime) -> bool:
        """Check whether [start, end) lies inside the window."""
        if not self.is_open:
            return False
        return self.opens_at <= start and end <= self.closes_at

    def _anchor(self, clock_time: time | None) -> datetime:
        if clock_time is None:
            raise ConfigurationError(f'Business is closed on {self.date.isoformat()}.')
        local = datetime.combine(self.date, clock_time, tzinfo=get_zone(self.timezone))
        return local.astimezone(timezone.utc)


class OperatingHoursSource(Protocol):
    def get_business_timezone(self, tenant_id: str) -> str:
        ...

    def get_operating_hours(self, tenant_id: str, weekday: int) -> OperatingHours | None:
        ...


def resolve_time_window(source: OperatingHoursSource, tenant_id: str | None, day: date) -> TimeWindow:
    """
    Resolve the authoritative operating window for a tenant and date.

    Missing hours fall back to the configured default window; a weekday marked
    closed yields a closed window.

    Raises:
        TenantNotFound: If the tenant does not resolve (raised by the source)
        ConfigurationError: If the configured hours are not a valid window
    """
    if tenant_id is None:
        return TimeWindow.default(day)

    zone_name = source.get_business_timezone(tenant_id) or config.DEFAULT_TIMEZONE
    hours = source.get_operating_hours(tenant_id, sunday_based_weekday(day))

    if hours is None:
        return TimeWindow.default(day, zone_name)
    if not hours.is_open:
        return TimeWindow.closed(day, zone_name)

    return TimeWindow(
        date=day,
        open_time=hours.open_time,
        close_time=hours.close_time,
        slot_granularity_minutes=config.DEFAULT_SLOT_GRANULARITY_MINUTES,
        timezone=zone_name,
    )
