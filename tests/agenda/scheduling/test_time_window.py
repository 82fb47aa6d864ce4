from datetime import date, datetime, time, timedelta, timezone

import pytest

from agenda.core.errors import ConfigurationError, TenantNotFound
from agenda.scheduling.time_window import (
    OperatingHours,
    TimeWindow,
    format_slot_time,
    local_day_bounds,
    resolve_time_window,
    sunday_based_weekday,
    to_utc_instant,
)


class FakeHoursSource:
    def __init__(self, hours_by_weekday=None, zone_name='America/Sao_Paulo', known_tenants=('biz-1',)):
        self.hours_by_weekday = hours_by_weekday or {}
        self.zone_name = zone_name
        self.known_tenants = known_tenants
        self.calls = []

    def get_business_timezone(self, tenant_id: str) -> str:
        self.calls.append(('timezone', tenant_id))
        if tenant_id not in self.known_tenants:
            raise TenantNotFound('Business not found.')
        return self.zone_name

    def get_operating_hours(self, tenant_id: str, weekday: int):
        self.calls.append(('hours', tenant_id, weekday))
        return self.hours_by_weekday.get(weekday)


def test_sunday_based_weekday_matches_business_hours_numbering() -> None:
    assert sunday_based_weekday(date(2026, 1, 4)) == 0
    assert sunday_based_weekday(date(2026, 1, 5)) == 1
    assert sunday_based_weekday(date(2026, 1, 10)) == 6


def test_window_is_anchored_to_tenant_timezone() -> None:
    window = TimeWindow(
        date=date(2026, 1, 5),
        open_time=time(9, 0),
        close_time=time(19, 0),
        slot_granularity_minutes=30,
        timezone='America/Sao_Paulo',
    )

    assert window.opens_at == datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)
    assert window.closes_at == datetime(2026, 1, 5, 22, 0, tzinfo=timezone.utc)
    assert window.length() == timedelta(hours=10)


def test_window_length_follows_daylight_saving_transition() -> None:
    window = TimeWindow(
        date=date(2026, 3, 8),
        open_time=time(1, 0),
        close_time=time(4, 0),
        slot_granularity_minutes=30,
        timezone='America/New_York',
    )

    assert window.length() == timedelta(hours=2)


@pytest.mark.parametrize(
    ('open_time', 'close_time'),
    [
        (time(19, 0), time(9, 0)),
        (time(9, 0), time(9, 0)),
    ],
)
def test_window_rejects_close_not_after_open(open_time: time, close_time: time) -> None:
    with pytest.raises(ConfigurationError):
        TimeWindow(
            date=date(2026, 1, 5),
            open_time=open_time,
            close_time=close_time,
            slot_granularity_minutes=30,
            timezone='America/Sao_Paulo',
        )


def test_window_rejects_unknown_timezone() -> None:
    with pytest.raises(ConfigurationError):
        TimeWindow.default(date(2026, 1, 5), 'Mars/Olympus_Mons')


def test_window_rejects_non_positive_granularity() -> None:
    with pytest.raises(ConfigurationError):
        TimeWindow(
            date=date(2026, 1, 5),
            open_time=time(9, 0),
            close_time=time(19, 0),
            slot_granularity_minutes=0,
            timezone='America/Sao_Paulo',
        )


def test_closed_window_has_no_length_and_contains_nothing() -> None:
    window = TimeWindow.closed(date(2026, 1, 4), 'America/Sao_Paulo')

    assert window.length() == timedelta(0)
    assert not window.contains(
        datetime(2026, 1, 4, 13, 0, tzinfo=timezone.utc),
        datetime(2026, 1, 4, 13, 30, tzinfo=timezone.utc),
    )


def test_contains_uses_inclusive_bounds() -> None:
    window = TimeWindow.default(date(2026, 1, 5), 'America/Sao_Paulo')

    assert window.contains(window.opens_at, window.opens_at + timedelta(minutes=30))
    assert window.contains(window.closes_at - timedelta(minutes=30), window.closes_at)
    assert not window.contains(window.closes_at - timedelta(minutes=30), window.closes_at + timedelta(minutes=1))


def test_resolve_without_tenant_uses_documented_default() -> None:
    source = FakeHoursSource()

    window = resolve_time_window(source, None, date(2026, 1, 5))

    assert window.open_time == time(9, 0)
    assert window.close_time == time(19, 0)
    assert window.slot_granularity_minutes == 30
    assert window.is_open
    assert source.calls == []


def test_resolve_falls_back_to_default_hours_in_tenant_timezone() -> None:
    source = FakeHoursSource(zone_name='Asia/Tokyo')

    window = resolve_time_window(source, 'biz-1', date(2026, 1, 5))

    assert window.timezone == 'Asia/Tokyo'
    assert window.open_time == time(9, 0)
    assert window.close_time == time(19, 0)
    assert ('hours', 'biz-1', 1) in source.calls


def test_resolve_uses_configured_hours_for_weekday() -> None:
    source = FakeHoursSource({1: OperatingHours(open_time=time(10, 0), close_time=time(14, 0))})

    window = resolve_time_window(source, 'biz-1', date(2026, 1, 5))

    assert (window.open_time, window.close_time) == (time(10, 0), time(14, 0))


def test_resolve_returns_closed_window_for_closed_day() -> None:
    source = FakeHoursSource({0: OperatingHours.closed()})

    window = resolve_time_window(source, 'biz-1', date(2026, 1, 4))

    assert not window.is_open


def test_resolve_rejects_inverted_configured_hours() -> None:
    source = FakeHoursSource({1: OperatingHours(open_time=time(18, 0), close_time=time(8, 0))})

    with pytest.raises(ConfigurationError):
        resolve_time_window(source, 'biz-1', date(2026, 1, 5))


def test_resolve_propagates_unknown_tenant() -> None:
    with pytest.raises(TenantNotFound):
        resolve_time_window(FakeHoursSource(), 'missing', date(2026, 1, 5))


def test_to_utc_instant_reads_naive_values_as_tenant_wall_clock() -> None:
    assert to_utc_instant(datetime(2026, 1, 5, 10, 0), 'America/Sao_Paulo') == datetime(
        2026, 1, 5, 13, 0, tzinfo=timezone.utc
    )
    aware = datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)
    assert to_utc_instant(aware, 'America/Sao_Paulo') == aware


def test_local_day_bounds_span_local_midnights() -> None:
    start, end = local_day_bounds(date(2026, 1, 5), 'America/Sao_Paulo')

    assert start == datetime(2026, 1, 5, 3, 0, tzinfo=timezone.utc)
    assert end == datetime(2026, 1, 6, 3, 0, tzinfo=timezone.utc)


def test_format_slot_time_renders_tenant_clock_time() -> None:
    instant = datetime(2026, 1, 5, 13, 30, tzinfo=timezone.utc)

    assert format_slot_time(instant, 'America/Sao_Paulo') == '10:30'
    assert format_slot_time(instant, 'Asia/Tokyo') == '22:30'


def test_format_slot_time_rejects_naive_instants() -> None:
    with pytest.raises(ValueError):
        format_slot_time(datetime(2026, 1, 5, 13, 30), 'America/Sao_Paulo')
