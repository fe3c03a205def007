"""Unit tests for pickup slot generation."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from src.services.pickup_slots import (
    day_bounds,
    generate_slots,
    is_editable_service_date,
    local_hour_start,
    service_date_of,
    to_utc,
)

TZ = ZoneInfo("America/Chicago")
DAY = date(2026, 2, 11)
# 09:00 local
NOW = datetime(2026, 2, 11, 15, 0, tzinfo=timezone.utc)


def _generate(**overrides):
    kwargs = {
        "service_date": DAY,
        "tz": TZ,
        "open_hour": 9,
        "close_hour": 20,
        "slot_capacity": 20,
        "lead_time_minutes": 60,
        "booking_counts": {},
        "unavailable_starts": set(),
        "now": NOW,
    }
    kwargs.update(overrides)
    return generate_slots(**kwargs)


class TestGenerateSlots:
    """Tests for generate_slots."""

    def test_lead_time_drops_early_slots(self) -> None:
        """Test that slots starting before now + lead time are omitted."""
        slots = _generate()

        assert len(slots) == 10
        assert slots[0].start == local_hour_start(DAY, 10, TZ)
        assert slots[-1].end == local_hour_start(DAY, 20, TZ)

    def test_slot_exactly_at_lead_time_is_kept(self) -> None:
        """Test that a slot starting exactly at now + lead time is bookable."""
        slots = _generate(now=NOW - timedelta(minutes=1))

        assert slots[0].start == local_hour_start(DAY, 10, TZ)

    def test_future_day_has_all_slots(self) -> None:
        """Test that a later date is not affected by the lead time."""
        slots = _generate(service_date=DAY + timedelta(days=1))

        assert len(slots) == 11

    def test_admin_view_ignores_lead_time(self) -> None:
        """Test apply_lead_time=False returns every slot of the day."""
        slots = _generate(apply_lead_time=False)

        assert len(slots) == 11
        assert slots[0].start == local_hour_start(DAY, 9, TZ)

    def test_slots_are_one_hour_and_ordered(self) -> None:
        """Test slot length and ordering."""
        slots = _generate(apply_lead_time=False)

        for slot in slots:
            assert slot.end - slot.start == timedelta(hours=1)
        assert [s.start for s in slots] == sorted(s.start for s in slots)

    def test_available_is_capacity_minus_booked(self) -> None:
        """Test capacity accounting per slot."""
        start = local_hour_start(DAY, 12, TZ)
        slots = _generate(booking_counts={start: 3}, slot_capacity=5)

        slot = next(s for s in slots if s.start == start)
        assert slot.booked == 3
        assert slot.available == 2

    def test_available_never_negative(self) -> None:
        """Test an overbooked slot reports zero available."""
        start = local_hour_start(DAY, 12, TZ)
        slots = _generate(booking_counts={start: 7}, slot_capacity=5)

        slot = next(s for s in slots if s.start == start)
        assert slot.available == 0

    def test_unavailable_slot_has_zero_available(self) -> None:
        """Test a blocked slot is listed with zero seats."""
        start = local_hour_start(DAY, 13, TZ)
        slots = _generate(unavailable_starts={start})

        slot = next(s for s in slots if s.start == start)
        assert slot.is_unavailable
        assert slot.available == 0

    def test_close_not_after_open_is_empty(self) -> None:
        """Test a day whose close hour is not after its open hour has no slots."""
        assert _generate(open_hour=12, close_hour=12) == []
        assert _generate(open_hour=15, close_hour=10) == []

    def test_hours_are_clamped(self) -> None:
        """Test out-of-range hours are clamped to the day."""
        slots = _generate(open_hour=-3, close_hour=30, apply_lead_time=False)

        assert len(slots) == 24
        assert slots[0].start == local_hour_start(DAY, 0, TZ)
        assert slots[-1].end == local_hour_start(DAY, 24, TZ)

    def test_dst_spring_forward_day(self) -> None:
        """Test the skipped local hour does not produce a duplicate slot."""
        dst_day = date(2026, 3, 8)
        slots = _generate(service_date=dst_day, open_hour=0, close_hour=5, apply_lead_time=False)

        starts = [s.start for s in slots]
        assert len(starts) == len(set(starts)) == 4
        for slot in slots:
            assert slot.end - slot.start == timedelta(hours=1)


class TestDateHelpers:
    """Tests for timezone helpers."""

    def test_naive_datetime_is_utc(self) -> None:
        """Test naive datetimes are treated as UTC."""
        assert to_utc(datetime(2026, 2, 11, 15, 0)) == NOW

    def test_service_date_uses_store_timezone(self) -> None:
        """Test late UTC evening maps to the local calendar date."""
        # 2026-02-12 03:00 UTC is 2026-02-11 21:00 in Chicago
        assert service_date_of(datetime(2026, 2, 12, 3, 0, tzinfo=timezone.utc), TZ) == DAY

    def test_day_bounds_span_local_day(self) -> None:
        """Test day bounds are local midnight to local midnight."""
        start, end = day_bounds(DAY, TZ)

        assert start == datetime(2026, 2, 11, 6, 0, tzinfo=timezone.utc)
        assert end == datetime(2026, 2, 12, 6, 0, tzinfo=timezone.utc)

    def test_editable_dates(self) -> None:
        """Test only today and tomorrow are editable."""
        assert is_editable_service_date(DAY, TZ, NOW)
        assert is_editable_service_date(DAY + timedelta(days=1), TZ, NOW)
        assert not is_editable_service_date(DAY + timedelta(days=2), TZ, NOW)
        assert not is_editable_service_date(DAY - timedelta(days=1), TZ, NOW)
