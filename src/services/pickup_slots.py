"""Pickup slot generation from the store schedule.

Slots are one-hour buckets laid out in store-local wall-clock time and
keyed by their UTC start instant.
"""

from collections.abc import Collection, Mapping
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from src.models.pickup import PickupSlot

SLOT_LENGTH = timedelta(hours=1)


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_hour_start(service_date: date, hour: int, tz: ZoneInfo) -> datetime:
    """Get the UTC instant of a local wall-clock hour (hour 24 is next midnight)."""
    day_offset, hour = divmod(hour, 24)
    local = datetime.combine(service_date + timedelta(days=day_offset), time(hour), tzinfo=tz)
    return local.astimezone(timezone.utc)


def service_date_of(instant: datetime, tz: ZoneInfo) -> date:
    """Get the store-local calendar date of an instant."""
    return to_utc(instant).astimezone(tz).date()


def local_today(tz: ZoneInfo, now: datetime | None = None) -> date:
    """Get today's date in the store timezone."""
    return service_date_of(now or utc_now(), tz)


def day_bounds(service_date: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Get the UTC instants bounding a store-local calendar day."""
    return local_hour_start(service_date, 0, tz), local_hour_start(service_date, 24, tz)


def is_editable_service_date(service_date: date, tz: ZoneInfo, now: datetime | None = None) -> bool:
    """Check whether a date is today or tomorrow in the store timezone."""
    today = local_today(tz, now)
    return service_date in (today, today + timedelta(days=1))


def generate_slots(
    service_date: date,
    tz: ZoneInfo,
    open_hour: int,
    close_hour: int,
    slot_capacity: int,
    lead_time_minutes: int,
    booking_counts: Mapping[datetime, int],
    unavailable_starts: Collection[datetime],
    now: datetime,
    apply_lead_time: bool = True,
) -> list[PickupSlot]:
    """Generate the pickup slots for one service date.

    Args:
        service_date: Store-local calendar date.
        tz: Store timezone.
        open_hour: First slot start hour, clamped to 0..23.
        close_hour: Hour the last slot ends, clamped to 1..24.
        slot_capacity: Maximum live orders per slot.
        lead_time_minutes: Minimum notice before a slot is offered.
        booking_counts: Live order count keyed by UTC slot start.
        unavailable_starts: UTC slot starts an operator has blocked.
        now: Current instant.
        apply_lead_time: Drop slots starting before now + lead time.
            Admin views pass False to see the whole day.

    Returns:
        list[PickupSlot]: Slots in start order. Empty when the day has no
            valid hours.
    """
    open_hour = min(max(open_hour, 0), 23)
    close_hour = min(max(close_hour, 1), 24)
    if close_hour <= open_hour:
        return []

    earliest_start = to_utc(now) + timedelta(minutes=lead_time_minutes)
    unavailable = {to_utc(start) for start in unavailable_starts}

    slots = []
    for hour in range(open_hour, close_hour):
        start = local_hour_start(service_date, hour, tz)
        # The skipped hour of a DST change maps onto the next one
        if slots and start == slots[-1].start:
            continue
        if apply_lead_time and start < earliest_start:
            continue

        booked = booking_counts.get(start, 0)
        is_unavailable = start in unavailable
        slots.append(
            PickupSlot(
                start=start,
                end=start + SLOT_LENGTH,
                capacity=slot_capacity,
                booked=booked,
                available=0 if is_unavailable else max(0, slot_capacity - booked),
                is_unavailable=is_unavailable,
            )
        )

    return slots
