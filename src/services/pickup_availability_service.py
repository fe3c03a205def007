"""Pickup availability: slot listings, per-day hours and blocked slots."""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable
from zoneinfo import ZoneInfo

from src.core.config import Settings
from src.core.errors import InvalidSlotError, ValidationError
from src.models.pickup import PickupDayRange, PickupSlot
from src.services.pickup_slots import (
    day_bounds,
    generate_slots,
    is_editable_service_date,
    local_today,
    service_date_of,
    to_utc,
    utc_now,
)
from src.stores.base import OrderStore, StoreTransaction, retry_on_conflict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PickupDay:
    """Hours and slots for one service date."""

    service_date: date
    day_range: PickupDayRange
    slots: list[PickupSlot]


class PickupAvailabilityService:
    """Service for pickup schedule reads and operator overrides."""

    def __init__(
        self,
        store: OrderStore,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize pickup availability service.

        Args:
            store: Order store.
            settings: Application settings (store hours, capacity, lead time).
            clock: Source of the current instant.
        """
        self.store = store
        self.settings = settings
        self.clock = clock
        self.tz = ZoneInfo(settings.store_timezone)

    def today(self) -> date:
        """Get today's date in the store timezone."""
        return local_today(self.tz, self.clock())

    def service_date_of(self, instant: datetime) -> date:
        """Get the store-local date a slot instant belongs to."""
        return service_date_of(instant, self.tz)

    async def day_range_for(self, tx: StoreTransaction, service_date: date) -> PickupDayRange:
        """Get the day's override, or the store's default hours."""
        override = await tx.get_day_range(service_date)
        if override is not None:
            return override
        return PickupDayRange(
            service_date=service_date,
            open_hour=self.settings.store_open_hour,
            close_hour=self.settings.store_close_hour,
        )

    async def slots_for_date(
        self,
        tx: StoreTransaction,
        service_date: date,
        apply_lead_time: bool = True,
    ) -> tuple[PickupDayRange, list[PickupSlot]]:
        """Build the slot list for a date inside an open transaction."""
        day_range = await self.day_range_for(tx, service_date)
        start, end = day_bounds(service_date, self.tz)
        counts = await tx.live_booking_counts(start, end)
        unavailable = await tx.unavailable_slot_starts(start, end)

        slots = generate_slots(
            service_date=service_date,
            tz=self.tz,
            open_hour=day_range.open_hour,
            close_hour=day_range.close_hour,
            slot_capacity=self.settings.slot_capacity,
            lead_time_minutes=self.settings.lead_time_minutes,
            booking_counts=counts,
            unavailable_starts=unavailable,
            now=self.clock(),
            apply_lead_time=apply_lead_time,
        )
        return day_range, slots

    async def list_bookable_slots(self, service_date: date | None = None) -> tuple[date, list[PickupSlot]]:
        """List slots a shopper may pick for a date (today by default)."""
        service_date = service_date or self.today()
        async with self.store.transaction() as tx:
            _, slots = await self.slots_for_date(tx, service_date, apply_lead_time=True)
        return service_date, slots

    async def get_pickup_day(self, service_date: date) -> PickupDay:
        """Get the operator view of a day, including slots already past the lead time."""
        async with self.store.transaction() as tx:
            day_range, slots = await self.slots_for_date(tx, service_date, apply_lead_time=False)
        return PickupDay(service_date=service_date, day_range=day_range, slots=slots)

    def _require_editable(self, service_date: date) -> None:
        if not is_editable_service_date(service_date, self.tz, self.clock()):
            raise ValidationError("Pickup availability can only be changed for today or tomorrow")

    async def set_day_range(self, service_date: date, open_hour: int, close_hour: int) -> PickupDay:
        """Override the pickup hours of today or tomorrow.

        Raises:
            ValidationError: If the date is not editable or the hours are invalid.
        """
        self._require_editable(service_date)
        if not 0 <= open_hour <= 23 or not 1 <= close_hour <= 24:
            raise ValidationError("open_hour must be 0-23 and close_hour must be 1-24")
        if close_hour <= open_hour:
            raise ValidationError("close_hour must be greater than open_hour")

        day_range = PickupDayRange(service_date=service_date, open_hour=open_hour, close_hour=close_hour)
        async for attempt in retry_on_conflict():
            with attempt:
                async with self.store.transaction() as tx:
                    await tx.upsert_day_range(day_range)
                    _, slots = await self.slots_for_date(tx, service_date, apply_lead_time=False)

        logger.info("Pickup hours for %s set to %02d:00-%02d:00", service_date, open_hour, close_hour)
        return PickupDay(service_date=service_date, day_range=day_range, slots=slots)

    async def set_slot_unavailable(self, slot_start: datetime, unavailable: bool) -> PickupDay:
        """Block or unblock a single slot of today or tomorrow.

        Raises:
            ValidationError: If the slot's date is not editable.
            InvalidSlotError: If no slot of that day starts at slot_start.
        """
        slot_start = to_utc(slot_start)
        service_date = self.service_date_of(slot_start)
        self._require_editable(service_date)

        async for attempt in retry_on_conflict():
            with attempt:
                async with self.store.transaction() as tx:
                    _, slots = await self.slots_for_date(tx, service_date, apply_lead_time=False)
                    if not any(slot.start == slot_start for slot in slots):
                        raise InvalidSlotError("No pickup slot starts at the given time")

                    await tx.set_slot_unavailable(slot_start, unavailable)
                    day_range, slots = await self.slots_for_date(tx, service_date, apply_lead_time=False)

        logger.info("Pickup slot %s marked %s", slot_start.isoformat(), "unavailable" if unavailable else "available")
        return PickupDay(service_date=service_date, day_range=day_range, slots=slots)
