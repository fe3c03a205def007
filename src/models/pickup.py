"""Pickup slot type definitions."""

from dataclasses import dataclass
from datetime import date, datetime


@dataclass(frozen=True)
class PickupSlot:
    """Derived one-hour pickup window. Never persisted."""

    start: datetime
    end: datetime
    capacity: int
    booked: int
    available: int
    is_unavailable: bool = False


@dataclass
class PickupDayRange:
    """Per-day override of the store's pickup hours."""

    service_date: date
    open_hour: int
    close_hour: int
