"""Pickup slot request/response schemas."""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field


class PickupSlotResponse(BaseModel):
    """Bookable slot as shown to shoppers."""

    model_config = ConfigDict(from_attributes=True)

    start: dt.datetime = Field(description="Slot start (UTC)")
    end: dt.datetime = Field(description="Slot end (UTC)")
    capacity: int = Field(description="Maximum orders in the slot")
    available: int = Field(description="Remaining seats")


class PickupSlotListResponse(BaseModel):
    """Shopper slot listing for one date."""

    date: dt.date = Field(description="Service date in the store timezone")
    slots: list[PickupSlotResponse] = Field(description="Slots in start order")


class AdminPickupSlotResponse(PickupSlotResponse):
    """Slot as shown to operators."""

    booked: int = Field(description="Live orders in the slot")
    is_unavailable: bool = Field(description="Whether an operator blocked the slot")


class PickupDayResponse(BaseModel):
    """Operator view of a service date."""

    date: dt.date = Field(description="Service date in the store timezone")
    open_hour: int = Field(description="First slot start hour (local)")
    close_hour: int = Field(description="Hour the last slot ends (local)")
    slots: list[AdminPickupSlotResponse] = Field(description="All slots of the day")


class PickupDayUpdateRequest(BaseModel):
    """Request body for overriding a day's pickup hours."""

    open_hour: int = Field(ge=0, le=23, description="First slot start hour (local)")
    close_hour: int = Field(ge=1, le=24, description="Hour the last slot ends (local)")


class SlotAvailabilityRequest(BaseModel):
    """Request body for blocking or unblocking a slot."""

    slot_start: dt.datetime = Field(description="Start of the slot to change")
    unavailable: bool = Field(description="True blocks the slot, False reopens it")
