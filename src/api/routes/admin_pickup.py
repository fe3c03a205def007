"""Admin pickup availability routes."""

from datetime import date

from fastapi import APIRouter

from src.api.deps import AvailabilityServiceDep, CurrentAdmin
from src.schemas.pickup import (
    AdminPickupSlotResponse,
    PickupDayResponse,
    PickupDayUpdateRequest,
    SlotAvailabilityRequest,
)
from src.services.pickup_availability_service import PickupDay

router = APIRouter(prefix="/admin", tags=["admin"])


def _day_response(day: PickupDay) -> PickupDayResponse:
    return PickupDayResponse(
        date=day.service_date,
        open_hour=day.day_range.open_hour,
        close_hour=day.day_range.close_hour,
        slots=[AdminPickupSlotResponse.model_validate(slot) for slot in day.slots],
    )


@router.get(
    "/pickup-days/{service_date}",
    response_model=PickupDayResponse,
    summary="Get pickup day",
    description="Hours and every slot of a date, with booked counts and blocked flags.",
)
async def get_pickup_day(
    service_date: date,
    admin: CurrentAdmin,
    service: AvailabilityServiceDep,
) -> PickupDayResponse:
    """Get the operator view of a pickup day."""
    return _day_response(await service.get_pickup_day(service_date))


@router.put(
    "/pickup-days/{service_date}",
    response_model=PickupDayResponse,
    summary="Set pickup hours",
    description="Override pickup hours for today or tomorrow.",
    responses={400: {"description": "Date not editable or hours invalid"}},
)
async def set_pickup_day(
    service_date: date,
    data: PickupDayUpdateRequest,
    admin: CurrentAdmin,
    service: AvailabilityServiceDep,
) -> PickupDayResponse:
    """Override a day's pickup hours."""
    return _day_response(await service.set_day_range(service_date, data.open_hour, data.close_hour))


@router.put(
    "/pickup-slots/unavailable",
    response_model=PickupDayResponse,
    summary="Block or reopen a slot",
    description="Mark a slot of today or tomorrow unavailable, or make it available again.",
    responses={400: {"description": "Slot not editable or unknown"}},
)
async def set_slot_unavailable(
    data: SlotAvailabilityRequest,
    admin: CurrentAdmin,
    service: AvailabilityServiceDep,
) -> PickupDayResponse:
    """Block or unblock one slot."""
    return _day_response(await service.set_slot_unavailable(data.slot_start, data.unavailable))
