"""Shopper pickup slot routes."""

from datetime import date

from fastapi import APIRouter, Query

from src.api.deps import AvailabilityServiceDep
from src.schemas.pickup import PickupSlotListResponse, PickupSlotResponse

router = APIRouter(prefix="/pickup-slots", tags=["pickup"])


@router.get(
    "",
    response_model=PickupSlotListResponse,
    summary="List bookable pickup slots",
    description=(
        "List one-hour pickup slots for a date in the store timezone. "
        "Slots inside the lead time are omitted; full or blocked slots report 0 available."
    ),
)
async def list_pickup_slots(
    service: AvailabilityServiceDep,
    date_: date | None = Query(default=None, alias="date", description="Service date (YYYY-MM-DD), default today"),
) -> PickupSlotListResponse:
    """List bookable pickup slots for a date.

    Args:
        service: Pickup availability service.
        date_: Service date; today in the store timezone when omitted.

    Returns:
        PickupSlotListResponse: The date and its slots.
    """
    service_date, slots = await service.list_bookable_slots(date_)
    return PickupSlotListResponse(
        date=service_date,
        slots=[PickupSlotResponse.model_validate(slot) for slot in slots],
    )
