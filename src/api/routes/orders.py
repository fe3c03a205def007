"""Shopper order routes."""

from uuid import UUID

from fastapi import APIRouter, Query, status
from fastapi.responses import RedirectResponse, Response

from src.api.deps import BookingServiceDep, LifecycleServiceDep
from src.schemas.order import (
    CreateOrderRequest,
    CreateOrderResponse,
    OrderDetailResponse,
    OrderItemResponse,
    OrderResponse,
)
from src.services.booking_service import OrderLineRequest
from src.services.order_lifecycle_service import OrderDetail
from src.services.receipt_formatter import RECEIPT_CONTENT_TYPE

router = APIRouter(prefix="/orders", tags=["orders"])


def build_order_detail_response(detail: OrderDetail) -> OrderDetailResponse:
    """Convert an order detail into its response schema."""
    return OrderDetailResponse(
        **OrderResponse.from_order(detail.order).model_dump(),
        items=[OrderItemResponse.from_item(item) for item in detail.items],
        refunded_cents=detail.refunded_cents,
        receipt_url=detail.receipt_url,
    )


@router.post(
    "",
    response_model=CreateOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place an order",
    description="Book a pickup slot and reserve stock for the requested items.",
    responses={
        400: {"description": "Invalid slot, unavailable product or malformed request"},
        409: {"description": "Slot full or insufficient stock"},
    },
)
async def create_order(data: CreateOrderRequest, service: BookingServiceDep) -> CreateOrderResponse:
    """Place an order into a pickup slot.

    Args:
        data: Customer details, chosen slot and items.
        service: Booking service.

    Returns:
        CreateOrderResponse: Order id and number plus the payment client secret.
    """
    order = await service.create_order(
        customer_name=data.customer_name,
        customer_phone=data.customer_phone,
        pickup_slot_start=data.pickup_slot_start,
        items=[
            OrderLineRequest(
                product_id=item.product_id,
                quantity=item.quantity,
                estimated_weight_lb=item.estimated_weight_lb,
            )
            for item in data.items
        ],
    )
    return CreateOrderResponse(
        order_id=order.id,
        order_number=order.order_number,
        payment_client_secret=order.payment_client_secret,
        estimated_total_cents=order.estimated_total_cents,
        status=order.status,
    )


@router.get(
    "/lookup",
    response_model=OrderDetailResponse,
    summary="Look up an order",
    description="Find an order by its order number and the phone number it was placed with.",
    responses={404: {"description": "Order not found"}},
)
async def lookup_order(
    service: LifecycleServiceDep,
    order_number: str = Query(min_length=1, description="Order number, e.g. OM-20260211-0042"),
    phone: str = Query(min_length=1, description="Phone number used when ordering"),
) -> OrderDetailResponse:
    """Look up a shopper's order."""
    return build_order_detail_response(await service.lookup_order(order_number, phone))


@router.get(
    "/{order_id}/receipt",
    summary="Download receipt",
    description="Serve the receipt of a fulfilled order, or redirect to its signed storage URL.",
    response_class=Response,
    responses={
        200: {"content": {RECEIPT_CONTENT_TYPE: {}}, "description": "Receipt document"},
        307: {"description": "Redirect to the signed receipt URL"},
        404: {"description": "Order or receipt not found"},
    },
)
async def get_receipt(order_id: UUID, service: LifecycleServiceDep) -> Response:
    """Download an order's receipt."""
    receipt = await service.get_receipt(order_id)
    if receipt.content is None:
        return RedirectResponse(receipt.url)
    return Response(
        content=receipt.content,
        media_type=RECEIPT_CONTENT_TYPE,
        headers={"Content-Disposition": f'inline; filename="{receipt.filename}"'},
    )
