"""Admin order management routes."""

from uuid import UUID

from fastapi import APIRouter, Query

from src.api.deps import CurrentAdmin, LifecycleServiceDep
from src.api.routes.orders import build_order_detail_response
from src.models.order import OrderStatus
from src.schemas.order import (
    DelayRequest,
    EscposReceiptResponse,
    FinalizeRequest,
    FulfillResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderResponse,
    RefundRequest,
    RefundResponse,
    StatusUpdateRequest,
)
from src.services.order_lifecycle_service import FinalItemInput

router = APIRouter(prefix="/admin/orders", tags=["admin"])

NOT_FOUND = {404: {"description": "Order not found"}}


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="List orders by current pickup slot, optionally filtered by status.",
)
async def list_orders(
    admin: CurrentAdmin,
    service: LifecycleServiceDep,
    status: OrderStatus | None = Query(default=None, description="Status filter"),
) -> OrderListResponse:
    """List orders for the operator dashboard."""
    orders = await service.list_orders(status)
    return OrderListResponse(orders=[OrderResponse.from_order(o) for o in orders], total=len(orders))


@router.get(
    "/{order_id}",
    response_model=OrderDetailResponse,
    summary="Get order",
    description="Get an order with its items, refunded total and receipt link.",
    responses=NOT_FOUND,
)
async def get_order(order_id: UUID, admin: CurrentAdmin, service: LifecycleServiceDep) -> OrderDetailResponse:
    """Get a single order."""
    return build_order_detail_response(await service.get_order_detail(order_id))


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Change order status",
    description="Move an order through the status flow. Cancelling restores reserved stock.",
    responses={**NOT_FOUND, 409: {"description": "Transition not allowed"}},
)
async def update_status(
    order_id: UUID,
    data: StatusUpdateRequest,
    admin: CurrentAdmin,
    service: LifecycleServiceDep,
) -> OrderResponse:
    """Change an order's status."""
    return OrderResponse.from_order(await service.change_status(order_id, data.status))


@router.post(
    "/{order_id}/delay",
    response_model=OrderResponse,
    summary="Delay order",
    description="Delay by 10, 30, 60 or 90 minutes. 60 and 90 minute delays move the pickup slot.",
    responses={**NOT_FOUND, 409: {"description": "Order cannot be delayed"}},
)
async def delay_order(
    order_id: UUID,
    data: DelayRequest,
    admin: CurrentAdmin,
    service: LifecycleServiceDep,
) -> OrderResponse:
    """Apply an operator delay."""
    return OrderResponse.from_order(await service.apply_delay(order_id, data.delay_minutes))


@router.post(
    "/{order_id}/finalize",
    response_model=OrderDetailResponse,
    summary="Finalize order",
    description="Record weighed or counted amounts and compute final totals.",
    responses={**NOT_FOUND, 409: {"description": "Order is cancelled or refunded"}},
)
async def finalize_order(
    order_id: UUID,
    data: FinalizeRequest,
    admin: CurrentAdmin,
    service: LifecycleServiceDep,
) -> OrderDetailResponse:
    """Finalize an order's amounts."""
    detail = await service.finalize(
        order_id,
        [
            FinalItemInput(
                order_item_id=item.order_item_id,
                final_quantity=item.final_quantity,
                final_weight_lb=item.final_weight_lb,
            )
            for item in data.items
        ],
    )
    return build_order_detail_response(detail)


@router.post(
    "/{order_id}/refund",
    response_model=RefundResponse,
    summary="Refund order",
    description="Refund up to the amount still refundable on the order.",
    responses={**NOT_FOUND, 409: {"description": "Nothing left to refund or no payment"}},
)
async def refund_order(
    order_id: UUID,
    data: RefundRequest,
    admin: CurrentAdmin,
    service: LifecycleServiceDep,
) -> RefundResponse:
    """Refund an order."""
    outcome = await service.refund(order_id, data.amount_cents, data.reason)
    return RefundResponse(refunded_cents=outcome.refunded_cents, order=OrderResponse.from_order(outcome.order))


@router.post(
    "/{order_id}/fulfill",
    response_model=FulfillResponse,
    summary="Fulfill order",
    description="Mark the order fulfilled and return its stored receipt link and printer payload.",
    responses={**NOT_FOUND, 409: {"description": "Order cannot be fulfilled"}, 502: {"description": "Storage failed"}},
)
async def fulfill_order(order_id: UUID, admin: CurrentAdmin, service: LifecycleServiceDep) -> FulfillResponse:
    """Fulfill an order and produce its receipts."""
    outcome = await service.fulfill(order_id)
    return FulfillResponse(receipt_url=outcome.receipt_url, escpos_payload_base64=outcome.escpos_payload_base64)


@router.get(
    "/{order_id}/receipt/escpos",
    response_model=EscposReceiptResponse,
    summary="Get receipt printer payload",
    description="Rebuild the ESC/POS payload for reprinting, with the stored receipt link if the order was fulfilled.",
    responses=NOT_FOUND,
)
async def get_escpos_receipt(
    order_id: UUID, admin: CurrentAdmin, service: LifecycleServiceDep
) -> EscposReceiptResponse:
    """Get an order's receipt printer payload."""
    receipt = await service.get_escpos_receipt(order_id)
    return EscposReceiptResponse(
        order_id=receipt.order.id,
        order_number=receipt.order.order_number,
        receipt_url=receipt.receipt_url,
        escpos_payload_base64=receipt.escpos_payload_base64,
    )
