"""Order request/response schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.order import Order, OrderItem, OrderStatus, PaymentStatus
from src.models.product import ProductUnit


class OrderItemRequest(BaseModel):
    """One requested product line."""

    product_id: UUID = Field(description="Product to order")
    quantity: Decimal = Field(gt=0, description="Units, or pounds for by-weight products")
    estimated_weight_lb: Decimal | None = Field(
        default=None,
        gt=0,
        description="Estimated weight for by-weight products (defaults to quantity)",
    )


class CreateOrderRequest(BaseModel):
    """Request body for placing an order."""

    customer_name: str = Field(min_length=1, max_length=200, description="Name for the order")
    customer_phone: str = Field(min_length=7, max_length=32, description="Contact phone number")
    pickup_slot_start: datetime = Field(description="Start of the chosen pickup slot")
    items: list[OrderItemRequest] = Field(min_length=1, description="Requested products")


class CreateOrderResponse(BaseModel):
    """Response after an order is placed."""

    order_id: UUID = Field(description="Order identifier")
    order_number: str = Field(description="Human-readable order number")
    payment_client_secret: str | None = Field(description="Client secret for confirming payment")
    estimated_total_cents: int = Field(description="Estimated total charged, in cents")
    status: OrderStatus = Field(description="Order status")


class OrderItemResponse(BaseModel):
    """Order line with its catalog snapshot."""

    id: UUID
    product_id: UUID
    product_name: str = Field(description="Product name when the order was placed")
    unit: ProductUnit = Field(description="Product unit when the order was placed")
    unit_price_cents: int = Field(description="Price when the order was placed")
    estimated_quantity: Decimal | None = Field(default=None, description="Units requested for counted items")
    estimated_weight_lb: Decimal | None = Field(default=None, description="Pounds requested for by-weight items")
    estimated_line_subtotal_cents: int
    final_quantity: Decimal | None = Field(default=None, description="Units handed over, once finalized")
    final_weight_lb: Decimal | None = Field(default=None, description="Pounds weighed, once finalized")
    final_line_subtotal_cents: int | None = None

    @classmethod
    def from_item(cls, item: OrderItem) -> "OrderItemResponse":
        """Build from a domain order item."""
        return cls(
            id=item.id,
            product_id=item.product_id,
            product_name=item.snapshot.name,
            unit=item.snapshot.unit,
            unit_price_cents=item.snapshot.price_cents,
            estimated_quantity=item.estimated_quantity,
            estimated_weight_lb=item.estimated_weight_lb,
            estimated_line_subtotal_cents=item.estimated_line_subtotal_cents,
            final_quantity=item.final_quantity,
            final_weight_lb=item.final_weight_lb,
            final_line_subtotal_cents=item.final_line_subtotal_cents,
        )


class OrderResponse(BaseModel):
    """Order with its three pickup windows and money fields."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    customer_name: str
    customer_phone: str
    status: OrderStatus
    payment_status: PaymentStatus
    requested_pickup_start: datetime = Field(description="Slot the customer chose")
    requested_pickup_end: datetime
    pickup_slot_start: datetime = Field(description="Slot the order currently occupies")
    pickup_slot_end: datetime
    estimated_pickup_start: datetime = Field(description="Requested start plus all delays")
    estimated_pickup_end: datetime
    total_delay_minutes: int
    estimated_subtotal_cents: int
    estimated_tax_cents: int
    estimated_total_cents: int
    final_subtotal_cents: int | None = None
    final_tax_cents: int | None = None
    final_total_cents: int | None = None
    payment_provider: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        """Build from a domain order."""
        return cls.model_validate(order)


class OrderDetailResponse(OrderResponse):
    """Order with items, refund total and receipt link."""

    items: list[OrderItemResponse] = Field(default_factory=list)
    refunded_cents: int = Field(default=0, description="Sum of refunds issued")
    receipt_url: str | None = Field(default=None, description="Receipt download link once fulfilled")


class OrderListResponse(BaseModel):
    """List of orders."""

    orders: list[OrderResponse]
    total: int


class StatusUpdateRequest(BaseModel):
    """Request body for changing an order's status."""

    status: OrderStatus


class DelayRequest(BaseModel):
    """Request body for delaying an order."""

    delay_minutes: int = Field(description="One of 10, 30, 60 or 90")


class FinalizeItemRequest(BaseModel):
    """Weighed or counted amount for one item; omitted values keep the estimate."""

    order_item_id: UUID
    final_quantity: Decimal | None = Field(default=None, ge=0)
    final_weight_lb: Decimal | None = Field(default=None, ge=0)


class FinalizeRequest(BaseModel):
    """Request body for finalizing an order."""

    items: list[FinalizeItemRequest] = Field(default_factory=list)


class RefundRequest(BaseModel):
    """Request body for refunding an order."""

    amount_cents: int = Field(gt=0, description="Amount to refund, capped at what remains")
    reason: str = Field(min_length=1, max_length=500, description="Reason recorded with the refund")


class RefundResponse(BaseModel):
    """Result of a refund."""

    refunded_cents: int = Field(description="Amount actually refunded")
    order: OrderResponse


class FulfillResponse(BaseModel):
    """Receipt handles for a fulfilled order."""

    receipt_url: str = Field(description="Link to the stored receipt document")
    escpos_payload_base64: str = Field(description="Base64 ESC/POS byte stream for the receipt printer")


class EscposReceiptResponse(BaseModel):
    """Printer payload for reprinting an order's receipt."""

    order_id: UUID
    order_number: str
    receipt_url: str | None = Field(default=None, description="Link to the stored receipt, once fulfilled")
    escpos_payload_base64: str = Field(description="Base64 ESC/POS byte stream for the receipt printer")
