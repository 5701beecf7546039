from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class OrderStatus(str, Enum):
    PENDING_ADMIN_REVIEW = "pending_admin_review"
    INVOICE_SENT = "invoice_sent"
    INVOICE_ACCEPTED = "invoice_accepted"
    INVOICE_DECLINED = "invoice_declined"
    PAYPAL_SHARED = "paypal_shared"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_SUBMITTED = "payment_submitted"
    PAYMENT_VERIFIED = "payment_verified"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    INITIATED = "initiated"
    PENDING = "pending"
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    COMPLETED = "completed"
    FAILED = "failed"


def _money(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return format(Decimal(value).quantize(Decimal("0.01")), "f")


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CartItem(BaseModel):
    id: int
    quantity: int = Field(gt=0)


class ShippingAddress(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None


class CreateOrderRequest(CamelModel):
    cart_items: list[CartItem] = Field(alias="cartItems", min_length=1)
    shipping_address: ShippingAddress | None = Field(default=None, alias="shippingAddress")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "cartItems": [{"id": 1, "quantity": 2}],
                    "shippingAddress": {"first_name": "Jane", "city": "Austin", "country": "US"},
                }
            ]
        },
    )


class CreateOrderResponse(CamelModel):
    local_order_id: int = Field(alias="localOrderId")
    order_number: str = Field(alias="orderNumber")
    status: OrderStatus
    message: str


class OrderItemResponse(BaseModel):
    id: int
    product_id: int | None
    product_name: str
    product_sku: str | None = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    model_config = {"from_attributes": True}

    @field_serializer("unit_price", "total_price")
    def serialize_money(self, value: Decimal) -> str:
        return _money(value)


class OrderResponse(BaseModel):
    id: int
    order_number: str
    user_id: int | None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: str
    currency: str
    subtotal: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    notes: str | None = None
    shipping_address: dict | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    items: list[OrderItemResponse] = []

    model_config = {"from_attributes": True}

    @field_serializer(
        "subtotal",
        "shipping_amount",
        "tax_amount",
        "total_amount",
    )
    def serialize_money(self, value: Decimal) -> str:
        return _money(value)


class StatusHistoryEntry(BaseModel):
    status: OrderStatus
    timestamp: datetime
    description: str


class OrderTimestamps(BaseModel):
    id: int
    order_number: str
    created_at: datetime | None = None
    updated_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None

    model_config = {"from_attributes": True}


class OrderStatusResponse(CamelModel):
    current_status: OrderStatus = Field(alias="currentStatus")
    payment_status: PaymentStatus = Field(alias="paymentStatus")
    status_history: list[StatusHistoryEntry] = Field(alias="statusHistory")
    allowed_next_statuses: list[OrderStatus] = Field(default=[], alias="allowedNextStatuses")
    order: OrderTimestamps


class UpdateStatusRequest(BaseModel):
    status: OrderStatus
    notes: str | None = Field(default=None, max_length=2000)


class UpdateStatusResponse(BaseModel):
    message: str
    order: OrderResponse


class InvoiceRequest(CamelModel):
    shipping_amount: Decimal | None = Field(default=None, alias="shippingAmount", ge=0)
    tax_amount: Decimal | None = Field(default=None, alias="taxAmount", ge=0)
    notes: str | None = Field(default=None, max_length=2000)


class InvoiceDecisionRequest(BaseModel):
    decision: Literal["accept", "decline"]


class PaymentSubmissionRequest(CamelModel):
    transaction_id: str = Field(alias="transactionId", min_length=1, max_length=128)
    payment_amount: Decimal = Field(alias="paymentAmount", gt=0)
    screenshot_url: str | None = Field(default=None, alias="screenshotUrl", max_length=1024)
