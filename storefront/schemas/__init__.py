from storefront.schemas.orders import (
    CreateOrderRequest,
    CreateOrderResponse,
    OrderResponse,
    OrderStatus,
    OrderStatusResponse,
    PaymentStatus,
    StatusHistoryEntry,
    UpdateStatusRequest,
    UpdateStatusResponse,
)
from storefront.schemas.paypal import (
    PayPalCaptureRequest,
    PayPalCaptureResponse,
    PayPalCreateOrderRequest,
    PayPalCreateOrderResponse,
)
from storefront.schemas.products import ProductCreateRequest, ProductResponse

__all__ = [
    "CreateOrderRequest",
    "CreateOrderResponse",
    "OrderResponse",
    "OrderStatus",
    "OrderStatusResponse",
    "PaymentStatus",
    "StatusHistoryEntry",
    "UpdateStatusRequest",
    "UpdateStatusResponse",
    "PayPalCaptureRequest",
    "PayPalCaptureResponse",
    "PayPalCreateOrderRequest",
    "PayPalCreateOrderResponse",
    "ProductCreateRequest",
    "ProductResponse",
]
