"""Domain exceptions for the storefront order API."""

from typing import Any


class StorefrontError(Exception):
    """Base exception for all storefront errors."""

    pass


class ValidationError(StorefrontError):
    """Raised when a request is well-formed but semantically invalid."""

    pass


class InvalidStatusError(ValidationError):
    """Raised when a status string is outside the closed enumeration."""

    def __init__(self, value: str, field: str = "status"):
        self.value = value
        self.field = field
        super().__init__(f"Invalid {field} value: {value}")


class TransitionNotAllowedError(StorefrontError):
    """Raised when the transition table has no edge from current to next."""

    def __init__(self, current: str, new: str):
        self.current = current
        self.new = new
        super().__init__(f"Transition from '{current}' to '{new}' is not allowed")


class OrderNotFoundError(StorefrontError):
    def __init__(self, order_id: Any):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class ProductNotFoundError(StorefrontError):
    def __init__(self, product_id: Any):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class DuplicateProductError(StorefrontError):
    def __init__(self, sku: Any):
        self.sku = sku
        super().__init__(f"Product with SKU {sku} already exists")


class PaymentProviderError(StorefrontError):
    """Raised when the payment provider answers with a non-2xx response.

    ``details`` carries the provider's response body for diagnostics.
    """

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class PaymentProviderNotConfiguredError(PaymentProviderError):
    def __init__(self, message: str = "PayPal credentials not configured."):
        super().__init__(message)


class PayPalOrderMismatchError(StorefrontError):
    """Raised when a capture names a PayPal order other than the one created for the local order."""

    def __init__(self, local_order_id: Any, expected: str, received: str):
        self.local_order_id = local_order_id
        self.expected = expected
        self.received = received
        super().__init__(f"PayPal order {received} does not belong to order {local_order_id}")


class AmountMismatchError(StorefrontError):
    """Raised when the captured amount differs from the local total and policy is reject."""

    def __init__(self, expected, captured):
        self.expected = expected
        self.captured = captured
        super().__init__(
            f"Captured amount {captured} does not match order total {expected}"
        )


# Map exception types to HTTP status codes
ERROR_STATUS_CODES: dict[type, int] = {
    ValidationError: 400,
    InvalidStatusError: 400,
    TransitionNotAllowedError: 409,
    OrderNotFoundError: 404,
    ProductNotFoundError: 404,
    DuplicateProductError: 409,
    PaymentProviderError: 500,
    PaymentProviderNotConfiguredError: 503,
    AmountMismatchError: 409,
    PayPalOrderMismatchError: 409,
}


def status_code_for(exc: StorefrontError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500
