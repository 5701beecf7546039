from pydantic import BaseModel, ConfigDict, Field

from storefront.schemas.orders import CamelModel, CartItem, OrderResponse, ShippingAddress


class PayPalCreateOrderRequest(CamelModel):
    cart_items: list[CartItem] = Field(alias="cartItems", min_length=1)
    shipping_address: ShippingAddress | None = Field(default=None, alias="shippingAddress")
    user_id: int | None = Field(default=None, alias="userId")


class PayPalCreateOrderResponse(CamelModel):
    paypal_order_id: str = Field(alias="paypalOrderId")
    local_order_id: int = Field(alias="localOrderId")
    order_number: str = Field(alias="orderNumber")


class PayPalCaptureRequest(CamelModel):
    paypal_order_id: str = Field(alias="paypalOrderId", min_length=1, max_length=64)
    local_order_id: int = Field(alias="localOrderId")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={"examples": [{"paypalOrderId": "5O190127TN364715T", "localOrderId": 42}]},
    )


class PayPalCaptureResponse(CamelModel):
    message: str
    local_order: OrderResponse = Field(alias="localOrder")
    paypal: dict | None = None
