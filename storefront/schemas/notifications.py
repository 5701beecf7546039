from typing import Annotated, Literal, Union

from pydantic import BaseModel, EmailStr, Field


class OrderStatusNotification(BaseModel):
    kind: Literal["order_status"] = "order_status"
    order_id: int
    order_number: str
    email: EmailStr
    status: str
    description: str


class NewProductNotification(BaseModel):
    kind: Literal["new_product"] = "new_product"
    product_id: int
    product_name: str
    email: EmailStr


NotificationPayload = Annotated[
    Union[OrderStatusNotification, NewProductNotification],
    Field(discriminator="kind"),
]


class QueueRunResponse(BaseModel):
    message: str
    processed: int
    failed: int
    total: int
