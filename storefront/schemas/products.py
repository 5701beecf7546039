from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer


class ProductResponse(BaseModel):
    id: int
    name: str
    sku: str | None = None
    description: str | None = None
    price: Decimal
    stock_quantity: int
    is_active: bool
    seller_id: int | None = None

    model_config = {"from_attributes": True}

    @field_serializer("price")
    def serialize_price(self, value: Decimal) -> str:
        return format(value.quantize(Decimal("0.01")), "f")


class ProductCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    sku: str | None = Field(default=None, max_length=64)
    description: str | None = None
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    stock_quantity: int = Field(default=0, ge=0)
    notify_subscribers: bool = False

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Cold Air Intake Kit",
                    "sku": "CAI-2041",
                    "price": "249.99",
                    "stock_quantity": 12,
                }
            ]
        }
    }
