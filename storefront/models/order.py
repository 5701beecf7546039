from decimal import Decimal

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func

from storefront.errors import InvalidStatusError
from storefront.models.database import Base
from storefront.schemas.orders import OrderStatus, PaymentStatus


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    subtotal = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    shipping_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    tax_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(32), nullable=False, default=OrderStatus.PENDING_ADMIN_REVIEW.value)
    payment_status = Column(String(16), nullable=False, default=PaymentStatus.PENDING.value)
    payment_method = Column(String(32), nullable=False, default="custom_external")  # custom_external | paypal
    paypal_order_id = Column(String(64), nullable=True, index=True)
    shipping_address = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())
    shipped_at = Column(DateTime(timezone=True), nullable=True)
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    @validates("status")
    def _validate_status(self, key, value):
        if isinstance(value, OrderStatus):
            return value.value
        if value not in OrderStatus._value2member_map_:
            raise InvalidStatusError(value)
        return value

    @validates("payment_status")
    def _validate_payment_status(self, key, value):
        if isinstance(value, PaymentStatus):
            return value.value
        if value not in PaymentStatus._value2member_map_:
            raise InvalidStatusError(value, field="payment_status")
        return value


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)
    product_name = Column(String(255), nullable=False)
    product_sku = Column(String(64), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    order = relationship("Order", back_populates="items")
