import logging
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from storefront.errors import ProductNotFoundError, ValidationError
from storefront.models import Order, OrderItem, Product
from storefront.schemas.orders import CartItem, OrderStatus, PaymentStatus, ShippingAddress
from storefront.services.pricing import PricingBreakdown, compute_pricing, generate_order_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LineItem:
    product_id: int
    name: str
    sku: str | None
    price: Decimal
    quantity: int

    @property
    def total(self) -> Decimal:
        return self.price * self.quantity


def resolve_line_items(db: Session, cart_items: list[CartItem]) -> list[LineItem]:
    """Replace client-sent cart lines with authoritative product names and prices."""
    if not cart_items:
        raise ValidationError("cartItems must not be empty")

    product_ids = {item.id for item in cart_items}
    products = {
        product.id: product
        for product in db.query(Product)
        .filter(Product.id.in_(product_ids), Product.is_active == True)  # noqa: E712
        .all()
    }

    line_items = []
    for item in cart_items:
        product = products.get(item.id)
        if product is None:
            raise ProductNotFoundError(item.id)
        line_items.append(
            LineItem(
                product_id=product.id,
                name=product.name,
                sku=product.sku,
                price=Decimal(product.price),
                quantity=item.quantity,
            )
        )
    return line_items


def create_local_order(
    db: Session,
    line_items: list[LineItem],
    user_id: int | None,
    shipping_address: ShippingAddress | None,
    status: OrderStatus,
    payment_status: PaymentStatus,
    payment_method: str,
) -> tuple[Order, PricingBreakdown]:
    pricing = compute_pricing(line_items)
    order = Order(
        order_number=generate_order_number(),
        user_id=user_id,
        subtotal=pricing.subtotal,
        shipping_amount=pricing.shipping,
        tax_amount=pricing.tax,
        total_amount=pricing.total,
        currency="USD",
        status=status,
        payment_status=payment_status,
        payment_method=payment_method,
        shipping_address=shipping_address.model_dump(exclude_none=True) if shipping_address else None,
    )
    order.items = [
        OrderItem(
            product_id=item.product_id,
            product_name=item.name,
            product_sku=item.sku,
            quantity=item.quantity,
            unit_price=item.price,
            total_price=item.total,
        )
        for item in line_items
    ]
    db.add(order)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to create local order record")
        raise
    db.refresh(order)
    logger.info("Created order %s (%s) total=%s", order.id, order.order_number, order.total_amount)
    return order, pricing
