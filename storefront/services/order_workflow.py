"""Order status state machine.

``STATUS_TRANSITIONS`` is the only place that knows which status may follow
which; every status change, whether made by an admin, a customer or a payment
capture, is checked against it.
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.orm import Session

from storefront.errors import InvalidStatusError, OrderNotFoundError, TransitionNotAllowedError
from storefront.models import Order
from storefront.schemas.orders import OrderStatus, PaymentStatus, StatusHistoryEntry

logger = logging.getLogger(__name__)

STATUS_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_ADMIN_REVIEW: frozenset({OrderStatus.INVOICE_SENT, OrderStatus.CANCELLED}),
    OrderStatus.INVOICE_SENT: frozenset(
        {OrderStatus.INVOICE_ACCEPTED, OrderStatus.INVOICE_DECLINED, OrderStatus.CANCELLED}
    ),
    OrderStatus.INVOICE_ACCEPTED: frozenset({OrderStatus.PAYPAL_SHARED, OrderStatus.CANCELLED}),
    OrderStatus.INVOICE_DECLINED: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.PAYPAL_SHARED: frozenset({OrderStatus.PAYMENT_PENDING, OrderStatus.CANCELLED}),
    OrderStatus.PAYMENT_PENDING: frozenset({OrderStatus.PAYMENT_SUBMITTED, OrderStatus.CANCELLED}),
    OrderStatus.PAYMENT_SUBMITTED: frozenset({OrderStatus.PAYMENT_VERIFIED, OrderStatus.CANCELLED}),
    OrderStatus.PAYMENT_VERIFIED: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Statuses that leave the forward path.
DIVERGENT_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.INVOICE_DECLINED})
TERMINAL_STATUSES = frozenset(
    status for status, allowed in STATUS_TRANSITIONS.items() if not allowed
)

STATUS_DESCRIPTIONS: dict[OrderStatus, str] = {
    OrderStatus.PENDING_ADMIN_REVIEW: "Order placed and awaiting admin review",
    OrderStatus.INVOICE_SENT: "Invoice generated and sent to customer",
    OrderStatus.INVOICE_ACCEPTED: "Customer accepted the invoice",
    OrderStatus.INVOICE_DECLINED: "Invoice declined by customer",
    OrderStatus.PAYPAL_SHARED: "PayPal payment details shared with customer",
    OrderStatus.PAYMENT_PENDING: "Waiting for customer payment",
    OrderStatus.PAYMENT_SUBMITTED: "Customer submitted payment",
    OrderStatus.PAYMENT_VERIFIED: "Payment verified by admin",
    OrderStatus.CONFIRMED: "Order confirmed and ready for fulfillment",
    OrderStatus.SHIPPED: "Order has been shipped",
    OrderStatus.DELIVERED: "Order has been delivered",
    OrderStatus.CANCELLED: "Order cancelled",
}

_FORCED_PAYMENT_STATUS: dict[OrderStatus, PaymentStatus] = {
    OrderStatus.PAYMENT_VERIFIED: PaymentStatus.VERIFIED,
    OrderStatus.CONFIRMED: PaymentStatus.COMPLETED,
    OrderStatus.CANCELLED: PaymentStatus.FAILED,
    OrderStatus.INVOICE_DECLINED: PaymentStatus.FAILED,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def coerce_status(value) -> OrderStatus | None:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        return None


def _build_progression() -> tuple[OrderStatus, ...]:
    path = [OrderStatus.PENDING_ADMIN_REVIEW]
    while True:
        successors = [
            status for status in STATUS_TRANSITIONS[path[-1]] if status not in DIVERGENT_STATUSES
        ]
        if not successors:
            return tuple(path)
        if len(successors) > 1:
            raise RuntimeError(f"Ambiguous forward transition from {path[-1].value}")
        path.append(successors[0])


STATUS_PROGRESSION: tuple[OrderStatus, ...] = _build_progression()


def validate_transition(current, new) -> bool:
    """Return True when ``new`` is an allowed next status for ``current``."""
    current_status = coerce_status(current)
    new_status = coerce_status(new)
    if current_status is None or new_status is None:
        return False
    return new_status in STATUS_TRANSITIONS[current_status]


def allowed_next_statuses(current) -> list[OrderStatus]:
    current_status = coerce_status(current)
    if current_status is None:
        return []
    return [status for status in OrderStatus if status in STATUS_TRANSITIONS[current_status]]


def payment_status_for(status) -> PaymentStatus | None:
    return _FORCED_PAYMENT_STATUS.get(coerce_status(status))


def derive_history(order) -> list[StatusHistoryEntry]:
    """Reconstruct a display timeline for ``order``.

    Steps along the canonical progression up to the current status are stamped
    ``created_at + i days`` unless a real shipped/delivered timestamp is known.
    Cancelled and declined orders get a final entry stamped with ``updated_at``.
    This is a best-effort narrative, not an audit log.
    """
    status = coerce_status(order.status)
    if status is None:
        raise InvalidStatusError(order.status)

    created_at = _as_utc(order.created_at) if order.created_at else utcnow()
    reached = 0 if status in DIVERGENT_STATUSES else STATUS_PROGRESSION.index(status)

    history: list[StatusHistoryEntry] = []
    for index, step in enumerate(STATUS_PROGRESSION[: reached + 1]):
        timestamp = created_at + timedelta(days=index)
        if step is OrderStatus.SHIPPED and order.shipped_at:
            timestamp = _as_utc(order.shipped_at)
        elif step is OrderStatus.DELIVERED and order.delivered_at:
            timestamp = _as_utc(order.delivered_at)
        history.append(
            StatusHistoryEntry(status=step, timestamp=timestamp, description=STATUS_DESCRIPTIONS[step])
        )

    if status in DIVERGENT_STATUSES:
        ended_at = _as_utc(order.updated_at) if order.updated_at else created_at
        history.append(
            StatusHistoryEntry(status=status, timestamp=ended_at, description=STATUS_DESCRIPTIONS[status])
        )

    history.sort(key=lambda entry: entry.timestamp)
    return history


def apply_status_change(
    order: Order,
    new_status,
    now: datetime | None = None,
    notes: str | None = None,
    enforce: bool = True,
) -> Order:
    """Move a loaded order to ``new_status`` and apply the status side effects.

    Does not commit.
    """
    target = coerce_status(new_status)
    if target is None:
        raise InvalidStatusError(str(new_status))
    if enforce and not validate_transition(order.status, target):
        raise TransitionNotAllowedError(order.status, target.value)

    now = now or utcnow()
    previous = order.status
    order.status = target.value
    order.updated_at = now

    forced = payment_status_for(target)
    if forced is not None:
        order.payment_status = forced.value

    if target is OrderStatus.SHIPPED:
        order.shipped_at = now
    elif target is OrderStatus.DELIVERED:
        order.delivered_at = now

    if notes:
        order.notes = notes

    logger.info("Order %s status changed: %s -> %s", order.id, previous, target.value)
    return order


def advance_order(order: Order, target, now: datetime | None = None) -> Order:
    """Walk the canonical progression from the order's status up to ``target``.

    Every hop goes through the transition table; a target behind the current
    status, or an order off the forward path, is rejected.
    """
    target_status = coerce_status(target)
    if target_status is None or target_status not in STATUS_PROGRESSION:
        raise InvalidStatusError(str(target))

    current = coerce_status(order.status)
    if current not in STATUS_PROGRESSION:
        raise TransitionNotAllowedError(order.status, target_status.value)

    current_index = STATUS_PROGRESSION.index(current)
    target_index = STATUS_PROGRESSION.index(target_status)
    if target_index < current_index:
        raise TransitionNotAllowedError(order.status, target_status.value)

    now = now or utcnow()
    for step in STATUS_PROGRESSION[current_index + 1 : target_index + 1]:
        apply_status_change(order, step, now=now)
    return order


def get_order_or_404(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise OrderNotFoundError(order_id)
    return order


def _commit(db: Session, order: Order) -> Order:
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to persist order %s", order.id)
        raise
    db.refresh(order)
    return order


def apply_admin_status_update(
    db: Session,
    order_id: int,
    new_status,
    notes: str | None = None,
    enforce: bool = True,
) -> Order:
    """Set an order's status on behalf of an admin and persist it.

    The caller is responsible for the admin privilege check.
    """
    target = coerce_status(new_status)
    if target is None:
        raise InvalidStatusError(str(new_status))

    order = get_order_or_404(db, order_id)
    apply_status_change(order, target, notes=notes, enforce=enforce)
    return _commit(db, order)


def issue_invoice(
    db: Session,
    order: Order,
    shipping_amount: Decimal | None = None,
    tax_amount: Decimal | None = None,
    notes: str | None = None,
) -> Order:
    """Finalize shipping/tax, recompute the total and send the invoice."""
    if not validate_transition(order.status, OrderStatus.INVOICE_SENT):
        raise TransitionNotAllowedError(order.status, OrderStatus.INVOICE_SENT.value)

    if shipping_amount is not None:
        order.shipping_amount = shipping_amount
    if tax_amount is not None:
        order.tax_amount = tax_amount
    order.total_amount = (
        Decimal(order.subtotal) + Decimal(order.shipping_amount) + Decimal(order.tax_amount)
    )
    apply_status_change(order, OrderStatus.INVOICE_SENT, notes=notes)
    return _commit(db, order)


def respond_to_invoice(db: Session, order: Order, accepted: bool) -> Order:
    if accepted:
        apply_status_change(order, OrderStatus.INVOICE_ACCEPTED)
        order.payment_status = PaymentStatus.PENDING.value
    else:
        apply_status_change(order, OrderStatus.INVOICE_DECLINED)
    return _commit(db, order)


def record_payment_submission(
    db: Session,
    order: Order,
    transaction_id: str,
    payment_amount: Decimal,
    screenshot_url: str | None = None,
) -> Order:
    now = utcnow()
    submission = json.dumps(
        {
            "transaction_id": transaction_id,
            "payment_amount": format(payment_amount, "f"),
            "payment_screenshot_url": screenshot_url,
            "submitted_at": now.isoformat(),
        }
    )
    apply_status_change(order, OrderStatus.PAYMENT_SUBMITTED, now=now, notes=submission)
    order.payment_status = PaymentStatus.SUBMITTED.value
    return _commit(db, order)
