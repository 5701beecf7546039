import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.dependencies import get_current_admin, get_current_user, get_current_user_optional
from storefront.models import Order, User, get_db
from storefront.schemas.notifications import OrderStatusNotification
from storefront.schemas.orders import (
    CreateOrderRequest,
    CreateOrderResponse,
    InvoiceDecisionRequest,
    InvoiceRequest,
    OrderResponse,
    OrderStatus,
    OrderStatusResponse,
    OrderTimestamps,
    PaymentStatus,
    PaymentSubmissionRequest,
    UpdateStatusRequest,
    UpdateStatusResponse,
)
from storefront.services import checkout, order_workflow
from storefront.services.notification_queue import enqueue_notification

router = APIRouter()
logger = logging.getLogger(__name__)


def _get_visible_order(db: Session, order_id: int, user: User) -> Order:
    """Load an order the caller owns (or any order, for admins)."""
    order = order_workflow.get_order_or_404(db, order_id)
    if not user.is_admin and order.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return order


def _notify_status_change(db: Session, order: Order) -> None:
    if not order.user_id:
        return
    customer = db.query(User).filter(User.id == order.user_id).first()
    if not customer:
        return
    current = OrderStatus(order.status)
    try:
        enqueue_notification(
            db,
            OrderStatusNotification(
                order_id=order.id,
                order_number=order.order_number,
                email=customer.email,
                status=current.value,
                description=order_workflow.STATUS_DESCRIPTIONS[current],
            ),
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to enqueue status notification for order %s", order.id)


@router.post(
    "/create-order",
    response_model=CreateOrderResponse,
    summary="Create a custom order awaiting admin review",
)
def create_order(
    body: CreateOrderRequest,
    current_user: Annotated[User | None, Depends(get_current_user_optional)],
    db: Annotated[Session, Depends(get_db)],
):
    """
    Create an order from cart lines (product id + quantity).
    Prices are re-read from the catalog; guests may order without a token.
    """
    line_items = checkout.resolve_line_items(db, body.cart_items)
    order, _ = checkout.create_local_order(
        db,
        line_items,
        user_id=current_user.id if current_user else None,
        shipping_address=body.shipping_address,
        status=OrderStatus.PENDING_ADMIN_REVIEW,
        payment_status=PaymentStatus.PENDING,
        payment_method="custom_external",
    )
    return CreateOrderResponse(
        localOrderId=order.id,
        orderNumber=order.order_number,
        status=order.status,
        message="Order created successfully. Awaiting admin review.",
    )


@router.get(
    "/me",
    response_model=list[OrderResponse],
    summary="List my orders",
)
def my_orders(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Returns the list of orders for the current user, newest first."""
    orders = (
        db.query(Order)
        .filter(Order.user_id == current_user.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )
    return [OrderResponse.model_validate(order) for order in orders]


@router.get(
    "/status",
    response_model=OrderStatusResponse,
    summary="Get order status and history",
)
def order_status(
    order_id: Annotated[int, Query(alias="orderId")],
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Current status, payment status and a reconstructed status timeline (owner or admin)."""
    order = _get_visible_order(db, order_id, current_user)
    return OrderStatusResponse(
        currentStatus=order.status,
        paymentStatus=order.payment_status,
        statusHistory=order_workflow.derive_history(order),
        allowedNextStatuses=order_workflow.allowed_next_statuses(order.status),
        order=OrderTimestamps.model_validate(order),
    )


@router.patch(
    "/update-status",
    response_model=UpdateStatusResponse,
    summary="Update order status (admin)",
)
def update_order_status(
    order_id: Annotated[int, Query(alias="orderId")],
    body: UpdateStatusRequest,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    order = order_workflow.apply_admin_status_update(
        db,
        order_id,
        body.status,
        notes=body.notes,
        enforce=settings.STRICT_STATUS_TRANSITIONS,
    )
    logger.info("Admin %s set order %s to %s", admin.id, order.id, order.status)
    _notify_status_change(db, order)
    return UpdateStatusResponse(
        message="Order status updated successfully",
        order=OrderResponse.model_validate(order),
    )


@router.post(
    "/{order_id}/invoice",
    response_model=OrderResponse,
    summary="Send invoice for an order under review (admin)",
)
def send_invoice(
    order_id: int,
    body: InvoiceRequest,
    admin: Annotated[User, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    """Finalize shipping and tax, recompute the total and move the order to invoice_sent."""
    order = order_workflow.get_order_or_404(db, order_id)
    order = order_workflow.issue_invoice(
        db,
        order,
        shipping_amount=body.shipping_amount,
        tax_amount=body.tax_amount,
        notes=body.notes,
    )
    _notify_status_change(db, order)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/invoice/response",
    response_model=OrderResponse,
    summary="Accept or decline an invoice",
)
def respond_to_invoice(
    order_id: int,
    body: InvoiceDecisionRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    order = _get_visible_order(db, order_id, current_user)
    order = order_workflow.respond_to_invoice(db, order, accepted=body.decision == "accept")
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/payment-submission",
    response_model=OrderResponse,
    summary="Submit proof of an external payment",
)
def submit_payment(
    order_id: int,
    body: PaymentSubmissionRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    order = _get_visible_order(db, order_id, current_user)
    order = order_workflow.record_payment_submission(
        db,
        order,
        transaction_id=body.transaction_id,
        payment_amount=body.payment_amount,
        screenshot_url=body.screenshot_url,
    )
    return OrderResponse.model_validate(order)
