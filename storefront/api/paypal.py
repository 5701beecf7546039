import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.config import settings
from storefront.dependencies import get_paypal_client
from storefront.errors import PaymentProviderError
from storefront.models import get_db
from storefront.schemas.orders import OrderResponse, OrderStatus, PaymentStatus
from storefront.schemas.paypal import (
    PayPalCaptureRequest,
    PayPalCaptureResponse,
    PayPalCreateOrderRequest,
    PayPalCreateOrderResponse,
)
from storefront.services import checkout
from storefront.services.order_workflow import apply_status_change
from storefront.services.paypal_service import PayPalClient, build_purchase_unit, capture_local_order

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/create-order",
    response_model=PayPalCreateOrderResponse,
    summary="Create a local order and its PayPal order",
)
def create_paypal_order(
    body: PayPalCreateOrderRequest,
    db: Annotated[Session, Depends(get_db)],
    paypal: Annotated[PayPalClient, Depends(get_paypal_client)],
):
    """
    Price the cart from catalog prices, persist a pending local order, then
    create the matching PayPal order for the client to approve.
    """
    line_items = checkout.resolve_line_items(db, body.cart_items)
    order, pricing = checkout.create_local_order(
        db,
        line_items,
        user_id=body.user_id,
        shipping_address=body.shipping_address,
        status=OrderStatus.PAYMENT_PENDING,
        payment_status=PaymentStatus.INITIATED,
        payment_method="paypal",
    )

    try:
        paypal_order = paypal.create_order(
            build_purchase_unit(order.id, line_items, pricing, currency=order.currency)
        )
    except PaymentProviderError:
        # No PayPal order exists for it, so the local order can never be captured.
        apply_status_change(order, OrderStatus.CANCELLED)
        db.commit()
        logger.warning("Cancelled order %s after PayPal order creation failed", order.id)
        raise
    order.paypal_order_id = paypal_order["id"]
    db.commit()
    logger.info("PayPal order %s created for order %s", paypal_order["id"], order.id)

    return PayPalCreateOrderResponse(
        paypalOrderId=paypal_order["id"],
        localOrderId=order.id,
        orderNumber=order.order_number,
    )


@router.post(
    "/capture-order",
    response_model=PayPalCaptureResponse,
    summary="Capture an approved PayPal order",
)
def capture_paypal_order(
    body: PayPalCaptureRequest,
    db: Annotated[Session, Depends(get_db)],
    paypal: Annotated[PayPalClient, Depends(get_paypal_client)],
):
    """Idempotent: an order whose payment is already completed is returned as-is."""
    result = capture_local_order(
        db,
        paypal,
        paypal_order_id=body.paypal_order_id,
        local_order_id=body.local_order_id,
        mismatch_policy=settings.PAYPAL_AMOUNT_MISMATCH_POLICY,
    )
    return PayPalCaptureResponse(
        message="Already captured" if result.already_captured else "Capture successful",
        localOrder=OrderResponse.model_validate(result.order),
        paypal=result.paypal,
    )
