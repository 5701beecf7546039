"""PayPal Orders v2 integration: client, purchase-unit builder and local capture."""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

import httpx
from sqlalchemy.orm import Session

from storefront.errors import (
    AmountMismatchError,
    OrderNotFoundError,
    PaymentProviderError,
    PaymentProviderNotConfiguredError,
    PayPalOrderMismatchError,
    TransitionNotAllowedError,
)
from storefront.models import Order
from storefront.schemas.orders import OrderStatus, PaymentStatus
from storefront.services.order_workflow import advance_order, coerce_status, utcnow
from storefront.services.pricing import TOTAL_TOLERANCE, PricingBreakdown

logger = logging.getLogger(__name__)

LIVE_BASE_URL = "https://api.paypal.com"
SANDBOX_BASE_URL = "https://api.sandbox.paypal.com"
MAX_ITEM_NAME_LENGTH = 127

MISMATCH_POLICY_WARN = "warn"
MISMATCH_POLICY_REJECT = "reject"
MISMATCH_POLICIES = {MISMATCH_POLICY_WARN, MISMATCH_POLICY_REJECT}

# Orders in these statuses may be captured.
CAPTURABLE_STATUSES = frozenset(
    {OrderStatus.PAYPAL_SHARED, OrderStatus.PAYMENT_PENDING, OrderStatus.PAYMENT_SUBMITTED}
)


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class PayPalClient:
    """
    Client for the PayPal REST API.
    Handles OAuth client-credentials tokens and Orders v2 create/capture calls.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        mode: str = "sandbox",
        timeout: float = 15.0,
        http_client: httpx.Client | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.mode = mode
        self.http = http_client or httpx.Client(base_url=self.base_url, timeout=httpx.Timeout(timeout))

    @property
    def base_url(self) -> str:
        return LIVE_BASE_URL if self.mode == "live" else SANDBOX_BASE_URL

    def close(self) -> None:
        self.http.close()

    def get_access_token(self) -> str:
        if not self.client_id or not self.client_secret:
            raise PaymentProviderNotConfiguredError()
        response = self.http.post(
            "/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
            headers={"Accept": "application/json"},
        )
        if response.is_error:
            logger.error("PayPal token request failed: %s %s", response.status_code, response.text)
            raise PaymentProviderError(
                "Failed to obtain PayPal access token",
                status_code=response.status_code,
                details=_response_body(response),
            )
        return response.json()["access_token"]

    def _post(self, path: str, payload: dict | None, failure_message: str) -> dict:
        token = self.get_access_token()
        response = self.http.post(
            path,
            json=payload,
            headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
        )
        body = _response_body(response)
        if response.is_error:
            logger.error("%s: %s %s", failure_message, response.status_code, body)
            raise PaymentProviderError(failure_message, status_code=response.status_code, details=body)
        return body

    def create_order(self, purchase_unit: dict) -> dict:
        return self._post(
            "/v2/checkout/orders",
            {"intent": "CAPTURE", "purchase_units": [purchase_unit]},
            "PayPal create order failed",
        )

    def capture_order(self, paypal_order_id: str) -> dict:
        return self._post(
            f"/v2/checkout/orders/{paypal_order_id}/capture",
            None,
            "PayPal capture failed",
        )


def _amount(value: Decimal, currency: str) -> dict:
    return {"currency_code": currency, "value": format(Decimal(value).quantize(Decimal("0.01")), "f")}


def build_purchase_unit(
    local_order_id: int,
    items: Iterable,
    pricing: PricingBreakdown,
    currency: str = "USD",
) -> dict:
    """Build a purchase unit; ``items`` need ``name``, ``price`` and ``quantity``."""
    return {
        "reference_id": str(local_order_id),
        "amount": {
            **_amount(pricing.total, currency),
            "breakdown": {
                "item_total": _amount(pricing.subtotal, currency),
                "shipping": _amount(pricing.shipping, currency),
                "tax_total": _amount(pricing.tax, currency),
            },
        },
        "items": [
            {
                "name": item.name[:MAX_ITEM_NAME_LENGTH],
                "quantity": str(item.quantity),
                "unit_amount": _amount(item.price, currency),
            }
            for item in items
        ],
    }


def sum_captured_amount(capture_json: dict | None) -> Decimal:
    total = Decimal("0")
    for unit in (capture_json or {}).get("purchase_units") or []:
        captures = ((unit.get("payments") or {}).get("captures")) or []
        for capture in captures:
            value = (capture.get("amount") or {}).get("value")
            if value is None:
                continue
            try:
                total += Decimal(str(value))
            except InvalidOperation:
                logger.warning("Ignoring non-numeric PayPal capture amount: %s", value)
    return total


@dataclass
class CaptureResult:
    order: Order
    paypal: dict | None
    already_captured: bool = False
    amount_matches: bool = True


def capture_local_order(
    db: Session,
    client: PayPalClient,
    paypal_order_id: str,
    local_order_id: int,
    mismatch_policy: str = MISMATCH_POLICY_WARN,
) -> CaptureResult:
    order = db.query(Order).filter(Order.id == local_order_id).first()
    if not order:
        raise OrderNotFoundError(local_order_id)

    if order.payment_status == PaymentStatus.COMPLETED.value:
        logger.info("Order %s already captured, skipping", order.id)
        return CaptureResult(order=order, paypal=None, already_captured=True)

    if coerce_status(order.status) not in CAPTURABLE_STATUSES:
        raise TransitionNotAllowedError(order.status, OrderStatus.CONFIRMED.value)

    if order.paypal_order_id and order.paypal_order_id != paypal_order_id:
        logger.warning(
            "Refusing capture of PayPal order %s for order %s created with PayPal order %s",
            paypal_order_id,
            order.id,
            order.paypal_order_id,
        )
        raise PayPalOrderMismatchError(order.id, expected=order.paypal_order_id, received=paypal_order_id)

    capture_json = client.capture_order(paypal_order_id)

    captured = sum_captured_amount(capture_json)
    expected = Decimal(order.total_amount)
    amount_matches = abs(captured - expected) < TOTAL_TOLERANCE
    if not amount_matches:
        if mismatch_policy == MISMATCH_POLICY_REJECT:
            logger.error(
                "PayPal amount mismatch for order %s: expected=%s, captured=%s; rejecting",
                order.id,
                expected,
                captured,
            )
            raise AmountMismatchError(expected=expected, captured=captured)
        logger.warning(
            "PayPal amount mismatch for order %s: expected=%s, captured=%s",
            order.id,
            expected,
            captured,
        )

    now = utcnow()
    try:
        if capture_json.get("status") == "COMPLETED":
            advance_order(order, OrderStatus.CONFIRMED, now=now)
            order.payment_status = PaymentStatus.COMPLETED.value
        else:
            advance_order(order, OrderStatus.PAYMENT_SUBMITTED, now=now)
            order.payment_status = PaymentStatus.SUBMITTED.value
        if not order.paypal_order_id:
            order.paypal_order_id = paypal_order_id
        order.updated_at = now
        db.commit()
    except Exception:
        db.rollback()
        # Money has moved at PayPal but the local order is stale.
        logger.exception(
            "Failed to update order %s after PayPal capture %s", local_order_id, paypal_order_id
        )
        raise
    db.refresh(order)
    logger.info("Order %s captured via PayPal order %s", order.id, paypal_order_id)
    return CaptureResult(order=order, paypal=capture_json, amount_matches=amount_matches)
