"""Order pricing and order-number generation.

Prices are always recomputed server-side from authoritative product prices;
clients only ever send product ids and quantities.
"""

import secrets
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

TAX_RATE = Decimal("0.0825")
FREE_SHIPPING_THRESHOLD = Decimal("75")
FLAT_SHIPPING_FEE = Decimal("9.99")

CENT = Decimal("0.01")
TOTAL_TOLERANCE = Decimal("0.01")

_BASE36_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
ORDER_NUMBER_SUFFIX_LENGTH = 5


class PricedItem(Protocol):
    price: Decimal
    quantity: int


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _round_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_pricing(line_items: Iterable[PricedItem]) -> PricingBreakdown:
    subtotal = sum(
        (_to_decimal(item.price) * int(item.quantity) for item in line_items),
        Decimal("0"),
    )
    subtotal = _round_cents(subtotal)
    shipping = Decimal("0.00") if subtotal > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_FEE
    tax = _round_cents(subtotal * TAX_RATE)
    total = _round_cents(subtotal + shipping + tax)
    return PricingBreakdown(subtotal=subtotal, shipping=shipping, tax=tax, total=total)


def totals_consistent(subtotal, shipping, tax, total, tolerance: Decimal = TOTAL_TOLERANCE) -> bool:
    expected = _to_decimal(subtotal) + _to_decimal(shipping) + _to_decimal(tax)
    return abs(expected - _to_decimal(total)) <= tolerance


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("number must be non-negative")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_order_number(now_ms: int | None = None, suffix: str | None = None) -> str:
    """Return ``ORD-<ms timestamp in base36>-<5 random base36 chars>``, uppercase."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    if suffix is None:
        suffix = "".join(
            secrets.choice(_BASE36_ALPHABET) for _ in range(ORDER_NUMBER_SUFFIX_LENGTH)
        )
    return f"ORD-{to_base36(now_ms)}-{suffix.upper()}"
