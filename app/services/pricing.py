# app/services/pricing.py
from dataclasses import dataclass
from typing import Iterable, Protocol

from app.core.config import get_settings


class _PricedLine(Protocol):
    @property
    def line_total(self) -> float: ...


@dataclass(frozen=True)
class CartTotals:
    subtotal: float
    platform_fee: float
    total_amount: float


def platform_fee(subtotal: float, rate: float | None = None) -> float:
    """Platform fee for a subtotal (0.5% unless configured otherwise)."""
    if rate is None:
        rate = get_settings().PLATFORM_FEE_RATE
    return subtotal * rate


def item_totals(price: float, quantity: int) -> CartTotals:
    """
    Totals for a single booking.

    Plain float arithmetic: total is always subtotal + fee, computed the
    same way the order total is.
    """
    subtotal = price * quantity
    fee = platform_fee(subtotal)
    return CartTotals(subtotal=subtotal, platform_fee=fee, total_amount=subtotal + fee)


def cart_totals(items: Iterable[_PricedLine]) -> CartTotals:
    """
    Totals across all vendors in a cart.

    Example: lines of 50 and 30 -> subtotal 80, fee 0.40, total 80.40.
    """
    subtotal = 0.0
    for item in items:
        subtotal += item.line_total
    fee = platform_fee(subtotal)
    return CartTotals(subtotal=subtotal, platform_fee=fee, total_amount=subtotal + fee)
