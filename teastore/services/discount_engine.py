# teastore/services/discount_engine.py
from __future__ import annotations

from dataclasses import dataclass
from decimal import InvalidOperation

from ..utils.money import D, Money, ZERO, HUNDRED, round_display
from .errors import InvalidInput

FIRST_ORDER_DISCOUNT_PERCENT = 20


@dataclass(frozen=True)
class CartLine:
    product_id: int
    unit_price: Money
    quantity: int
    # catalog price before any bulk tier; None means no bulk tier applied
    original_price: Money | None = None

    def line_total(self) -> Money:
        return D(self.unit_price) * self.quantity

    def line_total_before(self) -> Money:
        price = self.unit_price if self.original_price is None else self.original_price
        return D(price) * self.quantity


@dataclass(frozen=True)
class DiscountProfile:
    first_order_discount_available: bool = False
    loyalty_percent: int = 0
    custom_percent: int | None = None
    first_order_percent: int = FIRST_ORDER_DISCOUNT_PERCENT

    def as_api(self):
        return {
            "first_order_discount_available": self.first_order_discount_available,
            "first_order_percent": self.first_order_percent,
            "loyalty_percent": self.loyalty_percent,
            "custom_percent": self.custom_percent or 0,
        }


@dataclass(frozen=True)
class Breakdown:
    bulk_discount_amount: Money
    first_order_amount: Money
    loyalty_amount: Money
    custom_amount: Money
    final_total: Money

    def as_api(self):
        return {
            "bulk_discount_amount": round_display(self.bulk_discount_amount),
            "first_order_amount": round_display(self.first_order_amount),
            "loyalty_amount": round_display(self.loyalty_amount),
            "custom_amount": round_display(self.custom_amount),
            "final_total": round_display(self.final_total),
        }


@dataclass(frozen=True)
class PricingResult:
    original_subtotal: Money
    subtotal: Money
    breakdown: Breakdown

    @property
    def final_total(self) -> Money:
        return self.breakdown.final_total

    @property
    def has_any_discount(self) -> bool:
        b = self.breakdown
        return any(x > 0 for x in (b.bulk_discount_amount, b.first_order_amount, b.loyalty_amount, b.custom_amount))

    def as_api(self):
        return {
            "original_subtotal": round_display(self.original_subtotal),
            "subtotal": round_display(self.subtotal),
            "breakdown": self.breakdown.as_api(),
            "has_any_discount": self.has_any_discount,
            "final_total": round_display(self.final_total),
        }


# ---- validation -------------------------------------------------------------

def _money_field(value, what: str) -> Money:
    if value is None:
        raise InvalidInput(f"{what} is required")
    try:
        d = D(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput(f"{what} must be numeric")
    if not d.is_finite():
        raise InvalidInput(f"{what} must be finite")
    if d < 0:
        raise InvalidInput(f"{what} must be >= 0")
    return d


def _percent_field(value, what: str) -> Money:
    if value is None:
        return ZERO
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{what} must be a whole number")
    p = D(value)
    if not ZERO <= p <= HUNDRED:
        raise InvalidInput(f"{what} must be between 0 and 100")
    return p


def _validate_line(line: CartLine) -> tuple[Money, Money]:
    q = line.quantity
    if isinstance(q, bool) or not isinstance(q, int) or q <= 0:
        raise InvalidInput(f"quantity for product {line.product_id} must be a positive integer")
    price = _money_field(line.unit_price, f"price for product {line.product_id}")
    if line.original_price is None:
        return price, price
    original = _money_field(line.original_price, f"original price for product {line.product_id}")
    if original < price:
        raise InvalidInput(f"original price for product {line.product_id} is below its price")
    return price, original


# ---- engine -----------------------------------------------------------------

def compute_total(cart_lines, profile: DiscountProfile) -> PricingResult:
    """
    Price a cart for a discount profile.
    Order (fixed; each percentage applies to what is left after the previous step):
      1) subtotal from per-line prices (bulk tiers already baked into unit_price)
      2) first-order discount
      3) loyalty tier discount
      4) admin-granted custom discount
      5) clamp at zero
    No rounding happens here; use as_api() for display values.
    """
    lines = list(cart_lines or ())
    if not lines:
        raise InvalidInput("cart is empty")

    first_pct = _percent_field(profile.first_order_percent, "first order percent")
    loyalty_pct = _percent_field(profile.loyalty_percent, "loyalty percent")
    custom_pct = _percent_field(profile.custom_percent, "custom percent")

    # 1) subtotal + bulk (display only)
    subtotal = ZERO
    original_subtotal = ZERO
    for line in lines:
        price, original = _validate_line(line)
        subtotal += price * line.quantity
        original_subtotal += original * line.quantity
    bulk_amount = original_subtotal - subtotal

    running = subtotal

    # 2) first order
    first_amount = ZERO
    if profile.first_order_discount_available:
        first_amount = running * first_pct / HUNDRED
        running -= first_amount

    # 3) loyalty (caller zeroes it for unverified contacts)
    loyalty_amount = running * loyalty_pct / HUNDRED
    running -= loyalty_amount

    # 4) custom
    custom_amount = running * custom_pct / HUNDRED
    running -= custom_amount

    # 5) clamp
    final_total = max(running, ZERO)

    return PricingResult(
        original_subtotal=original_subtotal,
        subtotal=subtotal,
        breakdown=Breakdown(
            bulk_discount_amount=bulk_amount,
            first_order_amount=first_amount,
            loyalty_amount=loyalty_amount,
            custom_amount=custom_amount,
            final_total=final_total,
        ),
    )
