# teastore/services/reconciler.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import InvalidOperation

from ..utils.money import D, Money, ZERO, round_display
from .discount_engine import (
    FIRST_ORDER_DISCOUNT_PERCENT,
    CartLine,
    DiscountProfile,
    PricingResult,
    compute_total,
)
from .errors import InvalidInput, NegativeTotal, ProductNotFound
from .loyalty import get_loyalty_discount

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = D(1)


@dataclass(frozen=True)
class SubmittedLine:
    product_id: int
    quantity: int
    # whatever the client claimed; never used for pricing
    price: object = None


@dataclass(frozen=True)
class SubmittedOrder:
    lines: tuple = field(default_factory=tuple)
    total: object = None

    @classmethod
    def from_payload(cls, items, total=None):
        """Build from a JSON body list of {product_id|productId|id, quantity, price?}."""
        if not isinstance(items, (list, tuple)):
            raise InvalidInput("items must be a list")
        lines = []
        for raw in items:
            if not isinstance(raw, dict):
                raise InvalidInput("each item must be an object")
            pid = raw.get("product_id", raw.get("productId", raw.get("id")))
            qty = raw.get("quantity")
            if isinstance(pid, bool) or not isinstance(pid, int) or pid <= 0:
                raise InvalidInput("product_id must be a positive integer")
            if isinstance(qty, bool) or not isinstance(qty, int):
                raise InvalidInput(f"quantity for product {pid} must be an integer")
            lines.append(SubmittedLine(product_id=pid, quantity=qty, price=raw.get("price")))
        return cls(lines=tuple(lines), total=total)


@dataclass(frozen=True)
class TrustedOrder:
    lines: tuple
    profile: DiscountProfile
    pricing: PricingResult
    consumed_first_order_discount: bool
    consumed_custom_discount: bool
    client_total_mismatch: bool = False

    @property
    def final_total(self) -> Money:
        return self.pricing.final_total

    @property
    def breakdown(self):
        return self.pricing.breakdown

    def as_api(self):
        return {
            "final_total": round_display(self.final_total),
            "breakdown": {
                k: v for k, v in self.pricing.breakdown.as_api().items() if k != "final_total"
            },
            "subtotal": round_display(self.pricing.subtotal),
            "profile": self.profile.as_api(),
            "consumed_first_order_discount": self.consumed_first_order_discount,
            "consumed_custom_discount": self.consumed_custom_discount,
        }


def build_profile(user, first_order_percent=FIRST_ORDER_DISCOUNT_PERCENT) -> DiscountProfile:
    """Discount eligibility as of right now. Guests (user=None) get nothing."""
    if user is None:
        return DiscountProfile(first_order_percent=first_order_percent)
    loyalty = get_loyalty_discount(user.xp) if user.phone_verified else 0
    return DiscountProfile(
        first_order_discount_available=not user.first_order_discount_used,
        loyalty_percent=loyalty,
        custom_percent=user.custom_discount or 0,
        first_order_percent=first_order_percent,
    )


def _authoritative_lines(submitted: SubmittedOrder, catalog) -> tuple:
    lines = []
    for s in submitted.lines:
        if s.product_id not in catalog:
            raise ProductNotFound(s.product_id)
        lines.append(CartLine(product_id=s.product_id, unit_price=D(catalog[s.product_id]), quantity=s.quantity))
    return tuple(lines)


def parse_client_total(value):
    if value is None:
        return None
    try:
        d = D(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInput("total must be numeric")
    return d if d.is_finite() else None


def reconcile(
    submitted: SubmittedOrder,
    catalog,
    user,
    *,
    tolerance=DEFAULT_TOLERANCE,
    first_order_percent=FIRST_ORDER_DISCOUNT_PERCENT,
) -> TrustedOrder:
    """
    Re-price a submitted order from authoritative data.

    Only product ids and quantities are taken from the submission; prices come
    from `catalog` (product_id -> current price) and discounts from `user`.
    Nothing is written: consuming one-time discounts is up to the caller once
    the order is persisted.
    """
    lines = _authoritative_lines(submitted, catalog)
    profile = build_profile(user, first_order_percent)
    pricing = compute_total(lines, profile)
    final_total = pricing.final_total

    if final_total < ZERO:
        logger.error("negative total %s after clamping, profile=%s", final_total, profile)
        raise NegativeTotal(f"negative order total {final_total}")

    mismatch = False
    client_total = parse_client_total(submitted.total)
    if client_total is not None and abs(client_total - final_total) > D(tolerance):
        mismatch = True
        logger.warning(
            "client total %s differs from recomputed %s (user=%s); using recomputed",
            client_total, final_total, getattr(user, "id", None),
        )

    return TrustedOrder(
        lines=lines,
        profile=profile,
        pricing=pricing,
        consumed_first_order_discount=profile.first_order_discount_available,
        consumed_custom_discount=(profile.custom_percent or 0) > 0,
        client_total_mismatch=mismatch,
    )
