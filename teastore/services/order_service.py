# teastore/services/order_service.py
from __future__ import annotations

import logging
import math
import re
import uuid
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..model import Order, OrderItem, Product, User, ORDER_STATUSES
from .cart_store import CartStore, DbCartStore
from .errors import (
    DiscountAlreadyConsumed,
    InvalidInput,
    OrderNotFound,
    OrderStateConflict,
)
from .reconciler import SubmittedOrder, TrustedOrder, parse_client_total, reconcile

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"completed", "cancelled"}
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _gen_order_code():
    return "ORD-" + datetime.utcnow().strftime("%Y%m%d-%H%M%S%f")[:18] + "-" + uuid.uuid4().hex[:4].upper()


def _pricing_options() -> dict:
    cfg = current_app.config
    return {
        "tolerance": cfg.get("TOTAL_MISMATCH_TOLERANCE", 1),
        "first_order_percent": cfg.get("FIRST_ORDER_DISCOUNT_PERCENT", 20),
    }


def _validate_customer(payload: dict) -> dict:
    name = (payload.get("name") or "").strip()
    email = (payload.get("email") or "").strip().lower()
    phone = (payload.get("phone") or "").strip()
    address = (payload.get("address") or "").strip()
    comment = (payload.get("comment") or "").strip() or None

    if len(name) < 2:
        raise InvalidInput("name must be at least 2 characters")
    if not _EMAIL_RE.match(email):
        raise InvalidInput("a valid email is required")
    if len(phone) < 10:
        raise InvalidInput("a valid phone number is required")
    if len(address) < 10:
        raise InvalidInput("full delivery address is required")
    return {"customer_name": name, "email": email, "phone": phone, "address": address, "comment": comment}


def load_catalog(product_ids, lock: bool = False) -> dict:
    """product_id -> Product for active products. Missing ids are simply absent."""
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    q = db.session.query(Product).filter(Product.id.in_(ids), Product.status.is_(True))
    if lock:
        q = q.with_for_update()
    return {p.id: p for p in q.all()}


def _submitted(items, total=None) -> SubmittedOrder:
    submitted = SubmittedOrder.from_payload(items, total=total)
    if not submitted.lines:
        raise InvalidInput("cart is empty")
    return submitted


def quote(items, user) -> TrustedOrder:
    """Price a cart for display. Reads only; nothing is consumed."""
    submitted = _submitted(items)
    products = load_catalog(l.product_id for l in submitted.lines)
    return reconcile(
        submitted,
        {pid: p.price for pid, p in products.items()},
        user,
        **_pricing_options(),
    )


# ---- one-time discount transitions (available -> consumed) ------------------

def consume_first_order_discount(user_id: str, order_id: int) -> bool:
    rows = (
        db.session.query(User)
        .filter(User.id == user_id, User.first_order_discount_used.is_(False))
        .update(
            {User.first_order_discount_used: True, User.first_order_discount_order_id: order_id},
            synchronize_session=False,
        )
    )
    return rows == 1


def consume_custom_discount(user_id: str, percent: int) -> bool:
    rows = (
        db.session.query(User)
        .filter(User.id == user_id, User.custom_discount == percent)
        .update({User.custom_discount: None}, synchronize_session=False)
    )
    return rows == 1


def restore_first_order_discount(user_id: str, order_id: int) -> bool:
    rows = (
        db.session.query(User)
        .filter(User.id == user_id, User.first_order_discount_order_id == order_id)
        .update(
            {User.first_order_discount_used: False, User.first_order_discount_order_id: None},
            synchronize_session=False,
        )
    )
    return rows == 1


# ---- placement ----------------------------------------------------------------

def place_order(payload: dict, user: User | None, cart_store: CartStore | None = None) -> tuple[Order, TrustedOrder]:
    """
    Create an order from the request body (or the caller's cart when the body
    has no items), priced from the catalog and the user's current discounts.
    Either everything is written or nothing is.
    """
    customer = _validate_customer(payload)
    items = payload.get("items")
    if items is None:
        items = cart_store.get() if cart_store is not None else []
    submitted = _submitted(items, total=payload.get("total"))

    try:
        products = load_catalog((l.product_id for l in submitted.lines), lock=True)
        trusted = reconcile(
            submitted,
            {pid: p.price for pid, p in products.items()},
            user,
            **_pricing_options(),
        )
        b = trusted.breakdown

        order = Order(
            code=_gen_order_code(),
            status="pending",
            user_id=user.id if user else None,
            subtotal=trusted.pricing.subtotal,
            bulk_discount_amount=b.bulk_discount_amount,
            first_order_discount_amount=b.first_order_amount,
            loyalty_discount_amount=b.loyalty_amount,
            custom_discount_amount=b.custom_amount,
            total=trusted.final_total,
            client_total=parse_client_total(submitted.total),
            loyalty_percent=trusted.profile.loyalty_percent,
            custom_discount_percent=trusted.profile.custom_percent or 0,
            **customer,
        )
        db.session.add(order)
        db.session.flush()

        for line in trusted.lines:
            p = products[line.product_id]
            db.session.add(OrderItem(
                order_id=order.id,
                product_id=line.product_id,
                name=p.name,
                unit=p.unit,
                unit_price=line.unit_price,
                quantity=line.quantity,
                line_total=line.line_total(),
            ))

        if trusted.consumed_first_order_discount:
            if not consume_first_order_discount(user.id, order.id):
                raise DiscountAlreadyConsumed("first order discount has already been used")
            order.first_order_discount_applied = True

        if trusted.consumed_custom_discount:
            if not consume_custom_discount(user.id, trusted.profile.custom_percent):
                raise DiscountAlreadyConsumed("personal discount has already been used")
            order.custom_discount_applied = True

        if isinstance(cart_store, DbCartStore):
            cart_store.clear()

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    if cart_store is not None and not isinstance(cart_store, DbCartStore):
        cart_store.clear()

    logger.info(
        "order %s placed: user=%s total=%s first_order=%s custom=%s",
        order.code, order.user_id, trusted.final_total,
        order.first_order_discount_applied, order.custom_discount_applied,
    )
    return order, trusted


# ---- lifecycle ------------------------------------------------------------------

def update_order_status(order_id: int, new_status: str, expected_status: str | None = None) -> Order:
    """
    Move an order to `new_status`. The write only lands if the status is still
    what we read (or `expected_status`), so two admins can't both complete it.
    Completing awards floor(total) XP; cancelling hands back a first-order
    discount this order consumed.
    """
    if new_status not in ORDER_STATUSES:
        raise InvalidInput(f"status must be one of {', '.join(ORDER_STATUSES)}")

    order = db.session.get(Order, order_id)
    if not order:
        raise OrderNotFound(order_id)

    current = expected_status or order.status
    if order.status != current:
        raise OrderStateConflict("order status has already been changed")
    if new_status == current:
        return order
    if current in TERMINAL_STATUSES:
        raise OrderStateConflict(f"order is already {current}")

    try:
        rows = (
            db.session.query(Order)
            .filter(Order.id == order_id, Order.status == current)
            .update({Order.status: new_status, Order.updated_at: datetime.utcnow()}, synchronize_session=False)
        )
        if rows != 1:
            raise OrderStateConflict("order status has already been changed")

        if new_status == "completed" and order.user_id:
            xp = int(math.floor(order.total or 0))
            db.session.query(User).filter(User.id == order.user_id).update(
                {User.xp: User.xp + xp}, synchronize_session=False
            )
            db.session.query(Order).filter(Order.id == order_id).update(
                {Order.xp_awarded: xp}, synchronize_session=False
            )
            logger.info("order %s completed: awarded %s XP to user %s", order.code, xp, order.user_id)

        if new_status == "cancelled" and order.first_order_discount_applied and order.user_id:
            if restore_first_order_discount(order.user_id, order.id):
                logger.info("order %s cancelled: first order discount restored for user %s", order.code, order.user_id)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    db.session.refresh(order)
    return order


def cancel_order(order_id: int, user: User) -> Order:
    order = db.session.get(Order, order_id)
    if not order or order.user_id != user.id:
        raise OrderNotFound(order_id)
    if order.status != "pending":
        raise OrderStateConflict("only pending orders can be cancelled")
    return update_order_status(order_id, "cancelled", expected_status="pending")
