# teastore/services/cart_store.py
from __future__ import annotations

import logging

from flask import session
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from ..extensions import db
from ..model import Cart, CartItem
from .errors import InvalidInput

logger = logging.getLogger(__name__)

SESSION_CART_KEY = "guest_cart"


def _is_pos_int(v) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v > 0


def normalize_lines(lines) -> list[dict]:
    """Validate [{product_id, quantity}] and fold duplicate products together."""
    merged: dict[int, int] = {}
    for raw in lines or ():
        pid = raw.get("product_id") if isinstance(raw, dict) else None
        qty = raw.get("quantity") if isinstance(raw, dict) else None
        if not _is_pos_int(pid) or not _is_pos_int(qty):
            raise InvalidInput("cart lines need positive integer product_id and quantity")
        merged[pid] = merged.get(pid, 0) + qty
    return [{"product_id": pid, "quantity": qty} for pid, qty in merged.items()]


class CartStore:
    """
    A cart keyed by whoever owns it. Subclasses provide get/set/clear;
    line edits are expressed on top of those.
    """

    def get(self) -> list[dict]:
        raise NotImplementedError

    def set(self, lines) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        self.set([])

    def add(self, product_id: int, quantity: int) -> list[dict]:
        if not _is_pos_int(quantity):
            raise InvalidInput("quantity must be >= 1")
        lines = self.get() + [{"product_id": product_id, "quantity": quantity}]
        self.set(lines)
        return self.get()

    def update(self, product_id: int, quantity: int) -> bool:
        """Set a line's quantity; 0 removes it. Returns False if the product isn't in the cart."""
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise InvalidInput("quantity must be >= 0")
        lines = self.get()
        if not any(l["product_id"] == product_id for l in lines):
            return False
        if quantity == 0:
            lines = [l for l in lines if l["product_id"] != product_id]
        else:
            lines = [dict(l, quantity=quantity) if l["product_id"] == product_id else l for l in lines]
        self.set(lines)
        return True

    def remove(self, product_id: int) -> bool:
        return self.update(product_id, 0)


class DbCartStore(CartStore):
    """Active Cart row per authenticated user. Flushes, never commits."""

    def __init__(self, user_id: str):
        self.user_id = user_id

    def _cart(self, create: bool = False) -> Cart | None:
        cart = Cart.query.filter_by(user_id=self.user_id, status="active").first()
        if not cart and create:
            cart = Cart(user_id=self.user_id, status="active")
            db.session.add(cart)
            db.session.flush()
        return cart

    def get(self) -> list[dict]:
        cart = self._cart()
        return cart.lines() if cart else []

    def set(self, lines) -> None:
        lines = normalize_lines(lines)
        cart = self._cart(create=bool(lines))
        if not cart:
            return
        wanted = {l["product_id"]: l["quantity"] for l in lines}
        for item in list(cart.items):
            if item.product_id not in wanted:
                cart.items.remove(item)
        existing = {i.product_id: i for i in cart.items}
        for pid, qty in wanted.items():
            if pid in existing:
                existing[pid].quantity = qty
            else:
                cart.items.append(CartItem(product_id=pid, quantity=qty))
        db.session.flush()

    def clear(self) -> None:
        cart = self._cart()
        if cart:
            cart.items.clear()
            db.session.flush()


class SessionCartStore(CartStore):
    """Guest cart kept in the signed session cookie."""

    def __init__(self, store=None):
        self.store = session if store is None else store

    def get(self) -> list[dict]:
        raw = self.store.get(SESSION_CART_KEY) or []
        return [dict(l) for l in raw]

    def set(self, lines) -> None:
        lines = normalize_lines(lines)
        if lines:
            self.store[SESSION_CART_KEY] = lines
        else:
            self.store.pop(SESSION_CART_KEY, None)
        if hasattr(self.store, "modified"):
            self.store.modified = True


def current_user_id() -> str | None:
    verify_jwt_in_request(optional=True)
    uid = get_jwt_identity()
    return str(uid) if uid else None


def resolve_cart_store() -> CartStore:
    uid = current_user_id()
    return DbCartStore(uid) if uid else SessionCartStore()


def merge_guest_cart(guest: CartStore, target: CartStore, known_product_ids=None) -> dict:
    """
    Move a guest cart into a user's cart after login. Quantities add up.
    Malformed lines are dropped; lines for unknown products stay in the
    guest cart so a later merge can pick them up.
    """
    raw = guest.store.get(SESSION_CART_KEY) if isinstance(guest, SessionCartStore) else guest.get()
    raw = raw or []
    migrated, retained, dropped = [], [], []
    for line in raw:
        pid = line.get("product_id") if isinstance(line, dict) else None
        qty = line.get("quantity") if isinstance(line, dict) else None
        if not _is_pos_int(pid) or not _is_pos_int(qty):
            logger.warning("dropping invalid guest cart line %r", line)
            dropped.append(line)
            continue
        if known_product_ids is not None and pid not in known_product_ids:
            logger.warning("keeping guest cart line for unknown product %s", pid)
            retained.append({"product_id": pid, "quantity": qty})
            continue
        migrated.append({"product_id": pid, "quantity": qty})

    if migrated:
        target.set(target.get() + migrated)
    guest.set(retained)
    return {"migrated": migrated, "retained": retained, "dropped": dropped}
