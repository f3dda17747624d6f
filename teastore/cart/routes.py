# teastore/cart/routes.py
from __future__ import annotations

from flask import request
from flask_jwt_extended import jwt_required

from . import bp
from ..extensions import db
from ..model import Product
from ..services.cart_store import DbCartStore, SessionCartStore, resolve_cart_store, merge_guest_cart
from ..services.order_service import load_catalog, quote
from ..utils.api import ok, err
from ..utils.decorators import _current_user
from ..utils.money import D, round_display


# ---- helpers ---------------------------------------------------------------

def _cart_view(store) -> dict:
    lines = store.get()
    products = load_catalog(l["product_id"] for l in lines)
    items, available = [], []
    for l in lines:
        p = products.get(l["product_id"])
        items.append({
            "product_id": l["product_id"],
            "quantity": l["quantity"],
            "available": p is not None,
            "product": p.as_api() if p else None,
            "line_total": round_display(D(p.price) * l["quantity"]) if p else None,
        })
        if p:
            available.append(l)

    pricing = None
    if available:
        user = _current_user(optional=True)
        pricing = quote(available, user).as_api()
    return {
        "owner": "user" if isinstance(store, DbCartStore) else "guest",
        "items": items,
        "pricing": pricing,
    }

def _quantity(data, key="quantity", default=None):
    qty = data.get(key, default)
    if isinstance(qty, bool) or not isinstance(qty, int):
        return None
    return qty


# ---- endpoints -------------------------------------------------------------

@bp.get("")
def get_cart():
    return ok("cart", _cart_view(resolve_cart_store()))

@bp.get("/quote")
def get_quote():
    store = resolve_cart_store()
    view = _cart_view(store)
    if view["pricing"] is None:
        return err("cart is empty", 422)
    return ok("quote", {"pricing": view["pricing"]})

@bp.post("/items")
def add_item():
    """
    Body: { "product_id": int, "quantity": int }
    """
    store = resolve_cart_store()
    data = request.get_json(silent=True) or {}
    product_id = data.get("product_id")
    qty = _quantity(data, default=1)

    if not isinstance(product_id, int) or isinstance(product_id, bool):
        return err("product_id is required", 422)
    if qty is None or qty < 1:
        return err("quantity must be >= 1", 422)

    product = db.session.get(Product, product_id)
    if not product or product.status is False:
        return err("product not found or inactive", 404)

    store.add(product_id, qty)
    db.session.commit()
    return ok("item added", _cart_view(store), status=201)

@bp.patch("/items/<int:product_id>")
def update_item(product_id: int):
    store = resolve_cart_store()
    data = request.get_json(silent=True) or {}
    qty = _quantity(data)
    if qty is None or qty < 0:
        return err("quantity must be >= 0", 422)
    if not store.update(product_id, qty):
        return err("cart item not found", 404)
    db.session.commit()
    return ok("item updated", _cart_view(store))

@bp.delete("/items/<int:product_id>")
def remove_item(product_id: int):
    store = resolve_cart_store()
    if not store.remove(product_id):
        return err("cart item not found", 404)
    db.session.commit()
    return ok("item removed", _cart_view(store))

@bp.delete("")
def clear_cart():
    store = resolve_cart_store()
    store.clear()
    db.session.commit()
    return ok("cart cleared", _cart_view(store))

@bp.post("/merge")
@jwt_required()
def merge_cart():
    """Fold the guest cart from the session into the signed-in user's cart."""
    user = _current_user()
    if not user:
        return err("Unauthorized", 401)
    guest = SessionCartStore()
    ids = {l["product_id"] for l in guest.get()}
    known = set(load_catalog(ids).keys())
    result = merge_guest_cart(guest, DbCartStore(user.id), known_product_ids=known)
    db.session.commit()
    return ok("cart merged", {
        "migrated": len(result["migrated"]),
        "retained": len(result["retained"]),
        "cart": _cart_view(DbCartStore(user.id)),
    })
