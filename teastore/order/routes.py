# teastore/order/routes.py
from flask import request
from flask_jwt_extended import jwt_required

from . import bp
from ..extensions import db
from ..model import Order
from ..services import order_service
from ..services.cart_store import resolve_cart_store
from ..utils.api import ok, err
from ..utils.decorators import _current_user, ROLE_LEVEL


@bp.post("")
def place_order():
    """
    Body:
      { "name", "email", "phone", "address", "comment"?,
        "items"?: [{"product_id": int, "quantity": int}],   # defaults to the cart
        "total"?: number }                                  # informational only
    """
    payload = request.get_json(silent=True) or {}
    user = _current_user(optional=True)
    order, trusted = order_service.place_order(payload, user, resolve_cart_store())

    resp = ok("order created", {"order": order.as_api(), "pricing": trusted.as_api()}, status=201)
    resp.headers["X-Order-Id"] = str(order.id)
    return resp


@bp.get("")
@jwt_required()
def my_orders():
    user = _current_user()
    if not user:
        return err("Unauthorized", 401)
    q = (Order.query.filter(Order.user_id == user.id)
                    .order_by(Order.created_at.desc())
                    .limit(100))
    return ok("orders", {"items": [o.as_api() for o in q.all()]})


@bp.get("/<int:order_id>")
@jwt_required()
def get_order(order_id: int):
    user = _current_user()
    o = db.session.get(Order, order_id)
    if not o or not user:
        return err("order not found", 404)
    if o.user_id != user.id and ROLE_LEVEL.get(user.role, 0) < ROLE_LEVEL["manager"]:
        return err("order not found", 404)
    return ok("order", {"order": o.as_api()})


@bp.post("/<int:order_id>/cancel")
@jwt_required()
def cancel_order(order_id: int):
    user = _current_user()
    if not user:
        return err("Unauthorized", 401)
    order = order_service.cancel_order(order_id, user)
    return ok("order cancelled", {"order": order.as_api()})
