# teastore/admin/routes.py
import logging
from datetime import datetime, timedelta

from flask import request

from . import bp
from ..extensions import db
from ..model import Order, User, ORDER_STATUSES
from ..services import order_service
from ..services.loyalty import get_loyalty_progress
from ..utils.api import ok, err
from ..utils.decorators import role_at_least

logger = logging.getLogger(__name__)


def _get_user(user_id: str):
    return db.session.get(User, user_id)


# ---- users -------------------------------------------------------------------

@bp.get("/users/search")
@role_at_least("manager")
def search_user():
    phone = (request.args.get("phone") or "").strip()
    if not phone:
        return err("phone is required", 400)
    user = User.query.filter_by(phone=phone).first()
    if not user:
        return err("user not found", 404)
    return ok("user", {"user": user.as_dict(), "loyalty": get_loyalty_progress(user.xp)})


@bp.get("/users/<user_id>/orders")
@role_at_least("manager")
def user_orders(user_id):
    q = Order.query.filter(Order.user_id == user_id).order_by(Order.created_at.desc())
    return ok("orders", {"items": [o.as_api() for o in q.all()]})


@bp.patch("/users/<user_id>/xp")
@role_at_least("admin")
def set_user_xp(user_id):
    data = request.get_json(silent=True) or {}
    xp = data.get("xp")
    if isinstance(xp, bool) or not isinstance(xp, int) or xp < 0:
        return err("Invalid XP value", 400)
    user = _get_user(user_id)
    if not user:
        return err("user not found", 404)
    user.xp = xp
    db.session.commit()
    logger.info("admin set xp=%s for user %s", xp, user_id)
    return ok("XP updated", {"user": user.as_dict(), "loyalty": get_loyalty_progress(user.xp)})


@bp.patch("/users/<user_id>/discount")
@role_at_least("admin")
def set_user_discount(user_id):
    """Grant (1-100) or revoke (null/0) a one-time personal discount."""
    data = request.get_json(silent=True) or {}
    pct = data.get("percent")
    if pct is not None and (isinstance(pct, bool) or not isinstance(pct, int) or not 0 <= pct <= 100):
        return err("percent must be an integer between 0 and 100", 400)
    user = _get_user(user_id)
    if not user:
        return err("user not found", 404)
    user.custom_discount = pct or None
    db.session.commit()
    logger.info("admin set custom discount=%s for user %s", user.custom_discount, user_id)
    return ok("Discount updated", {"user": user.as_dict()})


@bp.patch("/users/<user_id>/phone-verified")
@role_at_least("admin")
def set_phone_verified(user_id):
    data = request.get_json(silent=True) or {}
    verified = data.get("verified")
    if not isinstance(verified, bool):
        return err("verified must be a boolean", 400)
    user = _get_user(user_id)
    if not user:
        return err("user not found", 404)
    user.phone_verified = verified
    db.session.commit()
    return ok("Verification updated", {"user": user.as_dict()})


# ---- orders ------------------------------------------------------------------

@bp.get("/orders")
@role_at_least("manager")
def list_orders():
    """
    Query params:
      - page, per_page
      - status=pending|paid|completed|cancelled
      - phone=...
      - email=...
      - code=ORD-...
      - start=YYYY-MM-DD
      - end=YYYY-MM-DD (inclusive)
    """
    q = Order.query

    status = request.args.get("status")
    phone = request.args.get("phone")
    email = request.args.get("email")
    code = request.args.get("code")
    start = request.args.get("start")
    end = request.args.get("end")

    if status and status != "all":
        if status not in ORDER_STATUSES:
            return err("unknown status", 400)
        q = q.filter(Order.status == status)
    if phone: q = q.filter(Order.phone == phone)
    if email: q = q.filter(Order.email == email)
    if code:  q = q.filter(Order.code == code)

    try:
        if start:
            q = q.filter(Order.created_at >= datetime.fromisoformat(start))
        if end:
            # make end inclusive for the whole day
            q = q.filter(Order.created_at < datetime.fromisoformat(end) + timedelta(days=1))
    except ValueError:
        return err("start/end must be YYYY-MM-DD", 400)

    page = max(request.args.get("page", 1, type=int), 1)
    per = min(max(request.args.get("per_page", 20, type=int), 1), 100)

    q = q.order_by(Order.created_at.desc())
    paged = q.paginate(page=page, per_page=per, error_out=False)

    return ok("orders", {
        "page": page,
        "per_page": per,
        "total": paged.total,
        "items": [o.as_api() for o in paged.items],
    })


@bp.patch("/orders/<int:order_id>/status")
@role_at_least("manager")
def update_order_status(order_id: int):
    data = request.get_json(silent=True) or {}
    new_status = (data.get("status") or "").strip().lower()
    expected = data.get("expected_status")
    order = order_service.update_order_status(order_id, new_status, expected_status=expected)
    return ok("order status updated", {"order": order.as_api()})
