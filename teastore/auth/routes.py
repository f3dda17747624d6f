import logging
import uuid
from datetime import datetime, timedelta

from flask import request, jsonify, current_app
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from werkzeug.security import generate_password_hash, check_password_hash

from . import bp
from ..extensions import db
from ..model import User, RefreshToken, Product
from ..services.cart_store import DbCartStore, SessionCartStore, merge_guest_cart
from ..services.loyalty import get_loyalty_progress
from ..services.reconciler import build_profile
from ..utils.api import api_ok, api_error

logger = logging.getLogger(__name__)


# --- helper: create & persist a token pair ---
def _issue_tokens(user_id: str):
    access_token = create_access_token(identity=str(user_id))
    refresh_token_str = str(uuid.uuid4())
    refresh_row = RefreshToken(
        user_id=user_id,
        token=refresh_token_str,
        expires_at=datetime.utcnow() + current_app.config.get("JWT_REFRESH_TOKEN_EXPIRES", timedelta(days=30)),
    )
    db.session.add(refresh_row)
    return access_token, refresh_token_str


def _merge_guest_cart_into(user: User) -> dict:
    guest = SessionCartStore()
    if not guest.get():
        return {"migrated": [], "retained": [], "dropped": []}
    ids = {l["product_id"] for l in guest.get()}
    known = {pid for (pid,) in db.session.query(Product.id).filter(Product.id.in_(ids), Product.status.is_(True))}
    result = merge_guest_cart(guest, DbCartStore(user.id), known_product_ids=known)
    logger.info("merged %d guest cart lines into user %s", len(result["migrated"]), user.id)
    return result


def _find_user(email: str, phone: str):
    if email:
        return User.query.filter_by(email=email).first()
    if phone:
        return User.query.filter_by(phone=phone).first()
    return None


@bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower() or None
    phone = (data.get("phone") or "").strip() or None
    password = data.get("password") or ""
    name = (data.get("name") or "").strip()

    if not email and not phone:
        return jsonify(api_error("Email or phone required")), 400
    if not password or len(password) < 6:
        return jsonify(api_error("Password required, min 6 chars")), 400
    if not name:
        return jsonify(api_error("Name required")), 400
    if email and User.query.filter_by(email=email).first():
        return jsonify(api_error("Email already registered")), 409
    if phone and User.query.filter_by(phone=phone).first():
        return jsonify(api_error("Phone already registered")), 409

    # Bootstrap: very first account becomes admin
    is_first_user = db.session.query(User.id).count() == 0
    role = "admin" if is_first_user else "user"

    user = User(email=email, phone=phone, password_hash=generate_password_hash(password), name=name, role=role)
    db.session.add(user)
    db.session.flush()

    _merge_guest_cart_into(user)
    access_token, refresh_token = _issue_tokens(user.id)
    db.session.commit()

    return jsonify(api_ok("Account created successfully", data={
        "user": user.as_dict(),
        "user_logged_in": True,
        "token": access_token,
        "refresh_token": refresh_token,
    })), 201


@bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    phone = (data.get("phone") or "").strip()
    password = data.get("password") or ""
    if not (email or phone) or not password:
        return jsonify(api_error("Email or phone and password are required")), 400

    user = _find_user(email, phone)
    if not user or not check_password_hash(user.password_hash, password):
        return jsonify(api_error("Invalid credentials")), 401

    merged = _merge_guest_cart_into(user)
    access_token, refresh_token = _issue_tokens(user.id)
    db.session.commit()

    return jsonify(api_ok(
        "You've logged in successfully",
        data={
            "user": user.as_dict(),
            "user_logged_in": True,
            "token": access_token,
            "refresh_token": refresh_token,
            "cart_merged": len(merged["migrated"]),
        }
    )), 200


@bp.get("/me")
@jwt_required()
def me():
    user = db.session.get(User, str(get_jwt_identity()))
    if not user:
        return jsonify(api_error("user not found")), 404
    profile = build_profile(user, current_app.config.get("FIRST_ORDER_DISCOUNT_PERCENT", 20))
    return jsonify(api_ok("me", data={
        "user": user.as_dict(),
        "loyalty": get_loyalty_progress(user.xp),
        "discounts": profile.as_api(),
    })), 200


@bp.post("/refresh")
def refresh():
    data = request.get_json(silent=True) or {}
    token_str = data.get("refresh_token")
    if not token_str:
        return jsonify(api_error("refresh_token is required")), 400

    refresh_row = RefreshToken.query.filter_by(token=token_str).first()
    if not refresh_row or refresh_row.expires_at < datetime.utcnow():
        return jsonify(api_error("Invalid or expired refresh token")), 401

    user_id = refresh_row.user_id

    # single-use: drop the presented token before issuing a new pair
    db.session.delete(refresh_row)
    db.session.flush()

    new_access, new_refresh = _issue_tokens(user_id)
    db.session.commit()

    return jsonify(api_ok(
        "Token refreshed",
        data={
            "token": new_access,
            "refresh_token": new_refresh
        }
    )), 200
