import re
from decimal import InvalidOperation

from flask import request, jsonify
from sqlalchemy import desc, asc

from . import bp
from ..extensions import db
from ..model import Product
from ..utils.api import api_ok, api_error
from ..utils.decorators import role_at_least
from ..utils.money import D


# ---------- helpers ----------
def slugify(text):
    text = text.strip().lower()
    text = re.sub(r"[^\w]+", "-", text)
    return text.strip("-")

def _parse_int(v, default=0):
    try:
        return int(v)
    except Exception:
        return default

def _parse_bool(v, default=False):
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}

def _sort_products(query, sort):
    sort = (sort or "").strip()
    mapping = {
        "id": asc(Product.id),   "-id": desc(Product.id),
        "name": asc(Product.name), "-name": desc(Product.name),
        "price": asc(Product.price), "-price": desc(Product.price),
        "sort_order": asc(Product.sort_order),
    }
    col = mapping.get(sort, asc(Product.sort_order))
    return query.order_by(col, asc(Product.id))

def _paginate(query, page, per_page):
    page = max(_parse_int(page, 1), 1)
    per_page = min(max(_parse_int(per_page, 20), 1), 100)
    items = query.paginate(page=page, per_page=per_page, error_out=False)
    return {
        "meta": {
            "page": items.page,
            "pages": items.pages or 1,
            "per_page": per_page,
            "total": items.total,
        },
        "items": [p.as_api() for p in items.items],
    }

def _apply_payload(p: Product, data: dict, creating: bool):
    if creating or "name" in data:
        name = (data.get("name") or "").strip()
        if len(name) < 2:
            raise ValueError("name must be at least 2 characters")
        p.name = name
        p.slug = (data.get("slug") or slugify(name))
    if creating or "price" in data:
        if data.get("price") is None:
            raise ValueError("price is required")
        try:
            price = D(data.get("price"))
        except (InvalidOperation, ValueError):
            raise ValueError("price must be numeric")
        if not price.is_finite() or price < 0:
            raise ValueError("price must be >= 0")
        p.price = price
    for key in ("description", "unit", "tea_type"):
        if key in data:
            setattr(p, key, data.get(key) or "")
    for key in ("available_quantities", "effects", "images"):
        if key in data:
            val = data.get(key) or []
            if not isinstance(val, list):
                raise ValueError(f"{key} must be a list")
            setattr(p, key, val)
    if "sort_order" in data:
        p.sort_order = _parse_int(data.get("sort_order"), 0)
    if "status" in data:
        p.status = _parse_bool(data.get("status"), True)


# ---------- endpoints ----------
@bp.get("")
def list_products():
    q = Product.query.filter(Product.status.is_(True))
    tea_type = request.args.get("tea_type")
    search = request.args.get("q")
    if tea_type:
        q = q.filter(Product.tea_type == tea_type)
    if search:
        q = q.filter(Product.name.ilike(f"%{search.strip()}%"))
    q = _sort_products(q, request.args.get("sort"))
    return jsonify(api_ok("products", _paginate(q, request.args.get("page"), request.args.get("per_page")))), 200

@bp.get("/<int:product_id>")
def get_product(product_id: int):
    p = db.session.get(Product, product_id)
    if not p or p.status is False:
        return jsonify(api_error("product not found")), 404
    return jsonify(api_ok("product", {"product": p.as_api()})), 200

@bp.post("")
@role_at_least("manager")
def create_product():
    data = request.get_json(silent=True) or {}
    p = Product()
    try:
        _apply_payload(p, data, creating=True)
    except ValueError as e:
        return jsonify(api_error(str(e))), 400
    db.session.add(p)
    db.session.commit()
    return jsonify(api_ok("Product created", {"product": p.as_api()})), 201

@bp.put("/<int:product_id>")
@role_at_least("manager")
def update_product(product_id: int):
    p = db.session.get(Product, product_id)
    if not p:
        return jsonify(api_error("product not found")), 404
    data = request.get_json(silent=True) or {}
    try:
        _apply_payload(p, data, creating=False)
    except ValueError as e:
        return jsonify(api_error(str(e))), 400
    db.session.commit()
    return jsonify(api_ok("Product updated", {"product": p.as_api()})), 200

@bp.delete("/<int:product_id>")
@role_at_least("manager")
def delete_product(product_id: int):
    # soft delete: order history keeps pointing at the row
    p = db.session.get(Product, product_id)
    if not p:
        return jsonify(api_error("product not found")), 404
    p.status = False
    db.session.commit()
    return jsonify(api_ok("Product withdrawn", {"id": p.id})), 200
