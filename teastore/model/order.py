from datetime import datetime

from ..extensions import db
from ..utils.money import round_display

ORDER_STATUSES = ("pending", "paid", "completed", "cancelled")


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), unique=True, index=True)  # e.g., "ORD-20261016-101502123"
    status = db.Column(db.String(20), default="pending", index=True)
    user_id = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=True, index=True)

    # Customer snapshot
    customer_name = db.Column(db.String(120))
    phone = db.Column(db.String(50))
    email = db.Column(db.String(120))
    address = db.Column(db.Text)
    comment = db.Column(db.Text)

    # Money snapshot (recomputed server-side, never the client's figures)
    subtotal = db.Column(db.Numeric(14, 4))
    bulk_discount_amount = db.Column(db.Numeric(14, 4))
    first_order_discount_amount = db.Column(db.Numeric(14, 4))
    loyalty_discount_amount = db.Column(db.Numeric(14, 4))
    custom_discount_amount = db.Column(db.Numeric(14, 4))
    total = db.Column(db.Numeric(14, 4))
    client_total = db.Column(db.Numeric(14, 4))

    loyalty_percent = db.Column(db.Integer, default=0)
    custom_discount_percent = db.Column(db.Integer, default=0)

    # which one-time discounts this order consumed
    first_order_discount_applied = db.Column(db.Boolean, default=False)
    custom_discount_applied = db.Column(db.Boolean, default=False)
    xp_awarded = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="joined",
    )

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "status": self.status,
            "user_id": self.user_id,
            "customer": {
                "name": self.customer_name,
                "phone": self.phone,
                "email": self.email,
                "address": self.address,
                "comment": self.comment,
            },
            "money": {
                "subtotal": round_display(self.subtotal or 0),
                "bulk_discount_amount": round_display(self.bulk_discount_amount or 0),
                "first_order_discount_amount": round_display(self.first_order_discount_amount or 0),
                "loyalty_discount_amount": round_display(self.loyalty_discount_amount or 0),
                "custom_discount_amount": round_display(self.custom_discount_amount or 0),
                "total": round_display(self.total or 0),
            },
            "discounts": {
                "loyalty_percent": self.loyalty_percent or 0,
                "custom_percent": self.custom_discount_percent or 0,
                "first_order_discount_applied": bool(self.first_order_discount_applied),
                "custom_discount_applied": bool(self.custom_discount_applied),
            },
            "xp_awarded": self.xp_awarded or 0,
            "items": [i.as_api() for i in self.items],
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, index=True)
    name = db.Column(db.String(255))
    unit = db.Column(db.String(32))

    unit_price = db.Column(db.Numeric(12, 2))
    quantity = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Numeric(14, 4))

    def as_api(self):
        return {
            "product_id": self.product_id,
            "name": self.name,
            "unit": self.unit,
            "unit_price": float(self.unit_price or 0),
            "quantity": self.quantity,
            "line_total": round_display(self.line_total or 0),
        }
