# --- teastore/model/user.py ---
import uuid as _uuid

from sqlalchemy.sql import func

from ..extensions import db


class User(db.Model):
    __tablename__ = "user"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(_uuid.uuid4()))
    name = db.Column(db.String(180), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=True, index=True)
    phone = db.Column(db.String(32), unique=True, nullable=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False, default="")
    role = db.Column(db.String(50), nullable=False, default="user", index=True)  # roles: user, manager, admin

    # loyalty
    xp = db.Column(db.Integer, nullable=False, default=0)
    phone_verified = db.Column(db.Boolean, nullable=False, default=False)

    # one-time discounts; only order_service flips these, with conditional updates
    first_order_discount_used = db.Column(db.Boolean, nullable=False, default=False)
    first_order_discount_order_id = db.Column(db.Integer, nullable=True)
    custom_discount = db.Column(db.Integer, nullable=True)  # percent, 0-100

    created_at = db.Column(db.DateTime, server_default=func.now())

    def as_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "phone": self.phone,
            "name": self.name,
            "role": self.role,
            "xp": self.xp or 0,
            "phone_verified": bool(self.phone_verified),
            "first_order_discount_used": bool(self.first_order_discount_used),
            "custom_discount": self.custom_discount,
        }


class RefreshToken(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("user.id"), nullable=False)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
