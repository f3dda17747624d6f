# teastore/model/product.py
from sqlalchemy.sql import func

from ..extensions import db


class Product(db.Model):
    __tablename__ = "product"
    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(255), index=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False, default="")

    # price per unit (per gram for loose-leaf tea)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    unit = db.Column(db.String(32), default="g")
    available_quantities = db.Column(db.JSON)         # e.g. [25, 50, 100]

    tea_type = db.Column(db.String(64), index=True)
    effects = db.Column(db.JSON)
    images = db.Column(db.JSON)

    sort_order = db.Column(db.Integer, default=0)
    status = db.Column(db.Boolean, default=True)      # False = withdrawn from sale

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "price": float(self.price or 0),
            "unit": self.unit,
            "available_quantities": self.available_quantities or [],
            "tea_type": self.tea_type,
            "effects": self.effects or [],
            "images": self.images or [],
            "sort_order": self.sort_order,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
