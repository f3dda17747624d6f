# ------ teastore/model/__init__.py ------

from .user import User, RefreshToken
from .product import Product
from .cart import Cart, CartItem
from .order import Order, OrderItem, ORDER_STATUSES

__all__ = [
    "User",
    "RefreshToken",
    "Product",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "ORDER_STATUSES",
]
