"""Database models"""

from storefront.db.models.order import CartItem, Order, OrderItem
from storefront.db.models.product import Product
from storefront.db.models.session_store import SessionRecord
from storefront.db.models.user import User

__all__ = [
    "User",
    "Product",
    "CartItem",
    "Order",
    "OrderItem",
    "SessionRecord",
]
