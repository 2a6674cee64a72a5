"""Service layer: accounts, catalog, cart and orders over SQLAlchemy sessions."""

from storefront.services.accounts import UserService
from storefront.services.catalog import ProductPage, ProductService
from storefront.services.orders import CartService, OrderService

__all__ = ["UserService", "ProductService", "ProductPage", "CartService", "OrderService"]
