"""Cart and order operations for a logged-in user."""

import logging
from decimal import Decimal
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from storefront.core.errors import NotFoundError, StorefrontError
from storefront.db.models.order import CartItem, Order, OrderItem
from storefront.db.models.product import Product
from storefront.db.models.user import User

logger = logging.getLogger(__name__)


class EmptyCartError(StorefrontError):
    pass


class CartService:
    def __init__(self, db: Session):
        self.db = db

    def items(self, user_id: int) -> List[CartItem]:
        return list(
            self.db.scalars(
                select(CartItem)
                .where(CartItem.user_id == user_id)
                .options(selectinload(CartItem.product))
                .order_by(CartItem.id)
            )
        )

    def add(self, user_id: int, product_id: int) -> CartItem:
        if self.db.get(Product, product_id) is None:
            raise NotFoundError(f"Product {product_id} not found")

        item = self.db.scalar(
            select(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
        )
        if item is None:
            item = CartItem(user_id=user_id, product_id=product_id, quantity=1)
            self.db.add(item)
        else:
            item.quantity += 1
        self.db.commit()
        return item

    def remove(self, user_id: int, product_id: int) -> None:
        item = self.db.scalar(
            select(CartItem).where(CartItem.user_id == user_id, CartItem.product_id == product_id)
        )
        if item is not None:
            self.db.delete(item)
            self.db.commit()

    @staticmethod
    def total(items: List[CartItem]) -> Decimal:
        return sum((item.product.price * item.quantity for item in items), Decimal("0"))


class OrderService:
    def __init__(self, db: Session):
        self.db = db

    def place_order(self, user: User) -> Order:
        """Turn the user's cart into an order and empty the cart."""
        cart = CartService(self.db)
        items = cart.items(user.id)
        if not items:
            raise EmptyCartError("Your cart is empty.")

        order = Order(
            user_id=user.id,
            email=user.email,
            items=[
                OrderItem(
                    product_id=item.product_id,
                    title=item.product.title,
                    price=item.product.price,
                    quantity=item.quantity,
                )
                for item in items
            ],
        )
        self.db.add(order)
        for item in items:
            self.db.delete(item)
        self.db.commit()
        self.db.refresh(order)
        logger.info("Order placed", extra={"order_id": order.id, "user_id": user.id, "lines": len(items)})
        return order

    def list_orders(self, user_id: int) -> List[Order]:
        return list(
            self.db.scalars(
                select(Order)
                .where(Order.user_id == user_id)
                .options(selectinload(Order.items))
                .order_by(Order.id.desc())
            )
        )
