"""Product catalog queries and admin CRUD."""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from storefront.core.errors import NotFoundError, PermissionDeniedError
from storefront.core.schemas.forms import ProductForm
from storefront.db.models.order import CartItem, OrderItem
from storefront.db.models.product import Product

logger = logging.getLogger(__name__)


@dataclass
class ProductPage:
    items: List[Product]
    page: int
    per_page: int
    total: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.last_page


class ProductService:
    def __init__(self, db: Session):
        self.db = db

    def list_page(self, page: int = 1, per_page: int = 6) -> ProductPage:
        page = max(page, 1)
        total = self.db.scalar(select(func.count()).select_from(Product)) or 0
        items = list(
            self.db.scalars(
                select(Product)
                .order_by(Product.id)
                .offset((page - 1) * per_page)
                .limit(per_page)
            )
        )
        return ProductPage(items=items, page=page, per_page=per_page, total=total)

    def list_for_owner(self, user_id: int) -> List[Product]:
        return list(self.db.scalars(select(Product).where(Product.user_id == user_id).order_by(Product.id)))

    def get(self, product_id: int) -> Product:
        product = self.db.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    def get_owned(self, user_id: int, product_id: int) -> Product:
        product = self.get(product_id)
        if product.user_id != user_id:
            raise PermissionDeniedError("Product belongs to another admin")
        return product

    def create(self, user_id: int, form: ProductForm, image_url: str) -> Product:
        product = Product(
            title=form.title,
            price=form.price,
            description=form.description,
            image_url=image_url,
            user_id=user_id,
        )
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        logger.info("Created product", extra={"product_id": product.id, "user_id": user_id})
        return product

    def update(
        self, user_id: int, product_id: int, form: ProductForm, image_url: Optional[str] = None
    ) -> Tuple[Product, Optional[str]]:
        """
        Apply the form to an owned product.

        Returns the product and the replaced image URL (None if the image was kept).
        """
        product = self.get_owned(user_id, product_id)
        product.title = form.title
        product.price = form.price
        product.description = form.description

        replaced = None
        if image_url:
            replaced, product.image_url = product.image_url, image_url

        self.db.commit()
        self.db.refresh(product)
        return product, replaced

    def delete(self, user_id: int, product_id: int) -> str:
        """Delete an owned product and drop it from every cart; returns its image URL."""
        product = self.get_owned(user_id, product_id)
        image_url = product.image_url

        self.db.execute(delete(CartItem).where(CartItem.product_id == product_id))
        self.db.execute(
            update(OrderItem).where(OrderItem.product_id == product_id).values(product_id=None)
        )
        self.db.delete(product)
        self.db.commit()
        logger.info("Deleted product", extra={"product_id": product_id, "user_id": user_id})
        return image_url
