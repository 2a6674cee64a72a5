"""Storefront pages: catalog, cart, checkout and orders"""

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from storefront.core.context import AppContext
from storefront.core.flash import flash
from storefront.db.models.user import User
from storefront.services.catalog import ProductService
from storefront.services.orders import CartService, EmptyCartError, OrderService
from storefront.web.deps import get_context, get_db, get_templates, require_user

router = APIRouter(tags=["shop"])


@router.get("/")
def index(
    request: Request,
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    """Landing page with the first page of products"""
    page = ProductService(db).list_page(1, context.settings.PRODUCTS_PER_PAGE)
    return context.templates.TemplateResponse(
        request, "shop/index.html", {"page_title": "Shop", "path": "/", "page": page}
    )


@router.get("/products")
def product_list(
    request: Request,
    page: int = 1,
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    products = ProductService(db).list_page(page, context.settings.PRODUCTS_PER_PAGE)
    return context.templates.TemplateResponse(
        request,
        "shop/product_list.html",
        {"page_title": "All Products", "path": "/products", "page": products},
    )


@router.get("/products/{product_id}")
def product_detail(
    request: Request,
    product_id: int,
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
):
    product = ProductService(db).get(product_id)
    return templates.TemplateResponse(
        request,
        "shop/product_detail.html",
        {"page_title": product.title, "path": "/products", "product": product},
    )


@router.get("/cart")
def cart(
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
):
    items = CartService(db).items(user.id)
    return templates.TemplateResponse(
        request,
        "shop/cart.html",
        {"page_title": "Your Cart", "path": "/cart", "items": items, "total": CartService.total(items)},
    )


@router.post("/cart")
def add_to_cart(
    request: Request,
    product_id: int = Form(...),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    CartService(db).add(user.id, product_id)
    return RedirectResponse(url="/cart", status_code=303)


@router.post("/cart/delete-item")
def delete_cart_item(
    request: Request,
    product_id: int = Form(...),
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    CartService(db).remove(user.id, product_id)
    return RedirectResponse(url="/cart", status_code=303)


@router.get("/checkout")
def checkout(
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
):
    """Order summary; payment is not handled here"""
    items = CartService(db).items(user.id)
    return templates.TemplateResponse(
        request,
        "shop/checkout.html",
        {"page_title": "Checkout", "path": "/checkout", "items": items, "total": CartService.total(items)},
    )


@router.post("/orders")
def create_order(
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    try:
        OrderService(db).place_order(user)
    except EmptyCartError as e:
        flash(request, str(e), "error")
        return RedirectResponse(url="/cart", status_code=303)

    flash(request, "Order placed.", "success")
    return RedirectResponse(url="/orders", status_code=303)


@router.get("/orders")
def orders(
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
):
    return templates.TemplateResponse(
        request,
        "shop/orders.html",
        {"page_title": "Your Orders", "path": "/orders", "orders": OrderService(db).list_orders(user.id)},
    )
