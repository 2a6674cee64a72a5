"""
Product administration pages.

Every route requires a logged-in user, and a user may only edit or delete
products they created. Images arrive through the upload handler; a file of
a disallowed type is simply absent by the time the route sees the form.
"""

import logging
from typing import Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from storefront.core.context import AppContext
from storefront.core.flash import flash
from storefront.core.schemas.forms import ProductForm, form_errors
from storefront.core.uploads import UploadedImage, get_uploaded_image
from storefront.db.models.user import User
from storefront.services.catalog import ProductService
from storefront.web.deps import get_context, get_db, require_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"], dependencies=[Depends(require_user)])

MISSING_IMAGE = "Attached file is not an image."


def _validate(title: str, price: str, description: str) -> Tuple[Optional[ProductForm], Dict[str, str]]:
    try:
        return ProductForm(title=title, price=price, description=description), {}
    except ValidationError as e:
        return None, form_errors(e)


def _render_form(request: Request, context: AppContext, editing: bool, form: dict, errors: dict, status_code: int = 200):
    return context.templates.TemplateResponse(
        request,
        "admin/edit_product.html",
        {
            "page_title": "Edit Product" if editing else "Add Product",
            "path": "/admin/edit-product" if editing else "/admin/add-product",
            "editing": editing,
            "form": form,
            "errors": errors,
        },
        status_code=status_code,
    )


@router.get("/products")
def admin_products(
    request: Request,
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    """Products created by the current user"""
    return context.templates.TemplateResponse(
        request,
        "admin/products.html",
        {
            "page_title": "Admin Products",
            "path": "/admin/products",
            "products": ProductService(db).list_for_owner(user.id),
        },
    )


@router.get("/add-product")
def add_product_page(request: Request, context: AppContext = Depends(get_context)):
    return _render_form(request, context, editing=False, form={}, errors={})


@router.post("/add-product")
def add_product(
    request: Request,
    title: str = Form(""),
    price: str = Form(""),
    description: str = Form(""),
    image: Optional[UploadedImage] = Depends(get_uploaded_image),
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    form, errors = _validate(title, price, description)
    if image is None:
        errors.setdefault("image", MISSING_IMAGE)

    if errors:
        if image is not None:
            context.uploads.remove(image.url)
        submitted = {"title": title, "price": price, "description": description}
        return _render_form(request, context, False, submitted, errors, status_code=422)

    ProductService(db).create(user.id, form, image.url)
    flash(request, "Product added.", "success")
    return RedirectResponse(url="/admin/products", status_code=303)


@router.get("/edit-product/{product_id}")
def edit_product_page(
    request: Request,
    product_id: int,
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    product = ProductService(db).get_owned(user.id, product_id)
    form = {
        "id": product.id,
        "title": product.title,
        "price": product.price,
        "description": product.description,
        "image_url": product.image_url,
    }
    return _render_form(request, context, editing=True, form=form, errors={})


@router.post("/edit-product")
def edit_product(
    request: Request,
    product_id: int = Form(...),
    title: str = Form(""),
    price: str = Form(""),
    description: str = Form(""),
    image: Optional[UploadedImage] = Depends(get_uploaded_image),
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    """Update an owned product; the stored image is kept unless a new one is accepted"""
    service = ProductService(db)
    form, errors = _validate(title, price, description)

    if errors:
        if image is not None:
            context.uploads.remove(image.url)
        product = service.get_owned(user.id, product_id)
        submitted = {
            "id": product_id,
            "title": title,
            "price": price,
            "description": description,
            "image_url": product.image_url,
        }
        return _render_form(request, context, True, submitted, errors, status_code=422)

    try:
        _, replaced = service.update(user.id, product_id, form, image.url if image else None)
    except Exception:
        if image is not None:
            context.uploads.remove(image.url)
        raise

    if replaced:
        context.uploads.remove(replaced)
    flash(request, "Product updated.", "success")
    return RedirectResponse(url="/admin/products", status_code=303)


@router.post("/delete-product")
def delete_product(
    request: Request,
    product_id: int = Form(...),
    user: User = Depends(require_user),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    image_url = ProductService(db).delete(user.id, product_id)
    context.uploads.remove(image_url)
    logger.info("Removed product image", extra={"product_id": product_id})
    flash(request, "Product deleted.", "success")
    return RedirectResponse(url="/admin/products", status_code=303)
