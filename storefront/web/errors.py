"""Explicit error page route"""

from fastapi import APIRouter, Depends, Request
from fastapi.templating import Jinja2Templates

from storefront.core.errors import render_error_page
from storefront.web.deps import get_templates

router = APIRouter(tags=["errors"])


@router.get("/500")
def server_error(request: Request, templates: Jinja2Templates = Depends(get_templates)):
    return render_error_page(templates, request, 500)
