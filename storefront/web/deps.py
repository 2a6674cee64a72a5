"""Shared route dependencies"""

from typing import Iterator

from fastapi import Depends, Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from storefront.core.context import AppContext
from storefront.core.errors import LoginRequired
from storefront.db.models.user import User


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_templates(context: AppContext = Depends(get_context)) -> Jinja2Templates:
    return context.templates


def get_db(context: AppContext = Depends(get_context)) -> Iterator[Session]:
    """Database session for one request, closed when the response is sent."""
    db = context.session_factory()
    try:
        yield db
    finally:
        db.close()


def require_user(request: Request) -> User:
    """The logged-in user; anonymous requests are sent to the login page."""
    user = getattr(request.state, "user", None)
    if user is None or not getattr(request.state, "is_authenticated", False):
        raise LoginRequired()
    return user
