"""
Error taxonomy and the terminal error stage.

Services raise StorefrontError subclasses; routes translate them. Anything
else that escapes a stage or handler becomes a generic 500 page.
"""

import logging

from fastapi import FastAPI
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    """Base class for domain errors raised by the service layer."""


class NotFoundError(StorefrontError):
    pass


class PermissionDeniedError(StorefrontError):
    pass


class AuthenticationError(StorefrontError):
    pass


class DuplicateEmailError(StorefrontError):
    pass


class LoginRequired(Exception):
    """Raised by route dependencies when the request has no authenticated user."""


def render_error_page(
    templates: Jinja2Templates, request: Request, status_code: int
) -> Response:
    names = {403: ("403.html", "Forbidden"), 404: ("404.html", "Page Not Found")}
    template_name, title = names.get(status_code, ("500.html", "Error!"))
    return templates.TemplateResponse(
        request,
        template_name,
        {"page_title": title, "path": f"/{status_code}"},
        status_code=status_code,
    )


class ErrorPageMiddleware(BaseHTTPMiddleware):
    """
    Catch anything raised by inner stages or handlers and render the 500 page.

    The exception is logged with its traceback; the client sees no detail.
    """

    def __init__(self, app, templates: Jinja2Templates):
        super().__init__(app)
        self.templates = templates

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(
                f"Unhandled exception on {request.method} {request.url.path}: {type(e).__name__}",
                exc_info=e,
            )
            return render_error_page(self.templates, request, 500)


def register_exception_handlers(app: FastAPI, templates: Jinja2Templates) -> None:
    """Not-found page, HTTP errors, domain lookup failures and login redirects."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> Response:
        if exc.status_code in (403, 404):
            return render_error_page(templates, request, exc.status_code)
        if exc.status_code >= 500:
            return render_error_page(templates, request, 500)
        return Response(content=str(exc.detail), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> Response:
        return render_error_page(templates, request, 404)

    @app.exception_handler(PermissionDeniedError)
    async def permission_denied_handler(request: Request, exc: PermissionDeniedError) -> Response:
        logger.warning(f"Permission denied on {request.method} {request.url.path}: {exc}")
        return render_error_page(templates, request, 403)

    @app.exception_handler(LoginRequired)
    async def login_required_handler(request: Request, exc: LoginRequired) -> Response:
        return RedirectResponse(url="/login", status_code=303)
