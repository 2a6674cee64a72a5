"""
Signup, login and logout pages.

Login and signup submissions are rate limited per client address to slow
down credential stuffing.
"""

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from pydantic import ValidationError
from sqlalchemy.orm import Session

from storefront.core.auth_context import LOGGED_IN_SESSION_KEY, USER_ID_SESSION_KEY
from storefront.core.errors import AuthenticationError, DuplicateEmailError
from storefront.core.flash import flash
from storefront.core.limiter import rate_limited
from storefront.core.logging_config import log_authentication_attempt
from storefront.core.schemas.forms import CredentialsForm, SignupForm, form_errors
from storefront.core.security import rotate_csrf_secret
from storefront.core.sessions import destroy_session, regenerate_session
from storefront.services.accounts import UserService
from storefront.web.deps import get_db, get_templates

router = APIRouter(tags=["auth"])


def _client_ip(request: Request):
    return request.client.host if request.client else None


@router.get("/login")
def login_page(request: Request, templates: Jinja2Templates = Depends(get_templates)):
    """Login form"""
    return templates.TemplateResponse(
        request, "auth/login.html", {"page_title": "Login", "path": "/login", "form": {}, "errors": {}}
    )


@router.post("/login")
@rate_limited("rate_limit_auth_endpoints")
def login(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
):
    """
    Check credentials and log the client in.

    The session moves to a fresh id and the CSRF secret is rotated, so ids
    and tokens seen before login are useless afterwards.
    """
    context = {"page_title": "Login", "path": "/login", "form": {"email": email}, "errors": {}}
    try:
        credentials = CredentialsForm(email=email, password=password)
    except ValidationError as e:
        context["errors"] = form_errors(e)
        return templates.TemplateResponse(request, "auth/login.html", context, status_code=422)

    try:
        user = UserService(db).authenticate(credentials.email, credentials.password)
    except AuthenticationError as e:
        log_authentication_attempt(False, credentials.email, _client_ip(request))
        flash(request, str(e), "error")
        return RedirectResponse(url="/login", status_code=303)

    regenerate_session(request)
    request.session[LOGGED_IN_SESSION_KEY] = True
    request.session[USER_ID_SESSION_KEY] = user.id
    rotate_csrf_secret(request.session)
    log_authentication_attempt(True, credentials.email, _client_ip(request))
    return RedirectResponse(url="/", status_code=303)


@router.get("/signup")
def signup_page(request: Request, templates: Jinja2Templates = Depends(get_templates)):
    """Signup form"""
    return templates.TemplateResponse(
        request, "auth/signup.html", {"page_title": "Signup", "path": "/signup", "form": {}, "errors": {}}
    )


@router.post("/signup")
@rate_limited("rate_limit_auth_endpoints")
def signup(
    request: Request,
    email: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    db: Session = Depends(get_db),
    templates: Jinja2Templates = Depends(get_templates),
):
    """Create an account, then send the client to the login page"""
    context = {"page_title": "Signup", "path": "/signup", "form": {"email": email}, "errors": {}}
    try:
        form = SignupForm(email=email, password=password, confirm_password=confirm_password)
        UserService(db).create(form.email, form.password)
    except ValidationError as e:
        context["errors"] = form_errors(e)
        return templates.TemplateResponse(request, "auth/signup.html", context, status_code=422)
    except DuplicateEmailError as e:
        context["errors"] = {"email": str(e)}
        return templates.TemplateResponse(request, "auth/signup.html", context, status_code=422)

    flash(request, "Account created, please log in.", "success")
    return RedirectResponse(url="/login", status_code=303)


@router.post("/logout")
def logout(request: Request):
    destroy_session(request)
    return RedirectResponse(url="/", status_code=303)
