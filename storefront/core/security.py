"""
Security utilities for Storefront

This module provides secret key handling, the Content-Security-Policy stage and
the CSRF stage of the request pipeline.
"""

import base64
import hashlib
import hmac
import logging
import os
import secrets
import string
from typing import Iterable, List, Optional, Sequence, Tuple

from fastapi.templating import Jinja2Templates
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from storefront.core.config import Settings
from storefront.core.logging_config import log_csrf_validation_failure

logger = logging.getLogger(__name__)

CSRF_SESSION_KEY = "_csrf_secret"
CSRF_FORM_FIELD = "_csrf"
CSRF_HEADER = "X-CSRF-Token"
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})
NONE_SOURCE = "'none'"
FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

INSECURE_SECRET_DEFAULTS = ["my secret", "change-me", "secret", "password", "123456", "admin"]


def generate_secure_secret_key(length: int = 64) -> str:
    """
    Generate a cryptographically secure secret key.

    Args:
        length: Length of the secret key (default: 64 characters)

    Returns:
        A secure random string suitable for use as a SECRET_KEY
    """
    alphabet = string.ascii_letters + string.digits + "-_"
    return "".join(secrets.choice(alphabet) for _ in range(length))


def get_or_create_secret_key(configured: str = "", secret_file_path: str = "data/.secret_key") -> str:
    """
    Resolve the SECRET_KEY used to sign session cookies.

    1. Use the configured value (environment or .env) when present
    2. Otherwise read a previously generated key from `secret_file_path`
    3. Otherwise generate a new key and persist it there

    Raises:
        ValueError: If the resolved key doesn't meet security requirements
    """
    if configured:
        validate_secret_key(configured)
        return configured

    if os.path.exists(secret_file_path):
        with open(secret_file_path, "r") as f:
            secret_key = f.read().strip()
        if secret_key:
            logger.info("Using SECRET_KEY from secret file")
            validate_secret_key(secret_key)
            return secret_key

    logger.warning("No SECRET_KEY configured, generating new one")
    secret_key = generate_secure_secret_key()

    try:
        os.makedirs(os.path.dirname(secret_file_path) or ".", exist_ok=True)
        with open(secret_file_path, "w") as f:
            f.write(secret_key)
        os.chmod(secret_file_path, 0o600)
        logger.info("Generated new SECRET_KEY and saved to secure file")
    except OSError as e:
        logger.error(f"Could not save secret key to file: {e}")
        logger.warning("Using generated key in memory only (sessions will not survive a restart)")

    return secret_key


def validate_secret_key(secret_key: str) -> None:
    """
    Validate that a secret key meets security requirements.

    Raises:
        ValueError: If the secret key doesn't meet requirements
    """
    if not secret_key:
        raise ValueError("SECRET_KEY cannot be empty")

    if len(secret_key) < 32:
        raise ValueError("SECRET_KEY must be at least 32 characters long")

    if secret_key.lower() in INSECURE_SECRET_DEFAULTS:
        raise ValueError("SECRET_KEY appears to be an insecure default value")

    # Check for sufficient entropy (at least 8 different characters)
    if len(set(secret_key.lower())) < 8:
        raise ValueError("SECRET_KEY has insufficient entropy (too repetitive)")


# ---------------------------------------------------------------------------
# Content-Security-Policy
# ---------------------------------------------------------------------------

def csp_directives(settings: Settings) -> List[Tuple[str, Sequence[str]]]:
    """Directive name and source list pairs, in header order."""
    return [
        ("default-src", settings.CSP_DEFAULT_SRC),
        ("connect-src", settings.CSP_CONNECT_SRC),
        ("script-src", settings.CSP_SCRIPT_SRC),
        ("style-src", settings.CSP_STYLE_SRC),
        ("worker-src", settings.CSP_WORKER_SRC),
        ("object-src", settings.CSP_OBJECT_SRC),
        ("img-src", settings.CSP_IMG_SRC),
        ("font-src", settings.CSP_FONT_SRC),
        ("media-src", settings.CSP_MEDIA_SRC),
        ("child-src", settings.CSP_CHILD_SRC),
        ("frame-src", settings.CSP_FRAME_SRC),
    ]


def build_content_security_policy(
    directives: Iterable[Tuple[str, Sequence[str]]],
    upgrade_insecure_requests: bool = False,
) -> str:
    """
    Render directives as a Content-Security-Policy header value.

    An empty source list means nothing is allowed and renders as 'none'.
    """
    parts = [f"{name} {' '.join(sources) if sources else NONE_SOURCE}" for name, sources in directives]
    if upgrade_insecure_requests:
        parts.append("upgrade-insecure-requests")
    return "; ".join(parts)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Attach the configured Content-Security-Policy and companion headers.

    The policy string is built once at startup; a None policy skips the
    CSP header but keeps the other headers.
    """

    def __init__(self, app, policy: Optional[str] = None):
        super().__init__(app)
        self.policy = policy

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)

        if self.policy:
            response.headers["Content-Security-Policy"] = self.policy
        # Prevent content type sniffing
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        # Prevent clickjacking
        response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")

        return response


# ---------------------------------------------------------------------------
# CSRF
# ---------------------------------------------------------------------------

def _sign(secret: str, salt: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), salt.encode("utf-8"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def ensure_csrf_secret(session: dict) -> str:
    """Return the session's CSRF secret, creating it on first use."""
    secret = session.get(CSRF_SESSION_KEY)
    if not secret:
        secret = secrets.token_urlsafe(18)
        session[CSRF_SESSION_KEY] = secret
    return secret


def rotate_csrf_secret(session: dict) -> str:
    """Replace the CSRF secret; tokens issued before are no longer valid."""
    session.pop(CSRF_SESSION_KEY, None)
    return ensure_csrf_secret(session)


def generate_csrf_token(secret: str) -> str:
    """Create a token `<salt>.<signature>` bound to `secret`."""
    salt = secrets.token_urlsafe(8)
    return f"{salt}.{_sign(secret, salt)}"


def verify_csrf_token(secret: Optional[str], token: Optional[str]) -> bool:
    if not secret or not token:
        return False
    salt, sep, signature = token.partition(".")
    if not sep or not salt or not signature:
        return False
    return hmac.compare_digest(signature, _sign(secret, salt))


def get_csrf_token(request: Request) -> str:
    """
    Token for the current request, for embedding in forms.

    One token is minted per request and cached on request.state.
    """
    token = getattr(request.state, "csrf_token", None)
    if token is None:
        token = generate_csrf_token(ensure_csrf_secret(request.session))
        request.state.csrf_token = token
    return token


class CSRFProtectionMiddleware(BaseHTTPMiddleware):
    """
    Require a valid CSRF token on every state-changing request.

    Must sit inside the session middleware. The secret lives in the session;
    the token is read from the X-CSRF-Token header or the `_csrf` form field.
    """

    def __init__(self, app, templates: Jinja2Templates):
        super().__init__(app)
        self.templates = templates

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        secret = ensure_csrf_secret(request.session)

        if request.method not in SAFE_METHODS:
            token = await self._extract_token(request)
            if not verify_csrf_token(secret, token):
                logger.warning(f"CSRF token validation failed for {request.method} {request.url.path}")
                log_csrf_validation_failure(
                    ip_address=request.client.host if request.client else None,
                    endpoint=request.url.path,
                )
                return self.templates.TemplateResponse(
                    request,
                    "403.html",
                    {"page_title": "Forbidden", "path": "/403"},
                    status_code=403,
                )

        return await call_next(request)

    async def _extract_token(self, request: Request) -> Optional[str]:
        token = request.headers.get(CSRF_HEADER)
        if token:
            return token

        content_type = request.headers.get("content-type", "")
        if not content_type.startswith(FORM_CONTENT_TYPES):
            return None

        # Read the body first so it is cached and replayed to the route handler
        await request.body()
        form = await request.form()
        try:
            value = form.get(CSRF_FORM_FIELD)
            return value if isinstance(value, str) else None
        finally:
            await form.close()
