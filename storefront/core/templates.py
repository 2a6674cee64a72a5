"""Shared template configuration for web routes"""

from pathlib import Path
from typing import Any, Dict

from fastapi.templating import Jinja2Templates
from starlette.requests import Request

from storefront.core.flash import get_flashed_messages
from storefront.core.security import get_csrf_token

PACKAGE_DIR = Path(__file__).parent.parent
TEMPLATES_DIR = PACKAGE_DIR / "templates"


def pipeline_context(request: Request) -> Dict[str, Any]:
    """
    Values every page can use: auth state and the CSRF token.

    Error pages may render before the session stage ran, so every key
    degrades to an unauthenticated, tokenless default.
    """
    has_session = "session" in request.scope
    return {
        "is_authenticated": bool(getattr(request.state, "is_authenticated", False)),
        "current_user": getattr(request.state, "user", None),
        "csrf_token": get_csrf_token(request) if has_session else "",
    }


def create_templates(directory: Path = TEMPLATES_DIR) -> Jinja2Templates:
    templates = Jinja2Templates(directory=str(directory), context_processors=[pipeline_context])
    templates.env.globals["get_flashed_messages"] = get_flashed_messages
    return templates


__all__ = ["create_templates", "pipeline_context"]
