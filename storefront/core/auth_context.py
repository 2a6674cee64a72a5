"""Attach the logged-in user, if any, to each request."""

import logging
from typing import Any, Callable, Optional

from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

USER_ID_SESSION_KEY = "user_id"
LOGGED_IN_SESSION_KEY = "is_logged_in"

UserLookup = Callable[[int], Optional[Any]]


class AuthContextMiddleware(BaseHTTPMiddleware):
    """
    Resolve `session["user_id"]` to a user record on `request.state.user`.

    A missing id or an id with no matching record leaves the request
    unauthenticated; a stale id is left in the session as-is. Errors raised
    by the lookup propagate to the error page stage.
    """

    def __init__(self, app, lookup: UserLookup):
        super().__init__(app)
        self.lookup = lookup

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.user = None
        request.state.is_authenticated = False

        user_id = request.session.get(USER_ID_SESSION_KEY)
        if user_id is not None:
            user = await run_in_threadpool(self.lookup, user_id)
            if user is None:
                logger.debug("Session references a user that no longer exists", extra={"user_id": user_id})
            request.state.user = user
            request.state.is_authenticated = user is not None and bool(
                request.session.get(LOGGED_IN_SESSION_KEY)
            )

        return await call_next(request)


def current_user(request: Request) -> Optional[Any]:
    return getattr(request.state, "user", None)


def is_authenticated(request: Request) -> bool:
    return bool(getattr(request.state, "is_authenticated", False))
