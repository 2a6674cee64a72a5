"""
Server-side session stage.

The cookie carries only a signed, opaque session id; the bag itself lives in
the SessionStore. Handlers read and mutate `request.session` like a dict and
the middleware persists it after the response is produced.
"""

import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence, Tuple

from itsdangerous import BadSignature, Signer
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from storefront.core.utils.session_store import SessionStore, StoredSession, utcnow

logger = logging.getLogger(__name__)


@dataclass
class SessionMeta:
    """Bookkeeping the middleware keeps next to the bag in the ASGI scope."""

    session_id: str
    is_new: bool
    absolute_expires_at: datetime
    destroyed: bool = False
    previous_id: Optional[str] = None


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def _fingerprint(data: dict[str, Any]) -> str:
    return json.dumps(data, sort_keys=True, default=str)


def get_session_meta(request: Request) -> SessionMeta:
    return request.scope["session_meta"]


def destroy_session(request: Request) -> None:
    """Drop the session: the record is deleted and the cookie cleared on the way out."""
    request.session.clear()
    get_session_meta(request).destroyed = True


def regenerate_session(request: Request) -> None:
    """Keep the bag but move it to a fresh id (used on login)."""
    meta = get_session_meta(request)
    if meta.previous_id is None and not meta.is_new:
        meta.previous_id = meta.session_id
    meta.session_id = new_session_id()
    meta.is_new = True


class ServerSessionMiddleware(BaseHTTPMiddleware):
    """
    Resolve or create the session for each request.

    - A cookie whose signature verifies and whose record is live loads that bag
    - Anything else starts an empty bag under a new id, written only if mutated
    - Changed bags are saved and the cookie (re)issued
    - Unchanged existing bags get their sliding expiry refreshed

    Paths under `sessionless_paths` (health checks, static assets) get a
    transient empty bag instead, so they never touch the store.

    Store errors are not caught here; they reach the error page stage.
    """

    def __init__(
        self,
        app,
        store: SessionStore,
        secret_key: str,
        cookie_name: str = "session",
        max_age: int = 7 * 24 * 60 * 60,
        absolute_lifetime: int = 8 * 24 * 60 * 60,
        https_only: bool = False,
        same_site: str = "lax",
        path: str = "/",
        sessionless_paths: Sequence[str] = (),
    ):
        super().__init__(app)
        self.store = store
        self.signer = Signer(secret_key, salt="storefront.session")
        self.cookie_name = cookie_name
        self.max_age = timedelta(seconds=max_age)
        self.absolute_lifetime = timedelta(seconds=absolute_lifetime)
        self.https_only = https_only
        self.same_site = same_site
        self.path = path
        self.sessionless_paths = tuple(p.rstrip("/") for p in sessionless_paths)

    def _unsign(self, cookie_value: Optional[str]) -> Optional[str]:
        if not cookie_value:
            return None
        try:
            return self.signer.unsign(cookie_value.encode("utf-8")).decode("utf-8")
        except BadSignature:
            logger.debug("Session cookie signature mismatch, starting a new session")
            return None

    async def _load(self, request: Request) -> Tuple[Optional[str], Optional[StoredSession]]:
        session_id = self._unsign(request.cookies.get(self.cookie_name))
        if session_id is None:
            return None, None
        stored = await run_in_threadpool(self.store.load, session_id)
        return session_id, stored

    def _is_sessionless(self, path: str) -> bool:
        return any(path == p or path.startswith(p + "/") for p in self.sessionless_paths)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if self._is_sessionless(request.url.path):
            request.scope["session"] = {}
            request.scope["session_meta"] = SessionMeta(session_id="", is_new=True, absolute_expires_at=utcnow())
            return await call_next(request)

        session_id, stored = await self._load(request)

        if stored is None:
            data: dict[str, Any] = {}
            meta = SessionMeta(
                session_id=new_session_id(),
                is_new=True,
                absolute_expires_at=utcnow() + self.absolute_lifetime,
            )
        else:
            data = stored.data
            meta = SessionMeta(
                session_id=session_id,
                is_new=False,
                absolute_expires_at=stored.absolute_expires_at,
            )

        snapshot = _fingerprint(data)
        request.scope["session"] = data
        request.scope["session_meta"] = meta

        response = await call_next(request)

        await self._commit(request.scope["session"], meta, snapshot, response)
        return response

    async def _commit(self, data: dict[str, Any], meta: SessionMeta, snapshot: str, response: Response) -> None:
        if meta.destroyed:
            for key in {meta.session_id, meta.previous_id} - {None}:
                await run_in_threadpool(self.store.destroy, key)
            response.delete_cookie(self.cookie_name, path=self.path)
            return

        if meta.previous_id is not None:
            await run_in_threadpool(self.store.destroy, meta.previous_id)

        now = utcnow()
        expires_at = min(meta.absolute_expires_at, now + self.max_age)

        if _fingerprint(data) != snapshot or (meta.previous_id is not None):
            await run_in_threadpool(
                self.store.save, meta.session_id, data, expires_at, meta.absolute_expires_at
            )
        elif not meta.is_new:
            await run_in_threadpool(self.store.touch, meta.session_id, expires_at)
        else:
            # New and untouched: nothing persisted, no cookie
            return

        self._set_cookie(response, meta.session_id, expires_at - now)

    def _set_cookie(self, response: Response, session_id: str, remaining: timedelta) -> None:
        response.set_cookie(
            self.cookie_name,
            self.signer.sign(session_id.encode("utf-8")).decode("utf-8"),
            max_age=max(int(remaining.total_seconds()), 0),
            path=self.path,
            httponly=True,
            secure=self.https_only,
            samesite=self.same_site,
        )
