"""One-shot flash messages carried across a redirect in the session bag."""

from typing import List, Optional, Tuple, Union

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

FLASH_SESSION_KEY = "_flashes"


class FlashMessages:
    """Queue of (category, message) pairs stored in a session bag."""

    def __init__(self, session: dict):
        self.session = session

    def set(self, message: str, category: str = "info") -> None:
        queue = list(self.session.get(FLASH_SESSION_KEY, []))
        queue.append([category, message])
        self.session[FLASH_SESSION_KEY] = queue

    def consume(self, category: Optional[str] = None) -> List[Tuple[str, str]]:
        """
        Return and clear queued messages.

        With a category only that category is removed; the rest stay queued.
        """
        queue = self.session.get(FLASH_SESSION_KEY)
        if not queue:
            return []

        taken = [(c, m) for c, m in queue if category is None or c == category]
        remaining = [[c, m] for c, m in queue if category is not None and c != category]
        if remaining:
            self.session[FLASH_SESSION_KEY] = remaining
        else:
            self.session.pop(FLASH_SESSION_KEY, None)
        return taken

    def peek(self) -> List[Tuple[str, str]]:
        return [(c, m) for c, m in self.session.get(FLASH_SESSION_KEY, [])]


class FlashMiddleware(BaseHTTPMiddleware):
    """Expose `request.state.flash` bound to the current session."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.flash = FlashMessages(request.session)
        return await call_next(request)


def flash(request: Request, message: str, category: str = "info") -> None:
    request.state.flash.set(message, category)


def get_flashed_messages(
    request: Request, with_categories: bool = False, category: Optional[str] = None
) -> Union[List[str], List[Tuple[str, str]]]:
    """Consume this request's messages; safe to call when no session exists."""
    flashes = getattr(request.state, "flash", None)
    if flashes is None:
        return []
    messages = flashes.consume(category)
    if with_categories:
        return messages
    return [message for _, message in messages]
