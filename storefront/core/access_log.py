"""
Combined-format access logging.

Each request gets a correlation id (taken from X-Request-ID when the client
sends one) that application log lines pick up through the logging context.
"""

import logging
import time
import uuid
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from storefront.core.logging_config import ACCESS_LOGGER_NAME, set_correlation_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def format_combined(request: Request, status_code: int, content_length: str, when: datetime) -> str:
    """`host - - [time] "request line" status bytes "referer" "user agent"`"""
    host = request.client.host if request.client else "-"
    target = request.url.path
    if request.url.query:
        target = f"{target}?{request.url.query}"
    request_line = f"{request.method} {target} HTTP/{request.scope.get('http_version', '1.1')}"
    referer = request.headers.get("referer", "-")
    user_agent = request.headers.get("user-agent", "-")
    timestamp = when.strftime("%d/%b/%Y:%H:%M:%S %z")
    return (
        f'{host} - - [{timestamp}] "{request_line}" {status_code} {content_length or "-"} '
        f'"{referer}" "{user_agent}"'
    )


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Write one combined-format line per response to the access logger."""

    def __init__(self, app, logger_name: str = ACCESS_LOGGER_NAME):
        super().__init__(app)
        self.access_logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        set_correlation_id(request_id)
        started = time.perf_counter()
        when = datetime.now(timezone.utc)

        response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        self.access_logger.info(
            format_combined(request, response.status_code, response.headers.get("content-length", "-"), when)
        )
        logger.debug(
            "Request handled",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        set_correlation_id(None)
        return response
