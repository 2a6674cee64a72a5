"""
Rate limiter configuration module.

Every application builds its own SlowAPI limiter from its own Settings, so
limits, the on/off switch and the counters never leak between instances.
Route modules mark endpoints with `rate_limited(...)` at import time;
`bind_rate_limits` wraps them with the app's limiter when the app is built.
"""

import functools
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from storefront.core.config import Settings

logger = logging.getLogger(__name__)

# (endpoint, name of the Settings field holding its limit string)
_RATE_LIMITED_ROUTES: List[Tuple[Callable[..., Any], str]] = []


def get_limiter_storage(settings: Settings) -> Optional[str]:
    """
    Get the storage backend for rate limiting.

    Returns Redis URL if configured, otherwise None (uses in-memory storage).
    """
    if settings.redis_url:
        if not settings.redis_url.startswith(("redis://", "rediss://")):
            logger.warning(
                "Invalid REDIS_URL format: %s. Using in-memory storage instead.",
                settings.redis_url,
            )
            return None
        logger.info("Using Redis backend for rate limiting")
        return settings.redis_url
    return None


def create_limiter(settings: Settings) -> Limiter:
    """
    Create and configure the SlowAPI rate limiter for one application.

    In-memory storage is suitable for single-instance deployments, while
    Redis is required when several processes serve the same shop.
    """
    storage_uri = get_limiter_storage(settings)
    options: Dict[str, Any] = {
        "key_func": get_remote_address,
        "default_limits": [],
        "headers_enabled": True,
        "enabled": settings.rate_limit_enabled,
    }
    if storage_uri:
        return Limiter(storage_uri=storage_uri, **options)

    logger.debug("Using in-memory storage for rate limiting")
    return Limiter(**options)


def _endpoint_name(func: Callable[..., Any]) -> str:
    return f"{func.__module__}.{func.__qualname__}"


def rate_limited(setting: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Mark a route for rate limiting with the limit string in `Settings.<setting>`.

    The endpoint must take a `request` argument. At call time it runs through
    the wrapper the current app's limiter built for it.
    """
    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        _RATE_LIMITED_ROUTES.append((func, setting))
        name = _endpoint_name(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            request: Request = kwargs["request"]
            return request.app.state.rate_limited_endpoints[name](*args, **kwargs)

        return wrapper

    return decorator


def bind_rate_limits(limiter: Limiter, settings: Settings) -> Dict[str, Callable[..., Any]]:
    """Wrap every marked endpoint with `limiter`, using this app's limit strings."""
    bound = {}
    for func, setting in _RATE_LIMITED_ROUTES:
        bound[_endpoint_name(func)] = limiter.limit(getattr(settings, setting))(func)
    return bound
