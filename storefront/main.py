"""
Application factory.

Requests pass through the stages in this order, outermost first:

    security headers -> gzip -> access log -> error page -> session -> CSRF
    -> flash -> auth context -> routers (admin, shop, auth, errors) -> 404

Starlette wraps the most recently added middleware around the others, so
they are added below in reverse.
"""

import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.gzip import GZipMiddleware

from storefront import __version__
from storefront.core.access_log import AccessLogMiddleware
from storefront.core.auth_context import AuthContextMiddleware
from storefront.core.config import Settings, get_settings
from storefront.core.context import AppContext
from storefront.core.errors import ErrorPageMiddleware, register_exception_handlers
from storefront.core.flash import FlashMiddleware
from storefront.core.limiter import bind_rate_limits, create_limiter
from storefront.core.logging_config import configure_access_log, init_application_logging
from storefront.core.security import (
    CSRFProtectionMiddleware,
    SecurityHeadersMiddleware,
    build_content_security_policy,
    csp_directives,
    validate_secret_key,
)
from storefront.core.sessions import ServerSessionMiddleware
from storefront.web import admin, auth, errors, shop

logger = logging.getLogger("storefront.main")

# Served with a throwaway session so probes and assets never create records
SESSIONLESS_PATHS = ("/health", "/static", "/images")


def _static_dir(path: str) -> str:
    Path(path).mkdir(parents=True, exist_ok=True)
    return path


def create_app(settings: Optional[Settings] = None, context: Optional[AppContext] = None) -> FastAPI:
    """
    Build a fully wired application.

    Tests pass their own settings (temporary database, upload directory and
    access log) to get isolated instances.
    """
    if context is None:
        settings = settings or get_settings()
        context = AppContext.from_settings(settings)
    settings = context.settings

    init_application_logging(dev_mode=settings.DEV_MODE)
    validate_secret_key(context.secret_key)
    configure_access_log(settings.ACCESS_LOG_PATH)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # A database that cannot be reached aborts startup
        context.startup()
        sweeper = None
        if settings.SESSION_PURGE_INTERVAL > 0:
            sweeper = asyncio.create_task(context.purge_expired_sessions(settings.SESSION_PURGE_INTERVAL))
        logger.info(f"{settings.APP_NAME} ready on {settings.HOST}:{settings.PORT}")
        yield
        if sweeper is not None:
            sweeper.cancel()
            with suppress(asyncio.CancelledError):
                await sweeper
        context.shutdown()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Server-rendered shop with products, cart and orders",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.context = context

    # Rate limiting; each app gets its own limiter, limits and counters
    app.state.limiter = create_limiter(settings)
    app.state.rate_limited_endpoints = bind_rate_limits(app.state.limiter, settings)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    policy = None
    if settings.CSP_ENABLED:
        policy = build_content_security_policy(
            csp_directives(settings), settings.CSP_UPGRADE_INSECURE_REQUESTS
        )

    app.add_middleware(AuthContextMiddleware, lookup=context.lookup_user)
    app.add_middleware(FlashMiddleware)
    app.add_middleware(CSRFProtectionMiddleware, templates=context.templates)
    app.add_middleware(
        ServerSessionMiddleware,
        store=context.session_store,
        secret_key=context.secret_key,
        cookie_name=settings.SESSION_COOKIE_NAME,
        max_age=settings.SESSION_MAX_AGE,
        absolute_lifetime=settings.SESSION_ABSOLUTE_LIFETIME,
        https_only=settings.is_production,
        same_site="lax",
        sessionless_paths=SESSIONLESS_PATHS,
    )
    app.add_middleware(ErrorPageMiddleware, templates=context.templates)
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(SecurityHeadersMiddleware, policy=policy)

    app.mount("/static", StaticFiles(directory=_static_dir(settings.PUBLIC_DIR)), name="static")
    app.mount("/images", StaticFiles(directory=_static_dir(settings.UPLOAD_DIR)), name="images")

    app.include_router(admin.router, prefix="/admin")
    app.include_router(shop.router)
    app.include_router(auth.router)
    app.include_router(errors.router)

    @app.get("/health")
    def health_check():
        """Basic health check endpoint."""
        return {"status": "healthy"}

    register_exception_handlers(app, context.templates)

    logger.info(
        "Application configured",
        extra={
            "environment": settings.ENVIRONMENT,
            "csp_enabled": settings.CSP_ENABLED,
            "rate_limit_auth": settings.rate_limit_auth_endpoints,
        },
    )
    return app
