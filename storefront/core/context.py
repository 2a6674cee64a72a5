"""
Application context.

Everything a running app needs (settings, database, session store, templates,
upload handler) is built here once and handed to the middleware and routes,
so tests can stand up isolated instances side by side.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi.templating import Jinja2Templates
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from storefront.core.config import Settings
from storefront.core.security import get_or_create_secret_key
from storefront.core.templates import create_templates
from storefront.core.uploads import ImageUploadHandler
from storefront.core.utils.encryption import build_cipher
from storefront.core.utils.session_store import SessionStore
from storefront.db.init_db import init_database
from storefront.db.session import build_engine, build_sessionmaker, check_connection, session_scope
from storefront.services.accounts import UserService

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    secret_key: str
    engine: Engine
    session_factory: sessionmaker
    session_store: SessionStore
    templates: Jinja2Templates
    uploads: ImageUploadHandler

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        engine = build_engine(settings.DATABASE_URL)
        session_factory = build_sessionmaker(engine)
        return cls(
            settings=settings,
            secret_key=get_or_create_secret_key(settings.SECRET_KEY),
            engine=engine,
            session_factory=session_factory,
            session_store=SessionStore(session_factory, build_cipher(settings.SESSION_ENCRYPTION_KEY)),
            templates=create_templates(),
            uploads=ImageUploadHandler(settings.UPLOAD_DIR),
        )

    def startup(self) -> None:
        """Connect and create tables; any failure aborts application start."""
        check_connection(self.engine)
        init_database(self.engine)
        removed = self.session_store.purge_expired()
        logger.info("Database connected", extra={"expired_sessions_purged": removed})

    def shutdown(self) -> None:
        self.engine.dispose()

    async def purge_expired_sessions(self, interval: float) -> None:
        """Delete expired session records every `interval` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            try:
                await run_in_threadpool(self.session_store.purge_expired)
            except SQLAlchemyError as e:
                logger.error(
                    f"Session purge failed: {e}",
                    extra={"error_type": type(e).__name__, "operation": "purge_expired_sessions"},
                )

    def lookup_user(self, user_id: Any) -> Optional[Any]:
        """User for the auth-context stage; blocking, run in the threadpool."""
        with session_scope(self.session_factory) as db:
            return UserService(db).get_by_id(user_id)
