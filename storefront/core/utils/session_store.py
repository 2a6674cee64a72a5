"""Server-side session storage on SQL.

Each session bag is one row in the `session_records` table keyed by the session id
carried (signed) in the client's cookie. All methods are blocking; the session
middleware calls them through the threadpool.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import sessionmaker

from storefront.core.utils.encryption import PayloadCipher
from storefront.db.models.session_store import SessionRecord
from storefront.db.session import session_scope

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns round-trip."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass
class StoredSession:
    data: dict[str, Any] = field(default_factory=dict)
    expires_at: Optional[datetime] = None
    absolute_expires_at: Optional[datetime] = None


class SessionStore:
    """Load, save and destroy session bags by id."""

    def __init__(self, session_factory: sessionmaker, cipher: Optional[PayloadCipher] = None):
        self.session_factory = session_factory
        self.cipher = cipher

    def _encode(self, data: dict[str, Any]) -> Any:
        if self.cipher is None:
            return data
        return self.cipher.encrypt(data)

    def _decode(self, stored: Any) -> Optional[dict[str, Any]]:
        if isinstance(stored, str):
            if self.cipher is None:
                logger.warning("Encrypted session payload found but no encryption key is configured")
                return None
            return self.cipher.decrypt(stored)
        if isinstance(stored, dict):
            return stored
        return {}

    def load(self, key: str) -> Optional[StoredSession]:
        """Return the live session for `key`, deleting it if either deadline has passed."""
        now = utcnow()
        with session_scope(self.session_factory) as db:
            row = db.scalar(select(SessionRecord).where(SessionRecord.key == key))
            if row is None:
                return None

            if row.expires_at <= now or row.absolute_expires_at <= now:
                logger.debug("Session expired, removing record")
                db.delete(row)
                db.commit()
                return None

            data = self._decode(row.data)
            if data is None:
                return None
            return StoredSession(
                data=data,
                expires_at=row.expires_at,
                absolute_expires_at=row.absolute_expires_at,
            )

    def save(
        self,
        key: str,
        data: dict[str, Any],
        expires_at: datetime,
        absolute_expires_at: datetime,
    ) -> None:
        """Insert or overwrite the bag for `key` (last write wins)."""
        stored_value = self._encode(data)
        with session_scope(self.session_factory) as db:
            try:
                result = db.execute(
                    update(SessionRecord)
                    .where(SessionRecord.key == key)
                    .values(data=stored_value, expires_at=expires_at)
                )
                if result.rowcount == 0:
                    db.add(
                        SessionRecord(
                            key=key,
                            data=stored_value,
                            expires_at=expires_at,
                            absolute_expires_at=absolute_expires_at,
                        )
                    )
                db.commit()
            except Exception as e:
                db.rollback()
                logger.error(f"Session save failed: {e}")
                raise

    def touch(self, key: str, expires_at: datetime) -> None:
        """Slide the expiry of an unchanged session."""
        with session_scope(self.session_factory) as db:
            db.execute(
                update(SessionRecord)
                .where(SessionRecord.key == key)
                .values(expires_at=expires_at)
            )
            db.commit()

    def destroy(self, key: str) -> None:
        """Remove the entry for the given key."""
        with session_scope(self.session_factory) as db:
            db.execute(delete(SessionRecord).where(SessionRecord.key == key))
            db.commit()

    def purge_expired(self) -> int:
        """Delete every expired record; returns how many were removed."""
        now = utcnow()
        with session_scope(self.session_factory) as db:
            result = db.execute(
                delete(SessionRecord).where(
                    (SessionRecord.expires_at <= now) | (SessionRecord.absolute_expires_at <= now)
                )
            )
            db.commit()
            removed = result.rowcount or 0
        if removed:
            logger.info("Purged expired sessions", extra={"removed": removed})
        return removed


