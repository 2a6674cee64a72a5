from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from storefront.db.base import Base


class SessionRecord(Base):
    """Server-side session bag keyed by the cookie's session id."""

    # Base provides: id, created_at, updated_at
    key: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    # dict when stored in clear, Fernet token string when encrypted
    data: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, index=True, nullable=False)
    absolute_expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<SessionRecord(key={self.key[:8]!r}..., expires_at={self.expires_at})>"
