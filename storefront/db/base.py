"""Declarative base shared by every storefront model."""

import re
from datetime import datetime

from sqlalchemy import DateTime, Integer, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.sql import func

# Constraint names stay stable across SQLite and server databases
metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def table_name_for(class_name: str) -> str:
    """CartItem -> cart_items"""
    return _CAMEL_BOUNDARY.sub("_", class_name).lower() + "s"


class Base(DeclarativeBase):
    """Base class for all database models: integer key plus audit timestamps."""

    metadata = metadata

    @declared_attr.directive
    @classmethod
    def __tablename__(cls) -> str:
        return table_name_for(cls.__name__)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
