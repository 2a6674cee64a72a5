"""Initialize the database with proper schema"""

import logging

from sqlalchemy.engine import Engine

from storefront.db.base import Base

# Import all models explicitly to register them with SQLAlchemy
from storefront.db import models as _models  # noqa: F401

logger = logging.getLogger("storefront.database")


def init_database(engine: Engine) -> None:
    """Create all tables with proper schema"""
    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)

        table_names = [table.name for table in Base.metadata.sorted_tables]
        logger.info("Database initialized", extra={
            "table_count": len(table_names),
            "tables": table_names,
        })
    except Exception as e:
        logger.error(f"Error initializing database: {e}", extra={
            "error_type": type(e).__name__,
        })
        raise
