from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def get_connect_args(database_url: str) -> Dict[str, Any]:
    """Get database-specific connection arguments"""
    if database_url.startswith("sqlite"):
        # SQLite needs check_same_thread=False for FastAPI's threadpool
        return {"check_same_thread": False}
    return {}


def build_engine(database_url: str) -> Engine:
    """Create an engine, making sure a file-backed SQLite directory exists."""
    if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
        Path(database_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        database_url,
        connect_args=get_connect_args(database_url),
        pool_pre_ping=True,
    )


def build_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def check_connection(engine: Engine) -> None:
    """Run a trivial query; raises if the database is unreachable."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """Get a DB session outside a request with proper resource management"""
    db = factory()
    try:
        yield db
    finally:
        db.close()
