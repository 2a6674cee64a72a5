#!/usr/bin/env python3
"""
Database setup script for Storefront.

Creates the tables for the configured DATABASE_URL (SQLite or PostgreSQL)
and reports what exists afterwards.
"""

import sys

from sqlalchemy import inspect

from storefront.core.config import get_settings
from storefront.db.init_db import init_database
from storefront.db.session import build_engine, check_connection


def main() -> bool:
    """Initialize database based on configuration"""
    settings = get_settings()
    print("Storefront Database Setup")
    print("=" * 40)
    print(f"Database URL: {settings.DATABASE_URL}")

    engine = build_engine(settings.DATABASE_URL)
    try:
        check_connection(engine)
        print(f"Database Type: {engine.dialect.name}")

        existing = inspect(engine).get_table_names()
        print(f"Existing Tables: {len(existing)}")
        for table in sorted(existing):
            print(f"  - {table}")

        print("\nInitializing database...")
        init_database(engine)

        tables = inspect(engine).get_table_names()
        print(f"Database initialized successfully ({len(tables)} tables)")
        return True
    except Exception as e:
        print(f"Database initialization failed: {e}")
        return False
    finally:
        engine.dispose()


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
