"""Storefront: server-rendered shop built on FastAPI, SQLAlchemy and Jinja2."""

__version__ = "1.0.0"
