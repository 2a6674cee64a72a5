"""
Global test configuration and fixtures for Storefront

Every test gets its own application instance on a temporary SQLite database,
upload directory and access log, so tests never share session or catalog
state.
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from storefront.core.config import Settings
from storefront.core.schemas.forms import ProductForm
from storefront.db.session import session_scope
from storefront.main import create_app
from storefront.services.accounts import UserService
from storefront.services.catalog import ProductService
from tests.utils.factories import TEST_PASSWORD, TEST_SECRET_KEY, ProductFactory
from tests.utils.helpers import login


# ============================================================================
# Test Environment Setup
# ============================================================================

@pytest.fixture(scope="function")
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing every file the app touches into tmp_path"""
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DEV_MODE=True,
        DATABASE_URL=f"sqlite:///{tmp_path / 'storefront.db'}",
        SECRET_KEY=TEST_SECRET_KEY,
        UPLOAD_DIR=str(tmp_path / "images"),
        ACCESS_LOG_PATH=str(tmp_path / "access.log"),
        rate_limit_enabled=False,
    )


# ============================================================================
# Application Client Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def app(test_settings):
    return create_app(test_settings)


@pytest.fixture(scope="function")
def client(app):
    """Test client with the lifespan (database connect, create tables) run"""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def context(app):
    return app.state.context


# ============================================================================
# Data Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def make_user(client, context):
    def _make(email: str = "buyer@example.com", password: str = TEST_PASSWORD):
        with session_scope(context.session_factory) as session:
            return UserService(session).create(email, password)
    return _make


@pytest.fixture(scope="function")
def user(make_user):
    return make_user()


@pytest.fixture(scope="function")
def make_product(client, context):
    def _make(owner, title: str = "Red Notebook", price: str = "12.50"):
        form = ProductForm(**ProductFactory.form_values(title, price))
        with session_scope(context.session_factory) as session:
            return ProductService(session).create(owner.id, form, "/images/1-notebook.png")
    return _make


@pytest.fixture(scope="function")
def product(make_product, user):
    return make_product(user)


@pytest.fixture(scope="function")
def auth_client(client, user):
    """Client logged in as `user`"""
    login(client, user.email, TEST_PASSWORD)
    return client
