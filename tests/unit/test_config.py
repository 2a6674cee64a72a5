"""
Unit tests for configuration module
"""

from unittest.mock import patch

import pytest

from storefront.core.config import Settings

# Mark all tests in this module as unit tests
pytestmark = pytest.mark.unit


class TestSettings:
    """Test application settings configuration"""

    def test_default_settings(self):
        """Test default configuration values"""
        settings = Settings(_env_file=None)

        assert settings.APP_NAME == "Storefront"
        assert settings.ENVIRONMENT == "development"
        assert settings.DEV_MODE is False
        assert settings.PORT == 4000
        assert settings.SESSION_COOKIE_NAME == "session"
        assert settings.UPLOAD_DIR == "images"
        assert settings.ACCESS_LOG_PATH == "access.log"
        assert settings.PRODUCTS_PER_PAGE == 6

    def test_session_lifetimes(self):
        """Sliding max-age is seven days inside an eight day absolute lifetime"""
        settings = Settings(_env_file=None)

        assert settings.SESSION_MAX_AGE == 7 * 24 * 60 * 60
        assert settings.SESSION_ABSOLUTE_LIFETIME == 8 * 24 * 60 * 60
        assert settings.SESSION_MAX_AGE < settings.SESSION_ABSOLUTE_LIFETIME

    def test_database_url_default(self):
        settings = Settings(_env_file=None)
        assert settings.DATABASE_URL.startswith("sqlite:///")
        assert settings.is_sqlite

    def test_environment_overrides(self):
        """Environment variables override defaults"""
        env = {
            "DATABASE_URL": "postgresql://shop:pw@db/shop",
            "PORT": "8080",
            "ENVIRONMENT": "production",
        }
        with patch.dict("os.environ", env):
            settings = Settings(_env_file=None)

        assert settings.DATABASE_URL == "postgresql://shop:pw@db/shop"
        assert settings.PORT == 8080
        assert settings.is_production
        assert not settings.is_sqlite


class TestContentSecurityPolicySettings:
    """CSP source lists"""

    def test_default_directives(self):
        settings = Settings(_env_file=None)

        assert settings.CSP_DEFAULT_SRC == ["'self'"]
        assert settings.CSP_OBJECT_SRC == []
        assert "https://js.stripe.com/v3/" in settings.CSP_SCRIPT_SRC
        assert "https://fonts.gstatic.com" in settings.CSP_FONT_SRC
        assert settings.CSP_UPGRADE_INSECURE_REQUESTS is True

    def test_space_separated_sources_from_environment(self):
        with patch.dict("os.environ", {"CSP_IMG_SRC": "'self' data: https://cdn.example.com"}):
            settings = Settings(_env_file=None)

        assert settings.CSP_IMG_SRC == ["'self'", "data:", "https://cdn.example.com"]

    def test_json_sources_from_environment(self):
        with patch.dict("os.environ", {"CSP_CONNECT_SRC": '["\'self\'", "https://api.example.com"]'}):
            settings = Settings(_env_file=None)

        assert settings.CSP_CONNECT_SRC == ["'self'", "https://api.example.com"]

    def test_comma_separated_sources(self):
        settings = Settings(_env_file=None, CSP_FRAME_SRC="blob:, https://frames.example.com")
        assert settings.CSP_FRAME_SRC == ["blob:", "https://frames.example.com"]
