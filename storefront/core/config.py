"""
Application configuration using Pydantic Settings.

Configuration values can be set via environment variables or .env file.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DAY = 24 * 60 * 60
PACKAGE_DIR = Path(__file__).resolve().parent.parent

# Env values are split by the validator below rather than JSON-decoded
SourceList = Annotated[List[str], NoDecode]


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    APP_NAME: str = "Storefront"
    ENVIRONMENT: str = "development"
    DEV_MODE: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 4000

    # Database
    DATABASE_URL: str = "sqlite:///./data/storefront.db"

    # Empty means "resolve via get_or_create_secret_key()"
    SECRET_KEY: str = ""

    # Session cookie and expiry policy
    SESSION_COOKIE_NAME: str = "session"
    SESSION_MAX_AGE: int = 7 * DAY
    SESSION_ABSOLUTE_LIFETIME: int = 8 * DAY
    SESSION_ENCRYPTION_KEY: str = ""
    # Seconds between sweeps of expired session records; 0 disables the sweeper
    SESSION_PURGE_INTERVAL: int = 60 * 60

    # Filesystem layout
    UPLOAD_DIR: str = "images"
    PUBLIC_DIR: str = str(PACKAGE_DIR / "public")
    ACCESS_LOG_PATH: str = "access.log"

    # Catalog
    PRODUCTS_PER_PAGE: int = 6

    # Content-Security-Policy directives
    CSP_ENABLED: bool = True
    CSP_DEFAULT_SRC: SourceList = ["'self'"]
    CSP_CONNECT_SRC: SourceList = [
        "'self'",
        "https://events.mapbox.com",
        "https://res.cloudinary.com/dv5vm4sqh/",
    ]
    CSP_SCRIPT_SRC: SourceList = [
        "'unsafe-inline'",
        "'unsafe-eval'",
        "'self'",
        "https://js.stripe.com/v3/",
    ]
    CSP_STYLE_SRC: SourceList = [
        "'self'",
        "'unsafe-inline'",
        "'unsafe-eval'",
        "https://fonts.googleapis.com/",
    ]
    CSP_WORKER_SRC: SourceList = ["'self'", "blob:"]
    CSP_OBJECT_SRC: SourceList = []
    CSP_IMG_SRC: SourceList = ["'self'", "blob:", "data:"]
    CSP_FONT_SRC: SourceList = ["'self'", "https://fonts.gstatic.com"]
    CSP_MEDIA_SRC: SourceList = ["https://res.cloudinary.com/dv5vm4sqh/"]
    CSP_CHILD_SRC: SourceList = ["blob:"]
    CSP_FRAME_SRC: SourceList = ["blob:", "https://js.stripe.com/v3/"]
    CSP_UPGRADE_INSECURE_REQUESTS: bool = True

    # Rate limiting configuration
    rate_limit_auth_endpoints: str = "10/minute"
    rate_limit_enabled: bool = True

    # Optional Redis URL for distributed rate limiting
    # When set, rate limits will be shared across multiple instances
    redis_url: Optional[str] = None

    @field_validator(
        "CSP_DEFAULT_SRC",
        "CSP_CONNECT_SRC",
        "CSP_SCRIPT_SRC",
        "CSP_STYLE_SRC",
        "CSP_WORKER_SRC",
        "CSP_OBJECT_SRC",
        "CSP_IMG_SRC",
        "CSP_FONT_SRC",
        "CSP_MEDIA_SRC",
        "CSP_CHILD_SRC",
        "CSP_FRAME_SRC",
        mode="before",
    )
    @classmethod
    def parse_source_list(cls, v):
        """Accept JSON lists or space/comma separated strings from the environment"""
        if isinstance(v, str):
            if v.startswith("["):
                return json.loads(v)
            return [item for item in v.replace(",", " ").split() if item]
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance (cached)."""
    return Settings()
