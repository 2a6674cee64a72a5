#!/usr/bin/env python3
"""Run the Storefront application"""
import uvicorn

from storefront.core.config import get_settings

if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "storefront.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEV_MODE,
        log_level="debug" if settings.DEV_MODE else "info",
    )
