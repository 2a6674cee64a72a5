"""
Structured logging configuration for Storefront.

Provides JSON-formatted logging with correlation IDs, security event helpers,
and the combined-format access log.
"""

import json
import logging
import os
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# Context variable for correlation ID (used across request lifecycle)
correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

ACCESS_LOGGER_NAME = "storefront.access"

_RESERVED_RECORD_KEYS = {
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "lineno", "funcName", "created",
    "msecs", "relativeCreated", "thread", "threadName",
    "processName", "process", "exc_info", "exc_text", "stack_info",
    "taskName", "message",
}


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging with security context.
    """

    def __init__(self, include_sensitive: bool = False):
        """
        Initialize structured formatter.

        Args:
            include_sensitive: Whether to include potentially sensitive data in logs
        """
        super().__init__()
        self.include_sensitive = include_sensitive

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = correlation_id_ctx.get()
        if correlation_id:
            log_entry["correlation_id"] = correlation_id

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = {}
        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_KEYS:
                continue
            if not self.include_sensitive and self._is_sensitive_field(key):
                extra_fields[key] = "[REDACTED]"
            else:
                extra_fields[key] = value

        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=self._json_default)

    def _is_sensitive_field(self, key: str) -> bool:
        """Check if field contains sensitive data"""
        sensitive_keywords = {
            "password", "secret", "key", "token", "credential",
            "cookie", "private", "confidential",
        }
        key_lower = key.lower()
        return any(keyword in key_lower for keyword in sensitive_keywords)

    def _json_default(self, obj: Any) -> str:
        """JSON serializer for objects not serializable by default"""
        if isinstance(obj, datetime):
            return obj.isoformat()
        return str(obj)


def setup_logging(
    log_level: str = "INFO",
    enable_json: bool = True,
    log_file: Optional[str] = None,
    include_sensitive: bool = False,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_json: Whether to use JSON formatting
        log_file: Optional file path for logging
        include_sensitive: Whether to include sensitive data in logs
    """
    logging.root.handlers.clear()

    if enable_json:
        formatter: logging.Formatter = StructuredFormatter(include_sensitive=include_sensitive)
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Reduce noise from external libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)


def configure_access_log(path: str) -> logging.Logger:
    """
    Attach an append-mode file handler to the access logger.

    Lines are written verbatim (already in combined log format), and the
    logger does not propagate so access lines stay out of the application log.
    There is one access log per process: a handler for a different path is
    closed and replaced, and calling this twice for the same path is a no-op.
    """
    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.setLevel(logging.INFO)
    access_logger.propagate = False

    for handler in list(access_logger.handlers):
        if not isinstance(handler, logging.FileHandler):
            continue
        if handler.baseFilename == os.path.abspath(path):
            return access_logger
        access_logger.removeHandler(handler)
        handler.close()

    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)

    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    access_logger.addHandler(handler)
    return access_logger


def get_correlation_id() -> str:
    """
    Get or create a correlation ID for request tracking.

    Returns:
        str: Correlation ID for current context
    """
    correlation_id = correlation_id_ctx.get()
    if not correlation_id:
        correlation_id = str(uuid.uuid4())
        correlation_id_ctx.set(correlation_id)
    return correlation_id


def set_correlation_id(correlation_id: Optional[str]) -> None:
    """Set correlation ID for current context."""
    correlation_id_ctx.set(correlation_id)


def get_security_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"security.{name}")


def log_security_event(
    event_type: str,
    message: str,
    level: int = logging.INFO,
    user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log a security event with structured data.

    Args:
        event_type: Type of security event (auth, csrf, etc.)
        message: Human-readable message
        level: Logging level for the event
        user_id: Optional user identifier
        ip_address: Optional IP address
        extra_data: Additional structured data
    """
    logger = get_security_logger("events")

    security_data: Dict[str, Any] = {
        "event_type": event_type,
        "correlation_id": get_correlation_id(),
    }
    if user_id is not None:
        security_data["user_id"] = user_id
    if ip_address:
        security_data["ip_address"] = ip_address
    if extra_data:
        security_data.update(extra_data)

    logger.log(level, message, extra=security_data)


def log_csrf_validation_failure(ip_address: Optional[str] = None, endpoint: Optional[str] = None) -> None:
    """Log a CSRF validation failure"""
    log_security_event(
        "csrf_validation_failure",
        f"CSRF token validation failed for endpoint: {endpoint or 'unknown'}",
        level=logging.WARNING,
        ip_address=ip_address,
        extra_data={"endpoint": endpoint},
    )


def log_authentication_attempt(
    success: bool, email: Optional[str] = None, ip_address: Optional[str] = None
) -> None:
    """Log a login attempt; the email is reduced to its domain."""
    domain = email.rsplit("@", 1)[-1] if email and "@" in email else "unknown"
    if success:
        log_security_event(
            "authentication_success",
            f"Successful login for account at {domain}",
            ip_address=ip_address,
        )
    else:
        log_security_event(
            "authentication_failure",
            f"Failed login attempt for account at {domain}",
            level=logging.WARNING,
            ip_address=ip_address,
        )


def init_application_logging(dev_mode: bool = False) -> None:
    """Initialize logging for the FastAPI application"""
    log_level = "DEBUG" if dev_mode else "INFO"

    # Use JSON logging in production, plain text in development
    enable_json = not dev_mode

    setup_logging(
        log_level=log_level,
        enable_json=enable_json,
        include_sensitive=dev_mode,
    )

    logger = logging.getLogger("storefront.startup")
    logger.info(
        "Structured logging initialized",
        extra={"dev_mode": dev_mode, "json_logging": enable_json, "log_level": log_level},
    )
