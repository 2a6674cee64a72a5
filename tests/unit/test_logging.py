"""
Unit tests for structured logging and the access log
"""

import json
import logging
from datetime import datetime, timezone

import pytest
from starlette.requests import Request

from storefront.core.access_log import format_combined
from storefront.core.logging_config import (
    ACCESS_LOGGER_NAME,
    StructuredFormatter,
    configure_access_log,
    log_authentication_attempt,
    set_correlation_id,
)

pytestmark = pytest.mark.unit


def _request(path="/products", query=b"page=2", headers=None):
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "server": ("testserver", 80),
        "path": path,
        "query_string": query,
        "headers": headers or [],
        "client": ("203.0.113.9", 51000),
    }
    return Request(scope)


class TestCombinedFormat:
    def test_line_layout(self):
        request = _request(headers=[(b"referer", b"http://testserver/"), (b"user-agent", b"pytest")])
        when = datetime(2024, 3, 5, 14, 7, 9, tzinfo=timezone.utc)

        line = format_combined(request, 200, "1532", when)

        assert line == (
            '203.0.113.9 - - [05/Mar/2024:14:07:09 +0000] "GET /products?page=2 HTTP/1.1" 200 1532 '
            '"http://testserver/" "pytest"'
        )

    def test_missing_fields_are_dashes(self):
        line = format_combined(_request(query=b""), 304, "", datetime.now(timezone.utc))

        assert '"GET /products HTTP/1.1" 304 - "-" "-"' in line


class TestAccessLogHandler:
    def test_appends_to_configured_file(self, tmp_path):
        path = tmp_path / "logs" / "access.log"
        path.parent.mkdir()
        path.write_text("existing line\n")

        access_logger = configure_access_log(str(path))
        access_logger.info("new line")

        assert path.read_text().splitlines() == ["existing line", "new line"]
        assert access_logger.propagate is False

    def test_reconfiguring_same_path_adds_no_handler(self, tmp_path):
        path = str(tmp_path / "access.log")
        configure_access_log(path)
        configure_access_log(path)

        file_handlers = [
            h for h in logging.getLogger(ACCESS_LOGGER_NAME).handlers if isinstance(h, logging.FileHandler)
        ]
        assert len(file_handlers) == 1


class TestStructuredFormatter:
    def _record(self, **extra):
        record = logging.LogRecord("storefront.test", logging.INFO, __file__, 1, "hello", None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_json_output_with_correlation_id(self):
        set_correlation_id("req-123")
        try:
            entry = json.loads(StructuredFormatter().format(self._record(user_id=7)))
        finally:
            set_correlation_id(None)

        assert entry["message"] == "hello"
        assert entry["correlation_id"] == "req-123"
        assert entry["extra"]["user_id"] == 7

    def test_sensitive_fields_redacted(self):
        entry = json.loads(StructuredFormatter().format(self._record(password="hunter2", csrf_token="abc")))

        assert entry["extra"]["password"] == "[REDACTED]"
        assert entry["extra"]["csrf_token"] == "[REDACTED]"

    def test_sensitive_fields_kept_when_requested(self):
        entry = json.loads(StructuredFormatter(include_sensitive=True).format(self._record(password="hunter2")))
        assert entry["extra"]["password"] == "hunter2"


class TestSecurityEvents:
    def test_login_attempt_logs_domain_only(self, caplog):
        with caplog.at_level(logging.INFO, logger="security.events"):
            log_authentication_attempt(False, "alice@example.com", "198.51.100.1")

        messages = " ".join(r.getMessage() for r in caplog.records)
        assert "example.com" in messages
        assert "alice" not in messages
