"""
Test helper functions for driving the HTML forms

Every state-changing request needs the CSRF token rendered into the page,
so these helpers fetch a page first and lift the token out of it.
"""

import re
from typing import Dict, Optional

from fastapi.testclient import TestClient

CSRF_INPUT = re.compile(r'name="_csrf" value="([^"]+)"')


def extract_csrf_token(html: str) -> str:
    """Return the first CSRF token embedded in a rendered page"""
    match = CSRF_INPUT.search(html)
    assert match, "No CSRF token found in page"
    return match.group(1)


def fetch_csrf_token(client: TestClient, path: str = "/login") -> str:
    response = client.get(path)
    assert response.status_code == 200
    return extract_csrf_token(response.text)


def post_form(client: TestClient, path: str, data: Optional[Dict[str, str]] = None, **kwargs):
    """POST a form with a freshly fetched CSRF token; redirects are not followed"""
    payload = dict(data or {})
    payload["_csrf"] = fetch_csrf_token(client)
    return client.post(path, data=payload, follow_redirects=False, **kwargs)


def login(client: TestClient, email: str, password: str):
    response = post_form(client, "/login", {"email": email, "password": password})
    assert response.status_code == 303, response.text
    assert response.headers["location"] == "/", "Login was refused"
    return response


def assert_no_sensitive_data_in_logs(caplog, sensitive_patterns: list[str]):
    """Assert that sensitive data patterns don't appear in logs"""
    all_logs = " ".join([record.getMessage() for record in caplog.records])

    for pattern in sensitive_patterns:
        assert pattern not in all_logs, f"Sensitive pattern '{pattern}' found in logs"
