"""
Unit tests for the security helpers: secret keys, CSP and CSRF tokens
"""

import pytest

from storefront.core.config import Settings
from storefront.core.security import (
    CSRF_SESSION_KEY,
    build_content_security_policy,
    csp_directives,
    ensure_csrf_secret,
    generate_csrf_token,
    generate_secure_secret_key,
    get_or_create_secret_key,
    rotate_csrf_secret,
    validate_secret_key,
    verify_csrf_token,
)

pytestmark = [pytest.mark.unit, pytest.mark.security]


class TestSecretKey:
    """SECRET_KEY generation and validation"""

    def test_generated_key_is_valid(self):
        key = generate_secure_secret_key()
        assert len(key) == 64
        validate_secret_key(key)

    @pytest.mark.parametrize(
        "candidate",
        ["", "short", "my secret", "a" * 40, "abababababababababababababababab"],
    )
    def test_weak_keys_rejected(self, candidate):
        with pytest.raises(ValueError):
            validate_secret_key(candidate)

    def test_configured_key_wins(self, tmp_path):
        key = generate_secure_secret_key()
        secret_file = tmp_path / ".secret_key"

        assert get_or_create_secret_key(key, str(secret_file)) == key
        assert not secret_file.exists()

    def test_generated_key_is_persisted_and_reused(self, tmp_path):
        secret_file = tmp_path / "data" / ".secret_key"

        first = get_or_create_secret_key("", str(secret_file))
        second = get_or_create_secret_key("", str(secret_file))

        assert first == second
        assert secret_file.read_text() == first


class TestContentSecurityPolicy:
    """Header value built from settings"""

    def test_policy_from_default_settings(self):
        policy = build_content_security_policy(csp_directives(Settings(_env_file=None)), True)
        parts = policy.split("; ")

        assert parts[0] == "default-src 'self'"
        assert "object-src 'none'" in parts
        assert "img-src 'self' blob: data:" in parts
        assert "frame-src blob: https://js.stripe.com/v3/" in parts
        assert parts[-1] == "upgrade-insecure-requests"

    def test_empty_source_list_becomes_none(self):
        policy = build_content_security_policy([("object-src", [])])
        assert policy == "object-src 'none'"

    def test_upgrade_directive_optional(self):
        policy = build_content_security_policy([("default-src", ["'self'"])], upgrade_insecure_requests=False)
        assert "upgrade-insecure-requests" not in policy


class TestCSRFTokens:
    """Per-session secret and derived tokens"""

    def test_secret_created_once(self):
        session = {}
        secret = ensure_csrf_secret(session)

        assert session[CSRF_SESSION_KEY] == secret
        assert ensure_csrf_secret(session) == secret

    def test_token_verifies_against_its_secret(self):
        secret = ensure_csrf_secret({})
        token = generate_csrf_token(secret)

        assert verify_csrf_token(secret, token)

    def test_token_is_salt_dot_signature(self):
        """Salts are url-safe base64 and may contain dashes, so parts are split on the dot"""
        secret = ensure_csrf_secret({})
        salt, signature = generate_csrf_token(secret).split(".")

        assert salt and signature
        assert verify_csrf_token(secret, f"-{salt}-.{signature}") is False
        assert verify_csrf_token(secret, f"{salt}.{signature}")

    def test_tokens_differ_but_all_verify(self):
        secret = ensure_csrf_secret({})
        first, second = generate_csrf_token(secret), generate_csrf_token(secret)

        assert first != second
        assert verify_csrf_token(secret, first)
        assert verify_csrf_token(secret, second)

    def test_token_from_other_session_rejected(self):
        token = generate_csrf_token(ensure_csrf_secret({}))
        assert not verify_csrf_token(ensure_csrf_secret({}), token)

    @pytest.mark.parametrize("token", [None, "", "no-separator", ".sig", "salt.", "salt.forged"])
    def test_malformed_tokens_rejected(self, token):
        secret = ensure_csrf_secret({})
        assert not verify_csrf_token(secret, token)

    def test_missing_secret_rejects(self):
        token = generate_csrf_token("whatever")
        assert not verify_csrf_token(None, token)

    def test_rotation_invalidates_old_tokens(self):
        session = {}
        old_token = generate_csrf_token(ensure_csrf_secret(session))

        new_secret = rotate_csrf_secret(session)

        assert not verify_csrf_token(new_secret, old_token)
        assert verify_csrf_token(new_secret, generate_csrf_token(new_secret))
