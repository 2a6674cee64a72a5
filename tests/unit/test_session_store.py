"""
Unit tests for the SQL-backed session store
"""

from datetime import timedelta

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import select

from storefront.core.utils.encryption import PayloadCipher, build_cipher
from storefront.core.utils.session_store import SessionStore, utcnow
from storefront.db.init_db import init_database
from storefront.db.models.session_store import SessionRecord
from storefront.db.session import build_engine, build_sessionmaker, session_scope

pytestmark = pytest.mark.unit


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'sessions.db'}")
    init_database(engine)
    yield build_sessionmaker(engine)
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return SessionStore(session_factory)


def _deadlines(minutes: int = 10, absolute_minutes: int = 60):
    now = utcnow()
    return now + timedelta(minutes=minutes), now + timedelta(minutes=absolute_minutes)


class TestSessionStore:
    def test_missing_key_loads_none(self, store):
        assert store.load("nope") is None

    def test_save_then_load(self, store):
        expires_at, absolute = _deadlines()
        store.save("abc", {"is_logged_in": True, "user_id": 3}, expires_at, absolute)

        loaded = store.load("abc")

        assert loaded.data == {"is_logged_in": True, "user_id": 3}
        assert loaded.absolute_expires_at == absolute

    def test_save_overwrites_existing(self, store):
        expires_at, absolute = _deadlines()
        store.save("abc", {"n": 1}, expires_at, absolute)
        store.save("abc", {"n": 2}, expires_at, absolute)

        assert store.load("abc").data == {"n": 2}

    def test_overwrite_keeps_absolute_deadline(self, store):
        expires_at, absolute = _deadlines()
        store.save("abc", {}, expires_at, absolute)
        store.save("abc", {"n": 1}, expires_at, absolute + timedelta(days=30))

        assert store.load("abc").absolute_expires_at == absolute

    def test_sliding_expiry_removes_record(self, store, session_factory):
        now = utcnow()
        store.save("old", {"n": 1}, now - timedelta(seconds=1), now + timedelta(days=1))

        assert store.load("old") is None
        with session_scope(session_factory) as db:
            assert db.scalar(select(SessionRecord).where(SessionRecord.key == "old")) is None

    def test_absolute_expiry_wins_over_sliding(self, store):
        now = utcnow()
        store.save("abs", {}, now + timedelta(days=1), now - timedelta(seconds=1))

        assert store.load("abs") is None

    def test_touch_extends_expiry(self, store):
        expires_at, absolute = _deadlines(minutes=1)
        store.save("abc", {}, expires_at, absolute)

        store.touch("abc", expires_at + timedelta(minutes=5))

        assert store.load("abc").expires_at == expires_at + timedelta(minutes=5)

    def test_destroy(self, store):
        expires_at, absolute = _deadlines()
        store.save("abc", {"n": 1}, expires_at, absolute)

        store.destroy("abc")

        assert store.load("abc") is None

    def test_purge_expired(self, store):
        now = utcnow()
        store.save("live", {}, now + timedelta(minutes=5), now + timedelta(days=1))
        store.save("dead", {}, now - timedelta(minutes=5), now + timedelta(days=1))

        assert store.purge_expired() == 1
        assert store.load("live") is not None


class TestEncryptedPayloads:
    """Session bags encrypted at rest with Fernet"""

    def test_payload_is_opaque_in_database(self, session_factory):
        store = SessionStore(session_factory, build_cipher(Fernet.generate_key().decode()))
        expires_at, absolute = _deadlines()
        store.save("enc", {"user_id": 42}, expires_at, absolute)

        with session_scope(session_factory) as db:
            raw = db.scalar(select(SessionRecord.data).where(SessionRecord.key == "enc"))

        assert isinstance(raw, str)
        assert "42" not in raw
        assert store.load("enc").data == {"user_id": 42}

    def test_payload_from_other_key_is_discarded(self, session_factory):
        expires_at, absolute = _deadlines()
        SessionStore(session_factory, build_cipher(Fernet.generate_key().decode())).save(
            "enc", {"user_id": 42}, expires_at, absolute
        )

        other = SessionStore(session_factory, build_cipher(Fernet.generate_key().decode()))

        assert other.load("enc") is None

    def test_no_cipher_without_key(self):
        assert build_cipher("") is None

    def test_invalid_key_rejected(self):
        with pytest.raises(ValueError):
            PayloadCipher("not-a-fernet-key")
