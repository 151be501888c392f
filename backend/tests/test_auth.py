from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from database.models import Session, User
from dependencies.auth import parse_session_cookie, validate_session_token
from operators import auth_operator


class _FakeRedis:
    def __init__(self):
        self.store = {}

    def setex(self, key, ttl, value):
        self.store[key] = value

    def get(self, key):
        return self.store.get(key)

    def delete(self, key):
        self.store.pop(key, None)


@pytest.fixture
def redis(monkeypatch):
    fake = _FakeRedis()
    monkeypatch.setattr(auth_operator, "redis_auth", fake)
    return fake


def test_parse_session_cookie():
    session_id = uuid4()

    assert parse_session_cookie(f"{session_id}.s3cret") == (session_id, "s3cret")
    assert parse_session_cookie("no-dot") is None
    assert parse_session_cookie("not-a-uuid.secret") is None
    assert parse_session_cookie(f"{session_id}.") is None


def test_create_session_creates_anonymous_user(db, redis):
    session_id, secret, expires_at, user_id = auth_operator.create_session(db)

    assert db.query(User).filter(User.user_id == user_id).count() == 1
    assert f"sess:{session_id}" in redis.store
    assert expires_at > datetime.now(timezone.utc)


def test_session_token_round_trip(db, redis):
    session_id, secret, _, user_id = auth_operator.create_session(db)

    session = validate_session_token(f"{session_id}.{secret}", db)

    assert session.user_id == user_id
    assert validate_session_token(f"{session_id}.wrong", db) is None


def test_validation_falls_back_to_database(db, redis):
    session_id, secret, _, user_id = auth_operator.create_session(db)
    redis.store.clear()

    session = validate_session_token(f"{session_id}.{secret}", db)

    assert session.user_id == user_id
    assert f"sess:{session_id}" in redis.store


def test_expired_session_is_rejected(db, redis, user):
    session_id = uuid4()
    db.add(
        Session(
            id=session_id,
            secret_hash=auth_operator.hash_secret("s3cret"),
            user_id=user.user_id,
            scopes=[],
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        )
    )
    db.commit()

    assert validate_session_token(f"{session_id}.s3cret", db) is None


def test_invalidate_session(db, redis):
    session_id, secret, _, _ = auth_operator.create_session(db)

    auth_operator.invalidate_session(session_id, db)

    assert redis.store == {}
    assert validate_session_token(f"{session_id}.{secret}", db) is None
