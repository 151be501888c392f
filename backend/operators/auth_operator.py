import hashlib
import json
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

from sqlalchemy.orm import Session as DBSession

from database.models import Session, User
from redis_client import redis_auth


SESSION_TTL_SECONDS = 60 * 60 * 24 * 7  # 7 days


def _cache_key(session_id: UUID) -> str:
    return f"sess:{session_id}"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_session_secret() -> str:
    return secrets.token_urlsafe(32)


def hash_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode()).hexdigest()


def create_user(db: DBSession, user_id: UUID | None = None, commit: bool = True) -> User:
    now = datetime.now(timezone.utc)
    user = User(user_id=user_id or uuid4(), last_activity=now, created_at=now)
    db.add(user)
    if commit:
        db.commit()
        db.refresh(user)
    else:
        db.flush()
    return user


def get_user(db: DBSession, user_id: UUID) -> User | None:
    return db.query(User).filter(User.user_id == user_id).first()


def ensure_user(db: DBSession, user_id: UUID) -> User:
    existing = get_user(db, user_id)
    if existing:
        return existing
    return create_user(db, user_id)


def create_session(
    db: DBSession,
    user_id: UUID | None = None,
    scopes: list[str] | None = None,
    ttl_seconds: int = SESSION_TTL_SECONDS,
) -> tuple[UUID, str, datetime, UUID]:
    """Start an anonymous or user-bound session. Returns (session_id, secret, expires_at, user_id)."""
    now = datetime.now(timezone.utc)
    if user_id is None:
        user_id = create_user(db, commit=False).user_id

    session_id = uuid4()
    session_secret = generate_session_secret()
    secret_hash = hash_secret(session_secret)
    expires_at = now + timedelta(seconds=ttl_seconds)

    db.add(
        Session(
            id=session_id,
            secret_hash=secret_hash,
            user_id=user_id,
            scopes=scopes or [],
            expires_at=expires_at,
        )
    )
    db.commit()

    cache_session(session_id, secret_hash, user_id, scopes or [], ttl_seconds)
    return session_id, session_secret, expires_at, user_id


def cache_session(
    session_id: UUID,
    secret_hash: str,
    user_id: UUID | None,
    scopes: list[str],
    ttl_seconds: int,
) -> None:
    payload = {
        "secret_hash": secret_hash,
        "user_id": str(user_id) if user_id else None,
        "scopes": scopes,
    }
    redis_auth.setex(_cache_key(session_id), ttl_seconds, json.dumps(payload))


def get_cached_session(session_id: UUID) -> dict | None:
    data = redis_auth.get(_cache_key(session_id))
    if data:
        return json.loads(data)
    return None


def validate_session(session_id: UUID, secret: str, db: DBSession) -> dict | None:
    """Check a session secret against the Redis cache, falling back to the database."""
    secret_hash = hash_secret(secret)

    cached = get_cached_session(session_id)
    if cached:
        if secrets.compare_digest(cached["secret_hash"], secret_hash):
            return cached
        return None

    session = db.query(Session).filter(Session.id == session_id).first()
    if not session or not secrets.compare_digest(session.secret_hash, secret_hash):
        return None

    remaining_ttl = int(
        (_as_utc(session.expires_at) - datetime.now(timezone.utc)).total_seconds()
    )
    if remaining_ttl <= 0:
        return None
    cache_session(session_id, session.secret_hash, session.user_id, session.scopes, remaining_ttl)

    return {
        "secret_hash": session.secret_hash,
        "user_id": str(session.user_id) if session.user_id else None,
        "scopes": session.scopes,
    }


def invalidate_session(session_id: UUID, db: DBSession) -> None:
    redis_auth.delete(_cache_key(session_id))
    db.query(Session).filter(Session.id == session_id).delete()
    db.commit()
