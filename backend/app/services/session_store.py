"""Per-user refresh session store.

Each user owns a set of refresh sessions. A session is live while it is
neither revoked nor expired. Every mutation here is a single SQL statement
scoped to one user, so two requests racing on the same token cannot both
consume it: the conditional UPDATE matches for exactly one of them.

Tokens are never stored, only their SHA-256 digests.
"""
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.auth import RefreshSession
from app.services.tokens import hash_token


def _now() -> str:
    return datetime.utcnow().isoformat()


def _live(user_id: str, now: str):
    return (
        RefreshSession.user_id == user_id,
        RefreshSession.revoked_at.is_(None),
        RefreshSession.expires_at > now,
    )


def add_session(
    db: Session,
    user_id: str,
    token: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
    rotated_from_id: str | None = None,
) -> RefreshSession:
    """Register a refresh token for a user.

    Enforces the per-user session cap by revoking the oldest live sessions
    once the new one is in place.
    """
    settings = get_settings()
    expires_at = datetime.utcnow() + timedelta(days=settings.refresh_token_expire_days)

    session = RefreshSession(
        user_id=user_id,
        token_hash=hash_token(token),
        expires_at=expires_at.isoformat(),
        rotated_from_id=rotated_from_id,
        user_agent=(user_agent or "")[:255] or None,
        ip_address=ip_address,
    )
    db.add(session)
    db.flush()

    _evict_overflow(db, user_id, settings.max_sessions_per_user, keep_id=session.id)
    return session


def _evict_overflow(db: Session, user_id: str, limit: int, keep_id: str) -> int:
    # The session just added always survives; the rest keep the newest limit - 1.
    now = _now()
    overflow = (
        db.query(RefreshSession.id)
        .filter(*_live(user_id, now), RefreshSession.id != keep_id)
        .order_by(RefreshSession.created_at.desc(), RefreshSession.id.desc())
        .offset(limit - 1)
        .all()
    )
    if not overflow:
        return 0

    return (
        db.query(RefreshSession)
        .filter(RefreshSession.id.in_([row.id for row in overflow]))
        .update({"revoked_at": now}, synchronize_session=False)
    )


def remove_session(db: Session, user_id: str, token: str) -> str | None:
    """Consume a live refresh token.

    Returns the id of the consumed session, or None when the token is not a
    live session of this user. Removing an absent token is a no-op.
    """
    now = _now()
    token_hash = hash_token(token)
    consumed = (
        db.query(RefreshSession)
        .filter(RefreshSession.token_hash == token_hash, *_live(user_id, now))
        .update({"revoked_at": now, "last_used_at": now}, synchronize_session=False)
    )
    if consumed != 1:
        return None

    return db.query(RefreshSession.id).filter(RefreshSession.token_hash == token_hash).scalar()


def clear_sessions(db: Session, user_id: str) -> int:
    """Revoke all live refresh sessions for a user."""
    now = _now()
    return (
        db.query(RefreshSession)
        .filter(RefreshSession.user_id == user_id, RefreshSession.revoked_at.is_(None))
        .update({"revoked_at": now, "last_used_at": now}, synchronize_session=False)
    )


def has_session(db: Session, user_id: str, token: str) -> bool:
    """Check whether a token is a live session of the user."""
    query = db.query(RefreshSession.id).filter(
        RefreshSession.token_hash == hash_token(token),
        *_live(user_id, _now()),
    )
    return db.query(query.exists()).scalar()


def find_session_owner(db: Session, token: str) -> str | None:
    """Return the user id a refresh token was issued to, live or not."""
    return (
        db.query(RefreshSession.user_id)
        .filter(RefreshSession.token_hash == hash_token(token))
        .scalar()
    )
