"""Password recovery with one-time numeric codes."""
from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
import secrets
import uuid

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from app.config import get_settings
from app.errors import InvalidOrExpiredCode, NotFound, ResetTimeout
from app.models.auth import PasswordResetCode
from app.models.user import User
from app.services import mailer, session_store
from app.services.passwords import get_password_hash
from app.services.tokens import hash_token

logger = logging.getLogger(__name__)

CODE_MIN = 100000
CODE_SPAN = 900000


@dataclass(frozen=True)
class ResetCodeDispatch:
    """Outcome of issuing a reset code."""

    email_sent: bool


def generate_reset_code() -> str:
    """Return a uniformly random six-digit code."""
    return str(CODE_MIN + secrets.randbelow(CODE_SPAN))


def _upsert_code(db: Session, user_id: str, code: str, expires_at: datetime) -> None:
    # One statement against the unique user_id constraint, so concurrent
    # requests overwrite each other instead of creating a second row.
    insert = postgresql_insert if db.get_bind().dialect.name == "postgresql" else sqlite_insert
    now = datetime.utcnow().isoformat()
    stmt = insert(PasswordResetCode).values(
        id=str(uuid.uuid4()),
        user_id=user_id,
        code_hash=hash_token(code),
        expires_at=expires_at.isoformat(),
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id"],
        set_={
            "code_hash": stmt.excluded.code_hash,
            "expires_at": stmt.excluded.expires_at,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)


def request_reset_code(db: Session, email: str) -> ResetCodeDispatch:
    """Issue (or re-issue) the reset code for an account and email it.

    Re-issuing overwrites the stored code, so earlier codes stop verifying.
    The code is committed before the email goes out; a failed delivery is
    reported through ``email_sent`` and does not undo the code.
    """
    settings = get_settings()
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise NotFound("User with given email address does not exist")

    code = generate_reset_code()
    expires_at = datetime.utcnow() + timedelta(minutes=settings.reset_code_expire_minutes)
    try:
        _upsert_code(db, user.id, code, expires_at)
        db.commit()
    except Exception:
        db.rollback()
        raise

    sent = mailer.send_email(
        user.email,
        "Password reset OTP",
        f"Your OTP is {code}. It expires in {settings.reset_code_expire_minutes} minutes.",
    )
    if sent:
        logger.info("Password reset code issued for user %s", user.id)
    else:
        logger.warning("Password reset code issued for user %s but email delivery failed", user.id)

    return ResetCodeDispatch(email_sent=sent)


def verify_reset_code(db: Session, code: str, email: str | None = None) -> PasswordResetCode:
    """Check that a code is outstanding. Does not consume it.

    Without an email the code is looked up across all users.
    """
    query = db.query(PasswordResetCode).filter(
        PasswordResetCode.code_hash == hash_token(code),
        PasswordResetCode.expires_at > datetime.utcnow().isoformat(),
    )
    if email:
        query = query.join(User, User.id == PasswordResetCode.user_id).filter(User.email == email)

    record = query.first()
    if not record:
        raise InvalidOrExpiredCode()
    return record


def reset_password(
    db: Session,
    email: str,
    new_password: str,
    code: str | None = None,
) -> User:
    """Apply a new password, consume the reset code and revoke all sessions."""
    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise ResetTimeout()

    record = db.query(PasswordResetCode).filter(PasswordResetCode.user_id == user.id).first()
    if not record or record.expires_at <= datetime.utcnow().isoformat():
        raise ResetTimeout()

    if code is not None and not secrets.compare_digest(record.code_hash, hash_token(code)):
        raise InvalidOrExpiredCode()

    try:
        user.password_hash = get_password_hash(new_password)
        db.delete(record)
        revoked = session_store.clear_sessions(db, user.id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Password reset for user %s, %d sessions revoked", user.id, revoked)
    return user
