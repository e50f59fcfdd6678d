"""Login, logout and refresh-token rotation."""
import logging

from sqlalchemy.orm import Session

from app.errors import (
    InternalError,
    InvalidCredentials,
    InvalidToken,
    IssuanceError,
    NotFound,
    Unauthenticated,
)
from app.models.user import User
from app.services import session_store
from app.services.passwords import verify_password
from app.services.tokens import TokenPair, issue_tokens

logger = logging.getLogger(__name__)


def find_user_by_identifier(db: Session, identifier: str) -> User | None:
    """Find a user by username or email."""
    return db.query(User).filter(
        (User.username == identifier) | (User.email == identifier)
    ).first()


def _issue(user_id: str) -> TokenPair:
    try:
        return issue_tokens(user_id)
    except IssuanceError:
        logger.exception("Token issuance failed for user %s", user_id)
        raise InternalError()


def login(
    db: Session,
    identifier: str,
    password: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[User, TokenPair]:
    """Authenticate a user and open a new refresh session."""
    user = find_user_by_identifier(db, identifier)
    if not user:
        raise NotFound()

    if not verify_password(password, user.password_hash):
        raise InvalidCredentials()

    tokens = _issue(user.id)
    try:
        session_store.add_session(db, user.id, tokens.refresh_token, user_agent, ip_address)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("User %s logged in", user.id)
    return user, tokens


def logout(db: Session, user_id: str) -> int:
    """Revoke every refresh session the user holds."""
    revoked = session_store.clear_sessions(db, user_id)
    db.commit()
    logger.info("User %s logged out, %d sessions revoked", user_id, revoked)
    return revoked


def refresh(
    db: Session,
    presented_token: str | None,
    claimed_user_id: str | None,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[User, TokenPair]:
    """Rotate a refresh token.

    The presented token is consumed before its replacement is registered. A
    token that is not a live session of the user (already rotated, revoked
    or expired) is rejected and nothing is re-issued.
    """
    if not presented_token:
        raise Unauthenticated()

    if not claimed_user_id:
        raise InvalidToken()

    user = db.query(User).filter(User.id == claimed_user_id).first()
    if not user:
        raise NotFound()

    try:
        consumed_id = session_store.remove_session(db, user.id, presented_token)
        if consumed_id is None:
            logger.warning("Rejected refresh with stale or unknown token for user %s", user.id)
            raise InvalidToken()

        tokens = _issue(user.id)
        session_store.add_session(
            db,
            user.id,
            tokens.refresh_token,
            user_agent,
            ip_address,
            rotated_from_id=consumed_id,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info("Rotated refresh session for user %s", user.id)
    return user, tokens
