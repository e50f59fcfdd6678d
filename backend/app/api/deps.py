"""Shared API dependencies."""
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.errors import Unauthenticated
from app.models.user import User
from app.services.tokens import decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)

__all__ = ["get_access_token", "get_current_user", "get_db"]


def get_access_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """Access token from the Authorization header, else from its cookie."""
    if credentials:
        return credentials.credentials
    return request.cookies.get(get_settings().access_cookie_name)


def get_current_user(
    token: str | None = Depends(get_access_token),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the authenticated user from a valid access token."""
    if not token:
        raise Unauthenticated()

    user_id = decode_access_token(token)
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise Unauthenticated("User does not exist")
    return user
