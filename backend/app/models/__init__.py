"""SQLAlchemy models package."""
from app.models.user import User
from app.models.auth import PasswordResetCode, RefreshSession

__all__ = [
    "User",
    "RefreshSession",
    "PasswordResetCode",
]
