"""User model."""
import uuid
from datetime import datetime

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from app.database import Base

ROLE_UNSET = "unset"
ROLE_DEVELOPER = "Developer"
ROLE_PROJECT_MANAGER = "Project Manager"
ROLE_TEAM_LEAD = "Team Lead"

LEAD_ROLES = (ROLE_PROJECT_MANAGER, ROLE_TEAM_LEAD)


class User(Base):
    """User account."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    assigned_role = Column(String(32), nullable=False, default=ROLE_UNSET, index=True)
    created_at = Column(String(26), default=lambda: datetime.utcnow().isoformat())
    updated_at = Column(String(26), default=lambda: datetime.utcnow().isoformat(), onupdate=lambda: datetime.utcnow().isoformat())

    # Relationships
    refresh_sessions = relationship(
        "RefreshSession",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
