# backend/plantdb/apps/accounts/models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Index, String
from sqlalchemy.orm import validates

from plantdb.database import Base
from plantdb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class AccountRole(str, enum.Enum):
    """Roles used to gate the maintenance planning endpoints.

    The users table is shared with the login service, which may write roles
    in any case (e.g. 'admin'). The column is a plain string and
    `security.has_role` compares case-insensitively.
    """

    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"
    ENGINEER = "ENGINEER"
    VIEWER = "VIEWER"


# ---------------------------------------------------------------------------
# USERS
# ---------------------------------------------------------------------------


class User(Base):
    """
    Plant user account.

    Login and password handling live outside this service; the table is read
    here for role gating and to stamp `changed_by_id` on reschedule history.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role_active", "role", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)

    username = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)

    role = Column(String(32), nullable=False, default=AccountRole.VIEWER.value, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    @validates("role")
    def _store_role_value(self, key, value):
        if isinstance(value, AccountRole):
            return value.value
        return value

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username} role={self.role}>"
