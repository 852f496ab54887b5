"""
User model — the fleet operator profile and its single session slot.

Each User represents one person operating the fleet application with exactly
one role. The row also carries the session fields:

  - session_id:         the token of the one login that is "current"
  - session_expires_at: when that login stops being valid

There is no separate sessions table. A login overwrites both fields (last
writer wins), a logout clears them, and a password change clears them through
the credential sync rule. Any device holding a token that no longer matches
session_id has been logged out, whether it noticed yet or not.

The authoritative password hash does NOT live here — it lives in the primary
credential store (AuthCredential). users.password_hash is the secondary copy
kept for legacy readers and aligned by the sync rule; nothing authenticates
against it.

Roles:
  The role set is a closed enumeration. Adding a role is a code change, but
  it no longer requires a schema change on the page restriction matrix,
  which stores (page, role) pairs as rows.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime, Enum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from fleet_auth.database import Base
from fleet_auth.roles import UserRole  # noqa: F401  (re-exported)


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        # Session validation looks rows up by id and compares both fields
        Index("idx_users_session_validation", "id", "session_id", "session_expires_at"),
    )

    # Same UUID as the primary credential; the profile cannot exist without it
    id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("auth_credentials.id", ondelete="CASCADE"),
        primary_key=True,
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole),
        default=UserRole.DRIVER,
        nullable=False,
    )

    # Soft-disable: deactivated users can't log in or keep a session
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Secondary (legacy) credential copy, written only by the sync rule
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # --- Session slot ---
    session_id: Mapped[str | None] = mapped_column(String(512), nullable=True)
    session_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
