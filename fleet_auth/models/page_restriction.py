"""
Page restriction models — the access matrix.

PageRestriction is one row per application page (route). Which roles may
reach it is stored as PageRoleAccess rows, one per (page, role) pair:

    page_restrictions                 page_role_access
    ┌──────────────┬────────────┐     ┌─────────┬────────────┬────────────┐
    │ page_name    │ page_path  │     │ page_id │ role       │ has_access │
    ├──────────────┼────────────┤     ├─────────┼────────────┼────────────┤
    │ Attendance   │ /attendance│ ──► │ …       │ driver     │ true       │
    └──────────────┴────────────┘     └─────────┴────────────┴────────────┘

A missing (page, role) row means "no access". A page with is_active = false
is unreachable by every role regardless of its role rows.

Pages are never deleted in normal operation — only deactivated — so the
history of what existed stays visible to administrators.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Text, Boolean, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleet_auth.database import Base
from fleet_auth.roles import UserRole


class PageRestriction(Base):
    __tablename__ = "page_restrictions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Display name, unique across the matrix
    page_name: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )

    # Route path the navigation shell matches against
    page_path: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        index=True,
    )

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

    # --- Relationships ---
    # Eagerly loaded: every consumer of a page needs its role map
    role_access: Mapped[list["PageRoleAccess"]] = relationship(
        back_populates="page",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def allows(self, role: UserRole) -> bool:
        """True if this page is active and grants `role`."""
        if not self.is_active:
            return False
        return any(
            entry.role == role and entry.has_access for entry in self.role_access
        )

    def role_map(self) -> dict[str, bool]:
        """Full role → access mapping, with False for roles lacking a row."""
        granted = {entry.role: entry.has_access for entry in self.role_access}
        return {role.value: granted.get(role, False) for role in UserRole}

    def set_role_access(self, role: UserRole, has_access: bool) -> None:
        """Create or update the (page, role) entry."""
        for entry in self.role_access:
            if entry.role == role:
                entry.has_access = has_access
                return
        self.role_access.append(PageRoleAccess(role=role, has_access=has_access))


class PageRoleAccess(Base):
    __tablename__ = "page_role_access"
    __table_args__ = (
        UniqueConstraint("page_id", "role", name="uq_page_role_access_page_role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    page_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("page_restrictions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    role: Mapped[UserRole] = mapped_column(Enum(UserRole), nullable=False)

    has_access: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    page: Mapped["PageRestriction"] = relationship(back_populates="role_access")
