"""
Pydantic schemas for the page restriction matrix and access checks.

On the wire a page's role map is a plain object keyed by role value:

    {"page_name": "Driver Attendance", "page_path": "/attendance",
     "is_active": true,
     "role_access": {"driver": true, "fleet_manager": true, ...}}

Responses always list every role; requests may list a subset.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from fleet_auth.roles import UserRole


class PageRestrictionResponse(BaseModel):
    id: uuid.UUID
    page_name: str
    page_path: str
    description: str | None = None
    is_active: bool
    role_access: dict[str, bool]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, page) -> "PageRestrictionResponse":
        return cls(
            id=page.id,
            page_name=page.page_name,
            page_path=page.page_path,
            description=page.description,
            is_active=page.is_active,
            role_access=page.role_map(),
            created_at=page.created_at,
            updated_at=page.updated_at,
        )


class PageRestrictionCreate(BaseModel):
    """Request body for POST /page-restrictions."""
    page_name: str = Field(min_length=1, max_length=100)
    page_path: str = Field(min_length=1, max_length=255)
    description: str | None = None
    is_active: bool = True
    role_access: dict[UserRole, bool] = Field(default_factory=dict)


class PageRestrictionUpdate(BaseModel):
    """Request body for PATCH /page-restrictions/{id}. Omitted fields are unchanged."""
    page_name: str | None = Field(default=None, min_length=1, max_length=100)
    page_path: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    is_active: bool | None = None
    role_access: dict[UserRole, bool] | None = None


class ToggleActiveRequest(BaseModel):
    is_active: bool


class BulkRoleAccessRequest(BaseModel):
    """Request body for POST /page-restrictions/bulk-role-access."""
    page_ids: list[uuid.UUID] = Field(min_length=1)
    role: UserRole
    has_access: bool


class AccessCheckResponse(BaseModel):
    path: str
    role: str
    allowed: bool
