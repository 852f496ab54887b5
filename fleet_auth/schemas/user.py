"""
Pydantic schemas for user administration.

These schemas control what user data is exposed through the API.
Notice that password_hash and session_id are NEVER included in any
response schema — this is a critical security boundary.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel

from fleet_auth.roles import UserRole


class UserResponse(BaseModel):
    """Administrative view of a User."""
    id: uuid.UUID
    email: str
    full_name: str
    role: UserRole
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserUpdateRequest(BaseModel):
    """Request body for PATCH /admin/users/{user_id}. Omitted fields are unchanged."""
    role: UserRole | None = None
    is_active: bool | None = None
    full_name: str | None = None
