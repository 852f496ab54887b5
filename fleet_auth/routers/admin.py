"""
Admin router — user administration.

All endpoints require the caller's role to reach the User Management page
("/users" in the page restriction matrix; administration only by default).

Endpoints:
  GET   /admin/users             — List all users
  PATCH /admin/users/{user_id}   — Change role, activation flag or name

Self-service signups arrive inactive and wait here for activation.
Deactivating a user ends their session at its next validation.
"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_auth.database import get_db
from fleet_auth.dependencies import require_page_access
from fleet_auth.models.user import User
from fleet_auth.schemas.user import UserResponse, UserUpdateRequest
from fleet_auth.services import user_service
from fleet_auth.services.access_service import USER_MANAGEMENT_PATH

router = APIRouter()

require_user_admin = require_page_access(USER_MANAGEMENT_PATH)


@router.get(
    "/users",
    response_model=list[UserResponse],
    summary="[Admin] List all users",
)
async def admin_list_users(
    admin: User = Depends(require_user_admin),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.list_users(db)


@router.patch(
    "/users/{user_id}",
    response_model=UserResponse,
    summary="[Admin] Update a user's role or activation",
)
async def admin_update_user(
    user_id: uuid.UUID,
    request: UserUpdateRequest,
    admin: User = Depends(require_user_admin),
    db: AsyncSession = Depends(get_db),
):
    """Omitted fields are left unchanged."""
    return await user_service.update_user(
        db,
        user_id,
        role=request.role,
        is_active=request.is_active,
        full_name=request.full_name,
    )
