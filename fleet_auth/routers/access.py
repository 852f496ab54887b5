"""
Access router — the page restriction matrix as seen by the navigation shell.

Endpoints (session required):
  GET /access/pages?role=...           — Active pages the role may reach
  GET /access/check?path=...&role=...  — Whether the role may reach one path

`role` defaults to the caller's own role. Asking about another role is
allowed: the matrix is not secret, and the page restriction editor previews
other roles' navigation with it.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_auth.database import get_db
from fleet_auth.dependencies import get_current_user
from fleet_auth.models.user import User
from fleet_auth.schemas.page_restriction import AccessCheckResponse, PageRestrictionResponse
from fleet_auth.services import access_service

router = APIRouter()


@router.get(
    "/pages",
    response_model=list[PageRestrictionResponse],
    summary="List the pages a role may reach",
)
async def accessible_pages(
    role: str | None = Query(None, description="Role to resolve; defaults to the caller's"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    pages = await access_service.get_accessible_pages(db, role or user.role)
    return [PageRestrictionResponse.from_model(page) for page in pages]


@router.get(
    "/check",
    response_model=AccessCheckResponse,
    summary="Check whether a role may reach a path",
)
async def check_access(
    path: str = Query(..., min_length=1),
    role: str | None = Query(None, description="Role to check; defaults to the caller's"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Unknown paths and inactive pages are denied."""
    effective_role = role or user.role.value
    allowed = await access_service.check_access(db, path, effective_role)
    return AccessCheckResponse(path=path, role=effective_role, allowed=allowed)
