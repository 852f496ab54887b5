"""
Page restrictions router — administering the access matrix.

Every endpoint requires the caller's role to reach the Page Restrictions
page itself (see dependencies.require_page_access).

Endpoints:
  GET   /page-restrictions                    — List all pages (active and inactive)
  GET   /page-restrictions/{page_id}          — Get one page
  POST  /page-restrictions                    — Add a page
  PATCH /page-restrictions/{page_id}          — Edit name/path/description/roles
  PATCH /page-restrictions/{page_id}/active   — Activate or deactivate a page
  POST  /page-restrictions/bulk-role-access   — Grant/revoke one role on many pages

There is no DELETE: retiring a page means deactivating it.

The static /bulk-role-access route is declared before the parameterized
routes so it is never captured as a page_id.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_auth.database import get_db
from fleet_auth.dependencies import require_page_access
from fleet_auth.models.user import User
from fleet_auth.schemas.page_restriction import (
    BulkRoleAccessRequest,
    PageRestrictionCreate,
    PageRestrictionResponse,
    PageRestrictionUpdate,
    ToggleActiveRequest,
)
from fleet_auth.services import access_service
from fleet_auth.services.access_service import PAGE_RESTRICTIONS_PATH

router = APIRouter()

require_matrix_admin = require_page_access(PAGE_RESTRICTIONS_PATH)


@router.get(
    "",
    response_model=list[PageRestrictionResponse],
    summary="List page restrictions",
)
async def list_page_restrictions(
    active_only: bool = Query(False),
    admin: User = Depends(require_matrix_admin),
    db: AsyncSession = Depends(get_db),
):
    pages = await access_service.list_pages(db, active_only=active_only)
    return [PageRestrictionResponse.from_model(page) for page in pages]


@router.post(
    "/bulk-role-access",
    response_model=list[PageRestrictionResponse],
    summary="Grant or revoke one role on several pages",
)
async def bulk_role_access(
    request: BulkRoleAccessRequest,
    admin: User = Depends(require_matrix_admin),
    db: AsyncSession = Depends(get_db),
):
    """Unknown page ids fail the whole request; nothing is changed."""
    pages = await access_service.bulk_update_role_access(
        db,
        page_ids=request.page_ids,
        role=request.role,
        has_access=request.has_access,
    )
    return [PageRestrictionResponse.from_model(page) for page in pages]


@router.post(
    "",
    response_model=PageRestrictionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a page to the matrix",
)
async def create_page_restriction(
    request: PageRestrictionCreate,
    admin: User = Depends(require_matrix_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Add a page. Roles missing from `role_access` get no access, so a new
    page is invisible to everyone until roles are granted.
    """
    page = await access_service.create_page(
        db,
        page_name=request.page_name,
        page_path=request.page_path,
        description=request.description,
        is_active=request.is_active,
        role_access=request.role_access,
    )
    return PageRestrictionResponse.from_model(page)


@router.get(
    "/{page_id}",
    response_model=PageRestrictionResponse,
    summary="Get a page restriction",
)
async def get_page_restriction(
    page_id: uuid.UUID,
    admin: User = Depends(require_matrix_admin),
    db: AsyncSession = Depends(get_db),
):
    page = await access_service.get_page(db, page_id)
    return PageRestrictionResponse.from_model(page)


@router.patch(
    "/{page_id}",
    response_model=PageRestrictionResponse,
    summary="Edit a page restriction",
)
async def update_page_restriction(
    page_id: uuid.UUID,
    request: PageRestrictionUpdate,
    admin: User = Depends(require_matrix_admin),
    db: AsyncSession = Depends(get_db),
):
    page = await access_service.update_page(
        db,
        page_id,
        page_name=request.page_name,
        page_path=request.page_path,
        description=request.description,
        is_active=request.is_active,
        role_access=request.role_access,
    )
    return PageRestrictionResponse.from_model(page)


@router.patch(
    "/{page_id}/active",
    response_model=PageRestrictionResponse,
    summary="Activate or deactivate a page",
)
async def toggle_page_restriction(
    page_id: uuid.UUID,
    request: ToggleActiveRequest,
    admin: User = Depends(require_matrix_admin),
    db: AsyncSession = Depends(get_db),
):
    page = await access_service.set_page_active(db, page_id, request.is_active)
    return PageRestrictionResponse.from_model(page)
