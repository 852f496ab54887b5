"""
Access service — page restriction lookups and the administrative write path.

Decisions:
  get_accessible_pages(role)
      Active pages whose (page, role) entry grants access, ordered by name.
  check_access(path, role)
      Fail closed. No page for the path → False (new routes stay hidden until
      an administrator classifies them). Only inactive pages → False.
      Otherwise the role's entry on an active page decides.
  Unknown role strings resolve to no access at all.

The database being unreachable is NOT handled here: it propagates as an
error so that server-side authorization fails closed. Only the client-side
resolver (navigation convenience) turns transient failures into "allow".

Writes (create/update/toggle/bulk) are reserved for roles that can reach
the Page Restrictions page itself; that gate lives in the router
dependency. Pages are never deleted, only deactivated.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_auth.exceptions import DuplicatePageError, PageRestrictionNotFoundError
from fleet_auth.logging import get_logger
from fleet_auth.models.page_restriction import PageRestriction, PageRoleAccess
from fleet_auth.models.user import UserRole

logger = get_logger(__name__)

PAGE_RESTRICTIONS_PATH = "/page-restrictions"
USER_MANAGEMENT_PATH = "/users"

_FM = UserRole.FLEET_MANAGER
_MT = UserRole.MAINTENANCE_TEAM
_DR = UserRole.DRIVER
_AD = UserRole.ADMINISTRATION
_CL = UserRole.CLIENT_COMPANY_LIAISON

# (page_name, page_path, description, roles granted)
DEFAULT_PAGES: list[tuple[str, str, str, set[UserRole]]] = [
    ("Dashboard", "/dashboard", "Main dashboard and overview", {_FM, _MT, _DR, _AD, _CL}),
    ("Vehicles", "/vehicles", "Vehicle management module", {_FM, _MT, _DR, _AD, _CL}),
    ("Maintenance", "/maintenance", "Maintenance scheduling and tracking", {_FM, _MT, _AD}),
    ("Drivers", "/drivers", "Driver management and records", {_FM, _AD}),
    ("Trips", "/trips", "Trip scheduling and tracking", {_FM, _DR, _AD}),
    ("Fuel Tracking", "/fuel", "Fuel consumption and transactions", {_FM, _DR, _AD}),
    ("Incidents & Insurance", "/incidents", "Incident reports and insurance claims", {_FM, _MT, _DR, _AD}),
    ("Reporting & Analytics", "/reports", "Reports and data analytics", {_FM, _AD, _CL}),
    ("Compliance Documents", "/compliance", "Document management and compliance", {_FM, _AD, _CL}),
    ("Vehicle Disposal", "/disposal", "Vehicle disposal and auction management", {_FM, _AD}),
    ("User Management", USER_MANAGEMENT_PATH, "System user administration", {_AD}),
    ("Page Restrictions", PAGE_RESTRICTIONS_PATH, "Page access control management", {_FM, _AD}),
    ("Driver Attendance", "/attendance", "Driver check-in/check-out with photo capture", {_FM, _DR, _AD}),
    ("Fleet Details", "/fleet-details", "Fleet composition and assignments", {_FM, _AD}),
    ("Routes", "/routes", "Route planning and rates", {_FM, _AD}),
    ("Trip Request", "/trip-request", "Request a trip", {_FM, _AD, _CL}),
    ("Booking Request", "/booking-request", "Booking requests from client companies", {_FM, _AD, _CL}),
]


def parse_role(role: str | UserRole | None) -> UserRole | None:
    """Map a role string to the enumeration; unknown strings give None."""
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------

async def get_accessible_pages(
    db: AsyncSession,
    role: str | UserRole,
) -> list[PageRestriction]:
    """Return every active page the role may reach, ordered by page name."""
    parsed = parse_role(role)
    if parsed is None:
        return []

    result = await db.execute(
        select(PageRestriction)
        .join(PageRoleAccess, PageRoleAccess.page_id == PageRestriction.id)
        .where(
            PageRestriction.is_active.is_(True),
            PageRoleAccess.role == parsed,
            PageRoleAccess.has_access.is_(True),
        )
        .order_by(PageRestriction.page_name)
    )
    return list(result.scalars().unique())


async def check_access(
    db: AsyncSession,
    path: str,
    role: str | UserRole,
) -> bool:
    """
    Decide whether `role` may reach `path`. Fails closed on unknown paths.
    """
    parsed = parse_role(role)
    if parsed is None:
        return False

    result = await db.execute(
        select(PageRestriction).where(PageRestriction.page_path == path)
    )
    pages = list(result.scalars().unique())

    if not pages:
        logger.info("access_unclassified_path", path=path, role=parsed.value)
        return False

    return any(page.allows(parsed) for page in pages)


async def list_pages(db: AsyncSession, active_only: bool = False) -> list[PageRestriction]:
    stmt = select(PageRestriction).order_by(PageRestriction.page_name)
    if active_only:
        stmt = stmt.where(PageRestriction.is_active.is_(True))
    result = await db.execute(stmt)
    return list(result.scalars().unique())


async def get_page(db: AsyncSession, page_id: uuid.UUID) -> PageRestriction:
    page = await db.get(PageRestriction, page_id)
    if page is None:
        raise PageRestrictionNotFoundError(page_id)
    return page


async def get_page_by_name(db: AsyncSession, page_name: str) -> PageRestriction | None:
    result = await db.execute(
        select(PageRestriction).where(PageRestriction.page_name == page_name)
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Administrative write path
# ---------------------------------------------------------------------------

async def create_page(
    db: AsyncSession,
    page_name: str,
    page_path: str,
    description: str | None = None,
    is_active: bool = True,
    role_access: dict[UserRole, bool] | None = None,
) -> PageRestriction:
    """
    Add a page to the matrix.

    Raises:
        DuplicatePageError: If a page with this name exists.
    """
    if await get_page_by_name(db, page_name) is not None:
        raise DuplicatePageError(page_name)

    page = PageRestriction(
        page_name=page_name,
        page_path=page_path,
        description=description,
        is_active=is_active,
    )
    for role, has_access in (role_access or {}).items():
        page.set_role_access(role, has_access)

    db.add(page)
    await db.flush()
    logger.info("page_restriction_created", page_name=page_name, page_path=page_path)
    return page


async def update_page(
    db: AsyncSession,
    page_id: uuid.UUID,
    page_name: str | None = None,
    page_path: str | None = None,
    description: str | None = None,
    is_active: bool | None = None,
    role_access: dict[UserRole, bool] | None = None,
) -> PageRestriction:
    """
    Partially update a page. Omitted (None) fields are left unchanged.

    Raises:
        PageRestrictionNotFoundError: Unknown page id.
        DuplicatePageError: Renaming onto an existing page name.
    """
    page = await get_page(db, page_id)

    if page_name is not None and page_name != page.page_name:
        if await get_page_by_name(db, page_name) is not None:
            raise DuplicatePageError(page_name)
        page.page_name = page_name
    if page_path is not None:
        page.page_path = page_path
    if description is not None:
        page.description = description
    if is_active is not None:
        page.is_active = is_active
    for role, has_access in (role_access or {}).items():
        page.set_role_access(role, has_access)

    await db.flush()
    logger.info("page_restriction_updated", page_id=str(page_id))
    return page


async def set_page_active(
    db: AsyncSession,
    page_id: uuid.UUID,
    is_active: bool,
) -> PageRestriction:
    """Activate or deactivate a page (the only way to retire one)."""
    return await update_page(db, page_id, is_active=is_active)


async def bulk_update_role_access(
    db: AsyncSession,
    page_ids: list[uuid.UUID],
    role: UserRole,
    has_access: bool,
) -> list[PageRestriction]:
    """
    Grant or revoke one role on many pages at once.

    All ids are resolved before anything is changed, so an unknown id
    leaves every page untouched.
    """
    pages = [await get_page(db, page_id) for page_id in page_ids]
    for page in pages:
        page.set_role_access(role, has_access)
    await db.flush()
    logger.info(
        "page_restriction_bulk_update",
        role=role.value,
        has_access=has_access,
        count=len(pages),
    )
    return pages


async def seed_page_restrictions(db: AsyncSession) -> int:
    """
    Insert the default matrix. Existing pages (by name) are left alone.

    Returns:
        Number of pages inserted.
    """
    inserted = 0
    for page_name, page_path, description, granted in DEFAULT_PAGES:
        if await get_page_by_name(db, page_name) is not None:
            continue
        page = PageRestriction(
            page_name=page_name,
            page_path=page_path,
            description=description,
            is_active=True,
        )
        for role in UserRole:
            page.set_role_access(role, role in granted)
        db.add(page)
        inserted += 1

    await db.flush()
    if inserted:
        logger.info("page_restrictions_seeded", count=inserted)
    return inserted
