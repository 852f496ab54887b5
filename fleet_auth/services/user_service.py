"""
User administration service — listing users, changing roles, activation.

New self-service signups arrive inactive; an administrator activates them
here. Deactivating a user does not touch their session slot: the next
validation of that session (request, getSession or monitor tick) rejects it
with AccountInactiveError.
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_auth.exceptions import UserNotFoundError
from fleet_auth.logging import get_logger
from fleet_auth.models.user import User, UserRole

logger = get_logger(__name__)


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.email))
    return list(result.scalars().all())


async def update_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    role: UserRole | None = None,
    is_active: bool | None = None,
    full_name: str | None = None,
) -> User:
    """
    Update a user's role, activation flag and/or display name.

    Raises:
        UserNotFoundError: Unknown user id.
    """
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError()

    if role is not None:
        user.role = role
    if is_active is not None:
        user.is_active = is_active
    if full_name is not None:
        user.full_name = full_name

    await db.flush()
    logger.info(
        "user_updated",
        user_id=str(user_id),
        role=user.role.value,
        is_active=user.is_active,
    )
    return user
