"""
Password reset service — token issue, verification and redemption.

Flow:
  1. request_password_reset(email)
       Unknown or inactive email → None (the HTTP layer answers with the
       same success body either way, so emails cannot be enumerated).
       Otherwise every outstanding unused token of the user is marked used,
       and a fresh 64-hex-char token valid for PASSWORD_RESET_TOKEN_TTL_MINUTES
       is stored and returned as a PasswordResetTicket for the notifier.
  2. verify_reset_token(token)
       Read-only check used by the reset page before it shows the form.
  3. reset_password_with_token(token, new_password)
       Writes the new hash to the PRIMARY credential store — the same store
       authenticate() reads — and marks the token used. The credential sync
       rule then updates the secondary copy and clears the session.

A token is usable iff: used_at IS NULL, expires_at > now, user is active.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_auth import clock
from fleet_auth.config import settings
from fleet_auth.exceptions import TokenInvalidOrExpiredError
from fleet_auth.logging import get_logger
from fleet_auth.models.credential import AuthCredential
from fleet_auth.models.password_reset import PasswordReset
from fleet_auth.models.user import User
from fleet_auth.security import generate_reset_token, hash_password
from fleet_auth.services import credential_sync  # noqa: F401  (registers the sync rule)
from fleet_auth.services.auth_service import normalize_email

logger = get_logger(__name__)


@dataclass
class PasswordResetTicket:
    """What the notification collaborator needs to send a reset link."""
    token: str
    user_id: uuid.UUID
    email: str
    full_name: str
    expires_at: datetime


async def request_password_reset(
    db: AsyncSession,
    email: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> PasswordResetTicket | None:
    """
    Issue a reset token for an active user.

    Returns:
        A PasswordResetTicket, or None if the email does not belong to an
        active user.
    """
    email = normalize_email(email)
    result = await db.execute(
        select(User).where(User.email == email, User.is_active.is_(True))
    )
    user = result.scalar_one_or_none()
    if user is None:
        logger.info("password_reset_ignored")
        return None

    now = clock.utcnow()

    # Only the newest link works
    await db.execute(
        update(PasswordReset)
        .where(
            PasswordReset.user_id == user.id,
            PasswordReset.used_at.is_(None),
            PasswordReset.expires_at > now,
        )
        .values(used_at=now)
        .execution_options(synchronize_session=False)
    )

    reset = PasswordReset(
        user_id=user.id,
        email=email,
        token=generate_reset_token(),
        expires_at=now + timedelta(minutes=settings.PASSWORD_RESET_TOKEN_TTL_MINUTES),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(reset)
    await db.flush()

    logger.info("password_reset_issued", user_id=str(user.id))
    return PasswordResetTicket(
        token=reset.token,
        user_id=user.id,
        email=email,
        full_name=user.full_name,
        expires_at=reset.expires_at,
    )


async def _usable_reset(db: AsyncSession, token: str) -> PasswordReset:
    result = await db.execute(
        select(PasswordReset)
        .join(User, PasswordReset.user_id == User.id)
        .where(
            PasswordReset.token == token,
            PasswordReset.used_at.is_(None),
            PasswordReset.expires_at > clock.utcnow(),
            User.is_active.is_(True),
        )
        .execution_options(populate_existing=True)
    )
    reset = result.scalar_one_or_none()
    if reset is None:
        raise TokenInvalidOrExpiredError()
    return reset


async def verify_reset_token(db: AsyncSession, token: str) -> PasswordReset:
    """
    Check a reset token without consuming it.

    Raises:
        TokenInvalidOrExpiredError: If the token is unknown, used, expired,
            or belongs to an inactive user.
    """
    return await _usable_reset(db, token)


async def reset_password_with_token(
    db: AsyncSession,
    token: str,
    new_password: str,
) -> dict:
    """
    Redeem a reset token and set a new password.

    The stored password is left untouched when the token is rejected.

    Returns:
        {"success": True, "message": ...}

    Raises:
        TokenInvalidOrExpiredError: Same conditions as verify_reset_token().
    """
    reset = await _usable_reset(db, token)

    credential = await db.get(AuthCredential, reset.user_id)
    if credential is None:
        logger.error("password_reset_without_credential", user_id=str(reset.user_id))
        raise TokenInvalidOrExpiredError()

    # Primary store, the one login reads
    credential.password_hash = hash_password(new_password)
    reset.used_at = clock.utcnow()
    await db.flush()

    logger.info("password_reset_completed", user_id=str(reset.user_id))
    return {"success": True, "message": "Password reset successfully"}


async def cleanup_expired_password_resets(db: AsyncSession) -> int:
    """
    Delete reset rows that expired more than PASSWORD_RESET_RETENTION_HOURS ago.

    Returns:
        Number of rows deleted.
    """
    cutoff = clock.utcnow() - timedelta(hours=settings.PASSWORD_RESET_RETENTION_HOURS)
    result = await db.execute(
        delete(PasswordReset)
        .where(PasswordReset.expires_at < cutoff)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info("password_resets_cleaned", count=result.rowcount)
    return result.rowcount
