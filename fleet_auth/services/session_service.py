"""
Session service — issuing, validating and revoking the one session per user.

The users row holds a single session slot (session_id, session_expires_at).
Every operation here is an independent transaction against that row:

  sign_in    overwrites the slot unconditionally (last writer wins). There is
             no compare-and-swap: two near-simultaneous logins may both
             "succeed", and the one written last is the session that stays
             valid. The other device finds out at its next validation.
  sign_out   clears the slot, but only if it still holds the caller's token,
             so a device that has already been replaced cannot log out the
             device that replaced it.
  validate   compares the presented token with the slot:
               slot empty (revoked)       → SessionExpiredError
               slot expired               → SessionExpiredError (whoever holds it)
               slot holds another token   → SessionReplacedError
               account deactivated        → AccountInactiveError
  extend     pushes the expiry forward, conditional on the token being current.

The password sync rule is the third writer of the slot (it clears it).
"""

from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_auth import clock
from fleet_auth.config import settings
from fleet_auth.exceptions import (
    AccountInactiveError,
    InvalidCredentialsError,
    NoSessionError,
    SessionExpiredError,
    SessionReplacedError,
    UserNotFoundError,
)
from fleet_auth.logging import get_logger
from fleet_auth.models.user import User
from fleet_auth.security import mint_session_token, session_subject
from fleet_auth.services import auth_service

logger = get_logger(__name__)


def session_duration() -> timedelta:
    return timedelta(hours=settings.SESSION_DURATION_HOURS)


async def sign_in(
    db: AsyncSession,
    email: str,
    password: str,
) -> tuple[User, str, datetime]:
    """
    Authenticate and start a new session, replacing any existing one.

    Security: Returns the same error for both "wrong password" and
    "email not found" to prevent attackers from enumerating valid emails.
    Inactive accounts are told so (they proved the password), but no
    session is written for them.

    Returns:
        Tuple of (User, session token, session expiry).

    Raises:
        InvalidCredentialsError: If the email is unknown or the password is wrong.
        AccountInactiveError: If the account is deactivated.
    """
    user = await auth_service.authenticate(db, email, password)
    if user is None:
        raise InvalidCredentialsError()

    if not user.is_active:
        logger.info("sign_in_rejected_inactive", user_id=str(user.id))
        raise AccountInactiveError()

    now = clock.utcnow()
    token = mint_session_token(user.id, now)
    expires_at = now + session_duration()

    had_session = user.session_id is not None
    user.session_id = token
    user.session_expires_at = expires_at
    await db.flush()

    logger.info("session_issued", user_id=str(user.id), replaced_existing=had_session)
    return user, token, expires_at


async def _load_user_for_token(db: AsyncSession, token: str | None) -> User:
    user_id = session_subject(token) if token else None
    if user_id is None:
        raise NoSessionError()

    # populate_existing: the slot may have been rewritten by another
    # transaction since this session last loaded the row
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise UserNotFoundError()
    return user


async def validate_session(db: AsyncSession, token: str | None) -> User:
    """
    Check a session token against the user's session slot.

    Returns:
        The User owning the session.

    Raises:
        NoSessionError: Missing or malformed token.
        UserNotFoundError: The user no longer exists.
        SessionExpiredError: The slot was revoked or its expiry passed.
        SessionReplacedError: Another login overwrote the slot.
        AccountInactiveError: The account was deactivated.
    """
    user = await _load_user_for_token(db, token)

    if user.session_id is None:
        raise SessionExpiredError("Your session has ended. Please log in again.")

    if clock.is_past(user.session_expires_at):
        raise SessionExpiredError()

    if user.session_id != token:
        raise SessionReplacedError()

    if not user.is_active:
        raise AccountInactiveError("Your account has been deactivated.")

    return user


async def sign_out(db: AsyncSession, token: str | None) -> bool:
    """
    Clear the session slot if it still holds `token`.

    Idempotent: an unknown, malformed, replaced or already-cleared token is
    a successful no-op.

    Returns:
        True if a session was actually cleared.
    """
    user_id = session_subject(token) if token else None
    if user_id is None:
        return False

    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.session_id == token)
        .values(session_id=None, session_expires_at=None)
    )
    cleared = result.rowcount > 0
    logger.info("session_signed_out", user_id=str(user_id), cleared=cleared)
    return cleared


async def extend_session(db: AsyncSession, token: str | None) -> datetime:
    """
    Push the current session's expiry to now + session duration.

    Raises:
        Same errors as validate_session(); SessionReplacedError if another
        login won the slot between validation and the update.
    """
    user = await validate_session(db, token)
    new_expiry = clock.utcnow() + session_duration()

    result = await db.execute(
        update(User)
        .where(User.id == user.id, User.session_id == token)
        .values(session_expires_at=new_expiry)
    )
    if result.rowcount == 0:
        raise SessionReplacedError()

    logger.info("session_extended", user_id=str(user.id))
    return new_expiry


async def clear_expired_sessions(db: AsyncSession) -> int:
    """
    Maintenance sweep: null out session slots whose expiry has passed.

    Returns:
        Number of sessions cleared.
    """
    result = await db.execute(
        update(User)
        .where(User.session_id.is_not(None), User.session_expires_at < clock.utcnow())
        .values(session_id=None, session_expires_at=None)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info("expired_sessions_cleared", count=result.rowcount)
    return result.rowcount
