"""
Credential service — signup, credential checks and password changes.

This module owns every write to the primary credential store
(auth_credentials). The router calls these functions and translates the
results into HTTP responses; the business logic can be tested without
spinning up a web server.

Signup flow:
  1. Check the email against the allow-list (domains + specific addresses)
  2. Pick the role: allow-listed addresses become ADMINISTRATION and are
     activated immediately; everyone else gets the default role and waits
     for an administrator to activate them
  3. Write the primary credential
  4. Link the users profile (secondary store) inside a savepoint; if that
     fails, remove the primary credential again (best effort, logged)

Password change flow:
  Only the primary store is written. The credential sync rule
  (services/credential_sync.py) copies the new hash to users.password_hash
  and clears the user's session as part of the same flush.

Security notes:
  - Passwords are hashed before storage (never stored in plaintext)
  - authenticate() returns None for both "unknown email" and "wrong
    password" so callers cannot tell them apart (no user enumeration)
"""

import uuid

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_auth.config import settings
from fleet_auth.exceptions import DuplicateEmailError, EmailNotAllowedError, UserNotFoundError
from fleet_auth.logging import get_logger
from fleet_auth.models.credential import AuthCredential
from fleet_auth.models.user import User, UserRole
from fleet_auth.security import hash_password, verify_password
from fleet_auth.services import credential_sync  # noqa: F401  (registers the sync rule)

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_admin_email(email: str) -> bool:
    """True if the address is on the specific-address allow-list."""
    admin_emails = {normalize_email(e) for e in settings.ADMIN_EMAILS}
    return normalize_email(email) in admin_emails


def is_email_allowed(email: str) -> bool:
    """
    Check an email against the signup allow-list.

    An address is allowed if it is listed in ADMIN_EMAILS or its domain is
    listed in ALLOWED_EMAIL_DOMAINS.
    """
    if is_admin_email(email):
        return True
    _, _, domain = normalize_email(email).partition("@")
    allowed_domains = {d.strip().lower() for d in settings.ALLOWED_EMAIL_DOMAINS}
    return bool(domain) and domain in allowed_domains


async def authenticate(db: AsyncSession, email: str, password: str) -> User | None:
    """
    Check a credential against the primary store.

    Args:
        db: Database session.
        email: Login email (case-insensitive).
        password: Plaintext password to verify.

    Returns:
        The user's profile (including is_active and session fields) if the
        credential matches, otherwise None. Inactive users are returned;
        deciding what to do with them is the caller's job.
    """
    result = await db.execute(
        select(AuthCredential).where(AuthCredential.email == normalize_email(email))
    )
    credential = result.scalar_one_or_none()

    if credential is None or not verify_password(password, credential.password_hash):
        return None

    user = await db.get(User, credential.id)
    if user is None:
        # Primary record without a linked profile (half-created account)
        logger.warning("credential_without_profile", user_id=str(credential.id))
    return user


async def _remove_credential(db: AsyncSession, credential: AuthCredential) -> None:
    """Compensate a failed signup. Advisory: failures are logged, not raised."""
    try:
        async with db.begin_nested():
            await db.delete(credential)
    except SQLAlchemyError:
        logger.exception("account_cleanup_failed", user_id=str(credential.id))
    else:
        logger.info("account_cleanup_completed", user_id=str(credential.id))


async def create_account(
    db: AsyncSession,
    email: str,
    password: str,
    full_name: str,
    role: UserRole,
    is_active: bool,
) -> User:
    """
    Create a primary credential and its linked user profile.

    Args:
        db: Database session.
        email: Login email (must not exist in the primary store).
        password: Plaintext password (hashed before storage).
        full_name: Display name for the profile.
        role: Initial role.
        is_active: Whether the account may sign in immediately.

    Returns:
        The new User.

    Raises:
        DuplicateEmailError: If the email is already registered, or the
            profile could not be linked because the email is taken there.
    """
    email = normalize_email(email)

    result = await db.execute(
        select(AuthCredential.id).where(AuthCredential.email == email)
    )
    if result.scalar_one_or_none() is not None:
        raise DuplicateEmailError(email)

    password_hash = hash_password(password)

    # Primary store first: it is the login authority
    credential = AuthCredential(email=email, password_hash=password_hash)
    db.add(credential)
    await db.flush()

    user = User(
        id=credential.id,
        email=email,
        full_name=full_name,
        role=role,
        is_active=is_active,
        password_hash=password_hash,
    )
    try:
        async with db.begin_nested():
            db.add(user)
    except IntegrityError:
        logger.warning("account_linkage_failed", user_id=str(credential.id))
        await _remove_credential(db, credential)
        raise DuplicateEmailError(email)

    logger.info(
        "account_created",
        user_id=str(user.id),
        role=user.role.value,
        is_active=user.is_active,
    )
    return user


async def signup(
    db: AsyncSession,
    email: str,
    password: str,
    full_name: str | None = None,
) -> User:
    """
    Self-service signup restricted by the email allow-list.

    Raises:
        EmailNotAllowedError: If the email is not allow-listed.
        DuplicateEmailError: If the email is already registered.
    """
    if not is_email_allowed(email):
        raise EmailNotAllowedError()

    admin = is_admin_email(email)
    role = UserRole.ADMINISTRATION if admin else UserRole(settings.DEFAULT_SIGNUP_ROLE)
    name = full_name or normalize_email(email).split("@")[0]

    return await create_account(
        db,
        email=email,
        password=password,
        full_name=name,
        role=role,
        is_active=admin,
    )


async def update_password(
    db: AsyncSession,
    user_id: uuid.UUID,
    new_password: str,
) -> bool:
    """
    Replace a user's password in the primary store.

    The flush triggers the credential sync rule, which copies the hash to
    the secondary store and revokes the user's session.

    Raises:
        UserNotFoundError: If the user has no primary credential.
    """
    credential = await db.get(AuthCredential, user_id)
    if credential is None:
        raise UserNotFoundError()

    credential.password_hash = hash_password(new_password)
    await db.flush()

    logger.info("password_updated", user_id=str(user_id))
    return True
