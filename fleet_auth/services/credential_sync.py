"""
Credential sync rule — keeps the secondary password copy aligned and revokes
the session whenever the primary credential changes.

The rule is attached to the ORM flush: after any flush in which an
AuthCredential's password_hash changed value, it runs two statements for
that user, in this order:

  1. propagate:  users.password_hash  := auth_credentials.password_hash
  2. invalidate: users.session_id      := NULL
                 users.session_expires_at := NULL

Both statements are idempotent, so running the rule twice (or re-running it
through propagate_credential() after a partial failure) is harmless. The
statements ride on the flushing transaction; if a deployment moves the
secondary store elsewhere, a crash between 1 and 2 leaves the password
synced but the old session nominally alive until the next validation.

Only ORM attribute changes are seen. Bulk UPDATE statements against
auth_credentials bypass the rule, which is why every password write path in
this codebase loads the AuthCredential and assigns password_hash.
"""

import uuid

from sqlalchemy import event, inspect, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import set_committed_value

from fleet_auth.exceptions import UserNotFoundError
from fleet_auth.logging import get_logger
from fleet_auth.models.credential import AuthCredential
from fleet_auth.models.user import User

logger = get_logger(__name__)


def _changed_password_hash(credential: AuthCredential) -> str | None:
    """Return the new hash if password_hash changed value in this flush."""
    history = inspect(credential).attrs.password_hash.history
    if not history.added:
        return None
    new_hash = history.added[0]
    if history.deleted and history.deleted[0] == new_hash:
        return None
    return new_hash


def _apply_to_identity_map(session: Session, user_id: uuid.UUID, **values) -> None:
    """Mirror the Core UPDATEs onto an already-loaded User without dirtying it."""
    for obj in list(session.identity_map.values()):
        if isinstance(obj, User) and inspect(obj).identity == (user_id,):
            for key, value in values.items():
                set_committed_value(obj, key, value)


def _propagate(session: Session, user_id: uuid.UUID, password_hash: str) -> None:
    connection = session.connection()

    # 1. Propagate the new hash to the secondary store
    connection.execute(
        update(User).where(User.id == user_id).values(password_hash=password_hash)
    )
    # 2. Invalidate the active session, forcing re-authentication
    connection.execute(
        update(User)
        .where(User.id == user_id)
        .values(session_id=None, session_expires_at=None)
    )

    _apply_to_identity_map(
        session,
        user_id,
        password_hash=password_hash,
        session_id=None,
        session_expires_at=None,
    )
    logger.info("credential_synced", user_id=str(user_id))


def sync_password_changes(session: Session, flush_context) -> None:
    """after_flush hook: run the sync rule for every changed credential."""
    # Pre-flush state and attribute history are still available here
    for obj in list(session.dirty):
        if not isinstance(obj, AuthCredential):
            continue
        new_hash = _changed_password_hash(obj)
        if new_hash is None:
            continue
        _propagate(session, inspect(obj).identity[0], new_hash)


event.listen(Session, "after_flush", sync_password_changes)


async def propagate_credential(db: AsyncSession, user_id: uuid.UUID) -> None:
    """
    Re-run the sync rule for one user from the current primary credential.

    Used to repair a user whose secondary copy drifted (e.g. a bulk import
    wrote auth_credentials directly).

    Raises:
        UserNotFoundError: If the user has no primary credential.
    """
    result = await db.execute(
        select(AuthCredential.password_hash).where(AuthCredential.id == user_id)
    )
    password_hash = result.scalar_one_or_none()
    if password_hash is None:
        raise UserNotFoundError()

    await db.run_sync(lambda sync_session: _propagate(sync_session, user_id, password_hash))
