"""
FastAPI dependencies for authentication and authorization.

Dependencies are reusable functions that FastAPI injects into route handlers.
They form a dependency chain that enforces both authentication and
page-based access control:

  get_session_token (Authorization header -> token | None)
      └── get_current_user (token -> User)       [session validation]
              └── require_page_access(path)      [page restriction matrix]

Page-based access control:
  Administrative endpoints are gated by the same matrix the navigation
  shell uses. A caller may write the page restriction matrix only if their
  role may reach the "/page-restrictions" page, and may administer users
  only if their role may reach "/users". Changing the matrix therefore
  changes who may change it, exactly as it does in the UI.

  The check runs server-side on every request and fails closed: the
  client-side resolver may allow navigation during a database hiccup, but
  any mutating request still goes through this dependency.

Every protected endpoint declares one of these as a parameter. FastAPI
automatically calls the dependency, and if it fails (e.g., replaced session
or wrong role), the request is rejected before the route handler runs.
"""

from typing import Awaitable, Callable

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_auth.database import get_db
from fleet_auth.exceptions import AccessDeniedError, NoSessionError
from fleet_auth.logging import get_logger
from fleet_auth.models.user import User
from fleet_auth.services import access_service, session_service
from fleet_auth.services.password_reset_service import PasswordResetTicket

logger = get_logger(__name__)


# OAuth2PasswordBearer tells FastAPI where to look for the token:
# the "Authorization: Bearer <token>" header. auto_error=False lets us raise
# our own NoSessionError so the client sees a consistent error_type.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


async def get_session_token(token: str | None = Depends(oauth2_scheme)) -> str:
    """Return the bearer token, or fail with NoSessionError if none was sent."""
    if not token:
        raise NoSessionError()
    return token


async def get_current_user(
    token: str = Depends(get_session_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Validate the session token against the user's session slot.

    This dependency is the first line of defense: a missing, replaced,
    expired or deactivated session is rejected with the matching error
    before any route logic runs.

    Args:
        token: Session token from the Authorization header.
        db: Database session (injected by get_db).

    Returns:
        The authenticated User instance.

    Raises:
        NoSessionError, SessionReplacedError, SessionExpiredError,
        AccountInactiveError, UserNotFoundError.
    """
    return await session_service.validate_session(db, token)


def require_page_access(path: str) -> Callable[..., Awaitable[User]]:
    """
    Build a dependency that requires the caller's role to reach `path`.

    Usage:
        @router.post("/", dependencies=[Depends(require_page_access("/users"))])
    """

    async def _require_page_access(
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        if not await access_service.check_access(db, path, user.role):
            logger.warning(
                "access_denied",
                user_id=str(user.id),
                role=user.role.value,
                path=path,
            )
            raise AccessDeniedError()
        return user

    return _require_page_access


# ---------------------------------------------------------------------------
# Password reset notification
# ---------------------------------------------------------------------------

ResetNotifier = Callable[[PasswordResetTicket], Awaitable[None]]


async def log_reset_notifier(ticket: PasswordResetTicket) -> None:
    """
    Default notifier: record that a reset was requested.

    Delivering the reset link (email, SMS, ...) belongs to a separate
    notification service; deployments override get_reset_notifier with one.
    The token itself is never logged.
    """
    logger.info(
        "password_reset_requested",
        user_id=str(ticket.user_id),
        expires_at=ticket.expires_at.isoformat(),
    )


def get_reset_notifier() -> ResetNotifier:
    return log_reset_notifier
