"""
Custom exception classes and FastAPI exception handlers.

Why custom exceptions?
  The service layer raises domain-specific errors (like SessionReplacedError)
  without importing HTTP concepts. The handler layer then translates these
  into proper HTTP responses, and the client package translates the
  responses back into the very same classes. Server code, client code and
  tests therefore all speak one vocabulary.

Each exception carries two class attributes:
  - error_type:  stable machine-readable tag sent in the JSON body
  - status_code: the HTTP status the handler responds with

Exception hierarchy:
    FleetAuthError (base)
    ├── InvalidCredentialsError      — wrong email/password (no enumeration)
    ├── AccountInactiveError         — correct credentials, account disabled
    ├── EmailNotAllowedError         — signup outside the allow-list
    ├── DuplicateEmailError          — signup with an existing email
    ├── NoSessionError               — no (usable) session token presented
    ├── SessionExpiredError          — session_expires_at has passed
    ├── SessionReplacedError         — another login overwrote session_id
    ├── UserNotFoundError            — the referenced user no longer exists
    ├── TokenInvalidOrExpiredError   — password reset token unusable
    ├── AccessDeniedError            — role may not reach the page/action
    ├── PageRestrictionNotFoundError — unknown page restriction id
    ├── DuplicatePageError           — page_name already in the matrix
    └── TransientIOError             — data layer temporarily unreachable
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from fleet_auth.logging import get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class FleetAuthError(Exception):
    """Base exception for all Fleet Access domain errors."""

    error_type = "fleet_auth_error"
    status_code = 400
    default_detail = "An error occurred"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Credential errors: surfaced to the caller for user-facing messaging
# ---------------------------------------------------------------------------

class InvalidCredentialsError(FleetAuthError):
    """Raised when login credentials are incorrect (or the email is unknown)."""

    error_type = "invalid_credentials"
    status_code = 401
    default_detail = "Invalid email or password"


class AccountInactiveError(FleetAuthError):
    """Raised when an inactive account tries to sign in or keep a session."""

    error_type = "account_inactive"
    status_code = 403
    default_detail = (
        "Your account is inactive. Please contact an administrator for activation."
    )


class EmailNotAllowedError(FleetAuthError):
    """Raised when a signup email is outside the configured allow-list."""

    error_type = "email_not_allowed"
    status_code = 403
    default_detail = (
        "Sign up is restricted to approved email domains. "
        "Contact an administrator for special access."
    )


class DuplicateEmailError(FleetAuthError):
    """Raised when attempting to register with an email that's already in use."""

    error_type = "duplicate_email"
    status_code = 409

    def __init__(self, email: str | None = None, detail: str | None = None):
        self.email = email
        super().__init__(detail or f"Email {email} is already registered")


# ---------------------------------------------------------------------------
# Session errors: recovered locally by the client and re-surfaced as events
# ---------------------------------------------------------------------------

class NoSessionError(FleetAuthError):
    """Raised when there is no active session to act on."""

    error_type = "no_session"
    status_code = 401
    default_detail = "No active session"


class SessionExpiredError(FleetAuthError):
    """Raised when the session's expiry time has passed."""

    error_type = "session_expired"
    status_code = 401
    default_detail = "Session expired. Please log in again."


class SessionReplacedError(FleetAuthError):
    """Raised when a newer login (usually another device) replaced this session."""

    error_type = "session_replaced"
    status_code = 401
    default_detail = "Your session was replaced by a login from another device."


class UserNotFoundError(FleetAuthError):
    """Raised when the referenced user does not exist."""

    error_type = "user_not_found"
    status_code = 404
    default_detail = "User not found"


# ---------------------------------------------------------------------------
# Password reset / access errors
# ---------------------------------------------------------------------------

class TokenInvalidOrExpiredError(FleetAuthError):
    """Raised when a password reset token is unknown, used or past its window."""

    error_type = "token_invalid_or_expired"
    status_code = 400
    default_detail = "Invalid or expired reset token"


class AccessDeniedError(FleetAuthError):
    """Raised when the caller's role may not reach a page or perform an action."""

    error_type = "access_denied"
    status_code = 403
    default_detail = "You do not have access to this resource"


class PageRestrictionNotFoundError(FleetAuthError):
    """Raised when a page restriction id does not exist."""

    error_type = "page_restriction_not_found"
    status_code = 404

    def __init__(self, page_id=None, detail: str | None = None):
        self.page_id = page_id
        super().__init__(detail or f"Page restriction {page_id} not found")


class DuplicatePageError(FleetAuthError):
    """Raised when a page restriction with the same page_name already exists."""

    error_type = "duplicate_page"
    status_code = 409

    def __init__(self, page_name: str | None = None, detail: str | None = None):
        self.page_name = page_name
        super().__init__(detail or f"Page {page_name} already exists")


class TransientIOError(FleetAuthError):
    """
    Raised when the data layer cannot be reached.

    The session monitor treats this as "still valid, check again next
    tick"; sign-in and explicit session checks surface it to the caller.
    """

    error_type = "transient_io"
    status_code = 503
    default_detail = "The service is temporarily unavailable. Please try again."


# Lookup used by the client to rebuild exceptions from JSON error bodies
ERROR_TYPES: dict[str, type[FleetAuthError]] = {
    cls.error_type: cls
    for cls in (
        InvalidCredentialsError,
        AccountInactiveError,
        EmailNotAllowedError,
        DuplicateEmailError,
        NoSessionError,
        SessionExpiredError,
        SessionReplacedError,
        UserNotFoundError,
        TokenInvalidOrExpiredError,
        AccessDeniedError,
        PageRestrictionNotFoundError,
        DuplicatePageError,
        TransientIOError,
    )
}


def error_from_payload(payload: dict) -> FleetAuthError:
    """Rebuild a domain exception from an {"error_type", "detail"} JSON body."""
    error_cls = ERROR_TYPES.get(payload.get("error_type"), FleetAuthError)
    detail = payload.get("detail")
    if detail is not None and not isinstance(detail, str):
        # FastAPI request-validation errors carry a list of problems
        detail = str(detail)
    return error_cls(detail=detail)


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Every domain exception maps to its own status code and a consistent
    JSON response format: {"detail": "...", "error_type": "..."}

    This is called once during app startup in main.py.
    """

    @app.exception_handler(FleetAuthError)
    async def fleet_auth_error_handler(
        request: Request, exc: FleetAuthError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(OperationalError)
    async def operational_error_handler(
        request: Request, exc: OperationalError
    ) -> JSONResponse:
        # Database unreachable or locked: the client retries; SQL never leaves the server
        logger.error("database_unavailable", path=request.url.path, error=str(exc.orig))
        return JSONResponse(
            status_code=TransientIOError.status_code,
            content={
                "detail": TransientIOError.default_detail,
                "error_type": TransientIOError.error_type,
            },
        )
