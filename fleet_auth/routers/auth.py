"""
Authentication router — signup, login, session and password endpoints.

Public endpoints:
  POST /auth/signup                   — Register (allow-listed emails only)
  POST /auth/login                    — Authenticate and start a session
  POST /auth/logout                   — Clear the caller's session (idempotent)
  POST /auth/password-reset/request   — Ask for a reset link
  GET  /auth/password-reset/verify    — Check a reset token before showing the form
  POST /auth/password-reset/confirm   — Redeem a reset token

Session endpoints (Authorization: Bearer <session token>):
  GET  /auth/session                  — Validate the session, return the profile
  POST /auth/session/extend           — Push the session expiry forward
  POST /auth/password                 — Change password (ends the session)

Security audit notes:
  - Plaintext passwords exist only in memory during request processing;
    they are hashed before any database operation and never logged.
  - Session tokens appear only in the login response body and the
    Authorization header, neither of which uvicorn logs.
  - The reset request endpoint answers identically for known, unknown and
    inactive emails, so it cannot be used to enumerate accounts. The reset
    token never appears in an HTTP response; it goes to the notifier.
"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_auth import clock
from fleet_auth.database import get_db
from fleet_auth.dependencies import (
    ResetNotifier,
    get_current_user,
    get_reset_notifier,
    get_session_token,
    oauth2_scheme,
)
from fleet_auth.models.user import User
from fleet_auth.schemas.auth import (
    ChangePasswordRequest,
    ExtendSessionResponse,
    LoginRequest,
    LoginResponse,
    LogoutResponse,
    PasswordResetConfirm,
    PasswordResetRequest,
    ResetTokenStatus,
    SessionResponse,
    SignupRequest,
    StatusMessage,
    UserProfile,
)
from fleet_auth.services import auth_service, password_reset_service, session_service

router = APIRouter()

RESET_REQUESTED_MESSAGE = (
    "If an account exists for this email, a password reset link has been sent."
)


def _profile(user: User) -> UserProfile:
    return UserProfile(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role.value,
        is_active=user.is_active,
    )


# ---------------------------------------------------------------------------
# Signup / login / logout
# ---------------------------------------------------------------------------

@router.post(
    "/signup",
    response_model=UserProfile,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def signup(
    request: SignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new fleet operator.

    - **email**: Must be on an allowed domain or listed as an admin email
    - **password**: Minimum 8 characters
    - **full_name**: Optional; defaults to the local part of the email

    Admin emails are activated immediately with the administration role.
    Everyone else gets the default role and must be activated by an
    administrator before they can log in. No session is started here.
    """
    user = await auth_service.signup(
        db=db,
        email=request.email,
        password=request.password,
        full_name=request.full_name,
    )
    return _profile(user)


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Authenticate and start a session",
)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with email and password.

    Returns a session token that must be included in the Authorization
    header for all subsequent requests:

        Authorization: Bearer <token>

    Logging in replaces any session the user already had on another
    device. The session lasts SESSION_DURATION_HOURS (default: 8).
    """
    user, token, expires_at = await session_service.sign_in(
        db=db,
        email=request.email,
        password=request.password,
    )
    return LoginResponse(
        user=_profile(user),
        session_token=token,
        session_expires_at=expires_at,
    )


@router.post(
    "/logout",
    response_model=LogoutResponse,
    summary="End the current session",
)
async def logout(
    token: str | None = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
):
    """
    Clear the caller's session.

    Always succeeds. `cleared` is false when the token was missing,
    already cleared, or replaced by a newer login (which stays valid).
    """
    cleared = await session_service.sign_out(db, token)
    return LogoutResponse(cleared=cleared)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Validate the current session",
)
async def get_session(
    user: User = Depends(get_current_user),
):
    """Return the profile if the presented session is still the current one."""
    return SessionResponse(
        user=_profile(user),
        session_expires_at=clock.ensure_utc(user.session_expires_at),
    )


@router.post(
    "/session/extend",
    response_model=ExtendSessionResponse,
    summary="Extend the current session",
)
async def extend_session(
    token: str = Depends(get_session_token),
    db: AsyncSession = Depends(get_db),
):
    expires_at = await session_service.extend_session(db, token)
    return ExtendSessionResponse(session_expires_at=expires_at)


@router.post(
    "/password",
    response_model=StatusMessage,
    summary="Change the signed-in user's password",
)
async def change_password(
    request: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Set a new password for the signed-in user.

    The session used for this request is revoked as part of the change;
    the user must log in again with the new password.
    """
    await auth_service.update_password(db, user.id, request.new_password)
    return StatusMessage(
        success=True,
        message="Password updated. Please log in again.",
    )


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------

@router.post(
    "/password-reset/request",
    response_model=StatusMessage,
    summary="Request a password reset link",
)
async def request_password_reset(
    body: PasswordResetRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    notify: ResetNotifier = Depends(get_reset_notifier),
):
    ticket = await password_reset_service.request_password_reset(
        db,
        email=body.email,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    if ticket is not None:
        await notify(ticket)
    return StatusMessage(success=True, message=RESET_REQUESTED_MESSAGE)


@router.get(
    "/password-reset/verify",
    response_model=ResetTokenStatus,
    summary="Check a password reset token",
)
async def verify_reset_token(
    token: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
):
    reset = await password_reset_service.verify_reset_token(db, token)
    return ResetTokenStatus(
        valid=True,
        email=reset.email,
        expires_at=clock.ensure_utc(reset.expires_at),
    )


@router.post(
    "/password-reset/confirm",
    response_model=StatusMessage,
    summary="Set a new password with a reset token",
)
async def confirm_password_reset(
    body: PasswordResetConfirm,
    db: AsyncSession = Depends(get_db),
):
    """
    Redeem a reset token. The token is single use; any session the user
    had is revoked and they log in with the new password.
    """
    result = await password_reset_service.reset_password_with_token(
        db,
        token=body.token,
        new_password=body.new_password,
    )
    return StatusMessage(**result)
