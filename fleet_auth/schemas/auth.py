"""
Pydantic schemas for authentication, session and password reset endpoints.

These schemas define the request/response contracts for the auth API.
Pydantic validates incoming data automatically — if a required field is
missing or the wrong type, FastAPI returns a 422 error before our code
even runs.

The client package parses responses with the same models, so both sides
of the wire share one definition.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class UserProfile(BaseModel):
    """Public profile of the signed-in user (never includes hashes or session_id)."""
    id: uuid.UUID
    email: str
    full_name: str
    role: str
    is_active: bool

    model_config = {"from_attributes": True}


class SignupRequest(BaseModel):
    """Request body for POST /auth/signup."""
    email: EmailStr
    password: str = Field(min_length=8)            # Minimum 8 characters
    full_name: str | None = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    """Response body for a successful login — profile plus the new session."""
    user: UserProfile
    session_token: str
    session_expires_at: datetime


class SessionResponse(BaseModel):
    """Response body for GET /auth/session — the session is still current."""
    user: UserProfile
    session_expires_at: datetime


class ExtendSessionResponse(BaseModel):
    session_expires_at: datetime


class LogoutResponse(BaseModel):
    cleared: bool


class ChangePasswordRequest(BaseModel):
    """Request body for POST /auth/password."""
    new_password: str = Field(min_length=8)


class PasswordResetRequest(BaseModel):
    """Request body for POST /auth/password-reset/request."""
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    """Request body for POST /auth/password-reset/confirm."""
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8)


class ResetTokenStatus(BaseModel):
    """Response body for GET /auth/password-reset/verify."""
    valid: bool
    email: str
    expires_at: datetime


class StatusMessage(BaseModel):
    """Generic {success, message} body used by password flows."""
    success: bool
    message: str
