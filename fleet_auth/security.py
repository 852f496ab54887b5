"""
Security utilities: password hashing, session tokens, and reset tokens.

This module centralizes all cryptographic operations so they're easy to
audit and update. Three concerns are handled here:

1. PASSWORD HASHING (Argon2)
   - Passwords are never stored in plaintext
   - Argon2id is memory-hard and time-hard, which makes GPU cracking
     expensive
   - We use passlib's CryptContext for safe, high-level Argon2 operations

2. SESSION TOKENS
   - At login the server mints a compact token carrying the user id ("sub"),
     the issuance timestamp ("iat") and a random component ("jti")
   - The token is signed with SECRET_KEY (HS256) so the subject can be read
     without trusting the client, but the signature is NOT what makes a
     session valid: validity is equality with users.session_id plus
     users.session_expires_at. A correctly signed token that has been
     replaced or expired is rejected by the session service.
   - The token has no "exp" claim: the expiry lives on the row and
     can be extended without re-minting.

3. PASSWORD RESET TOKENS
   - 32 random bytes, hex encoded (64 characters), single use, stored in
     the password_resets table with their own expiry
"""

import secrets
import uuid
from datetime import datetime

from jose import JWTError, jwt
from passlib.context import CryptContext

from fleet_auth.config import settings


# ---------------------------------------------------------------------------
# 1. Password Hashing (Argon2)
# ---------------------------------------------------------------------------

# If we ever need to migrate from argon2 to a future scheme, passlib handles
# the transition automatically: old hashes are verified with the original
# scheme, and new passwords use the new one ("deprecated='auto'").
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    """
    Hash a plaintext password using Argon2id.

    Args:
        plain_password: The user's raw password input.

    Returns:
        An Argon2 hash string (e.g., "$argon2id$v=19$m=65536,t=3,p=4$...").
    """
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """
    Verify a plaintext password against a stored Argon2 hash.

    A missing or unrecognizable hash never verifies.
    """
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# 2. Session Tokens
# ---------------------------------------------------------------------------


def mint_session_token(user_id: uuid.UUID, issued_at: datetime) -> str:
    """
    Create a new opaque session token for a user.

    Two logins by the same user never produce the same token, even within
    the same second, because of the random "jti" component.
    """
    claims = {
        "sub": str(user_id),
        "iat": int(issued_at.timestamp()),
        "jti": secrets.token_hex(8),
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def session_subject(token: str) -> uuid.UUID | None:
    """
    Extract the user id from a session token.

    Returns None if the token is malformed, forged, or has no subject.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            return None
        return uuid.UUID(subject)
    except (JWTError, ValueError):
        return None


# ---------------------------------------------------------------------------
# 3. Password Reset Tokens
# ---------------------------------------------------------------------------


def generate_reset_token() -> str:
    """Generate a 64-character hex token for the password reset flow."""
    return secrets.token_hex(32)
