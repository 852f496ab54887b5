"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables, with an optional .env file
as a fallback. This pattern keeps secrets out of source code — the .env file is
gitignored, and .env.example provides a safe template for developers.

Pydantic Settings automatically:
  1. Reads from environment variables (highest priority)
  2. Falls back to .env file values
  3. Uses defaults defined here (lowest priority)

List-valued settings (ALLOWED_EMAIL_DOMAINS, ADMIN_EMAILS, ALLOWED_ORIGINS) are
given as JSON arrays in the environment, e.g. ADMIN_EMAILS='["ops@pg.com"]'.

Usage:
    from fleet_auth.config import settings
    print(settings.SESSION_DURATION_HOURS)
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the Fleet Access API.

    Required fields (no defaults) MUST be set in .env or environment:
      - SECRET_KEY: Used to sign session tokens
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Fleet Access API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # --- Database ---
    # SQLite for development; swap to a PostgreSQL (asyncpg) URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/fleet.db"

    # --- Session tokens ---
    # REQUIRED: no default, the operator must set a real secret
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    # One session per account, overwritten on every login
    SESSION_DURATION_HOURS: int = 8

    # --- Password reset ---
    PASSWORD_RESET_TOKEN_TTL_MINUTES: int = 60
    # Expired reset rows older than this are deleted by the maintenance sweep
    PASSWORD_RESET_RETENTION_HOURS: int = 24

    # --- Signup allow-list ---
    # Anyone at these domains may sign up with the default role (inactive until
    # an administrator activates them)
    ALLOWED_EMAIL_DOMAINS: list[str] = ["pg.com"]
    # Specific addresses that may sign up regardless of domain; they receive the
    # administration role and are activated immediately
    ADMIN_EMAILS: list[str] = []
    DEFAULT_SIGNUP_ROLE: str = "driver"

    # --- CORS ---
    # Origins allowed to make cross-origin requests (frontend URLs)
    ALLOWED_ORIGINS: list[str] = ["http://localhost:5173"]


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
