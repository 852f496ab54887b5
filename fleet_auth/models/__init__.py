"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from fleet_auth.models directly
"""

from fleet_auth.models.credential import AuthCredential  # noqa: F401
from fleet_auth.models.user import User, UserRole  # noqa: F401
from fleet_auth.models.page_restriction import PageRestriction, PageRoleAccess  # noqa: F401
from fleet_auth.models.password_reset import PasswordReset  # noqa: F401
