"""
Access resolver — which pages the navigation shell shows and where it sends
a user who opens a page their role may not reach.

This is a convenience gate. It fails OPEN when the server cannot be reached
(a database hiccup must not lock every user out of the UI); the server
re-checks every request independently and fails closed.

Accessible pages are cached per role for the current session token only;
a new sign-in drops the previous session's entries.
"""

from typing import Optional

from fleet_auth.client.api import FleetAuthAPI
from fleet_auth.client.session_store import SessionStore
from fleet_auth.exceptions import NoSessionError, TransientIOError
from fleet_auth.logging import get_logger
from fleet_auth.schemas.page_restriction import PageRestrictionResponse

logger = get_logger(__name__)

LOGIN_PATH = "/login"
FALLBACK_PAGE = "/reports"

PUBLIC_PATHS = ("/login", "/signup", "/forgot-password", "/reset-password")

# Landing page per role after sign-in or a denied navigation
ROLE_DEFAULT_PAGES: dict[str, str] = {
    "driver": "/attendance",
    "administration": "/reports",
    "maintenance_team": "/vehicles",
    "fleet_manager": "/reports",
    "client_company_liaison": "/reports",
}


def get_role_default_page(role: Optional[str]) -> str:
    if not role:
        return LOGIN_PATH
    return ROLE_DEFAULT_PAGES.get(role, FALLBACK_PAGE)


def _path_under(path: str, page_path: str) -> bool:
    """True for the page itself and anything nested below it."""
    return path == page_path or path.startswith(page_path.rstrip("/") + "/")


def is_protected_path(path: str) -> bool:
    path = path.split("?", 1)[0]
    return not any(_path_under(path, public) for public in PUBLIC_PATHS)


class AccessResolver:
    def __init__(self, api: FleetAuthAPI, store: SessionStore) -> None:
        self.api = api
        self.store = store
        # Page lists for the session token in _cache_token only
        self._cache_token: Optional[str] = None
        self._cache: dict[str, list[PageRestrictionResponse]] = {}

    def _token(self) -> str:
        state = self.store.load()
        if state is None:
            raise NoSessionError()
        return state.token

    def invalidate(self) -> None:
        """Drop cached page lists (e.g. after the matrix was edited)."""
        self._cache.clear()

    async def get_accessible_pages_by_role(self, role: str) -> list[PageRestrictionResponse]:
        token = self._token()
        if token != self._cache_token:
            self._cache.clear()
            self._cache_token = token
        if role not in self._cache:
            pages = await self.api.accessible_pages(token, role)
            if self._cache_token != token:
                # Signed in again while the lookup was in flight
                return pages
            self._cache[role] = pages
        return self._cache[role]

    async def check_role_access(self, path: str, role: str) -> bool:
        """Ask the server about one path. Fails open on transient errors."""
        token = self._token()
        try:
            return await self.api.check_access(token, path, role)
        except TransientIOError:
            logger.warning("access_check_failed_open", path=path, role=role)
            return True

    async def has_page_access(self, path: str, role: str) -> bool:
        """Exact-path lookup in the role's accessible pages. Fails open."""
        try:
            pages = await self.get_accessible_pages_by_role(role)
        except TransientIOError:
            logger.warning("page_lookup_failed_open", path=path, role=role)
            return True
        return any(page.page_path == path for page in pages)

    async def redirect_for(self, role: Optional[str], path: str) -> Optional[str]:
        """
        Where to send `role` when it opens `path`.

        Returns None when the path may be shown, "/login" without a role,
        and the role's default page when the path is not among its pages
        or the pages cannot be loaded.
        """
        if not role:
            return LOGIN_PATH
        if not is_protected_path(path):
            return None

        try:
            pages = await self.get_accessible_pages_by_role(role)
        except TransientIOError:
            logger.warning("redirect_lookup_failed", path=path, role=role)
            return get_role_default_page(role)

        if any(_path_under(path, page.page_path) for page in pages):
            return None

        logger.info("navigation_redirected", path=path, role=role)
        return get_role_default_page(role)
