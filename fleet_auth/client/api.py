"""
HTTP client for the Fleet Access API.

Thin async wrapper over httpx that turns the server's JSON error bodies back
into the fleet_auth.exceptions classes, so the gateway, monitor and resolver
handle the same exceptions the services raise:

    {"detail": "...", "error_type": "session_replaced"}  →  SessionReplacedError

Anything that means "the server could not be asked right now" (connection
refused, timeout, or a 5xx) becomes TransientIOError. Callers decide whether
that is fatal: login surfaces it, session validation swallows it.
"""

from datetime import datetime
from typing import Any, Optional

import httpx

from fleet_auth.exceptions import TransientIOError, error_from_payload
from fleet_auth.logging import get_logger
from fleet_auth.schemas.auth import (
    LoginResponse,
    ResetTokenStatus,
    SessionResponse,
    StatusMessage,
    UserProfile,
)
from fleet_auth.schemas.page_restriction import AccessCheckResponse, PageRestrictionResponse

logger = get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"


class FleetAuthAPI:
    """
    One instance per application process.

    Pass `client` to reuse an existing httpx.AsyncClient (tests hand in one
    bound to the app through ASGITransport); otherwise a client is created
    lazily for `base_url` and closed by close().
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout, connect=5.0),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        headers = kwargs.pop("headers", {})
        if token:
            headers["Authorization"] = f"Bearer {token}"

        client = await self._get_client()
        try:
            response = await client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as exc:
            logger.warning(
                "api_unreachable",
                method=method,
                path=path,
                error_type=type(exc).__name__,
            )
            raise TransientIOError() from exc

        if response.status_code >= 500:
            logger.warning("api_server_error", method=method, path=path, status=response.status_code)
            raise TransientIOError()

        if response.is_error:
            try:
                payload = response.json()
            except ValueError:
                payload = {"detail": response.text}
            if not isinstance(payload, dict):
                payload = {"detail": str(payload)}
            raise error_from_payload(payload)

        return response.json()

    # --- Authentication ---

    async def signup(self, email: str, password: str, full_name: Optional[str] = None) -> UserProfile:
        data = await self._request(
            "POST",
            "/auth/signup",
            json={"email": email, "password": password, "full_name": full_name},
        )
        return UserProfile.model_validate(data)

    async def login(self, email: str, password: str) -> LoginResponse:
        data = await self._request(
            "POST", "/auth/login", json={"email": email, "password": password}
        )
        return LoginResponse.model_validate(data)

    async def logout(self, token: str) -> bool:
        data = await self._request("POST", "/auth/logout", token=token)
        return data["cleared"]

    # --- Session ---

    async def get_session(self, token: str) -> SessionResponse:
        data = await self._request("GET", "/auth/session", token=token)
        return SessionResponse.model_validate(data)

    async def extend_session(self, token: str) -> datetime:
        data = await self._request("POST", "/auth/session/extend", token=token)
        return datetime.fromisoformat(data["session_expires_at"])

    async def change_password(self, token: str, new_password: str) -> StatusMessage:
        data = await self._request(
            "POST", "/auth/password", token=token, json={"new_password": new_password}
        )
        return StatusMessage.model_validate(data)

    # --- Password reset ---

    async def request_password_reset(self, email: str) -> StatusMessage:
        data = await self._request(
            "POST", "/auth/password-reset/request", json={"email": email}
        )
        return StatusMessage.model_validate(data)

    async def verify_reset_token(self, reset_token: str) -> ResetTokenStatus:
        data = await self._request(
            "GET", "/auth/password-reset/verify", params={"token": reset_token}
        )
        return ResetTokenStatus.model_validate(data)

    async def confirm_password_reset(self, reset_token: str, new_password: str) -> StatusMessage:
        data = await self._request(
            "POST",
            "/auth/password-reset/confirm",
            json={"token": reset_token, "new_password": new_password},
        )
        return StatusMessage.model_validate(data)

    # --- Access ---

    async def accessible_pages(self, token: str, role: str) -> list[PageRestrictionResponse]:
        data = await self._request(
            "GET", "/access/pages", token=token, params={"role": role}
        )
        return [PageRestrictionResponse.model_validate(item) for item in data]

    async def check_access(self, token: str, path: str, role: str) -> bool:
        data = await self._request(
            "GET", "/access/check", token=token, params={"path": path, "role": role}
        )
        return AccessCheckResponse.model_validate(data).allowed
