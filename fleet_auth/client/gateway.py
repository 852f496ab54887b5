"""
Auth gateway — the client's single entry point for sign-in, sign-out and
session checks.

The gateway owns the local session state: it is the only code that writes
the SessionStore, and it owns the one SessionMonitor of the process.

Error policy:
  InvalidCredentialsError, AccountInactiveError, EmailNotAllowedError,
  DuplicateEmailError
      surface to the caller unchanged, for user-facing messages.
  SessionExpiredError, SessionReplacedError (and inactive / deleted users
  found during a session check)
      the gateway clears local state, emits "session-expired" or
      "session-replaced" for the shell, then re-raises.
  TransientIOError
      during sign-in: raised (no state written).
      during a session check: raised, local state kept. The monitor treats
      the same error as "still valid, try again next tick".
"""

from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar

from fleet_auth import clock
from fleet_auth.client.api import FleetAuthAPI
from fleet_auth.client.events import SESSION_EXPIRED, SESSION_REPLACED, SessionEvents
from fleet_auth.client.monitor import SESSION_CHECK_INTERVAL, SessionMonitor
from fleet_auth.client.session_store import MemorySessionStore, SessionState, SessionStore
from fleet_auth.exceptions import (
    AccountInactiveError,
    FleetAuthError,
    NoSessionError,
    SessionExpiredError,
    SessionReplacedError,
    UserNotFoundError,
)
from fleet_auth.logging import get_logger
from fleet_auth.schemas.auth import ResetTokenStatus, StatusMessage, UserProfile

logger = get_logger(__name__)

T = TypeVar("T")

# Server answers that mean "this session is over, log in again"
_ENDED = (SessionExpiredError, AccountInactiveError, UserNotFoundError, NoSessionError)


class AuthGateway:
    def __init__(
        self,
        api: FleetAuthAPI,
        store: Optional[SessionStore] = None,
        events: Optional[SessionEvents] = None,
        *,
        monitor_interval: float = SESSION_CHECK_INTERVAL,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.api = api
        self.store = store if store is not None else MemorySessionStore()
        self.events = events if events is not None else SessionEvents()
        self._now = now
        self.monitor = SessionMonitor(
            api,
            self.store,
            self._invalidate,
            interval=monitor_interval,
            now=now,
        )

    def _current_time(self) -> datetime:
        return self._now() if self._now else clock.utcnow()

    @property
    def state(self) -> Optional[SessionState]:
        return self.store.load()

    def is_authenticated(self) -> bool:
        """True if a session is cached and not locally expired (no server call)."""
        state = self.store.load()
        return state is not None and not state.is_expired(self._current_time())

    async def close(self) -> None:
        self.monitor.stop()
        await self.api.close()

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    async def _invalidate(self, event_name: str, message: str, state: SessionState) -> None:
        """Clear local state for `state` and tell the shell why."""
        current = self.store.load()
        if current is not None and current.token != state.token:
            # A newer sign-in already replaced the state this result is about
            logger.info("stale_invalidation_ignored", event_name=event_name)
            return

        self.monitor.stop()
        self.store.clear()
        await self.events.emit(event_name, message=message, user_id=state.user_id)

    async def _with_session(self, call: Callable[[SessionState], Awaitable[T]]) -> T:
        """Run a server call that needs the session, handling session-ended answers."""
        state = self.store.load()
        if state is None:
            raise NoSessionError()
        try:
            return await call(state)
        except SessionReplacedError as exc:
            await self._invalidate(SESSION_REPLACED, exc.detail, state)
            raise
        except _ENDED as exc:
            await self._invalidate(SESSION_EXPIRED, exc.detail, state)
            raise

    # ------------------------------------------------------------------
    # Sign in / out
    # ------------------------------------------------------------------

    async def sign_in(self, email: str, password: str) -> UserProfile:
        """
        Authenticate and start monitoring the new session.

        Any session this user had on another device is replaced.
        """
        response = await self.api.login(email, password)
        self.store.save(
            SessionState(
                token=response.session_token,
                user_id=response.user.id,
                email=response.user.email,
                role=response.user.role,
                expires_at=clock.ensure_utc(response.session_expires_at),
            )
        )
        self.monitor.start()
        logger.info("signed_in", user_id=str(response.user.id), role=response.user.role)
        return response.user

    async def sign_out(self) -> None:
        """
        Stop monitoring, clear the server session if possible, clear local state.

        Idempotent. A server that cannot be reached does not keep the user
        signed in locally.
        """
        self.monitor.stop()
        state = self.store.load()
        if state is None:
            return
        try:
            await self.api.logout(state.token)
        except FleetAuthError as exc:
            logger.warning("sign_out_server_clear_failed", error_type=exc.error_type)
        finally:
            self.store.clear()
        logger.info("signed_out", user_id=str(state.user_id))

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    async def get_session(self) -> UserProfile:
        """
        Confirm the cached session with the server and return the profile.

        Restarts the monitor if it is not running (e.g. the process was
        restarted with a persistent store).

        Raises:
            NoSessionError: Nothing cached.
            SessionExpiredError: Expired locally or on the server.
            SessionReplacedError: Another login replaced this session.
            AccountInactiveError: The account was deactivated.
            TransientIOError: The server could not be reached.
        """
        state = self.store.load()
        if state is None:
            raise NoSessionError()

        if state.is_expired(self._current_time()):
            await self.sign_out()
            await self.events.emit(
                SESSION_EXPIRED,
                message=SessionExpiredError.default_detail,
                user_id=state.user_id,
            )
            raise SessionExpiredError()

        response = await self._with_session(lambda s: self.api.get_session(s.token))

        current = self._still_current(state)
        if current is None:
            logger.info("stale_session_check_ignored")
            return response.user

        current.role = response.user.role
        current.expires_at = clock.ensure_utc(response.session_expires_at)
        self.store.save(current)

        if not self.monitor.running:
            self.monitor.start()
        return response.user

    async def extend_session(self) -> datetime:
        """Push the session expiry forward and cache the new expiry."""
        state = self.store.load()
        expires_at = await self._with_session(lambda s: self.api.extend_session(s.token))
        current = self._still_current(state)
        if current is not None:
            current.expires_at = clock.ensure_utc(expires_at)
            self.store.save(current)
        return expires_at

    def _still_current(self, state: Optional[SessionState]) -> Optional[SessionState]:
        """The cached state if it still holds the token `state` was checked with."""
        current = self.store.load()
        if state is None or current is None or current.token != state.token:
            return None
        return current

    # ------------------------------------------------------------------
    # Account and password
    # ------------------------------------------------------------------

    async def sign_up(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
    ) -> UserProfile:
        """Register. Does not sign in; most new accounts await activation."""
        return await self.api.signup(email, password, full_name)

    async def update_password(self, new_password: str) -> StatusMessage:
        """
        Change the signed-in user's password.

        The server ends the session as part of the change, so local state
        is cleared and the user must sign in again.
        """
        result = await self._with_session(
            lambda s: self.api.change_password(s.token, new_password)
        )
        self.monitor.stop()
        self.store.clear()
        return result

    async def forgot_password(self, email: str) -> StatusMessage:
        return await self.api.request_password_reset(email)

    async def verify_reset_token(self, reset_token: str) -> ResetTokenStatus:
        return await self.api.verify_reset_token(reset_token)

    async def reset_password(self, reset_token: str, new_password: str) -> StatusMessage:
        return await self.api.confirm_password_reset(reset_token, new_password)
