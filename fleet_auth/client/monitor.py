"""
Session monitor — periodic background check that the local session is still
the server's current one.

    Running ──tick──► valid     → stay Running
                   ├► expired  → on_invalidated("session-expired")  → Stopped
                   └► replaced → on_invalidated("session-replaced") → Stopped

A tick:
  1. no cached session            → stop quietly (nothing to watch)
  2. local expiry passed          → expired
  3. ask the server (GET /auth/session)
       TransientIOError           → log, keep running (a network blip is not a logout)
       SessionReplacedError       → replaced
       SessionExpiredError, AccountInactiveError, UserNotFoundError,
       NoSessionError             → expired

The first tick runs immediately, then one every `interval` seconds. Each
start() begins a new run with its own stop event and stops the previous run,
so two loops never overlap. stop() wakes a sleeping loop at once; a tick that
is already talking to the server finishes, but neither reports its result
nor schedules another tick.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional

from fleet_auth import clock
from fleet_auth.client.api import FleetAuthAPI
from fleet_auth.client.events import SESSION_EXPIRED, SESSION_REPLACED
from fleet_auth.client.session_store import SessionState, SessionStore
from fleet_auth.exceptions import (
    AccountInactiveError,
    NoSessionError,
    SessionExpiredError,
    SessionReplacedError,
    TransientIOError,
    UserNotFoundError,
)
from fleet_auth.logging import get_logger

logger = get_logger(__name__)

SESSION_CHECK_INTERVAL = 60.0

# (event name, user-facing message, state that was invalidated)
InvalidationHandler = Callable[[str, str, SessionState], Awaitable[None]]


class SessionMonitor:
    def __init__(
        self,
        api: FleetAuthAPI,
        store: SessionStore,
        on_invalidated: InvalidationHandler,
        *,
        interval: float = SESSION_CHECK_INTERVAL,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.api = api
        self.store = store
        self.on_invalidated = on_invalidated
        self.interval = interval
        self._now = now
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return (
            self._task is not None
            and not self._task.done()
            and self._stop_event is not None
            and not self._stop_event.is_set()
        )

    def start(self) -> None:
        """Start a new run, stopping any run already in progress."""
        self.stop()
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(self._stop_event))
        logger.info("session_monitor_started", interval=self.interval)

    def stop(self) -> None:
        """Stop the current run. Safe to call when nothing is running."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def wait_closed(self) -> None:
        """Wait for the latest run's task to finish (tests, shutdown)."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    def _current_time(self) -> datetime:
        return self._now() if self._now else clock.utcnow()

    async def _run_loop(self, stopped: asyncio.Event) -> None:
        while not stopped.is_set():
            try:
                keep_running = await self.tick(stopped)
            except Exception:
                logger.exception("session_monitor_tick_error")
                keep_running = True

            if not keep_running:
                stopped.set()
                break

            try:
                await asyncio.wait_for(stopped.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

        logger.info("session_monitor_stopped")

    async def _invalidate(
        self,
        stopped: asyncio.Event,
        event_name: str,
        message: str,
        state: SessionState,
    ) -> None:
        if stopped.is_set():
            logger.info("session_monitor_result_discarded", event_name=event_name)
            return
        logger.info("session_monitor_invalidated", event_name=event_name, user_id=str(state.user_id))
        await self.on_invalidated(event_name, message, state)

    async def tick(self, stopped: Optional[asyncio.Event] = None) -> bool:
        """
        Run one check. Returns False when monitoring should stop.

        `stopped` is the run's stop event; when it is set by the time the
        server answers, the outcome is not reported.
        """
        if stopped is None:
            stopped = asyncio.Event()

        state = self.store.load()
        if state is None or state.user_id is None:
            return False

        if state.is_expired(self._current_time()):
            await self._invalidate(stopped, SESSION_EXPIRED, SessionExpiredError.default_detail, state)
            return False

        try:
            await self.api.get_session(state.token)
        except TransientIOError:
            logger.warning("session_monitor_check_failed", user_id=str(state.user_id))
            return True
        except SessionReplacedError as exc:
            await self._invalidate(stopped, SESSION_REPLACED, exc.detail, state)
            return False
        except (SessionExpiredError, AccountInactiveError, UserNotFoundError, NoSessionError) as exc:
            await self._invalidate(stopped, SESSION_EXPIRED, exc.detail, state)
            return False

        return True
