"""
Session events for the application shell.

The client never navigates on its own. When a session ends underneath the
user it emits one of these events; the shell subscribes, clears whatever UI
state it holds, and shows the login surface with the event's message.

    events.subscribe(SESSION_REPLACED, show_login_banner)

Handlers may be plain functions or coroutine functions. Payload keys:
  message   user-facing explanation (distinct per event)
  user_id   the user whose session ended, when known
"""

import inspect
from collections import defaultdict
from typing import Any, Callable

from fleet_auth.logging import get_logger

logger = get_logger(__name__)

SESSION_EXPIRED = "session-expired"
SESSION_REPLACED = "session-replaced"

EVENT_NAMES = (SESSION_EXPIRED, SESSION_REPLACED)

Handler = Callable[..., Any]


class SessionEvents:
    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, name: str, handler: Handler) -> None:
        if name not in EVENT_NAMES:
            raise ValueError(f"Unknown session event: {name}")
        if handler not in self._handlers[name]:
            self._handlers[name].append(handler)

    def unsubscribe(self, name: str, handler: Handler) -> None:
        if handler in self._handlers.get(name, []):
            self._handlers[name].remove(handler)

    async def emit(self, name: str, **payload: Any) -> None:
        """Deliver to every handler; one failing handler does not stop the rest."""
        logger.info("session_event", event_name=name, handlers=len(self._handlers[name]))
        for handler in list(self._handlers[name]):
            try:
                result = handler(**payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("session_event_handler_failed", event_name=name)
