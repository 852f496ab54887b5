"""
Local session state held by the client.

The gateway is the only writer. Stores are injectable so an application can
keep the state somewhere that survives a restart (a keyring, a file); the
in-memory store is the default and what the tests use.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from fleet_auth import clock


@dataclass
class SessionState:
    token: str
    user_id: uuid.UUID
    email: str
    role: str
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return clock.is_past(self.expires_at, now)


class SessionStore(Protocol):
    def load(self) -> Optional[SessionState]: ...

    def save(self, state: SessionState) -> None: ...

    def clear(self) -> None: ...


class MemorySessionStore:
    """Process-local store; state is lost when the process exits."""

    def __init__(self) -> None:
        self._state: Optional[SessionState] = None

    def load(self) -> Optional[SessionState]:
        return self._state

    def save(self, state: SessionState) -> None:
        self._state = state

    def clear(self) -> None:
        self._state = None
