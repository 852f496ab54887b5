"""
Client side of Fleet Access: the auth gateway, session monitor, access
resolver and the events the application shell listens to.

    api = FleetAuthAPI("https://fleet.example.com")
    gateway = AuthGateway(api)
    gateway.events.subscribe(SESSION_REPLACED, on_replaced)
    await gateway.sign_in(email, password)
    resolver = AccessResolver(api, gateway.store)
"""

from fleet_auth.client.api import FleetAuthAPI  # noqa: F401
from fleet_auth.client.events import (  # noqa: F401
    SESSION_EXPIRED,
    SESSION_REPLACED,
    SessionEvents,
)
from fleet_auth.client.gateway import AuthGateway  # noqa: F401
from fleet_auth.client.monitor import SESSION_CHECK_INTERVAL, SessionMonitor  # noqa: F401
from fleet_auth.client.resolver import (  # noqa: F401
    ROLE_DEFAULT_PAGES,
    AccessResolver,
    get_role_default_page,
    is_protected_path,
)
from fleet_auth.client.session_store import (  # noqa: F401
    MemorySessionStore,
    SessionState,
    SessionStore,
)
