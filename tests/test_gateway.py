"""
Tests for the client auth gateway, run against the app through ASGITransport.

These tests verify:
  - sign_in caches the session and starts the monitor
  - Failed sign-ins leave no local state
  - An unreachable server surfaces as TransientIOError, not a logout
  - get_session reports replaced and expired sessions as events and clears state
  - sign_out is idempotent and clears local state even when the server is down
  - Password change and reset work end to end through the gateway
"""

from datetime import timedelta

import httpx
import pytest

from fleet_auth import clock
from fleet_auth.client import SESSION_EXPIRED, SESSION_REPLACED, AuthGateway, FleetAuthAPI
from fleet_auth.exceptions import (
    AccountInactiveError,
    InvalidCredentialsError,
    NoSessionError,
    SessionExpiredError,
    SessionReplacedError,
    TransientIOError,
)
from fleet_auth.models.user import UserRole


def record(events, name):
    received = []
    events.subscribe(name, lambda **payload: received.append(payload))
    return received


# ---------------------------------------------------------------------------
# Sign in / sign out
# ---------------------------------------------------------------------------

class TestSignIn:
    """Tests for AuthGateway.sign_in and sign_out."""

    async def test_sign_in_caches_session(self, gateway, make_user):
        user = await make_user("gw.login@pg.com", role=UserRole.MAINTENANCE_TEAM)
        profile = await gateway.sign_in("gw.login@pg.com", "FleetPass123!")
        assert gateway.monitor.running
        gateway.monitor.stop()

        assert profile.id == user.id
        state = gateway.state
        assert state.user_id == user.id
        assert state.role == "maintenance_team"
        assert state.token
        assert gateway.is_authenticated()

    async def test_wrong_password_leaves_no_state(self, gateway, make_user):
        await make_user("gw.wrong@pg.com")
        with pytest.raises(InvalidCredentialsError):
            await gateway.sign_in("gw.wrong@pg.com", "NotThePassword!")
        assert gateway.state is None
        assert not gateway.monitor.running

    async def test_inactive_account_surfaces(self, gateway, make_user):
        await make_user("gw.pending@pg.com", is_active=False)
        with pytest.raises(AccountInactiveError):
            await gateway.sign_in("gw.pending@pg.com", "FleetPass123!")
        assert gateway.state is None

    async def test_unreachable_server_is_transient(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(
            transport=httpx.MockTransport(refuse), base_url="http://test"
        ) as http:
            gateway = AuthGateway(FleetAuthAPI(client=http))
            with pytest.raises(TransientIOError):
                await gateway.sign_in("anyone@pg.com", "FleetPass123!")
            assert gateway.state is None

    async def test_server_error_is_transient(self):
        def explode(request):
            return httpx.Response(500, text="Internal Server Error")

        async with httpx.AsyncClient(
            transport=httpx.MockTransport(explode), base_url="http://test"
        ) as http:
            api = FleetAuthAPI(client=http)
            with pytest.raises(TransientIOError):
                await api.get_session("some-token")

    async def test_sign_out_clears_server_and_local(self, gateway, make_user, client):
        await make_user("gw.out@pg.com")
        await gateway.sign_in("gw.out@pg.com", "FleetPass123!")
        gateway.monitor.stop()
        token = gateway.state.token

        await gateway.sign_out()
        assert gateway.state is None
        assert not gateway.monitor.running

        response = await client.get(
            "/auth/session", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401

    async def test_sign_out_is_idempotent(self, gateway, make_user):
        await make_user("gw.twice@pg.com")
        await gateway.sign_in("gw.twice@pg.com", "FleetPass123!")
        gateway.monitor.stop()

        await gateway.sign_out()
        await gateway.sign_out()
        assert gateway.state is None

    async def test_sign_out_when_server_down(self, gateway, api, make_user, monkeypatch):
        await make_user("gw.offline@pg.com")
        await gateway.sign_in("gw.offline@pg.com", "FleetPass123!")
        gateway.monitor.stop()

        async def unreachable(token):
            raise TransientIOError()

        monkeypatch.setattr(api, "logout", unreachable)
        await gateway.sign_out()
        assert gateway.state is None

    async def test_sign_in_elsewhere_replaces_session(self, gateway, events, make_user, login):
        received = record(events, SESSION_REPLACED)
        await make_user("gw.shared@pg.com")
        await gateway.sign_in("gw.shared@pg.com", "FleetPass123!")
        gateway.monitor.stop()

        await login("gw.shared@pg.com")

        with pytest.raises(SessionReplacedError):
            await gateway.get_session()
        assert gateway.state is None
        assert len(received) == 1
        assert "another device" in received[0]["message"]


# ---------------------------------------------------------------------------
# Session checks
# ---------------------------------------------------------------------------

class TestGetSession:
    """Tests for AuthGateway.get_session and extend_session."""

    async def test_no_session(self, gateway):
        with pytest.raises(NoSessionError):
            await gateway.get_session()

    async def test_valid_session_restarts_monitor(self, gateway, make_user):
        await make_user("gw.valid@pg.com")
        await gateway.sign_in("gw.valid@pg.com", "FleetPass123!")
        gateway.monitor.stop()
        assert not gateway.monitor.running

        profile = await gateway.get_session()
        assert profile.email == "gw.valid@pg.com"
        assert gateway.monitor.running
        gateway.monitor.stop()

    async def test_role_change_is_picked_up(self, gateway, make_user, session_factory):
        from fleet_auth.services import user_service

        user = await make_user("gw.promoted@pg.com")
        await gateway.sign_in("gw.promoted@pg.com", "FleetPass123!")
        gateway.monitor.stop()

        async with session_factory() as session:
            await user_service.update_user(session, user.id, role=UserRole.FLEET_MANAGER)
            await session.commit()

        profile = await gateway.get_session()
        gateway.monitor.stop()
        assert profile.role == "fleet_manager"
        assert gateway.state.role == "fleet_manager"

    async def test_local_expiry_emits_expired(self, api, events, make_user):
        received = record(events, SESSION_EXPIRED)
        signed_in_at = clock.utcnow()
        current_time = [signed_in_at]
        gateway = AuthGateway(api, events=events, now=lambda: current_time[0])

        await make_user("gw.local.expiry@pg.com")
        await gateway.sign_in("gw.local.expiry@pg.com", "FleetPass123!")
        gateway.monitor.stop()
        await gateway.monitor.wait_closed()

        # Eight hours after sign-in, plus one second
        current_time[0] = signed_in_at + timedelta(hours=8, seconds=1)
        assert not gateway.is_authenticated()

        with pytest.raises(SessionExpiredError):
            await gateway.get_session()
        assert gateway.state is None
        assert len(received) == 1

    async def test_sign_in_during_check_keeps_new_session(
        self, gateway, api, make_user, monkeypatch
    ):
        await make_user("gw.overlap@pg.com")
        await gateway.sign_in("gw.overlap@pg.com", "FleetPass123!")
        gateway.monitor.stop()
        await gateway.monitor.wait_closed()
        old_token = gateway.state.token

        original = api.get_session
        overlapped = []

        async def sign_in_while_checking(token):
            response = await original(token)
            if not overlapped:
                overlapped.append(token)
                await gateway.sign_in("gw.overlap@pg.com", "FleetPass123!")
            return response

        monkeypatch.setattr(api, "get_session", sign_in_while_checking)
        await gateway.get_session()
        gateway.monitor.stop()
        await gateway.monitor.wait_closed()

        new_token = gateway.state.token
        assert overlapped == [old_token]
        assert new_token != old_token

        response = await original(new_token)
        assert response.user.email == "gw.overlap@pg.com"

    async def test_deactivated_user_emits_expired(
        self, gateway, events, make_user, session_factory
    ):
        from fleet_auth.services import user_service

        received = record(events, SESSION_EXPIRED)
        user = await make_user("gw.deactivated@pg.com")
        await gateway.sign_in("gw.deactivated@pg.com", "FleetPass123!")
        gateway.monitor.stop()

        async with session_factory() as session:
            await user_service.update_user(session, user.id, is_active=False)
            await session.commit()

        with pytest.raises(AccountInactiveError):
            await gateway.get_session()
        assert gateway.state is None
        assert received[0]["message"] == "Your account has been deactivated."

    async def test_transient_error_keeps_state(self, gateway, api, make_user, monkeypatch):
        await make_user("gw.blip@pg.com")
        await gateway.sign_in("gw.blip@pg.com", "FleetPass123!")
        gateway.monitor.stop()
        token = gateway.state.token

        async def unreachable(token):
            raise TransientIOError()

        monkeypatch.setattr(api, "get_session", unreachable)
        with pytest.raises(TransientIOError):
            await gateway.get_session()
        assert gateway.state.token == token

    async def test_extend_session_updates_cached_expiry(self, gateway, make_user):
        await make_user("gw.extend@pg.com")
        await gateway.sign_in("gw.extend@pg.com", "FleetPass123!")
        gateway.monitor.stop()

        gateway.state.expires_at = clock.utcnow() + timedelta(minutes=5)
        expires_at = await gateway.extend_session()
        assert gateway.state.expires_at == clock.ensure_utc(expires_at)
        assert gateway.state.expires_at - clock.utcnow() > timedelta(hours=7)


# ---------------------------------------------------------------------------
# Account and password
# ---------------------------------------------------------------------------

class TestPasswordFlows:
    """Tests for sign_up, update_password and the reset flow via the gateway."""

    async def test_sign_up_does_not_sign_in(self, gateway):
        profile = await gateway.sign_up("gw.new@pg.com", "StrongPass99!", "New Person")
        assert profile.is_active is False
        assert gateway.state is None

    async def test_update_password_requires_new_sign_in(self, gateway, make_user):
        await make_user("gw.change@pg.com")
        await gateway.sign_in("gw.change@pg.com", "FleetPass123!")
        gateway.monitor.stop()

        result = await gateway.update_password("BrandNewPass1!")
        assert result.success is True
        assert gateway.state is None

        await gateway.sign_in("gw.change@pg.com", "BrandNewPass1!")
        gateway.monitor.stop()
        assert gateway.is_authenticated()

    async def test_reset_flow(self, gateway, make_user, reset_outbox):
        await make_user("gw.reset@pg.com")

        requested = await gateway.forgot_password("gw.reset@pg.com")
        assert requested.success is True
        token = reset_outbox[0].token

        status = await gateway.verify_reset_token(token)
        assert status.valid is True

        await gateway.reset_password(token, "ResetPass123!")
        await gateway.sign_in("gw.reset@pg.com", "ResetPass123!")
        gateway.monitor.stop()
        assert gateway.state.email == "gw.reset@pg.com"
