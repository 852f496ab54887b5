"""
Tests for the password reset flow.

These tests verify:
  - The request endpoint answers identically for known and unknown emails
  - Only active users receive a reset ticket (64 hex chars, 1 hour)
  - A newer request invalidates the previous token
  - Redeeming a token changes the password that LOGIN reads
  - Redeeming a token ends any active session
  - Tokens are single use; expired tokens are rejected and change nothing
  - The cleanup sweep deletes long-expired reset rows only
"""

from datetime import timedelta

import pytest
from sqlalchemy import select, update

from fleet_auth import clock
from fleet_auth.exceptions import TokenInvalidOrExpiredError
from fleet_auth.models.password_reset import PasswordReset
from fleet_auth.models.user import User
from fleet_auth.services import password_reset_service


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def request_reset(client, email: str):
    return await client.post("/auth/password-reset/request", json={"email": email})


# ---------------------------------------------------------------------------
# Requesting a reset
# ---------------------------------------------------------------------------

class TestRequestReset:
    """Tests for POST /auth/password-reset/request."""

    async def test_known_email_gets_ticket(self, client, make_user, reset_outbox):
        user = await make_user("forgetful@pg.com", full_name="Forgetful Fred")
        response = await request_reset(client, "forgetful@pg.com")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert len(reset_outbox) == 1

        ticket = reset_outbox[0]
        assert ticket.user_id == user.id
        assert ticket.email == "forgetful@pg.com"
        assert ticket.full_name == "Forgetful Fred"
        assert len(ticket.token) == 64
        int(ticket.token, 16)

        remaining = clock.ensure_utc(ticket.expires_at) - clock.utcnow()
        assert timedelta(minutes=59) < remaining <= timedelta(hours=1)

    async def test_unknown_email_same_response(self, client, make_user, reset_outbox):
        await make_user("known@pg.com")
        known = await request_reset(client, "known@pg.com")
        unknown = await request_reset(client, "stranger@pg.com")

        assert unknown.status_code == 200
        assert unknown.json() == known.json()
        assert len(reset_outbox) == 1

    async def test_inactive_user_gets_no_ticket(self, client, make_user, reset_outbox):
        await make_user("sleeping@pg.com", is_active=False)
        response = await request_reset(client, "sleeping@pg.com")
        assert response.status_code == 200
        assert reset_outbox == []

    async def test_token_not_in_response(self, client, make_user, reset_outbox):
        await make_user("private@pg.com")
        response = await request_reset(client, "private@pg.com")
        assert reset_outbox[0].token not in response.text

    async def test_request_records_client_details(self, client, make_user, db_session):
        await make_user("audited@pg.com")
        await client.post(
            "/auth/password-reset/request",
            json={"email": "audited@pg.com"},
            headers={"User-Agent": "fleet-tests/1.0"},
        )
        reset = (await db_session.execute(select(PasswordReset))).scalar_one()
        assert reset.user_agent == "fleet-tests/1.0"
        assert reset.used_at is None

    async def test_newer_request_invalidates_older_token(self, client, make_user, reset_outbox):
        await make_user("twice.reset@pg.com")
        await request_reset(client, "twice.reset@pg.com")
        await request_reset(client, "twice.reset@pg.com")
        first, second = reset_outbox

        old = await client.get("/auth/password-reset/verify", params={"token": first.token})
        assert old.status_code == 400
        assert old.json()["error_type"] == "token_invalid_or_expired"

        new = await client.get("/auth/password-reset/verify", params={"token": second.token})
        assert new.status_code == 200


# ---------------------------------------------------------------------------
# Verifying and redeeming
# ---------------------------------------------------------------------------

class TestRedeemReset:
    """Tests for GET /verify and POST /confirm."""

    async def test_verify_valid_token(self, client, make_user, reset_outbox):
        await make_user("verify@pg.com")
        await request_reset(client, "verify@pg.com")

        response = await client.get(
            "/auth/password-reset/verify", params={"token": reset_outbox[0].token}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["email"] == "verify@pg.com"

    async def test_verify_does_not_consume(self, client, make_user, reset_outbox):
        await make_user("peek@pg.com")
        await request_reset(client, "peek@pg.com")
        token = reset_outbox[0].token

        await client.get("/auth/password-reset/verify", params={"token": token})
        response = await client.post(
            "/auth/password-reset/confirm",
            json={"token": token, "new_password": "ResetPass123!"},
        )
        assert response.status_code == 200

    async def test_reset_changes_login_password(self, client, make_user, reset_outbox):
        """The new password works at LOGIN, which reads the primary store."""
        await make_user("coupled@pg.com")
        await request_reset(client, "coupled@pg.com")

        response = await client.post(
            "/auth/password-reset/confirm",
            json={"token": reset_outbox[0].token, "new_password": "ResetPass123!"},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Password reset successfully"}

        new_login = await client.post(
            "/auth/login",
            json={"email": "coupled@pg.com", "password": "ResetPass123!"},
        )
        assert new_login.status_code == 200

        old_login = await client.post(
            "/auth/login",
            json={"email": "coupled@pg.com", "password": "FleetPass123!"},
        )
        assert old_login.status_code == 401

    async def test_reset_syncs_secondary_copy(self, client, make_user, reset_outbox, db_session):
        from fleet_auth.security import verify_password

        user = await make_user("secondary@pg.com")
        await request_reset(client, "secondary@pg.com")
        await client.post(
            "/auth/password-reset/confirm",
            json={"token": reset_outbox[0].token, "new_password": "ResetPass123!"},
        )

        profile = await db_session.get(User, user.id)
        assert verify_password("ResetPass123!", profile.password_hash)

    async def test_reset_ends_active_session(self, client, make_user, login, reset_outbox):
        await make_user("active.session@pg.com")
        token = await login("active.session@pg.com")
        await request_reset(client, "active.session@pg.com")

        await client.post(
            "/auth/password-reset/confirm",
            json={"token": reset_outbox[0].token, "new_password": "ResetPass123!"},
        )

        response = await client.get("/auth/session", headers=auth(token))
        assert response.status_code == 401

    async def test_token_is_single_use(self, client, make_user, reset_outbox):
        await make_user("once@pg.com")
        await request_reset(client, "once@pg.com")
        token = reset_outbox[0].token

        first = await client.post(
            "/auth/password-reset/confirm",
            json={"token": token, "new_password": "ResetPass123!"},
        )
        second = await client.post(
            "/auth/password-reset/confirm",
            json={"token": token, "new_password": "AnotherPass123!"},
        )
        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["error_type"] == "token_invalid_or_expired"

        login = await client.post(
            "/auth/login",
            json={"email": "once@pg.com", "password": "ResetPass123!"},
        )
        assert login.status_code == 200

    async def test_expired_token_leaves_password_unchanged(
        self, client, make_user, reset_outbox, session_factory
    ):
        await make_user("late@pg.com")
        await request_reset(client, "late@pg.com")
        token = reset_outbox[0].token

        async with session_factory() as session:
            await session.execute(
                update(PasswordReset)
                .where(PasswordReset.token == token)
                .values(expires_at=clock.utcnow() - timedelta(minutes=1))
            )
            await session.commit()

        response = await client.post(
            "/auth/password-reset/confirm",
            json={"token": token, "new_password": "ResetPass123!"},
        )
        assert response.status_code == 400

        login = await client.post(
            "/auth/login",
            json={"email": "late@pg.com", "password": "FleetPass123!"},
        )
        assert login.status_code == 200

    async def test_token_of_deactivated_user_rejected(
        self, client, make_user, reset_outbox, session_factory
    ):
        user = await make_user("deactivated.reset@pg.com")
        await request_reset(client, "deactivated.reset@pg.com")

        async with session_factory() as session:
            await session.execute(
                update(User).where(User.id == user.id).values(is_active=False)
            )
            await session.commit()

        response = await client.get(
            "/auth/password-reset/verify", params={"token": reset_outbox[0].token}
        )
        assert response.status_code == 400

    async def test_unknown_token_rejected(self, client):
        response = await client.post(
            "/auth/password-reset/confirm",
            json={"token": "0" * 64, "new_password": "ResetPass123!"},
        )
        assert response.status_code == 400
        assert response.json()["error_type"] == "token_invalid_or_expired"


# ---------------------------------------------------------------------------
# Cleanup
# ---------------------------------------------------------------------------

class TestResetCleanup:
    """Tests for password_reset_service.cleanup_expired_password_resets."""

    async def test_cleanup_deletes_only_long_expired_rows(self, db_session, make_user, monkeypatch):
        await make_user("cleanup@pg.com")
        ticket = await password_reset_service.request_password_reset(db_session, "cleanup@pg.com")
        await db_session.commit()

        # Just past expiry: kept for the retention window
        monkeypatch.setattr(clock, "utcnow", lambda: ticket.expires_at + timedelta(hours=1))
        assert await password_reset_service.cleanup_expired_password_resets(db_session) == 0

        monkeypatch.setattr(clock, "utcnow", lambda: ticket.expires_at + timedelta(hours=25))
        assert await password_reset_service.cleanup_expired_password_resets(db_session) == 1
        await db_session.commit()

        result = await db_session.execute(select(PasswordReset))
        assert result.scalars().all() == []

    async def test_expired_ticket_rejected_by_service(self, db_session, make_user, monkeypatch):
        await make_user("svc.expired@pg.com")
        ticket = await password_reset_service.request_password_reset(db_session, "svc.expired@pg.com")

        monkeypatch.setattr(clock, "utcnow", lambda: ticket.expires_at + timedelta(seconds=1))
        with pytest.raises(TokenInvalidOrExpiredError):
            await password_reset_service.verify_reset_token(db_session, ticket.token)
