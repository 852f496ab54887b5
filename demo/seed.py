#!/usr/bin/env python3
"""
Demo seed script — populates the database with one user per role.

!! NOT FOR PRODUCTION !!
This script creates users with known passwords. It is intended ONLY for
local demos and frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

Login credentials after seeding:
    ┌──────────────────────────────┬───────────────────┬────────────────────────┐
    │ Email                        │ Password          │ Role                   │
    ├──────────────────────────────┼───────────────────┼────────────────────────┤
    │ admin@pg.com                 │ AdminDemo123!     │ administration         │
    │ fiona.manager@pg.com         │ FionaDemo123!     │ fleet_manager          │
    │ marco.mechanic@pg.com        │ MarcoDemo123!     │ maintenance_team       │
    │ dana.driver@pg.com           │ DanaDemo123!      │ driver                 │
    │ liam.liaison@pg.com          │ LiamDemo123!      │ client_company_liaison │
    └──────────────────────────────┴───────────────────┴────────────────────────┘

The admin is provisioned directly in the database (an operator action);
every other user signs up through the API like a real user would and is
then activated by the admin through /admin/users.
"""

import argparse
import asyncio
import os
import sys

import httpx

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo users
# ---------------------------------------------------------------------------

ADMIN = {
    "email": "admin@pg.com",
    "password": "AdminDemo123!",
    "full_name": "Fleet Admin",
}

MEMBERS = [
    {
        "email": "fiona.manager@pg.com",
        "password": "FionaDemo123!",
        "full_name": "Fiona Manager",
        "role": "fleet_manager",
    },
    {
        "email": "marco.mechanic@pg.com",
        "password": "MarcoDemo123!",
        "full_name": "Marco Mechanic",
        "role": "maintenance_team",
    },
    {
        "email": "dana.driver@pg.com",
        "password": "DanaDemo123!",
        "full_name": "Dana Driver",
        "role": "driver",
    },
    {
        "email": "liam.liaison@pg.com",
        "password": "LiamDemo123!",
        "full_name": "Liam Liaison",
        "role": "client_company_liaison",
    },
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def signup(client: httpx.AsyncClient, user: dict) -> str | None:
    """Sign up a user, return their id (None if the email already exists)."""
    resp = await client.post(f"{BASE_URL}/auth/signup", json={
        "email": user["email"],
        "password": user["password"],
        "full_name": user["full_name"],
    })
    if resp.status_code == 409:
        return None
    resp.raise_for_status()
    return resp.json()["id"]


async def login(client: httpx.AsyncClient, email: str, password: str) -> str:
    resp = await client.post(f"{BASE_URL}/auth/login", json={
        "email": email,
        "password": password,
    })
    resp.raise_for_status()
    return resp.json()["session_token"]


async def find_user_id(client: httpx.AsyncClient, token: str, email: str) -> str:
    resp = await client.get(f"{BASE_URL}/admin/users", headers=auth_header(token))
    resp.raise_for_status()
    for user in resp.json():
        if user["email"] == email:
            return user["id"]
    raise LookupError(email)


async def activate(client: httpx.AsyncClient, token: str, user_id: str, role: str) -> None:
    resp = await client.patch(
        f"{BASE_URL}/admin/users/{user_id}",
        json={"role": role, "is_active": True},
        headers=auth_header(token),
    )
    resp.raise_for_status()


async def provision_admin(admin_email: str) -> None:
    """
    Give the admin the administration role and activate them, directly in the DB.

    This bypasses the API since self-service signup only grants the
    administration role to addresses listed in ADMIN_EMAILS.
    """
    from sqlalchemy import update
    from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
    from fleet_auth.config import settings
    from fleet_auth.models.user import User, UserRole

    engine = create_async_engine(settings.DATABASE_URL)
    session_factory = async_sessionmaker(engine, class_=AsyncSession)

    async with session_factory() as session:
        await session.execute(
            update(User)
            .where(User.email == admin_email)
            .values(role=UserRole.ADMINISTRATION, is_active=True)
        )
        await session.commit()

    await engine.dispose()


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn fleet_auth.main:app --reload\n")
            sys.exit(1)

        # --- Admin ---
        print("Creating admin user...")
        await signup(client, ADMIN)
        await provision_admin(ADMIN["email"])
        admin_token = await login(client, ADMIN["email"], ADMIN["password"])
        log(f"Admin: {ADMIN['email']} / {ADMIN['password']}")

        # --- Members ---
        for member in MEMBERS:
            print(f"\nCreating {member['full_name']}...")
            user_id = await signup(client, member)
            if user_id is None:
                log("Already registered")
                user_id = await find_user_id(client, admin_token, member["email"])
            await activate(client, admin_token, user_id, member["role"])
            log(f"Login: {member['email']} / {member['password']} ({member['role']})")

        await client.post(f"{BASE_URL}/auth/logout", headers=auth_header(admin_token))

    # --- Summary ---
    print("\n========================================")
    print("  SEED COMPLETE — Login Credentials")
    print("========================================")
    print(f"\n  {'Email':<30s} {'Password':<20s} {'Role'}")
    print(f"  {'─' * 30} {'─' * 20} {'─' * 22}")
    print(f"  {ADMIN['email']:<30s} {ADMIN['password']:<20s} administration")
    for m in MEMBERS:
        print(f"  {m['email']:<30s} {m['password']:<20s} {m['role']}")
    print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "fleet.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates one active user per fleet role for demos.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())
