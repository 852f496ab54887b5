"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager — handles startup/shutdown (tables, seed data, sweeps)
  2. CORS middleware — allows frontend origins to make cross-origin requests
  3. Exception handlers — maps domain errors to HTTP responses
  4. Router registration — mounts all API endpoint groups

Running locally:
    uvicorn fleet_auth.main:app --reload

The --reload flag watches for file changes and restarts automatically,
which is ideal for development but should not be used in production.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fleet_auth.config import settings
from fleet_auth.database import AsyncSessionLocal, engine, Base
from fleet_auth.exceptions import register_exception_handlers
from fleet_auth.logging import get_logger
from fleet_auth.routers import access, admin, auth, page_restrictions
from fleet_auth.services import access_service, password_reset_service, session_service

logger = get_logger(__name__)


async def run_startup_maintenance() -> None:
    """
    Seed the page restriction matrix and run the maintenance sweeps.

    Seeding only inserts pages that don't exist yet, so administrator edits
    survive restarts.
    """
    async with AsyncSessionLocal() as session:
        seeded = await access_service.seed_page_restrictions(session)
        sessions_cleared = await session_service.clear_expired_sessions(session)
        resets_deleted = await password_reset_service.cleanup_expired_password_resets(session)
        await session.commit()

    logger.info(
        "startup_maintenance_completed",
        pages_seeded=seeded,
        sessions_cleared=sessions_cleared,
        resets_deleted=resets_deleted,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager (replaces deprecated @app.on_event).

    Startup:
      Creates all database tables if they don't exist, seeds the default
      page restriction matrix, and clears expired sessions and stale reset
      tokens. In production, schema changes belong in migrations.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    # --- Startup ---
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await run_startup_maintenance()
    yield
    # --- Shutdown ---
    await engine.dispose()


# Create the FastAPI application instance
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Session lifecycle and role-based page access for the fleet application",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

# CORS: Allow specified frontend origins to make requests.
# In production, lock this down to your actual frontend domain(s).
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(access.router, prefix="/access", tags=["Access"])
app.include_router(
    page_restrictions.router,
    prefix="/page-restrictions",
    tags=["Page Restrictions"],
)
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint for deployment probes (Kubernetes, Docker, etc.).

    Returns a simple JSON response indicating the service is running.
    """
    return {"status": "ok", "version": settings.APP_VERSION}
