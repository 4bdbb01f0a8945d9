"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Logging — structured JSON on stdout
  2. Lifespan manager — creates tables on startup, disposes the engine on shutdown
  3. Middleware — request IDs/logging and CORS
  4. Exception handlers — map domain errors to the {success, error} envelope
  5. Router registration — mounts all API endpoint groups

Running locally:
    uvicorn jointbank.main:app --reload
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import make_url

from jointbank import models  # noqa: F401  (registers every table on Base.metadata)
from jointbank.config import settings
from jointbank.database import engine, Base
from jointbank.exceptions import register_exception_handlers
from jointbank.logging_config import setup_logging
from jointbank.middleware import RequestIDMiddleware
from jointbank.routers import accounts, auth, transactions, users

setup_logging(settings.LOG_LEVEL)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
      Creates the SQLite data directory and all database tables if they
      don't exist.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    url = make_url(settings.DATABASE_URL)
    if url.get_backend_name() == "sqlite" and url.database:
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Joint account banking REST API: accounts, co-owners and transactions",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware (last added = first executed)
# ---------------------------------------------------------------------------

app.add_middleware(RequestIDMiddleware)
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

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
app.include_router(transactions.router, prefix="/accounts", tags=["Transactions"])


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for deployment probes."""
    return {"status": "ok", "version": settings.APP_VERSION}
