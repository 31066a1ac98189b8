"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Logging — configured once from LOG_LEVEL
  2. Lifespan manager — creates tables at startup, disposes the engine at shutdown
  3. Middleware — CORS, plus request logging and `Cache-Control: no-store`
  4. Exception handlers — maps domain errors to `{"error": ...}` responses
  5. Router registration — auth, users, accounts and their transactions

Running locally:
    uvicorn ledgerbook.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import ledgerbook.models  # noqa: F401  (registers every table on Base.metadata)
from ledgerbook.config import settings
from ledgerbook.database import Base, engine
from ledgerbook.exceptions import register_exception_handlers
from ledgerbook.middleware import RequestLogMiddleware
from ledgerbook.routers import accounts, auth, transactions, users

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create any missing tables. A production deployment would
    manage the schema with migrations instead.

    Shutdown: dispose of the engine, closing all pooled connections.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Shared ledger books with always-correct running balances",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(RequestLogMiddleware)
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


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe for load balancers and orchestrators."""
    return {"status": "ok", "version": settings.APP_VERSION}
