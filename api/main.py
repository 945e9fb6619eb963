"""
api/main.py -- FastAPI application entry point for the JWT Pizza service.

Run with:  uvicorn api.main:app --reload
           python main.py serve

Middleware stack (outermost to innermost):
  1. CORSMiddleware   -- adds CORS headers for allowed browser origins
  2. log_requests     -- one log line per request with status and latency

Lifespan builds the shared engine and every store once, wires them into
app.state through wire_state(), and disposes them symmetrically on shutdown.
Handlers and dependencies only ever read collaborators from app.state; nothing
in the request path holds a module-level store.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from api.routes.franchise import router as franchise_router
from api.routes.order import router as order_router
from auth.guard import AuthorizationGuard
from auth.permissions import PermissionEngine
from auth.revocation import RevocationStore
from auth.store import UserStore
from auth.tokens import TokenService, hash_password
from core.config import Settings, get_settings
from core.db import make_engine, ping
from core.errors import ServiceError, UpstreamError
from franchise.store import FranchiseStore
from orders.factory import OrderFactoryClient
from orders.service import OrderSubmitter
from orders.store import OrderStore

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("jwtpizza.api")


# ---------------------------------------------------------------------------
# State wiring
# ---------------------------------------------------------------------------


def wire_state(app: FastAPI, engine: Engine, settings: Settings, factory: Optional[OrderSubmitter] = None) -> None:
    """Build every collaborator on top of engine and attach it to app.state.

    Shared by the real lifespan and the test fixtures, so both run the exact
    same guard, permission engine and stores. Pass factory to replace the
    HTTP factory client (tests use a stub).
    """
    app.state.settings = settings
    app.state.engine = engine
    app.state.user_store = UserStore(engine)
    app.state.revocations = RevocationStore(engine)
    app.state.franchises = FranchiseStore(engine)
    app.state.orders = OrderStore(engine)
    app.state.tokens = TokenService(settings.secret_key)
    app.state.guard = AuthorizationGuard(app.state.tokens, app.state.revocations, app.state.user_store)
    app.state.permissions = PermissionEngine(app.state.franchises)
    app.state.factory = factory or OrderFactoryClient(
        settings.factory_url,
        settings.factory_api_key,
        timeout=settings.factory_timeout_seconds,
    )


def _bootstrap_admin(app: FastAPI, settings: Settings) -> None:
    """Seed the configured admin account, if ADMIN_EMAIL and ADMIN_PASSWORD are set."""
    if not settings.admin_email or not settings.admin_password:
        return
    user_store: UserStore = app.state.user_store
    user_store.ensure_admin(settings.admin_name, settings.admin_email, hash_password(settings.admin_password))


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime."""
    settings = get_settings()
    logger.info("JWT Pizza service starting up")
    engine = make_engine(settings.database_url)
    wire_state(app, engine, settings)
    _bootstrap_admin(app, settings)
    logger.info("Stores initialized (factory=%s)", settings.factory_url)

    yield

    factory = app.state.factory
    if isinstance(factory, OrderFactoryClient):
        factory.close()
    engine.dispose()
    logger.info("JWT Pizza service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="JWT Pizza Service",
    description="Authentication, franchise management, and ordering for JWT Pizza.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=True,
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api", tags=["Auth"])
app.include_router(franchise_router, prefix="/api", tags=["Franchise"])
app.include_router(order_router, prefix="/api", tags=["Order"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {code, message} envelope so clients can match
# on message regardless of which layer raised.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    body = ErrorResponse(code=code, message=message, **extra).model_dump(by_alias=True, exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Map domain exceptions from stores and services to their HTTP status."""
    if isinstance(exc, UpstreamError):
        logger.error("Upstream failure on %s %s: %s", request.method, request.url.path, exc.message)
        return _error(exc.status_code, exc.code, exc.message, report_url=exc.report_url)
    return _error(exc.status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with a structured error when a body, path or query param fails validation."""
    return _error(400, "validation_error", "invalid request", detail=str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap routing errors raised by Starlette itself (unknown path, wrong method) in the envelope."""
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is logged, never returned. The client receives only a
    generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and database reachability. No auth required."""
    db_ok = ping(request.app.state.engine)
    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        version=VERSION,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
