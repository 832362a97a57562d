"""
api/main.py -- FastAPI application entry point for the user directory.

Builds the app object, its middleware, its exception handlers, the /health
endpoint, and the /uploads static mount. The HTML routes live in web/routes.py
and are mounted by asgi.py.

Run with:  uvicorn asgi:app --reload
           python main.py

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. log_requests          -- one INFO line per request with latency

Lifespan handles startup (user store, session store, upload dir, session
purge task) and shutdown (cancel purge task, close DB engine) symmetrically.

Error responses:
  Domain failures (core.errors.UserDirectoryError) are answered with their
  plain-text message, their HTTP status, and an X-Error-Code header carrying
  the stable code. Store failures and anything unexpected become a generic
  500 -- details go to the log, never to the response body.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorDetail, HealthResponse
from auth.sessions import InMemorySessionStore
from auth.store import UserStore
from core.config import get_settings
from core.errors import StoreUnavailable, UserDirectoryError

VERSION = "1.0.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=_settings.log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("userdir.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------

_PURGE_INTERVAL_SECONDS = 10 * 60


async def _purge_loop(app: FastAPI) -> None:
    """Drop expired sessions every 10 minutes.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine.
    """
    while True:
        await asyncio.sleep(_PURGE_INTERVAL_SECONDS)
        removed = app.state.sessions.purge_expired()
        if removed:
            logger.info("Purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the stores on startup and release them on shutdown."""
    logger.info("User directory starting up")
    app.state.user_store = UserStore(_settings.database_url)
    logger.info("User store initialized")
    app.state.sessions = InMemorySessionStore(max_age=_settings.session_max_age)
    app.state.upload_dir = Path(_settings.upload_dir)
    app.state.upload_dir.mkdir(parents=True, exist_ok=True)
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.user_store.close()
    logger.info("User directory shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="User Directory",
    description="Registration, login with lockout, and a searchable user list.",
    version=VERSION,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# StaticFiles checks the directory at mount time, so it must exist before the
# first request rather than in lifespan.
Path(_settings.upload_dir).mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=_settings.upload_dir), name="uploads")


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
# Exception handlers
# ---------------------------------------------------------------------------


def error_response(detail: ErrorDetail, status_code: int) -> PlainTextResponse:
    """Plain-text body for the browser, stable code in X-Error-Code for everything else."""
    return PlainTextResponse(detail.message, status_code=status_code, headers={"X-Error-Code": detail.code})


@app.exception_handler(UserDirectoryError)
async def domain_error_handler(request: Request, exc: UserDirectoryError) -> PlainTextResponse:
    if isinstance(exc, StoreUnavailable):
        logger.error("Store unavailable on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(ErrorDetail(code=exc.code, message=exc.message), exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> PlainTextResponse:
    """Any database error that escaped the store and services is a server error."""
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(ErrorDetail(code=StoreUnavailable.code, message=StoreUnavailable.message), 500)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> PlainTextResponse:
    """Return 422 when path or query parameters fail validation."""
    return error_response(ErrorDetail(code="validation_error", message="Request validation failed."), 422)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    return error_response(ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail)), exc.status_code)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Catch-all for unexpected server errors. The traceback goes to the log only."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(ErrorDetail(code="internal_error", message="An unexpected error occurred."), 500)


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and whether the database answers."""
    store: UserStore = request.app.state.user_store
    return HealthResponse(
        version=VERSION,
        components={"app": "ok", "database": "ok" if store.ping() else "error"},
    )
