"""
api/main.py -- FastAPI application entry point for the game portal backend.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for the portal front end
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan opens the stores, avatar storage, and mailer on startup and closes
the stores on shutdown. Everything lives on app.state so tests can swap in
their own instances.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from api.limiter import limiter
from api.models import HealthResponse, error_envelope
from api.routes.account import router as account_router
from api.routes.news import router as news_router
from auth.avatars import AvatarStorage
from auth.errors import PortalError
from auth.store import AccountStore
from core.config import get_settings
from forum.store import ForumStore
from mailer.sender import Mailer

__version__ = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("gameportal.api")

_settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open application-level resources on startup, release them on shutdown."""
    logger.info("Game portal API starting up")
    app.state.account_store = AccountStore(_settings.database_url)
    app.state.forum = ForumStore(_settings.database_url)
    app.state.avatars = AvatarStorage(_settings.upload_dir, _settings.max_avatar_bytes)
    app.state.mailer = Mailer(_settings)
    logger.info("Stores initialized (uploads=%s)", app.state.avatars.directory)

    yield

    app.state.account_store.close()
    app.state.forum.close()
    logger.info("Game portal API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Game Portal API",
    description="Accounts, sessions, profiles, and news for the game community portal.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


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
# Routers and static files
# ---------------------------------------------------------------------------

app.include_router(account_router, prefix="/account", tags=["Account"])
app.include_router(news_router, prefix="/news", tags=["News"])

# Avatar paths are stored as "<upload dir name>/<file>", so mounting under the
# same name makes "<public_base_url>/<avatar>" resolve.
app.mount(
    f"/{Path(_settings.upload_dir).name}",
    StaticFiles(directory=_settings.upload_dir, check_dir=False),
    name="uploads",
)

# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler returns the same envelope ({ok: false, message, meta.code})
# so clients parse errors uniformly.
# ---------------------------------------------------------------------------


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    """Render domain errors raised by stores, token checks, and routes."""
    return JSONResponse(status_code=exc.status_code, content=error_envelope(exc.code, exc.message))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = JSONResponse(
        status_code=429,
        content=error_envelope("rate_limited", "Too many requests.", detail=str(exc.detail)),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=error_envelope("validation_error", "Request validation failed.", detail=str(exc.errors())),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Routes raise HTTPException with detail={"code", "message"}; plain-string details get a generic code."""
    if isinstance(exc.detail, dict):
        content = error_envelope(exc.detail.get("code", f"http_{exc.status_code}"), exc.detail.get("message", ""))
    else:
        content = error_envelope(f"http_{exc.status_code}", str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected server errors.

    The exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_envelope("internal_error", "An unexpected error occurred."),
    )


# ---------------------------------------------------------------------------
# Health endpoint (no auth, no rate limit)
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and database reachability."""
    try:
        database = "ok" if request.app.state.account_store.ping() else "error"
    except SQLAlchemyError:
        logger.exception("Health check database ping failed")
        database = "error"
    return HealthResponse(version=__version__, components={"app": "ok", "database": database})
