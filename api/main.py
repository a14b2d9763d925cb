"""
api/main.py -- FastAPI application entry point for LogicGrid.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter
  4. log_requests          -- method, path, status, latency, client
  5. json_guard            -- 415 for non-JSON writes, 400 for oversized bodies
  6. security_headers      -- nosniff / frame / referrer / CSP / no-store

Lifespan builds one SQLAlchemy engine and hangs every store and service off
app.state. Routes read them from request.app.state, which lets tests swap the
lifespan and inject isolated stores.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.admin import router as admin_router
from api.routes.auth import router as auth_router
from api.routes.federation import router as federation_router
from api.routes.protocols import router as protocols_router
from api.routes.suggest import router as suggest_router
from auth.oauth import FederationConfig, IdentityFederation
from auth.sessions import SessionManager
from auth.store import UserStore
from core.config import get_settings
from core.database import create_db_engine
from core.errors import AppError
from protocols.store import ProtocolStore
from suggest.client import GeminiSuggester

API_VERSION = "0.1.0"

_settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if _settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("logicgrid.api")


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Everything before yield runs on startup; everything after yield runs on
    shutdown.

    Startup order matters:
      1. Engine first -- creates the schema; every store shares it.
      2. Stores and SessionManager -- SessionManager wraps the user store.
      3. Optional collaborators (federation, suggester) -- None when unconfigured.
    """
    settings = get_settings()
    logger.info("LogicGrid API starting up (env=%s)", settings.app_env)
    engine = create_db_engine(settings.database_url)
    app.state.engine = engine
    app.state.user_store = UserStore(engine)
    app.state.protocol_store = ProtocolStore(engine)
    app.state.sessions = SessionManager(app.state.user_store)

    federation_config = FederationConfig.from_settings(settings)
    app.state.federation = (
        IdentityFederation(federation_config, app.state.user_store) if federation_config else None
    )
    app.state.suggester = (
        GeminiSuggester(settings.suggest_api_key, model=settings.suggest_model) if settings.suggest_api_key else None
    )
    logger.info(
        "Stores initialized (federation=%s, suggestions=%s)",
        app.state.federation is not None,
        app.state.suggester is not None,
    )

    yield

    engine.dispose()
    logger.info("LogicGrid API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="LogicGrid API",
    description="Identity, sessions, and shared protocol records for the LogicGrid builder.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Decorator middlewares (@app.middleware) are registered first so that the
# add_middleware() calls below end up outermost. Starlette wraps in reverse
# registration order: the last one added sees the request first.
# ---------------------------------------------------------------------------

_JSON_WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'self'; style-src 'self' 'unsafe-inline';",
}


def _error_json(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.middleware("http")
async def security_headers(request: Request, call_next):
    """Attach the fixed security headers to every response.

    Cache-Control defaults to no-store: every response here is either
    user-specific or a credential exchange. Routes that set their own value win.
    """
    response = await call_next(request)
    for name, value in _SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)
    response.headers.setdefault("Cache-Control", "no-store")
    return response


@app.middleware("http")
async def json_guard(request: Request, call_next):
    """Reject write requests that are not JSON or declare an oversized body.

    An absent Content-Type is allowed (bodiless DELETE, logout). Body size is
    judged from Content-Length; a missing header is left to the server's limits.
    """
    if request.method in _JSON_WRITE_METHODS:
        content_type = request.headers.get("content-type", "")
        if content_type and not content_type.lower().startswith("application/json"):
            return _error_json(415, "unsupported_media_type", "Content-Type must be application/json.")
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                too_large = int(content_length) > _settings.max_body_bytes
            except ValueError:
                return _error_json(400, "validation_error", "Invalid Content-Length header.")
            if too_large:
                return _error_json(400, "validation_error", "Request body too large.")
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Pattern: Interceptor / Chain of Responsibility. Every request passes through
# this coroutine before reaching any route handler. We capture wall-clock time
# before and after call_next so we can report latency on every response.
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


app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])
app.include_router(admin_router, tags=["Admin"])
app.include_router(protocols_router)
app.include_router(suggest_router)
app.include_router(federation_router)


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render domain errors raised by stores, auth helpers, and routes.

    500-class AppErrors are logged; their message is still the safe,
    user-facing one chosen where they were raised.
    """
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _error_json(exc.status_code, exc.code, exc.message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded.

    Retry-After tells clients how many seconds to wait before retrying.
    """
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_json(429, "rate_limited", "Too many requests.", detail=str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with a structured error when the body or query params fail validation.

    Malformed JSON, missing fields, unknown fields, and bad types all land here.
    """
    return _error_json(400, "validation_error", "Request validation failed.", detail=str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Dependencies raise HTTPException with detail={"code", "message"}. When
    detail is already a structured dict, use it directly as the error field.
    exc.headers is forwarded so the approval gate can clear the session cookie.
    """
    if isinstance(exc.detail, dict):
        response = JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    else:
        response = _error_json(exc.status_code, f"http_{exc.status_code}", str(exc.detail))
    for name, value in (exc.headers or {}).items():
        response.headers.append(name, value)
    return response


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    Security note: the raw exception is written to the log only, never to the
    response body. The client receives only a generic message.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_json(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/api/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and the state of each dependency."""
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database = "ok"
    except Exception:
        logger.exception("Health check: database unreachable")
        database = "unavailable"
    components = {
        "database": database,
        "federation": "configured" if request.app.state.federation is not None else "disabled",
        "suggestions": "configured" if request.app.state.suggester is not None else "disabled",
    }
    return HealthResponse(status="ok" if database == "ok" else "degraded", version=API_VERSION, components=components)
