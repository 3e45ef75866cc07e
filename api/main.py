"""
api/main.py -- FastAPI application entry point for RunShop.

Exposes the auth core and the product search collaborator over HTTP for the
storefront and the admin console.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests          -- method, path, status, latency, client
  2. security_headers      -- nosniff, frame denial, referrer policy, HSTS
  3. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  4. CORSMiddleware        -- credentialed CORS for the configured origins
  5. SlowAPIMiddleware     -- global per-IP limit plus per-route auth limits
  6. SessionMiddleware     -- OAuth state between redirect and callback

Lifespan opens the user and product stores and wires the auth services into
app.state; shutdown closes the stores.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from api.limiter import limiter
from api.models import ErrorResponse, HealthResponse
from api.routes.v1.search import router as search_router
from api.routes.v1.users import router as users_router
from auth.accounts import AccountService
from auth.errors import AuthError, ErrorKind
from auth.oauth import build_oauth
from auth.store import UserStore
from auth.tokens import SessionCookie, TokenService
from catalog.store import ProductStore
from core.config import Settings, get_settings

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("runshop.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# State wiring
# ---------------------------------------------------------------------------


def configure_state(app: FastAPI, settings: Settings, user_store: UserStore, product_store: ProductStore) -> None:
    """Build the auth services from settings and attach them to app.state.

    Called once from lifespan. Tests call it with in-memory stores.
    """
    tokens = TokenService.from_settings(settings)
    app.state.user_store = user_store
    app.state.catalog = product_store
    app.state.tokens = tokens
    app.state.session_cookie = SessionCookie.from_settings(settings)
    app.state.accounts = AccountService(user_store, tokens, bcrypt_rounds=settings.bcrypt_rounds)
    app.state.oauth = build_oauth(settings)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open stores on startup, close them on shutdown."""
    logger.info("RunShop API starting up (environment=%s)", _settings.environment)
    user_store = UserStore(_settings.database_url)
    product_store = ProductStore(_settings.database_url)
    configure_state(app, _settings, user_store, product_store)
    logger.info("Stores initialized")

    yield

    user_store.close()
    product_store.close()
    logger.info("RunShop API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="RunShop API",
    description="Authentication, authorization and product search for the RunShop storefront.",
    version=API_VERSION,
    lifespan=lifespan,
    # Schema browsing is a development convenience only.
    docs_url=None if _settings.is_production else "/docs",
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette's add_middleware() wraps everything registered before it, so
# the last one added runs first. Registered innermost first:
# Session <- SlowAPI <- CORS <- TrustedHost. CORS must stay outside SlowAPI
# or 429 responses lose their CORS headers.
# ---------------------------------------------------------------------------

# authlib keeps the OAuth state value in the session between the redirect
# to Google and the callback.
app.add_middleware(SessionMiddleware, secret_key=_settings.secret_key, https_only=_settings.is_production)

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=_settings.allowed_hosts)

# SlowAPIMiddleware locates the limiter through app.state.limiter.
app.state.limiter = limiter


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    if _settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return response


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

app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(search_router, prefix="/api/v1", tags=["Search"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render an AuthError; token failures also clear the session cookie."""
    response = JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(code=exc.kind.value, message=exc.message, errors=exc.errors).model_dump(),
    )
    if exc.clear_session:
        cookie = getattr(request.app.state, "session_cookie", None) or SessionCookie.from_settings(_settings)
        cookie.clear(response)
    return response


def _retry_after_seconds(exc: RateLimitExceeded) -> int:
    """Length of the exceeded limit's window; 60 when it cannot be read."""
    limit = getattr(exc, "limit", None)
    item = getattr(limit, "limit", None)
    if item is None:
        return 60
    return int(item.get_expiry())


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After when a rate limit is exceeded.

    Must stay synchronous: SlowAPIMiddleware replaces coroutine handlers
    with its own bare response.
    """
    retry_after = _retry_after_seconds(exc)
    response = JSONResponse(
        status_code=429,
        content=ErrorResponse(
            code="rate_limited",
            message="Too many requests, please try again later.",
        ).model_dump(),
    )
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and query params are plain invalid input: 400."""
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        errors.append(f"{loc}: {err.get('msg', 'invalid value')}" if loc else err.get("msg", "invalid value"))
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(
            code=ErrorKind.INVALID_INPUT.value,
            message="Request validation failed.",
            errors=errors,
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(code=f"http_{exc.status_code}", message=str(exc.detail)).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The exception is logged server-side only. The client receives a generic
    message with no exception text.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            code=ErrorKind.INTERNAL.value,
            message="An unexpected error occurred.",
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is reachable regardless of router
# registration. Exempt from rate limiting: load balancer probes must not be
# throttled.
# ---------------------------------------------------------------------------


@limiter.exempt
@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    components = {"app": "ok"}
    try:
        request.app.state.user_store.ping()
        components["database"] = "ok"
    except Exception:
        logger.exception("Health check: database unreachable")
        components["database"] = "error"
    status = "healthy" if components["database"] == "ok" else "degraded"
    return HealthResponse(status=status, version=API_VERSION, components=components)
