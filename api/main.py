"""
api/main.py -- FastAPI application factory for listauth.

create_app(app_config) serves an AppConfig (usually the output of
Auth.with_auth()) over HTTP:

  POST /api/graphql   -- every auth operation (api/routes/graphql.py)
  GET  /api/health    -- liveness + database check
  /admin/*            -- admin page redirect middleware only; the admin UI
                         itself is rendered elsewhere

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. log_requests       -- method, path, status and latency for every request
  2. admin_pages        -- page middleware redirects under ADMIN_PATH
  3. CORSMiddleware     -- adds CORS headers for allowed browser origins
  4. SlowAPIMiddleware  -- enforces per-route rate limits from api.limiter

Lifespan opens the Database (unless one is injected, as tests do) and
closes it on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text as sql_text

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.graphql import router as graphql_router
from auth.dependencies import build_context
from auth.session import SessionStrategy
from core.config import get_settings
from core.models import AppConfig
from core.schema import build_schema
from core.store import Database

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("listauth.api")


def create_app(app_config: AppConfig, database: Optional[Database] = None) -> FastAPI:
    """Build the ASGI app for app_config.

    The GraphQL schema is built here, at setup time, so schema errors (bad
    field names in extensions, duplicate types) fail before the server
    accepts a request.
    """
    settings = get_settings()
    schema = build_schema(app_config)

    # ---------------------------------------------------------------------------
    # Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
    # ---------------------------------------------------------------------------

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("listauth API starting up")
        owns_db = database is None
        app.state.db = database if database is not None else Database(app_config, settings.database_url)
        logger.info("Database initialized (%s)", ", ".join(app.state.db.lists) or "no lists")

        yield

        if owns_db:
            app.state.db.close()
        logger.info("listauth API shutdown complete")

    app = FastAPI(
        title="listauth API",
        description="Password, reset-link and magic-link authentication for configured lists.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.app_config = app_config
    app.state.schema = schema
    app.state.sessions = SessionStrategy()

    # -----------------------------------------------------------------------
    # Middleware stack
    #
    # add_middleware() wraps the app, so the LAST middleware added is the
    # outermost. Register innermost-first: SlowAPI, then CORS.
    # -----------------------------------------------------------------------

    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,
    )

    # Attach the shared limiter to app.state so SlowAPIMiddleware can locate it.
    app.state.limiter = limiter

    # -----------------------------------------------------------------------
    # Admin page middleware
    #
    # Runs the configured page_middleware for every request under ADMIN_PATH.
    # The page path handed to it is relative to the admin mount
    # (/admin/signin -> /signin) and so are the redirects it returns.
    # -----------------------------------------------------------------------

    @app.middleware("http")
    async def admin_pages(request: Request, call_next):
        admin = app_config.admin
        prefix = settings.admin_path.rstrip("/")
        path = request.url.path
        if admin is not None and admin.page_middleware is not None and (
            path == prefix or path.startswith(prefix + "/")
        ):
            context = build_context(request)
            page = path[len(prefix) :] or "/"
            redirect = await admin.page_middleware(page, context.session is not None, context)
            if redirect is not None:
                return RedirectResponse(prefix + redirect.to, status_code=302)
        return await call_next(request)

    # -----------------------------------------------------------------------
    # Request logging middleware
    #
    # Registered last so it is the outermost layer and the latency includes
    # the admin redirect decision.
    # -----------------------------------------------------------------------

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

    app.include_router(graphql_router, prefix="/api", tags=["GraphQL"])

    # -----------------------------------------------------------------------
    # Exception handlers
    #
    # All handlers return the same ErrorResponse envelope so API clients can
    # parse errors uniformly without inspecting status codes.
    # -----------------------------------------------------------------------

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        """Return 429 with a structured error when a rate limit is exceeded."""
        retry_after = int(getattr(exc, "retry_after", 60))
        response = JSONResponse(
            status_code=429,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="rate_limited",
                    message="Too many requests.",
                    detail=str(exc),
                )
            ).model_dump(),
        )
        response.headers["Retry-After"] = str(retry_after)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Return 422 with structured error when the request body fails validation."""
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="validation_error",
                    message="Request validation failed.",
                    detail=str(exc.errors()),
                )
            ).model_dump(),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        if isinstance(exc.detail, dict):
            return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all handler for unexpected server errors.

        The raw exception goes to the log only, never to the response body.
        """
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error=ErrorDetail(code="internal_error", message="An unexpected error occurred.")
            ).model_dump(),
        )

    # -----------------------------------------------------------------------
    # Health endpoint -- no rate limit, no auth
    # -----------------------------------------------------------------------

    @app.get("/api/health", tags=["Health"])
    async def health(request: Request) -> HealthResponse:
        """Return API liveness, version and a database round-trip check."""
        db_status = "ok"
        try:
            with request.app.state.db.engine.connect() as conn:
                conn.execute(sql_text("SELECT 1"))
        except Exception:
            logger.exception("Health check: database unreachable")
            db_status = "error"
        return HealthResponse(
            status="healthy" if db_status == "ok" else "degraded",
            version=VERSION,
            components={"app": "ok", "database": db_status},
        )

    return app
