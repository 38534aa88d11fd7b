"""
Notedly Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers.
Who:   uvicorn (`notedly serve`, or `uvicorn notedly.main:app`).

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware:  Request ID → Access Log → GZip → CORS │
    │                                                     │
    │  Routes:  /api/user  /api/boards  /api/notes        │
    │           /health                                   │
    │                                                     │
    │  Exception Handlers:                                │
    │   Validation→400  Auth→401  Denied→403/404          │
    │   NotFound→404  Conflict→409  Storage→503  DB→500   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, validate configuration, log readiness
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from notedly import __version__
from notedly.config import settings
from notedly.database import dispose_engine
from notedly.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    ConcurrentModificationError,
    DatabaseError,
    IdentifierConflictError,
    IdentityConflictError,
    NotedlyError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)
from notedly.middleware.logging import RequestLoggingMiddleware
from notedly.middleware.request_id import RequestIDMiddleware, request_id_var
from notedly.routes import boards, health, notes, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, level or settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Chatty at INFO; our access log replaces uvicorn's
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging(getattr(app.state, "log_level", None))
    logger.info("=" * 60)
    logger.info("Notedly Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health and the error bodies still work
        logger.error("Configuration error: %s", str(e))

    logger.info("Identity providers: %s", ", ".join(settings.oauth_provider_list))
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Notedly Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details: Optional[dict] = None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details is not None:
        body["details"] = details
    return body


def _not_found_response(message: str) -> JSONResponse:
    # Shared by NotFoundError and concealed denials: identical bodies
    return JSONResponse(status_code=404, content=_error_body("not_found", message))


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map Notedly exceptions to HTTP responses.

    Handler table:
        ValidationError              → 400
        AuthenticationError          → 401 (WWW-Authenticate: Bearer)
        AccessDeniedError            → 403, or 404 not_found when concealed
        NotFoundError                → 404
        IdentityConflictError        → 409
        IdentifierConflictError      → 409
        ConcurrentModificationError  → 409 + Retry-After
        StorageUnavailableError      → 503 + Retry-After
        DatabaseError                → 500
        NotedlyError / Exception     → 500

    Context dicts are logged, never returned, except for ValidationError
    where they name the offending field.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        details = {"field": exc.field} if exc.field else None
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, details),
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return JSONResponse(
            status_code=401,
            content=_error_body("unauthorized", exc.message),
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(AccessDeniedError)
    async def handle_access_denied(request: Request, exc: AccessDeniedError):
        logger.info(
            "[%s] Access denied: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        if exc.conceal:
            return _not_found_response(exc.message)
        return JSONResponse(status_code=403, content=_error_body("forbidden", exc.message))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _not_found_response(exc.message)

    @app.exception_handler(IdentityConflictError)
    async def handle_identity_conflict(request: Request, exc: IdentityConflictError):
        logger.warning("[%s] Identity conflict | Context: %s", request_id_var.get(""), exc.context)
        return JSONResponse(status_code=409, content=_error_body("identity_conflict", exc.message))

    @app.exception_handler(IdentifierConflictError)
    async def handle_identifier_conflict(request: Request, exc: IdentifierConflictError):
        return JSONResponse(status_code=409, content=_error_body("conflict", exc.message))

    @app.exception_handler(ConcurrentModificationError)
    async def handle_concurrent_modification(request: Request, exc: ConcurrentModificationError):
        logger.warning("[%s] Concurrent modification | Context: %s", request_id_var.get(""), exc.context)
        return JSONResponse(
            status_code=409,
            content=_error_body("concurrent_modification", exc.message),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(StorageUnavailableError)
    async def handle_storage_unavailable(request: Request, exc: StorageUnavailableError):
        logger.error("[%s] Storage unavailable | Context: %s", request_id_var.get(""), exc.context)
        return JSONResponse(
            status_code=503,
            content=_error_body("storage_unavailable", exc.message),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("[%s] Database error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content=_error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(NotedlyError)
    async def handle_notedly_error(request: Request, exc: NotedlyError):
        logger.error("[%s] Unhandled application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return JSONResponse(status_code=500, content=_error_body("server_error", exc.message))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=_error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(log_level: Optional[str] = None) -> FastAPI:
    app = FastAPI(
        title="Notedly API",
        description=(
            "Boards and notes with per-board visibility tiers and explicit "
            "read/write grants. Authenticate with `Authorization: Bearer <token>`."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Overrides settings.log_level for this app (`notedly serve --debug/--silent`)
    app.state.log_level = log_level

    register_exception_handlers(app)

    app.include_router(users.router)
    app.include_router(boards.router)
    app.include_router(notes.router)
    app.include_router(health.router)

    return app


app = create_app()
