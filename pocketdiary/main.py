"""
Pocket Diary Backend: FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routers;
       lifespan() owns logging setup, config checks, the keep-alive task
       and engine disposal.
Who:   uvicorn (`uvicorn pocketdiary.main:app`) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌──────────┐ ┌────────────┐ ┌──────┐  │
    │  │ Req ID   │→│ Logging  │→│ Rate Limit │→│ CORS │  │
    │  └──────────┘ └──────────┘ └────────────┘ └──────┘  │
    │                                                     │
    │  Routes:                                            │
    │  ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌────────┐  │
    │  │/api/users│ │/api/notes│ │/api/chat │ │/health │  │
    │  └──────────┘ └──────────┘ └──────────┘ └────────┘  │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌───────────────────────────────────────────────┐  │
    │  │ Validation→400 │ Auth→401 │ Dup→409 │ Chat→503│  │
    │  └───────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pocketdiary import __version__
from pocketdiary import database
from pocketdiary.config import settings
from pocketdiary.exceptions import (
    AuthError,
    ChatServiceError,
    CircuitBreakerOpenError,
    CryptoError,
    DuplicateEmailError,
    PocketDiaryError,
    RateLimitExceededError,
    StorageError,
    ValidationError,
)
from pocketdiary.middleware.logging import RequestLoggingMiddleware
from pocketdiary.middleware.rate_limit import RateLimitMiddleware
from pocketdiary.middleware.request_id import RequestIDMiddleware, request_id_var
from pocketdiary.routes import chat, health, notes, users
from pocketdiary.services.keepalive import start_keepalive, stop_keepalive

logger = logging.getLogger(__name__)

GENERIC_SERVER_MESSAGE = "An internal error occurred. Please try again later."


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure root logging once, to stdout.

    Format: 2024-01-15T12:00:00 [INFO] pocketdiary.access: POST /api/notes 200 ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup:  logging, configuration check, keep-alive task.
    Shutdown: cancel keep-alive, dispose the engine's pool.
    """
    setup_logging()
    logger.info("=" * 60)
    logger.info("Pocket Diary Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving so /health can report the problem
        logger.error("Configuration error: %s", str(e))

    keepalive_task = start_keepalive(database.engine)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Pocket Diary Backend shutting down...")
    await stop_keepalive(keepalive_task)
    await database.dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_body(error: str, message: str, details=None) -> dict:
    body = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP responses.

    Handler hierarchy:
        ValidationError / RequestValidationError → 400
        AuthError (InvalidCredentials, UserNotFound) → 401
        DuplicateEmailError → 409
        RateLimitExceededError → 429
        CryptoError, StorageError → 500 (generic message)
        ChatServiceError, CircuitBreakerOpenError → 503
        PocketDiaryError (base), Exception → 500

    Responses never contain submitted values, SQL, cipher errors or stack
    traces; those go to the server log with the request ID.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        """Schema rejection; reports field locations and reasons, never the inputs."""
        details = [
            {
                "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        logger.warning("[%s] Request validation failed on %s", request_id_var.get(""), request.url.path)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", "Missing or invalid fields", details),
        )

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=400,
            content=_error_body("validation_error", exc.message, exc.context),
        )

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        logger.info("[%s] Auth rejected: %s", request_id_var.get(""), exc.message)
        return JSONResponse(status_code=401, content=_error_body("auth_error", exc.message))

    @app.exception_handler(DuplicateEmailError)
    async def handle_duplicate_email(request: Request, exc: DuplicateEmailError):
        return JSONResponse(status_code=409, content=_error_body("duplicate_email", exc.message))

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=_error_body("rate_limit_exceeded", exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(CryptoError)
    async def handle_crypto_error(request: Request, exc: CryptoError):
        rid = request_id_var.get("")
        logger.error("[%s] Crypto error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=500, content=_error_body("server_error", GENERIC_SERVER_MESSAGE))

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        rid = request_id_var.get("")
        logger.error("[%s] Storage error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=500, content=_error_body("server_error", GENERIC_SERVER_MESSAGE))

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=503,
            content=_error_body(
                "service_unavailable", exc.message, {"recovery_time": exc.recovery_time}
            ),
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(ChatServiceError)
    async def handle_chat_error(request: Request, exc: ChatServiceError):
        logger.error("[%s] Chat service error: %s", request_id_var.get(""), exc.message)
        headers = {}
        if exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        return JSONResponse(
            status_code=503,
            content=_error_body("chat_service_error", exc.message),
            headers=headers,
        )

    @app.exception_handler(PocketDiaryError)
    async def handle_app_error(request: Request, exc: PocketDiaryError):
        rid = request_id_var.get("")
        logger.error("[%s] Unhandled application error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(status_code=500, content=_error_body("server_error", GENERIC_SERVER_MESSAGE))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all; the stack trace is logged, never returned."""
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            type(exc).__name__,
            exc_info=True,
        )
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

def create_app() -> FastAPI:
    """
    Assemble a configured FastAPI instance.

    Tests call this for a fresh app and override get_db_session.
    """
    app = FastAPI(
        title="Pocket Diary API",
        description=(
            "Backend for a personal diary: encrypted accounts, date-scheduled "
            "encrypted notes and an assistant chat proxy."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in REVERSE order of addition:
    # RequestID → Logging → RateLimit → CORS → route
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(users.router)
    app.include_router(notes.router)
    app.include_router(chat.router)
    app.include_router(health.router)

    return app


app = create_app()
