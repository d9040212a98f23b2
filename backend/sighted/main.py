"""
SightEd Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       the lifespan builds the document store and tears it down.
Who:   uvicorn (`uvicorn sighted.main:app`) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────────┐ ┌──────────┐ ┌─────────────────┐  │
    │  │  Rate Limit  │→│ Req ID   │→│  Logging        │  │
    │  └──────────────┘ └──────────┘ └─────────────────┘  │
    │                                                     │
    │  Routers:                                           │
    │  images · quiz · users · contact · auth · photos ·  │
    │  health                                             │
    │                                                     │
    │  Exception Handlers:                                │
    │  Validation→400 │ Auth→401 │ Quota→429 │ LLM→500    │
    │  Breaker→503    │ Upstream→passthrough              │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   logging → config check → document store (tables created for SQL)
    Shutdown:  close the store (disposes the SQL engine)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from sighted import __version__
from sighted.config import settings
from sighted.exceptions import (
    AuthenticationError,
    CircuitBreakerOpenError,
    ConflictError,
    LLMServiceError,
    NotFoundError,
    QuotaExceededError,
    SightEdError,
    StorageError,
    UpstreamAuthError,
    UpstreamServiceError,
    ValidationError,
    VisionServiceError,
)
from sighted.middleware.logging import RequestLoggingMiddleware
from sighted.middleware.rate_limit import RateLimitMiddleware
from sighted.middleware.request_id import RequestIDMiddleware, request_id_var
from sighted.routes import auth, contact, health, images, photos, quiz, users
from sighted.storage import create_store

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once at startup.

    Format: 2024-05-01T12:00:00 [INFO] sighted.services.vision_service: ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "google.auth"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup builds the document store unless one was already attached to
    app.state (the test suite does this); shutdown closes what startup built.
    """
    setup_logging()
    logger.info("=" * 60)
    logger.info("SightEd Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Not fatal: health checks and non-Google routes keep working
        logger.error("Configuration error: %s", str(e))

    owns_store = getattr(app.state, "store", None) is None
    if owns_store:
        app.state.store = await create_store(settings)

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("SightEd Backend shutting down...")
    if owns_store:
        await app.state.store.close()
        app.state.store = None
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    content = {
        "error": error,
        "message": message,
        "details": details or None,
        "request_id": request_id_var.get(""),
    }
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and a single error body shape.

    Handler table:
        ValidationError, RequestValidationError → 400
        AuthenticationError, UpstreamAuthError  → 401
        NotFoundError                           → 404
        ConflictError                           → 409
        QuotaExceededError                      → 429 (details "QUOTA_EXCEEDED")
        UpstreamServiceError                    → upstream status (502 if unknown)
        LLMServiceError, VisionServiceError     → 500
        StorageError                            → 500 (generic message)
        CircuitBreakerOpenError                 → 503 + Retry-After
        SightEdError / Exception                → 500

    Internal details (SQL, stack traces) are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return _error_response(
            400,
            "validation_error",
            "Request parameters are invalid",
            jsonable_encoder(exc.errors()),
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication(request: Request, exc: AuthenticationError):
        return _error_response(401, "authentication_failed", exc.message)

    @app.exception_handler(UpstreamAuthError)
    async def handle_upstream_auth(request: Request, exc: UpstreamAuthError):
        logger.warning("[%s] Google rejected credentials: %s", request_id_var.get(""), exc.message)
        return _error_response(401, "unauthorized", exc.message, exc.context)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return _error_response(409, "conflict", exc.message)

    @app.exception_handler(QuotaExceededError)
    async def handle_quota(request: Request, exc: QuotaExceededError):
        logger.warning(
            "[%s] Quota exceeded (%s): %s",
            request_id_var.get(""),
            exc.service or "unknown",
            exc.message,
        )
        return _error_response(429, "quota_exceeded", exc.message, "QUOTA_EXCEEDED")

    @app.exception_handler(UpstreamServiceError)
    async def handle_upstream(request: Request, exc: UpstreamServiceError):
        logger.error("[%s] Upstream error: %s | %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(exc.status_code or 502, "upstream_error", exc.message, exc.context)

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return _error_response(
            503,
            "service_unavailable",
            exc.message,
            {"recovery_time": exc.recovery_time},
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(LLMServiceError)
    async def handle_llm_error(request: Request, exc: LLMServiceError):
        logger.error("[%s] LLM service error: %s", request_id_var.get(""), exc.message)
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        return _error_response(500, "llm_service_error", exc.message, exc.context, headers)

    @app.exception_handler(VisionServiceError)
    async def handle_vision_error(request: Request, exc: VisionServiceError):
        logger.error("[%s] Vision error: %s | %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "vision_service_error", exc.message)

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error("[%s] Storage error: %s | %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(SightEdError)
    async def handle_app_error(request: Request, exc: SightEdError):
        logger.error("[%s] Unhandled application error: %s", request_id_var.get(""), exc.message)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="SightEd API",
        description=(
            "Educational photo analysis. Upload a photo to get detected labels and "
            "landmarks, a generated description, scientific facts and a quiz."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
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
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(images.router)
    app.include_router(quiz.router)
    app.include_router(users.router)
    app.include_router(contact.router)
    app.include_router(auth.router)
    app.include_router(photos.router)

    return app


app = create_app()
