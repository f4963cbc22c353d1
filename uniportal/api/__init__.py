from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from uniportal.api.routers import applications, auth, catalog, dashboard, documents, notifications, profiles, reviews
from uniportal.auth import SessionProvider
from uniportal.config import Settings, get_settings
from uniportal.db import get_session_factory
from uniportal.errors import (
    AccessDeniedError,
    GatewayError,
    NotFoundError,
    PersistenceError,
    ReferentialIntegrityError,
    ValidationError,
)
from uniportal.gateway import Gateway
from uniportal.log import configure_logging
from uniportal.storage import LocalFileStore

logger = logging.getLogger(__name__)

# Most specific first: ReferentialIntegrityError is a PersistenceError.
ERROR_STATUS = (
    (ValidationError, 422),
    (NotFoundError, 404),
    (AccessDeniedError, 403),
    (ReferentialIntegrityError, 409),
    (PersistenceError, 503),
)


def status_for(exc: GatewayError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return 500


def create_app(settings: Settings | None = None, session_factory: sessionmaker | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(title="University Application Portal API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    factory = session_factory or get_session_factory()
    app.state.gateway = Gateway(factory)
    app.state.sessions = SessionProvider(factory, ttl_minutes=settings.SESSION_TTL_MIN)
    app.state.file_store = LocalFileStore(
        settings.STORAGE_ROOT, settings.STORAGE_PUBLIC_URL, max_bytes=settings.MAX_UPLOAD_MB * 1024 * 1024
    )

    @app.exception_handler(GatewayError)
    async def handle_gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
        code = status_for(exc)
        if code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(
            status_code=code,
            content={"detail": exc.message, "error": type(exc).__name__, "retryable": exc.retryable},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("%s %s crashed", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "internal error", "error": "InternalError", "retryable": False},
        )

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    for module in (auth, profiles, applications, documents, catalog, reviews, notifications, dashboard):
        app.include_router(module.router)

    return app
