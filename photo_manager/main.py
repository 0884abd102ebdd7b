"""
FastAPI Photo Manager application.

Configures:
- service container (stores, storage backend, audit log, services)
- CORS and request logging middlewares
- API routers
- database lifecycle and default administrator seeding
- exception handlers for photo management errors
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from photo_manager.config import Settings, get_settings
from photo_manager.dependencies.services import ServiceContainer
from photo_manager.exceptions import (
    ProcessingFailureError,
    QuotaExceededError,
    RegistrationError,
    StorageFailureError,
)
from photo_manager.middlewares.logging_middleware import LoggingMiddleware
from photo_manager.routers import admin_router, auth_router, health_router, photos_router
from photo_manager.services.auth import ensure_default_admin
from photo_manager.services.storage import StorageBackend
from photo_manager.utils.logger import get_request_id, log_error, log_info, setup_logging
from photo_manager.utils.metrics import ready

logger = logging.getLogger("photo_manager")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    container: ServiceContainer = app.state.container
    settings = container.settings

    await container.start()
    await ensure_default_admin(container.users, settings)

    ready.set(1)
    log_info(
        "Application startup completed",
        event="lifecycle",
        version=settings.app_version,
        environment=settings.environment.value,
        storage_backend=container.storage.name,
    )

    yield

    ready.set(0)
    log_info("Application shutdown initiated", event="lifecycle")
    await container.close()
    log_info("Shutdown completed", event="lifecycle")


def _error_response(status_code: int, detail: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "request_id": get_request_id(), **extra},
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(QuotaExceededError)
    async def quota_exceeded_handler(request: Request, exc: QuotaExceededError):
        status_code = (
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
            if exc.reason == QuotaExceededError.SIZE
            else status.HTTP_403_FORBIDDEN
        )
        return _error_response(status_code, str(exc), reason=exc.reason)

    @app.exception_handler(ProcessingFailureError)
    async def processing_failure_handler(request: Request, exc: ProcessingFailureError):
        return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), stage=exc.stage)

    @app.exception_handler(StorageFailureError)
    async def storage_failure_handler(request: Request, exc: StorageFailureError):
        return _error_response(
            status.HTTP_502_BAD_GATEWAY,
            "Photo storage is unavailable, please try again later",
            operation=exc.operation,
        )

    @app.exception_handler(RegistrationError)
    async def registration_error_handler(request: Request, exc: RegistrationError):
        return _error_response(status.HTTP_400_BAD_REQUEST, str(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Unhandled exception: log with context, answer 500 with the request id."""
        rid = get_request_id()
        log_error(
            "Unhandled exception occurred",
            error_type=type(exc).__name__,
            error_message=str(exc),
            error_code="INTERNAL_SERVER_ERROR",
            http_method=request.method,
            http_path=request.url.path,
            request_id=rid,
            event="exception",
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "request_id": rid,
            },
        )


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[StorageBackend] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: defaults to the cached environment settings
        storage: storage backend override; defaults to the configured one
    """
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="""
## Photo Manager

Photo asset management:

- **Uploads** checked against subscription limits (FREE, PRO, GOLD)
- **Processing** stages applied in order before storage (resize, sepia, blur)
- **Search** by hashtags, size, upload date and author
- **Undo** for uploads and edits made in the current session
- **Audit log** of every action, available to administrators
        """,
        openapi_tags=[
            {"name": "Authentication", "description": "Registration, login and guest sessions"},
            {"name": "Photos", "description": "Photo upload, search and management"},
            {"name": "Administration", "description": "Users, packages, statistics and audit log"},
            {"name": "Health", "description": "Health check and metrics"},
        ],
        lifespan=lifespan,
    )
    app.state.container = ServiceContainer.build(settings, storage=storage)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(photos_router)
    app.include_router(admin_router)

    @app.get("/", tags=["Root"], summary="API information")
    async def root():
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
        }

    return app
