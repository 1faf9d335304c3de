"""FastAPI application factory for PhotoMirror.

This module creates and configures the FastAPI application with:
- Lifespan management for the gallery facade and its cache sweeper
- Middleware configuration (CORS, request ID, logging)
- Exception handlers
- API routers
"""

import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from photomirror.config import Settings, get_settings
from photomirror.core.exceptions import CancellationError, PhotoMirrorError
from photomirror.core.logging import (
    clear_correlation_id,
    configure_logging,
    get_logger,
    set_correlation_id,
)
from photomirror.schemas.common import HealthCheckResponse
from photomirror.services.gallery import (
    create_gallery_facade,
    get_gallery_facade,
    set_gallery_facade,
)

# Initialize logger for this module
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan events.

    Builds the gallery facade, starts the cache sweeper, and on shutdown
    stops the sweeper and closes the upstream HTTP client.

    Args:
        app: The FastAPI application instance

    Yields:
        None: Control back to the application
    """
    settings: Settings = app.state.settings

    # ========================================
    # Startup
    # ========================================
    configure_logging(settings)
    startup_logger = get_logger(__name__)

    facade = create_gallery_facade(settings)
    facade.start(settings.cache_sweep_interval)
    set_gallery_facade(facade)

    if not settings.has_credentials:
        startup_logger.warning("smugmug_credentials_missing")

    startup_logger.info(
        "Application starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.app_env.value,
        debug=settings.debug,
    )

    yield

    # ========================================
    # Shutdown
    # ========================================
    await facade.aclose()
    set_gallery_facade(None)

    startup_logger.info("Application shutting down", app_name=settings.app_name)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override for testing

    Returns:
        FastAPI: Configured application instance
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Resilient read access to a SmugMug photo gallery: cached, "
            "coalesced, OAuth-signed album, image and EXIF lookups."
        ),
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ========================================
    # Middleware
    # ========================================
    configure_middleware(app, settings)

    # ========================================
    # Exception Handlers
    # ========================================
    configure_exception_handlers(app)

    # ========================================
    # Routes
    # ========================================
    configure_routes(app)

    return app


def configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure application middleware.

    Args:
        app: The FastAPI application instance
        settings: Application settings
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.is_development else [],
        allow_credentials=True,
        allow_methods=["GET", "DELETE"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next: Any) -> Any:
        """Log requests and responses with correlation ID."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        set_correlation_id(request_id)

        request_logger = get_logger("photomirror.request")
        start_time = time.perf_counter()

        request_logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            request_logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            request_logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
                error=str(exc),
            )
            raise

        finally:
            clear_correlation_id()


def configure_exception_handlers(app: FastAPI) -> None:
    """Configure global exception handlers.

    Args:
        app: The FastAPI application instance
    """
    exception_logger = get_logger("photomirror.exceptions")

    @app.exception_handler(PhotoMirrorError)
    async def photomirror_exception_handler(
        request: Request, exc: PhotoMirrorError
    ) -> JSONResponse:
        """Handle PhotoMirror exceptions with structured error response."""
        request_id = getattr(request.state, "request_id", None)

        log_kwargs = {
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "path": request.url.path,
        }
        # Cancellation is caller intent, not a failure
        if isinstance(exc, CancellationError):
            exception_logger.info("Request cancelled", **log_kwargs)
        elif exc.status_code >= 500:
            exception_logger.error("Application error", **log_kwargs)
        else:
            exception_logger.warning("Client error", **log_kwargs)

        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(request_id=request_id),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions with a consistent error response."""
        request_id = getattr(request.state, "request_id", None)

        exception_logger.exception(
            "Unhandled exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_SERVER_ERROR",
                    "message": "An unexpected error occurred",
                    "request_id": request_id,
                }
            },
        )


def configure_routes(app: FastAPI) -> None:
    """Configure application routes.

    Args:
        app: The FastAPI application instance
    """

    @app.get(
        "/health/live",
        tags=["Health"],
        summary="Liveness probe",
        description="Returns OK if the service is running",
    )
    async def liveness() -> dict[str, str]:
        """Liveness probe for container orchestration."""
        return {"status": "ok"}

    @app.get(
        "/health/ready",
        tags=["Health"],
        summary="Readiness probe",
        description="Returns OK if upstream credentials and the facade are ready",
        response_model=HealthCheckResponse,
    )
    async def readiness(request: Request) -> HealthCheckResponse:
        """Readiness probe checking configuration and background tasks."""
        settings: Settings = request.app.state.settings

        try:
            facade = get_gallery_facade()
        except RuntimeError:
            facade = None

        credentials_ok = settings.has_credentials
        facade_ok = facade is not None
        sweeper_ok = facade is not None and facade.cache.sweeper_running

        if credentials_ok and facade_ok and sweeper_ok:
            overall_status = "ok"
        elif credentials_ok and facade_ok:
            overall_status = "degraded"
        else:
            overall_status = "error"

        return HealthCheckResponse(
            status=overall_status,
            checks={
                "credentials": "ok" if credentials_ok else "error",
                "gallery": "ok" if facade_ok else "error",
                "cache_sweeper": "ok" if sweeper_ok else "error",
            },
        )

    @app.get(
        "/",
        tags=["Root"],
        summary="API root",
        description="Returns API information",
    )
    async def root(request: Request) -> dict[str, str]:
        """API root endpoint with service information."""
        settings: Settings = request.app.state.settings
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health/live",
        }

    from photomirror.api.v1.router import router as v1_router

    app.include_router(v1_router, prefix="/api/v1")


# Create the application instance
app = create_app()


def cli() -> None:
    """Entry point for running the API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "photomirror.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.value.lower(),
    )


if __name__ == "__main__":
    cli()
