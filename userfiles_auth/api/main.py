"""
FastAPI application for userfiles-auth.

Main entry point that configures the FastAPI app with:
- Settings loading and logging
- Profile service and authentication provider (stored on app.state)
- Route registration
- Exception handlers for config errors
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import AuthSettings, load_settings, log_settings
from ..core.errors import InvalidIdentifierError, UserFilesConfigError
from ..core.logging_config import setup_logging
from ..services.auth_provider import UserFilesAuthProvider
from ..services.config_service import ProfileConfigService
from .routes import auth_router, health_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Log startup and release the provider on shutdown."""
    logger.info("Starting userfiles-auth API...")
    yield
    app.state.auth_provider.shutdown()
    logger.info("Shutting down userfiles-auth API...")


def create_app(settings: Optional[AuthSettings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use (default: loaded from the settings file)

    Returns:
        Configured FastAPI app instance.

    Raises:
        ConfigValidationError: If the settings file is invalid.
    """
    if settings is None:
        settings = load_settings()

    setup_logging(settings.log_level, settings.log_file)
    log_settings(settings)

    service = ProfileConfigService(
        home_dir=settings.resolved_home_dir(),
        cache_enabled=settings.cache_enabled,
        strict_duplicates=settings.strict_duplicates,
    )

    app = FastAPI(
        title="userfiles-auth",
        description="User-files authentication for a remote-desktop gateway",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    app.state.settings = settings
    app.state.auth_provider = UserFilesAuthProvider(service)

    app.include_router(health_router, prefix="/api/v1")
    app.include_router(auth_router, prefix="/api/v1")

    @app.exception_handler(InvalidIdentifierError)
    async def invalid_identifier_handler(
        request: Request, exc: InvalidIdentifierError
    ) -> JSONResponse:
        """Convert InvalidIdentifierError to 400 response."""
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(UserFilesConfigError)
    async def config_error_handler(
        request: Request, exc: UserFilesConfigError
    ) -> JSONResponse:
        """
        Convert unreadable or malformed config files to 500 responses.

        The file path and parser message are logged but not returned.
        """
        logger.error(f"Configuration error for {exc.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"detail": "Configuration could not be read."},
        )

    return app
