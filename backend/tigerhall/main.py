"""FastAPI application entrypoint and configuration.

This module provides the main FastAPI application factory that configures
logging, sets up CORS middleware, includes the tiger sighting router,
registers the error handler that maps service error kinds to HTTP status
codes, and exposes a health check endpoint for monitoring.

Example:
    The application can be run with uvicorn:
        $ uvicorn tigerhall.main:app --reload

    Or imported and used programmatically:
        >>> from tigerhall.main import app
        >>> # Use app in ASGI server
"""

import fastapi
from fastapi.middleware import cors

from tigerhall.api import errors as api_errors
from tigerhall.api import tigers
from tigerhall.core import config, errors, logs


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Configures logging from settings, includes the tigers router, maps
    SightingError kinds to status codes and adds a health check endpoint.
    CORS origins are configured from settings.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    settings = config.get_settings()
    logs.configure_logging(settings)

    app = fastapi.FastAPI(title="Tiger Sighting", version="0.1.0")

    app.include_router(tigers.router)
    app.add_exception_handler(
        errors.SightingError,
        api_errors.sighting_error_handler,  # type: ignore[arg-type]
    )

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
