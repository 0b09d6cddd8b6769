"""FastAPI application factory.

Run with:
    uvicorn tunedock.main:app
"""

from fastapi import FastAPI

from tunedock import __version__
from tunedock.api.exception_handlers import register_exception_handlers
from tunedock.api.routers import api_router
from tunedock.config import get_settings
from tunedock.infrastructure.lifecycle import lifespan
from tunedock.infrastructure.observability.middleware import RequestLoggingMiddleware


def create_app() -> FastAPI:
    """Build the application (providers are loaded in the lifespan)."""
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Host for runtime-loaded music provider scripts",
        lifespan=lifespan,
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": settings.app_version}

    return app


app = create_app()
