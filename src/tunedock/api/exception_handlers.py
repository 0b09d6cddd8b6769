"""Custom exception handlers for the FastAPI application.

Domain exceptions raised by routes become proper HTTP responses instead of
leaking out as 500s with stack traces.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tunedock.domain.exceptions import (
    BuiltinProviderError,
    ConfigurationError,
    DomainException,
    ProviderNotFoundError,
)

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for domain exceptions.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(ProviderNotFoundError)
    async def provider_not_found_handler(
        request: Request, exc: ProviderNotFoundError
    ) -> JSONResponse:
        logger.info("Provider not found at %s: %s", request.url.path, exc.platform)
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message}
        )

    @app.exception_handler(BuiltinProviderError)
    async def builtin_provider_handler(
        request: Request, exc: BuiltinProviderError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.message}
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        logger.error("Configuration error at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": exc.message},
        )

    @app.exception_handler(DomainException)
    async def domain_exception_handler(
        request: Request, exc: DomainException
    ) -> JSONResponse:
        logger.warning("Domain error at %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST, content={"detail": exc.message}
        )
