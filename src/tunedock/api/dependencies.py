"""Dependency injection for API endpoints."""

import logging
from typing import cast

from fastapi import HTTPException, Request

from tunedock.application.services.aggregation_service import AggregationService
from tunedock.application.services.provider_host import ProviderHost
from tunedock.infrastructure.providers import ProviderRegistry

logger = logging.getLogger(__name__)


# Hey future me, everything here comes from app.state, set up ONCE in lifecycle.lifespan().
# Missing attribute = startup didn't finish → 503, not a 500 with a traceback.
def _from_state(request: Request, name: str) -> object:
    if not hasattr(request.app.state, name):
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return getattr(request.app.state, name)


def get_registry(request: Request) -> ProviderRegistry:
    """Get the provider registry from app state."""
    return cast(ProviderRegistry, _from_state(request, "registry"))


def get_provider_host(request: Request) -> ProviderHost:
    """Get the provider host from app state."""
    return cast(ProviderHost, _from_state(request, "provider_host"))


def get_aggregation_service(request: Request) -> AggregationService:
    """Get the aggregation service from app state."""
    return cast(AggregationService, _from_state(request, "aggregation"))
