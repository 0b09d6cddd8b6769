"""API routers."""

from fastapi import APIRouter

from tunedock.api.routers import catalog, providers

api_router = APIRouter()
api_router.include_router(providers.router)
api_router.include_router(catalog.router)

__all__ = ["api_router"]
