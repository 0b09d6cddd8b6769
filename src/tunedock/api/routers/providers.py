"""Provider management endpoints (list, install, remove, enable, user variables).

Hey future me - the registry never raises for expected failures, it hands back
InstallResult/OperationResult. This router just maps `success=False` onto a
4xx with the registry's message so the "add provider" UI can show it verbatim.
"""

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, status

from tunedock.api.dependencies import get_registry
from tunedock.api.schemas import (
    EnabledRequest,
    InstallRequest,
    InstallResponse,
    OperationResponse,
    ProviderInfoSchema,
    VariableRequest,
)
from tunedock.domain.exceptions import (
    BuiltinProviderError,
    InstallErrorReason,
    ProviderNotFoundError,
)
from tunedock.infrastructure.providers import (
    InstallResult,
    ProviderRegistry,
    RegistryEntry,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/providers", tags=["Providers"])

_INSTALL_FAILURE_STATUS = {
    InstallErrorReason.NEWER_VERSION_PRESENT: status.HTTP_409_CONFLICT,
    InstallErrorReason.BUILTIN_CONFLICT: status.HTTP_409_CONFLICT,
    InstallErrorReason.CANNOT_PARSE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InstallErrorReason.VERSION_INCOMPATIBLE: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InstallErrorReason.EMPTY_SOURCE: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def _raise_install_failure(result: InstallResult) -> NoReturn:
    code = status.HTTP_400_BAD_REQUEST
    if result.reason is not None:
        code = _INSTALL_FAILURE_STATUS.get(result.reason, code)
    raise HTTPException(status_code=code, detail=result.message)


def _require(registry: ProviderRegistry, platform: str) -> RegistryEntry:
    entry = registry.get(platform)
    if entry is None:
        raise ProviderNotFoundError(platform)
    return entry


@router.get("", response_model=list[ProviderInfoSchema])
async def list_providers(
    registry: ProviderRegistry = Depends(get_registry),
) -> list[ProviderInfoSchema]:
    """Built-ins first, then installed providers in their stable order."""
    return [ProviderInfoSchema.model_validate(info) for info in registry.list_info()]


@router.post("/install", response_model=InstallResponse)
async def install_provider(
    request: InstallRequest,
    registry: ProviderRegistry = Depends(get_registry),
) -> InstallResponse:
    """Install a provider from source text or a URL.

    "Already installed" counts as success.
    """
    if request.url is not None:
        result = await registry.install_from_url(request.url, request.skip_version_check)
    else:
        result = await registry.install(
            request.source_text or "", request.source_path, request.skip_version_check
        )

    if not result.success:
        _raise_install_failure(result)
    return InstallResponse.model_validate(result)


@router.post("/{platform}/update", response_model=InstallResponse)
async def update_provider(
    platform: str,
    registry: ProviderRegistry = Depends(get_registry),
) -> InstallResponse:
    """Re-install a provider from its declared src_url."""
    _require(registry, platform)
    result = await registry.update_from_src_url(platform)
    if not result.success:
        _raise_install_failure(result)
    return InstallResponse.model_validate(result)


@router.delete("/{platform}", response_model=OperationResponse)
async def remove_provider(
    platform: str,
    registry: ProviderRegistry = Depends(get_registry),
) -> OperationResponse:
    """Remove an installed provider (built-ins can't be removed)."""
    if _require(registry, platform).builtin:
        raise BuiltinProviderError(platform)
    result = await registry.remove(platform)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
    return OperationResponse.model_validate(result)


@router.put("/{platform}/enabled", response_model=OperationResponse)
async def set_provider_enabled(
    platform: str,
    request: EnabledRequest,
    registry: ProviderRegistry = Depends(get_registry),
) -> OperationResponse:
    _require(registry, platform)
    result = await registry.set_enabled(platform, request.enabled)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
    return OperationResponse.model_validate(result)


@router.put("/{platform}/variables/{key}", response_model=OperationResponse)
async def set_provider_variable(
    platform: str,
    key: str,
    request: VariableRequest,
    registry: ProviderRegistry = Depends(get_registry),
) -> OperationResponse:
    """Set one user variable; persisted before the response is sent."""
    _require(registry, platform)
    result = await registry.set_user_variable(platform, key, request.value)
    if not result.success:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.message)
    return OperationResponse.model_validate(result)
