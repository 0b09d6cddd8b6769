"""Shared fixtures for the tunedock test suite.

Hey future me - most tests need a real ProviderRegistry (it's cheap: in-memory
config store + a tmp provider directory). `make_registry` builds and initializes
one from plain provider objects, which the loader treats exactly like built-ins.
"""

from collections.abc import Awaitable, Callable
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
from fastapi import FastAPI

from tunedock.api.exception_handlers import register_exception_handlers
from tunedock.api.routers import api_router
from tunedock.application.services.aggregation_service import AggregationService
from tunedock.application.services.provider_host import ProviderHost
from tunedock.infrastructure.persistence import InMemoryConfigStore, ProviderConfigRepository
from tunedock.infrastructure.providers import ProviderLoader, ProviderRegistry, ProviderStorage

APP_VERSION = "1.0.0"

RegistryFactory = Callable[..., Awaitable[ProviderRegistry]]


class FlakyConfigStore(InMemoryConfigStore):
    """In-memory store whose writes can be made to fail on demand."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False

    async def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise RuntimeError("disk full")
        await super().set(key, value)

    async def delete(self, key: str) -> None:
        if self.fail_writes:
            raise RuntimeError("disk full")
        await super().delete(key)


def provider_source(
    platform: str = "demo",
    version: str = "1.0.0",
    extra: str = "",
) -> str:
    """Minimal module-style provider script with a working `search`."""
    return (
        f'platform = "{platform}"\n'
        f'version = "{version}"\n'
        "\n"
        "def search(query, page, media_type):\n"
        '    return {"is_end": True, "data": [{"id": "1", "title": query}]}\n'
        f"{extra}"
    )


def make_provider(platform: str, **methods: Any) -> SimpleNamespace:
    """Provider object with exactly the given capability methods."""
    return SimpleNamespace(platform=platform, version="1.0.0", **methods)


@pytest.fixture
def provider_dir(tmp_path: Path) -> Path:
    return tmp_path / "providers"


@pytest.fixture
def config_store() -> FlakyConfigStore:
    return FlakyConfigStore()


@pytest.fixture
def make_registry(provider_dir: Path, config_store: FlakyConfigStore) -> RegistryFactory:
    """Factory: `await make_registry(provider_a, provider_b, ...)`."""

    async def _make(*builtins: Any, **kwargs: Any) -> ProviderRegistry:
        registry = ProviderRegistry(
            loader=ProviderLoader(APP_VERSION),
            storage=ProviderStorage(provider_dir),
            config_repository=ProviderConfigRepository(config_store),
            builtin_providers=builtins,
            **kwargs,
        )
        await registry.initialize()
        return registry

    return _make


def build_api_app(registry: ProviderRegistry) -> FastAPI:
    """API app wired like the lifespan does it, minus the database."""
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(api_router)
    host = ProviderHost(registry)
    app.state.registry = registry
    app.state.provider_host = host
    app.state.aggregation = AggregationService(host)
    return app
