"""Application lifecycle management for startup and shutdown tasks.

Startup wires the provider stack in one place and hangs it on app.state:

    Database → SqlConfigStore → ProviderConfigRepository
    ProviderLoader + ProviderStorage + built-ins → ProviderRegistry
    ProviderRegistry → ProviderHost → AggregationService

There is exactly ONE registry per process. Routes reach it through
app.state (see api/dependencies.py), never through a module global.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tunedock.application.services.aggregation_service import AggregationService
from tunedock.application.services.provider_host import ProviderHost
from tunedock.config import Settings, get_settings
from tunedock.domain.exceptions import ConfigurationError
from tunedock.domain.ports import IConfigStore
from tunedock.infrastructure.integrations.http_pool import HttpClientPool
from tunedock.infrastructure.observability import configure_logging
from tunedock.infrastructure.persistence import (
    Database,
    ProviderConfigRepository,
    SqlConfigStore,
)
from tunedock.infrastructure.providers import (
    ProviderLoader,
    ProviderRegistry,
    ProviderStorage,
)
from tunedock.infrastructure.providers.builtin import default_builtin_providers

logger = logging.getLogger(__name__)


def _validate_sqlite_path(settings: Settings) -> None:
    """Make sure the SQLite file's directory exists before the engine is created."""
    db_path = settings._get_sqlite_db_path()
    if db_path is None:
        return
    try:
        if db_path.parent and str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug("Ensured SQLite parent directory exists: %s", db_path.parent)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create SQLite database directory '{db_path.parent}': {exc}. "
            "Update DATABASE__URL or adjust directory permissions."
        ) from exc


def build_registry(settings: Settings, config_store: IConfigStore) -> ProviderRegistry:
    """Construct (but don't initialize) the provider registry from settings."""
    builtins = (
        default_builtin_providers(settings.providers.local_library_path)
        if settings.providers.enable_builtin
        else []
    )
    return ProviderRegistry(
        loader=ProviderLoader(settings.app_version),
        storage=ProviderStorage(settings.providers.provider_dir),
        config_repository=ProviderConfigRepository(config_store),
        builtin_providers=builtins,
        download_timeout=settings.providers.download_timeout_seconds,
    )


# Listen future me, everything before `yield` runs at STARTUP, everything after at
# SHUTDOWN. The try/finally makes sure the registry, database and HTTP pool get
# closed even if startup blew up halfway.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles:
    - Logging configuration
    - Directory creation and database initialization
    - Provider registry startup (built-ins + provider directory)
    - Resource cleanup
    """
    settings = get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s %s", settings.app_name, settings.app_version)

    try:
        settings.ensure_directories()
        _validate_sqlite_path(settings)

        db = Database(settings)
        await db.create_tables()
        app.state.db = db
        logger.info("Database initialized: %s", settings.database.url)

        registry = build_registry(settings, SqlConfigStore(db))
        await registry.initialize()
        app.state.registry = registry

        host = ProviderHost(registry, call_timeout=settings.providers.call_timeout_seconds)
        app.state.provider_host = host
        app.state.aggregation = AggregationService(host)
        logger.info("Provider host ready (%d providers)", len(registry.list_entries()))

        yield
    finally:
        logger.info("Shutting down application")

        # 1. Registry first: waits for in-flight config writes
        try:
            if hasattr(app.state, "registry"):
                await app.state.registry.close()
                logger.info("Provider registry closed")
        except Exception as e:
            logger.exception("Error closing provider registry: %s", e)

        # 2. Database
        try:
            if hasattr(app.state, "db"):
                await app.state.db.close()
                logger.info("Database connection closed")
        except Exception as e:
            logger.exception("Error closing database: %s", e)

        # 3. HTTP client pool (shared by install-from-URL and provider `http`)
        try:
            await HttpClientPool.close()
        except Exception as e:
            logger.exception("Error closing HTTP client pool: %s", e)
