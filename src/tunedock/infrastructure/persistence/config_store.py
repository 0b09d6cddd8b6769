"""Durable provider configuration storage.

Two layers:
- SqlConfigStore: the raw key/value IConfigStore on top of the `provider_config` table.
- ProviderConfigRepository: typed read/write of one provider's {enabled, user_variables,
  order} blob, keyed "provider_config_<platform>". Corrupted blobs are discarded and
  replaced by defaults instead of failing startup.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import delete, select

from tunedock.domain.exceptions import ConfigPersistError
from tunedock.domain.ports import IConfigStore
from tunedock.infrastructure.observability.log_messages import LogMessages
from tunedock.infrastructure.persistence.database import Database
from tunedock.infrastructure.persistence.models import ProviderConfigModel, utc_now

logger = logging.getLogger(__name__)

CONFIG_KEY_PREFIX = "provider_config_"


def config_key(platform: str) -> str:
    """Durable store key for a provider."""
    return f"{CONFIG_KEY_PREFIX}{platform}"


class SqlConfigStore(IConfigStore):
    """IConfigStore backed by the database. Each call is its own transaction."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def get(self, key: str) -> str | None:
        async with self._db.session_scope() as session:
            result = await session.execute(
                select(ProviderConfigModel.value).where(ProviderConfigModel.key == key)
            )
            return result.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        async with self._db.session_scope() as session:
            row = await session.get(ProviderConfigModel, key)
            if row is None:
                session.add(ProviderConfigModel(key=key, value=value))
            else:
                row.value = value
                row.updated_at = utc_now()

    async def delete(self, key: str) -> None:
        async with self._db.session_scope() as session:
            await session.execute(
                delete(ProviderConfigModel).where(ProviderConfigModel.key == key)
            )


class InMemoryConfigStore(IConfigStore):
    """Process-local IConfigStore (no durability). Used when no database is wired."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


@dataclass
class ProviderConfig:
    """Persisted operational state of one registry entry."""

    enabled: bool = True
    user_variables: dict[str, str] = field(default_factory=dict)
    order: int | None = None

    def to_json(self) -> str:
        data: dict[str, Any] = {
            "enabled": self.enabled,
            "user_variables": dict(self.user_variables),
        }
        if self.order is not None:
            data["order"] = self.order
        return json.dumps(data, sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> "ProviderConfig":
        """Parse a stored blob.

        Raises:
            ValueError: If the blob isn't valid JSON of the expected shape
        """
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("config is not an object")

        enabled = data.get("enabled", True)
        if not isinstance(enabled, bool):
            raise ValueError("'enabled' is not a boolean")

        variables = data.get("user_variables", {})
        if not isinstance(variables, dict):
            raise ValueError("'user_variables' is not an object")

        order = data.get("order")
        if order is not None and (not isinstance(order, int) or isinstance(order, bool)):
            raise ValueError("'order' is not an integer")

        return cls(
            enabled=enabled,
            user_variables={str(k): str(v) for k, v in variables.items()},
            order=order,
        )


class ProviderConfigRepository:
    """Typed access to persisted provider config."""

    def __init__(self, store: IConfigStore) -> None:
        self._store = store

    async def load(self, platform: str) -> ProviderConfig:
        """Load config for a provider; missing or corrupted → defaults.

        Read errors from the store itself are NOT swallowed - startup should
        fail loudly if the database is unreachable.
        """
        key = config_key(platform)
        raw = await self._store.get(key)
        if raw is None:
            return ProviderConfig()
        try:
            return ProviderConfig.from_json(raw)
        except (ValueError, TypeError) as e:
            logger.warning(LogMessages.config_corrupted(key, str(e)))
            await self._store.delete(key)
            return ProviderConfig()

    async def save(self, platform: str, config: ProviderConfig) -> None:
        """Persist config for a provider.

        Raises:
            ConfigPersistError: If the durable write failed
        """
        key = config_key(platform)
        try:
            await self._store.set(key, config.to_json())
        except Exception as e:
            logger.error(LogMessages.config_persist_failed(key, str(e)))
            raise ConfigPersistError(key, e) from e

    async def delete(self, platform: str) -> None:
        """Delete persisted config.

        Raises:
            ConfigPersistError: If the durable delete failed
        """
        key = config_key(platform)
        try:
            await self._store.delete(key)
        except Exception as e:
            logger.error(LogMessages.config_persist_failed(key, str(e)))
            raise ConfigPersistError(key, e) from e

    async def close(self) -> None:
        await self._store.close()
