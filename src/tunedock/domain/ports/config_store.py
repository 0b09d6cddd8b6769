"""Durable key/value store port for per-provider configuration."""

from abc import ABC, abstractmethod


class IConfigStore(ABC):
    """
    Key/value durable store.

    Hey future me – values are opaque strings (JSON in practice). Each
    set/delete must be atomic for its key: either the whole new value is
    visible afterwards or the old one is. Implementations RAISE on failure,
    the registry turns that into a rollback + structured result.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the stored value or None."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a key (no-op if absent)."""
        ...

    async def close(self) -> None:
        """Release resources (flush pending writes)."""
        return None
