"""
Provider Registry - the ONE authoritative catalogue of providers.

Hey future me – this is the durable catalogue of built-in + installed providers!
It owns three things:
1. The entries (unit + enabled flag + order + user variable VALUES + install hash + path)
2. The install/upgrade/remove rules (idempotent installs, "newer version wins")
3. Persisting per-provider config via ProviderConfigRepository

Concurrency:
    Entries live in an immutable tuple that we REPLACE on every mutation
    (copy-on-write). Readers (`list_entries()`, `get()`, the Host fanning out) grab the
    current tuple without any lock and never see a half-applied install.
    Mutations (install/remove/set_enabled/set_user_variable) are serialized by
    ONE asyncio.Lock.

Durability:
    Config writes happen BEFORE the new tuple is published. If the write fails,
    the published state never changed - that's our rollback.

Error handling:
    Nothing is raised past this class's public methods for expected failures.
    Everything comes back as InstallResult / OperationResult so the
    "add provider" flow can render a message instead of crashing.

Usage:
    registry = ProviderRegistry(loader, storage, ProviderConfigRepository(store),
                                builtin_providers=[LocalFilesProvider(path)])
    await registry.initialize()
    result = await registry.install_from_url("https://example.com/provider.py")
    if not result.success:
        show(result.message)
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

import httpx

from tunedock.domain.dtos import ProviderInfo
from tunedock.domain.exceptions import (
    BuiltinProviderError,
    ConfigPersistError,
    InstallErrorReason,
    LoadErrorReason,
    ProviderInstallError,
    ProviderNotFoundError,
)
from tunedock.domain.ports.provider import LoadState, ProviderUnit
from tunedock.infrastructure.integrations.http_pool import HttpClientPool
from tunedock.infrastructure.observability.log_messages import LogMessages
from tunedock.infrastructure.persistence.config_store import (
    ProviderConfig,
    ProviderConfigRepository,
)
from tunedock.infrastructure.providers.loader import LoadOutcome, ProviderLoader
from tunedock.infrastructure.providers.sandbox import ClientFactory, ProviderEnv
from tunedock.infrastructure.providers.storage import ProviderStorage
from tunedock.infrastructure.providers.versioning import is_newer

logger = logging.getLogger(__name__)

MSG_INSTALLED = "Provider installed"
MSG_ALREADY_INSTALLED = "Provider is already installed"
MSG_NEWER_VERSION = "A newer version of the provider is already installed"
MSG_EMPTY_SOURCE = "Provider source is empty"
MSG_CANNOT_PARSE = "Provider cannot be parsed"
MSG_VERSION_INCOMPATIBLE = "Provider is not compatible with this app version"

_LOAD_TO_INSTALL_REASON = {
    LoadErrorReason.CANNOT_PARSE: InstallErrorReason.CANNOT_PARSE,
    LoadErrorReason.VERSION_INCOMPATIBLE: InstallErrorReason.VERSION_INCOMPATIBLE,
}


class RegistryEvent(str, Enum):
    """Registry change notifications."""

    INSTALLED = "installed"
    REMOVED = "removed"
    ENABLED_CHANGED = "enabled-changed"


# listener(event, platform, details)
RegistryListener = Callable[[RegistryEvent, str, dict[str, Any]], None]


@dataclass(frozen=True)
class RegistryEntry:
    """
    A loaded unit plus its mutable operational state.

    The registry never mutates an entry, it publishes a replaced copy.
    Treat `user_variables` as read-only.
    """

    unit: ProviderUnit
    hash: str
    source_path: str
    state: LoadState = LoadState.MOUNTED
    builtin: bool = False
    enabled: bool = True
    order: int = 0
    user_variables: dict[str, str] = field(default_factory=dict)
    env: ProviderEnv | None = None
    error_reason: LoadErrorReason | None = None

    @property
    def platform(self) -> str:
        return self.unit.platform

    @property
    def version(self) -> str:
        return self.unit.version

    @property
    def mounted(self) -> bool:
        return self.state == LoadState.MOUNTED

    @property
    def invokable(self) -> bool:
        """True if the Host may invoke this entry's capabilities."""
        return self.enabled and self.mounted

    def to_config(self) -> ProviderConfig:
        return ProviderConfig(
            enabled=self.enabled,
            user_variables=dict(self.user_variables),
            order=self.order,
        )

    def to_info(self) -> ProviderInfo:
        unit = self.unit
        return ProviderInfo(
            platform=self.platform,
            version=self.version,
            hash=self.hash,
            enabled=self.enabled,
            order=self.order,
            builtin=self.builtin,
            state=self.state.value,
            author=unit.identity.author,
            src_url=unit.identity.src_url,
            source_path=self.source_path,
            error_reason=self.error_reason.value if self.error_reason else None,
            # Broken providers still render, just with nothing they can do
            capabilities=(
                sorted(c.value for c in unit.capabilities) if self.mounted else []
            ),
            supported_search_type=(
                sorted(t.value for t in unit.supported_search_type)
                if unit.supported_search_type is not None
                else None
            ),
            user_variable_definitions=list(unit.user_variable_definitions),
            user_variables=dict(self.user_variables),
        )


@dataclass
class InstallResult:
    """Structured outcome of an install attempt."""

    success: bool
    message: str
    platform: str | None = None
    install_hash: str | None = None
    reason: InstallErrorReason | None = None


@dataclass
class OperationResult:
    """Structured outcome of enable/variable/remove operations."""

    success: bool
    message: str
    platform: str | None = None


class ProviderRegistry:
    """Catalogue of built-in and installed providers."""

    def __init__(
        self,
        loader: ProviderLoader,
        storage: ProviderStorage,
        config_repository: ProviderConfigRepository,
        builtin_providers: Sequence[Any] = (),
        client_factory: ClientFactory | None = None,
        download_timeout: float | None = None,
    ) -> None:
        """Initialize the registry (call `initialize()` before use).

        Args:
            loader: Builds units from source text / built-in objects
            storage: Directory holding installed provider sources
            config_repository: Durable per-provider config
            builtin_providers: Provider objects that are always present
            client_factory: Async factory for the httpx client used by install_from_url
            download_timeout: Per-request timeout for install_from_url
        """
        self._loader = loader
        self._storage = storage
        self._config = config_repository
        self._builtin_providers = list(builtin_providers)
        self._client_factory = client_factory or HttpClientPool.get_client
        self._download_timeout = download_timeout
        self._entries: tuple[RegistryEntry, ...] = ()
        self._lock = asyncio.Lock()
        self._listeners: dict[RegistryEvent, list[RegistryListener]] = {
            event: [] for event in RegistryEvent
        }
        self._initialized = False

    # =========================================================================
    # Startup / shutdown
    # =========================================================================

    async def initialize(self) -> None:
        """Load built-ins, enumerate the provider directory, apply persisted config.

        Hey future me – files that can't be parsed are skipped (the loader
        already logged why). Version-incompatible files stay listed in ERROR
        state so the user sees them and can remove them. Two files for the
        same platform? The newer version wins, the older file is deleted.
        """
        async with self._lock:
            builtins = await self._load_builtins()
            builtin_platforms = {entry.platform for entry in builtins}

            by_platform: dict[str, tuple[LoadOutcome, Path]] = {}
            for path in await self._storage.list_files():
                try:
                    source_text = await self._storage.read(path)
                except OSError as e:
                    logger.warning("Skipping unreadable provider file %s: %s", path, e)
                    continue

                outcome = self._loader.load_source(source_text, str(path))
                if outcome.error_reason == LoadErrorReason.CANNOT_PARSE:
                    continue
                if outcome.platform in builtin_platforms:
                    logger.warning(
                        "Skipping %s: platform '%s' is provided by a built-in",
                        path,
                        outcome.platform,
                    )
                    continue

                previous = by_platform.get(outcome.platform)
                if previous is not None:
                    prev_outcome, prev_path = previous
                    # A working unit beats an incompatible one, whatever the versions
                    if outcome.mounted != prev_outcome.mounted:
                        keep_new = outcome.mounted
                    else:
                        keep_new = is_newer(outcome.unit.version, prev_outcome.unit.version)
                    if keep_new:
                        await self._storage.delete(prev_path)
                    else:
                        await self._storage.delete(path)
                        continue
                by_platform[outcome.platform] = (outcome, path)

            installed: list[RegistryEntry] = []
            for position, (outcome, path) in enumerate(by_platform.values()):
                config = await self._config.load(outcome.platform)
                installed.append(
                    RegistryEntry(
                        unit=outcome.unit,
                        hash=outcome.hash,
                        source_path=str(path),
                        state=outcome.state,
                        enabled=config.enabled,
                        order=config.order if config.order is not None else position,
                        user_variables=dict(config.user_variables),
                        env=outcome.env,
                        error_reason=outcome.error_reason,
                    )
                )
            installed.sort(key=lambda e: e.order)

            self._entries = tuple(builtins) + tuple(installed)
            for entry in self._entries:
                self._bind_env(entry)
            self._initialized = True

        logger.info(
            "Provider registry initialized: %d built-in, %d installed",
            len(builtins),
            len(installed),
        )

    async def _load_builtins(self) -> list[RegistryEntry]:
        entries: list[RegistryEntry] = []
        for provider in self._builtin_providers:
            outcome = self._loader.load_object(provider)
            if not outcome.mounted:
                continue
            config = await self._config.load(outcome.platform)
            entries.append(
                RegistryEntry(
                    unit=outcome.unit,
                    hash=outcome.hash,
                    source_path=outcome.source_path,
                    builtin=True,
                    enabled=config.enabled,
                    order=len(entries),
                    user_variables=dict(config.user_variables),
                )
            )
        return entries

    async def close(self) -> None:
        """Wait for in-flight mutations, then release the config store."""
        async with self._lock:
            await self._config.close()
            self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Reads (lock-free snapshots)
    # =========================================================================

    def list_entries(self) -> list[RegistryEntry]:
        """Built-ins first, then installed entries ordered by `order`."""
        return list(self._entries)

    def list_info(self) -> list[ProviderInfo]:
        return [entry.to_info() for entry in self._entries]

    def get(self, platform: str) -> RegistryEntry | None:
        for entry in self._entries:
            if entry.platform == platform:
                return entry
        return None

    def get_by_hash(self, install_hash: str) -> RegistryEntry | None:
        for entry in self._entries:
            if entry.hash == install_hash:
                return entry
        return None

    def is_enabled(self, platform: str) -> bool:
        entry = self.get(platform)
        return entry.enabled if entry is not None else False

    def get_user_variables(self, platform: str) -> dict[str, str]:
        entry = self.get(platform)
        return dict(entry.user_variables) if entry is not None else {}

    def enabled_entries(self) -> list[RegistryEntry]:
        """Entries the Host may call, in enumeration order."""
        return [entry for entry in self._entries if entry.invokable]

    # =========================================================================
    # Install
    # =========================================================================

    async def install(
        self,
        source_text: str,
        source_path: str,
        skip_version_check: bool = False,
    ) -> InstallResult:
        """Install (or upgrade) a provider from source text.

        Args:
            source_text: Python source of the provider
            source_path: Where the source came from (file path, URL) for diagnostics
            skip_version_check: Replace an existing same-platform entry even if
                it's newer

        Returns:
            InstallResult (never raises for bad sources)
        """
        if not source_text or not source_text.strip():
            return self._rejected(source_path, InstallErrorReason.EMPTY_SOURCE, MSG_EMPTY_SOURCE)

        outcome = self._loader.load_source(source_text, source_path)
        if not outcome.mounted:
            reason = _LOAD_TO_INSTALL_REASON.get(
                outcome.error_reason or LoadErrorReason.CANNOT_PARSE,
                InstallErrorReason.CANNOT_PARSE,
            )
            message = (
                MSG_VERSION_INCOMPATIBLE
                if reason == InstallErrorReason.VERSION_INCOMPATIBLE
                else MSG_CANNOT_PARSE
            )
            return self._rejected(
                source_path,
                reason,
                message,
                platform=outcome.platform or None,
                install_hash=outcome.hash,
            )

        platform = outcome.platform
        async with self._lock:
            if self.get_by_hash(outcome.hash) is not None:
                return InstallResult(
                    success=True,
                    message=MSG_ALREADY_INSTALLED,
                    platform=platform,
                    install_hash=outcome.hash,
                    reason=InstallErrorReason.ALREADY_INSTALLED,
                )

            previous = self.get(platform)
            if previous is not None and previous.builtin:
                return self._rejected(
                    source_path,
                    InstallErrorReason.BUILTIN_CONFLICT,
                    BuiltinProviderError(platform).message,
                    platform=platform,
                    install_hash=outcome.hash,
                )
            if (
                previous is not None
                and not skip_version_check
                and is_newer(previous.version, outcome.unit.version)
            ):
                return self._rejected(
                    source_path,
                    InstallErrorReason.NEWER_VERSION_PRESENT,
                    MSG_NEWER_VERSION,
                    platform=platform,
                    install_hash=outcome.hash,
                )

            try:
                stored_path = await self._storage.write(outcome.hash, source_text)
            except OSError as e:
                return self._rejected(
                    source_path,
                    InstallErrorReason.STORAGE_FAILED,
                    f"Failed to store provider: {e}",
                    platform=platform,
                    install_hash=outcome.hash,
                )

            # Upgrade keeps the user's settings and the slot in the list
            entry = RegistryEntry(
                unit=outcome.unit,
                hash=outcome.hash,
                source_path=str(stored_path),
                enabled=previous.enabled if previous else True,
                order=previous.order if previous else self._next_order(),
                user_variables=dict(previous.user_variables) if previous else {},
                env=outcome.env,
            )

            try:
                await self._config.save(platform, entry.to_config())
            except ConfigPersistError as e:
                await self._storage.delete(stored_path)
                return self._rejected(
                    source_path,
                    InstallErrorReason.STORAGE_FAILED,
                    e.message,
                    platform=platform,
                    install_hash=outcome.hash,
                )

            self._bind_env(entry)
            self._publish(entry, replacing=previous)
            if previous is not None and previous.source_path != entry.source_path:
                await self._storage.delete(previous.source_path)

        logger.info(
            LogMessages.provider_installed(
                platform, entry.version, previous.version if previous else None
            )
        )
        self._emit(RegistryEvent.INSTALLED, platform, {"version": entry.version})
        return InstallResult(
            success=True,
            message=MSG_INSTALLED,
            platform=platform,
            install_hash=outcome.hash,
        )

    async def install_from_file(
        self, path: str | Path, skip_version_check: bool = False
    ) -> InstallResult:
        """Install a provider from a local file (read off the event loop)."""
        try:
            source_text = await self._read_file(Path(path))
        except ProviderInstallError as e:
            return self._rejected(str(path), e.reason, e.message)
        return await self.install(source_text, str(path), skip_version_check)

    async def install_from_url(
        self, url: str, skip_version_check: bool = False
    ) -> InstallResult:
        """Download provider source and install it.

        Transport errors and non-2xx statuses come back as failed results.
        """
        try:
            source_text = await self._download(url)
        except ProviderInstallError as e:
            return self._rejected(url, e.reason, e.message)
        return await self.install(source_text, url, skip_version_check)

    async def update_from_src_url(self, platform: str) -> InstallResult:
        """Re-install a provider from its declared `src_url` (version-checked)."""
        entry = self.get(platform)
        if entry is None:
            return InstallResult(
                success=False,
                message=ProviderNotFoundError(platform).message,
                platform=platform,
            )
        if entry.builtin:
            return InstallResult(
                success=False,
                message=BuiltinProviderError(platform).message,
                platform=platform,
                reason=InstallErrorReason.BUILTIN_CONFLICT,
            )
        src_url = entry.unit.identity.src_url
        if not src_url:
            return InstallResult(
                success=False,
                message=f"Provider '{platform}' has no src_url to update from",
                platform=platform,
                reason=InstallErrorReason.SOURCE_UNAVAILABLE,
            )
        return await self.install_from_url(src_url)

    # =========================================================================
    # Mutations of operational state
    # =========================================================================

    async def set_enabled(self, platform: str, enabled: bool) -> OperationResult:
        """Flip the enabled flag. The unit stays loaded; the Host just skips it."""
        async with self._lock:
            entry = self.get(platform)
            if entry is None:
                return OperationResult(False, ProviderNotFoundError(platform).message, platform)
            if entry.enabled == enabled:
                return OperationResult(True, "Unchanged", platform)

            updated = replace(entry, enabled=enabled)
            try:
                await self._config.save(platform, updated.to_config())
            except ConfigPersistError as e:
                return OperationResult(False, e.message, platform)
            self._publish(updated, replacing=entry)

        self._emit(RegistryEvent.ENABLED_CHANGED, platform, {"enabled": enabled})
        return OperationResult(True, "Provider enabled" if enabled else "Provider disabled", platform)

    async def set_user_variable(self, platform: str, key: str, value: str) -> OperationResult:
        """Merge one user variable value and persist it before returning."""
        return await self.set_user_variables(platform, {key: value})

    async def set_user_variables(
        self, platform: str, values: dict[str, str]
    ) -> OperationResult:
        """Merge several user variable values in one durable write.

        Hey future me – if the write fails, the previously published entry is
        still the live one, so a following read returns the OLD value.
        """
        async with self._lock:
            entry = self.get(platform)
            if entry is None:
                return OperationResult(False, ProviderNotFoundError(platform).message, platform)

            merged = {**entry.user_variables, **{str(k): str(v) for k, v in values.items()}}
            updated = replace(entry, user_variables=merged)
            try:
                await self._config.save(platform, updated.to_config())
            except ConfigPersistError as e:
                return OperationResult(False, e.message, platform)
            self._publish(updated, replacing=entry)

        return OperationResult(True, "User variables saved", platform)

    async def remove(self, platform: str) -> OperationResult:
        """Remove an installed provider: stored source + persisted config.

        Built-ins are rejected.
        """
        async with self._lock:
            entry = self.get(platform)
            if entry is None:
                return OperationResult(False, ProviderNotFoundError(platform).message, platform)
            if entry.builtin:
                return OperationResult(False, BuiltinProviderError(platform).message, platform)

            try:
                await self._config.delete(platform)
            except ConfigPersistError as e:
                return OperationResult(False, e.message, platform)

            self._entries = tuple(e for e in self._entries if e is not entry)
            await self._storage.delete(entry.source_path)

        logger.info(LogMessages.provider_removed(platform))
        self._emit(RegistryEvent.REMOVED, platform, {})
        return OperationResult(True, "Provider removed", platform)

    # =========================================================================
    # Events
    # =========================================================================

    def subscribe(self, event: RegistryEvent, listener: RegistryListener) -> None:
        self._listeners[event].append(listener)

    def unsubscribe(self, event: RegistryEvent, listener: RegistryListener) -> None:
        if listener in self._listeners[event]:
            self._listeners[event].remove(listener)

    def _emit(self, event: RegistryEvent, platform: str, details: dict[str, Any]) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(event, platform, details)
            except Exception:
                logger.exception("Registry listener failed for %s (%s)", event.value, platform)

    # =========================================================================
    # Internals
    # =========================================================================

    def _publish(self, entry: RegistryEntry, replacing: RegistryEntry | None) -> None:
        """Swap in a new entries tuple containing `entry`."""
        if replacing is None:
            self._entries = self._entries + (entry,)
            return
        self._entries = tuple(entry if e is replacing else e for e in self._entries)

    async def _read_file(self, path: Path) -> str:
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ProviderInstallError(
                f"Cannot read provider file: {e}", InstallErrorReason.SOURCE_UNAVAILABLE
            ) from e

    async def _download(self, url: str) -> str:
        """Fetch provider source over HTTP.

        Raises:
            ProviderInstallError: SOURCE_UNAVAILABLE on transport errors or non-2xx
        """
        kwargs: dict[str, Any] = {}
        if self._download_timeout is not None:
            kwargs["timeout"] = self._download_timeout
        try:
            client = await self._client_factory()
            response = await client.get(url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderInstallError(
                f"Download failed with HTTP {e.response.status_code}",
                InstallErrorReason.SOURCE_UNAVAILABLE,
            ) from e
        except httpx.HTTPError as e:
            raise ProviderInstallError(
                f"Download failed: {type(e).__name__}: {e}",
                InstallErrorReason.SOURCE_UNAVAILABLE,
            ) from e
        return response.text

    def _next_order(self) -> int:
        orders = [e.order for e in self._entries if not e.builtin]
        return max(orders) + 1 if orders else 0

    def _bind_env(self, entry: RegistryEntry) -> None:
        if entry.env is not None:
            platform = entry.platform
            entry.env.bind(platform, lambda: self.get_user_variables(platform))

    def _rejected(
        self,
        source: str,
        reason: InstallErrorReason,
        message: str,
        platform: str | None = None,
        install_hash: str | None = None,
    ) -> InstallResult:
        logger.warning(LogMessages.provider_install_rejected(source, reason.value, message))
        return InstallResult(
            success=False,
            message=message,
            platform=platform,
            install_hash=install_hash,
            reason=reason,
        )
