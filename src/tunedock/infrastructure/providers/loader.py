"""
Provider Unit Loader.

Hey future me – this turns raw provider source text into a ProviderUnit.
It's the ONLY place untrusted provider code gets executed.

Validation, in order:
1. The source must yield an object with a non-empty string `platform`
   → otherwise LoadErrorReason.CANNOT_PARSE (syntax errors, disallowed imports
   and exceptions at import time land here too).
2. If the unit declares `app_version`, the host version must satisfy it
   → otherwise LoadErrorReason.VERSION_INCOMPATIBLE (partial unit attached).
3. `user_variables` entries without a `key` are dropped silently.

The loader NEVER raises for bad providers. It returns a LoadOutcome whose
`unit` is always usable - a stub with no-op search/get_album_info/
get_media_source when loading failed.
"""

import hashlib
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from tunedock.domain.dtos import MediaType, UserVariableDefinition
from tunedock.domain.exceptions import LoadErrorReason, ProviderLoadError
from tunedock.domain.ports.provider import (
    CacheControl,
    LoadState,
    ProviderCapability,
    ProviderIdentity,
    ProviderUnit,
)
from tunedock.infrastructure.observability.log_messages import LogMessages
from tunedock.infrastructure.providers.sandbox import (
    ClientFactory,
    ProviderEnv,
    build_capability_table,
    build_namespace,
)
from tunedock.infrastructure.providers.versioning import satisfies

logger = logging.getLogger(__name__)

BUILTIN_SOURCE_PATH = "builtin"

# Names we inject into the provider namespace - never part of its exports
_INJECTED_NAMES = frozenset({"__builtins__", "__name__", "require", "env"})


def compute_source_hash(source_text: str) -> str:
    """Identity of one concrete copy of provider code."""
    return hashlib.sha256(source_text.encode("utf-8")).hexdigest()


@dataclass
class LoadOutcome:
    """Result of loading one provider."""

    unit: ProviderUnit
    state: LoadState
    hash: str
    source_path: str
    env: ProviderEnv | None = None
    error_reason: LoadErrorReason | None = None
    error_message: str | None = None

    @property
    def mounted(self) -> bool:
        return self.state == LoadState.MOUNTED

    @property
    def platform(self) -> str:
        return self.unit.platform


def _read(exports: Any, name: str, default: Any = None) -> Any:
    if isinstance(exports, Mapping):
        return exports.get(name, default)
    return getattr(exports, name, default)


def _media_type(value: Any) -> MediaType | None:
    try:
        return MediaType(value)
    except ValueError:
        return None


class ProviderLoader:
    """Builds validated ProviderUnits from source text or Python objects."""

    def __init__(
        self,
        app_version: str,
        client_factory: ClientFactory | None = None,
    ) -> None:
        """Initialize the loader.

        Args:
            app_version: Host version checked against provider `app_version` ranges
            client_factory: Async factory for the httpx client behind the `http`
                capability (defaults to the shared HttpClientPool)
        """
        self._app_version = app_version
        self._capability_table = build_capability_table(client_factory)

    @property
    def app_version(self) -> str:
        return self._app_version

    def load_source(self, source_text: str, source_path: str) -> LoadOutcome:
        """Execute provider source and build a unit from it.

        Args:
            source_text: Python source of the provider
            source_path: Path/URL used for diagnostics

        Returns:
            LoadOutcome (state MOUNTED or ERROR; never raises for bad sources)
        """
        unit_hash = compute_source_hash(source_text)
        env = ProviderEnv(self._app_version, source_path)
        try:
            exports = self._execute(source_text, source_path, env)
            unit = self._build_unit(exports)
        except ProviderLoadError as e:
            return self._failed(e, unit_hash, source_path, env)
        except Exception as e:
            # SyntaxError, ImportError (disallowed module), anything raised at import time
            error = ProviderLoadError(
                f"{type(e).__name__}: {e}", LoadErrorReason.CANNOT_PARSE
            )
            return self._failed(error, unit_hash, source_path, env)

        logger.debug(
            LogMessages.provider_loaded(
                unit.platform, unit.version, len(unit.capabilities), source_path
            )
        )
        return LoadOutcome(
            unit=unit,
            state=LoadState.MOUNTED,
            hash=unit_hash,
            source_path=source_path,
            env=env,
        )

    def load_object(self, exports: Any, source_path: str = BUILTIN_SOURCE_PATH) -> LoadOutcome:
        """Build a unit from an already-constructed provider object (built-ins)."""
        try:
            unit = self._build_unit(exports)
        except ProviderLoadError as e:
            return self._failed(e, compute_source_hash(repr(exports)), source_path, None)
        unit_hash = compute_source_hash(
            f"{source_path}:{unit.platform}:{unit.version}"
        )
        return LoadOutcome(
            unit=unit,
            state=LoadState.MOUNTED,
            hash=unit_hash,
            source_path=source_path,
        )

    def _failed(
        self,
        error: ProviderLoadError,
        unit_hash: str,
        source_path: str,
        env: ProviderEnv | None,
    ) -> LoadOutcome:
        logger.error(
            LogMessages.provider_load_failed(source_path, error.reason.value, error.message)
        )
        unit = error.unit if isinstance(error.unit, ProviderUnit) else ProviderUnit.stub()
        return LoadOutcome(
            unit=unit,
            state=LoadState.ERROR,
            hash=unit_hash,
            source_path=source_path,
            env=env,
            error_reason=error.reason,
            error_message=error.message,
        )

    def _execute(self, source_text: str, source_path: str, env: ProviderEnv) -> Any:
        code = compile(source_text, f"<provider:{source_path}>", "exec")
        namespace = build_namespace(env, self._capability_table, "tunedock_provider")
        exec(code, namespace)  # noqa: S102 - restricted namespace, see sandbox.py

        exported = namespace.get("provider")
        if exported is None:
            return {k: v for k, v in namespace.items() if k not in _INJECTED_NAMES}
        if isinstance(exported, type):
            exported = exported()
        return exported

    def _build_unit(self, exports: Any) -> ProviderUnit:
        """Validate identity and collect capabilities.

        Raises:
            ProviderLoadError: CANNOT_PARSE without platform, VERSION_INCOMPATIBLE
                (unit attached) when the host version is out of range
        """
        if exports is None:
            raise ProviderLoadError("Provider source exported nothing")

        platform = _read(exports, "platform")
        if not isinstance(platform, str) or not platform.strip():
            raise ProviderLoadError("Provider must define a non-empty 'platform'")

        version = _read(exports, "version")
        app_version = _read(exports, "app_version")
        identity = ProviderIdentity(
            platform=platform.strip(),
            version=str(version) if version else "0.0.0",
            author=_read(exports, "author"),
            src_url=_read(exports, "src_url"),
            app_version=str(app_version) if app_version else None,
        )

        methods = {}
        for capability in ProviderCapability:
            method = _read(exports, capability.method_name)
            if callable(method):
                methods[capability] = method

        unit = ProviderUnit(
            identity=identity,
            methods=methods,
            primary_key=self._primary_key(_read(exports, "primary_key")),
            cache_control=self._cache_control(_read(exports, "cache_control")),
            supported_search_type=self._search_types(
                _read(exports, "supported_search_type")
            ),
            default_search_type=_media_type(_read(exports, "default_search_type")),
            user_variable_definitions=self._user_variables(
                _read(exports, "user_variables")
            ),
            hints=self._hints(_read(exports, "hints")),
        )

        if not satisfies(self._app_version, identity.app_version):
            raise ProviderLoadError(
                f"Provider '{identity.platform}' requires app version "
                f"'{identity.app_version}', host is {self._app_version}",
                LoadErrorReason.VERSION_INCOMPATIBLE,
                unit=unit,
            )
        return unit

    @staticmethod
    def _primary_key(value: Any) -> list[str]:
        if isinstance(value, (list, tuple)) and value:
            return [str(v) for v in value]
        return ["id"]

    @staticmethod
    def _cache_control(value: Any) -> CacheControl:
        try:
            return CacheControl(value)
        except ValueError:
            return CacheControl.NO_CACHE

    @staticmethod
    def _search_types(value: Any) -> frozenset[MediaType] | None:
        if value is None or not isinstance(value, (list, tuple, set, frozenset)):
            return None
        types = (_media_type(v) for v in value)
        return frozenset(t for t in types if t is not None)

    @staticmethod
    def _user_variables(value: Any) -> list[UserVariableDefinition]:
        if not isinstance(value, (list, tuple)):
            return []
        definitions = []
        for entry in value:
            key = _read(entry, "key") if entry is not None else None
            if not key:
                continue
            name = _read(entry, "name")
            hint = _read(entry, "hint")
            definitions.append(
                UserVariableDefinition(
                    key=str(key),
                    name=str(name) if name is not None else None,
                    hint=str(hint) if hint is not None else None,
                )
            )
        return definitions

    @staticmethod
    def _hints(value: Any) -> dict[str, list[str]]:
        if not isinstance(value, Mapping):
            return {}
        return {
            str(k): [str(v) for v in items]
            for k, items in value.items()
            if isinstance(items, (list, tuple))
        }
