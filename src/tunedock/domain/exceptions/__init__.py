"""Domain exceptions.

Hey future me - the split between "raised" and "returned" errors matters here:

- ProviderLoadError / ProviderInstallError / ConfigPersistError are RAISED inside
  the loader/registry, but the registry catches them at its public boundary and
  returns an InstallResult/OperationResult. The "add provider" UI renders a
  message, it never sees a traceback.
- ProviderCallError wraps whatever a provider raised during a host-mediated call.
  The host logs it with the platform attached and returns null/empty instead.
"""

from enum import Enum
from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # We store message as an attribute so code can inspect it without parsing str(exception).
    def __init__(self, message: str, *args: Any) -> None:
        super().__init__(message, *args)
        self.message = message


class LoadErrorReason(str, Enum):
    """Why a provider unit ended in the Error state."""

    CANNOT_PARSE = "cannot-parse"
    VERSION_INCOMPATIBLE = "version-incompatible"


class InstallErrorReason(str, Enum):
    """Why an install did not produce a new registry entry."""

    CANNOT_PARSE = "cannot-parse"
    VERSION_INCOMPATIBLE = "version-incompatible"
    # Non-fatal: the registry reports this as success.
    ALREADY_INSTALLED = "already-installed"
    NEWER_VERSION_PRESENT = "newer-version-present"
    EMPTY_SOURCE = "empty-source"
    SOURCE_UNAVAILABLE = "source-unavailable"
    BUILTIN_CONFLICT = "builtin-conflict"
    STORAGE_FAILED = "storage-failed"


class ConfigurationError(DomainException):
    """Application misconfiguration.

    HTTP Status: 503 (Service Unavailable)
    """

    pass


class ProviderNotFoundError(DomainException):
    """No registry entry exists for the requested platform.

    HTTP Status: 404
    """

    def __init__(self, platform: str) -> None:
        super().__init__(f"Provider '{platform}' is not installed")
        self.platform = platform


class BuiltinProviderError(DomainException):
    """Attempted to remove a built-in provider.

    HTTP Status: 400
    """

    def __init__(self, platform: str) -> None:
        super().__init__(f"Provider '{platform}' is built in and cannot be removed")
        self.platform = platform


class ProviderLoadError(DomainException):
    """Provider source did not yield a usable unit.

    The partially built unit (if any) is attached so callers can inspect
    what failed - e.g. the platform/version of a version-incompatible unit.
    """

    def __init__(
        self,
        message: str,
        reason: LoadErrorReason = LoadErrorReason.CANNOT_PARSE,
        unit: Any = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.unit = unit


class ProviderInstallError(DomainException):
    """Install/upgrade rule rejected a provider."""

    def __init__(
        self,
        message: str,
        reason: InstallErrorReason,
        platform: str | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.platform = platform


class ConfigPersistError(DomainException):
    """Durable write of provider config failed.

    The in-memory mutation that triggered it has been rolled back.
    """

    def __init__(self, key: str, original_error: Exception | None = None) -> None:
        detail = f": {original_error}" if original_error else ""
        super().__init__(f"Failed to persist config '{key}'{detail}")
        self.key = key
        self.original_error = original_error


class ProviderCallError(DomainException):
    """A provider capability raised (or timed out) during a host-mediated call."""

    def __init__(
        self,
        platform: str,
        capability: str,
        original_error: BaseException | None = None,
    ) -> None:
        detail = (
            f"{type(original_error).__name__}: {original_error}"
            if original_error is not None
            else "unknown error"
        )
        super().__init__(f"[{platform}] {capability} failed - {detail}")
        self.platform = platform
        self.capability = capability
        self.original_error = original_error


__all__ = [
    "BuiltinProviderError",
    "ConfigPersistError",
    "ConfigurationError",
    "DomainException",
    "InstallErrorReason",
    "LoadErrorReason",
    "ProviderCallError",
    "ProviderInstallError",
    "ProviderLoadError",
    "ProviderNotFoundError",
]
