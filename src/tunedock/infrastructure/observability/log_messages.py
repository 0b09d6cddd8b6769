"""Structured log message templates for consistent, human-readable logging.

Hey future me - provider problems are THE most common thing to debug here, and
"KeyError: 'data'" alone tells you nothing. Every provider message names the
platform, the capability and (when known) the source path:

    🔴 Provider Call Failed
    ├─ Platform: netease
    ├─ Capability: search
    ├─ Reason: ConnectError: All connection attempts failed
    └─ 💡 The provider's result is treated as empty - other providers are unaffected

Usage:
    from tunedock.infrastructure.observability.log_messages import LogMessages

    logger.warning(LogMessages.provider_call_failed(platform="x", capability="search",
                                                    error="boom"))
"""

from dataclasses import dataclass
from typing import Any


@dataclass
class LogTemplate:
    """A reusable log message template with placeholders."""

    icon: str
    title: str
    fields: dict[str, str]
    hint: str | None = None

    def format(self, **kwargs: Any) -> str:
        """Format the template with provided values.

        Args:
            **kwargs: Values to fill into template placeholders

        Returns:
            Formatted multi-line log message with icon, title, fields, and optional hint
        """
        lines = [f"{self.icon} {self.title}"]

        field_items = list(self.fields.items())
        for i, (key, value_template) in enumerate(field_items):
            prefix = "└─" if i == len(field_items) - 1 and not self.hint else "├─"
            try:
                value = value_template.format(**kwargs)
            except (KeyError, IndexError) as e:
                value = f"<missing: {e}>"
            lines.append(f"{prefix} {key}: {value}")

        if self.hint:
            try:
                hint_text = self.hint.format(**kwargs)
            except (KeyError, IndexError) as e:
                hint_text = f"<missing: {e}>"
            lines.append(f"└─ 💡 {hint_text}")

        return "\n".join(lines)


def _escape(value: Any) -> str:
    # Field values are literal text; braces in error messages must survive .format()
    return str(value).replace("{", "{{").replace("}", "}}")


class LogMessages:
    """Collection of standardized provider log message templates."""

    # === Loading ===

    @staticmethod
    def provider_load_failed(path: str, reason: str, error: str | None = None) -> str:
        """Format a provider load failure.

        Args:
            path: Source path/identifier of the provider
            reason: LoadErrorReason value
            error: Underlying error text
        """
        fields = {"Source": _escape(path), "Reason": _escape(reason)}
        if error:
            fields["Error"] = _escape(error)
        hints = {
            "version-incompatible": "Provider declares an app_version range this host doesn't satisfy",
            "cannot-parse": "Provider must define a non-empty 'platform' and only import allowed modules",
        }
        return LogTemplate(
            icon="🔴",
            title="Provider Load Failed",
            fields=fields,
            hint=hints.get(reason),
        ).format()

    @staticmethod
    def provider_loaded(platform: str, version: str, capabilities: int, path: str) -> str:
        return LogTemplate(
            icon="✅",
            title="Provider Mounted",
            fields={
                "Platform": _escape(platform),
                "Version": _escape(version),
                "Capabilities": str(capabilities),
                "Source": _escape(path),
            },
        ).format()

    # === Registry ===

    @staticmethod
    def provider_installed(platform: str, version: str, replaced: str | None = None) -> str:
        fields = {"Platform": _escape(platform), "Version": _escape(version)}
        if replaced:
            fields["Replaced"] = _escape(replaced)
        return LogTemplate(icon="📦", title="Provider Installed", fields=fields).format()

    @staticmethod
    def provider_install_rejected(source: str, reason: str, message: str) -> str:
        return LogTemplate(
            icon="⚠️",
            title="Provider Install Rejected",
            fields={
                "Source": _escape(source),
                "Reason": _escape(reason),
                "Message": _escape(message),
            },
        ).format()

    @staticmethod
    def provider_removed(platform: str) -> str:
        return LogTemplate(
            icon="🗑️", title="Provider Removed", fields={"Platform": _escape(platform)}
        ).format()

    @staticmethod
    def config_persist_failed(key: str, error: str) -> str:
        return LogTemplate(
            icon="🔴",
            title="Provider Config Persist Failed",
            fields={"Key": _escape(key), "Reason": _escape(error)},
            hint="In-memory change rolled back - check database connectivity",
        ).format()

    @staticmethod
    def config_corrupted(key: str, error: str) -> str:
        return LogTemplate(
            icon="⚠️",
            title="Provider Config Corrupted",
            fields={"Key": _escape(key), "Reason": _escape(error)},
            hint="Entry discarded, defaults applied",
        ).format()

    # === Calls ===

    @staticmethod
    def provider_call_failed(platform: str, capability: str, error: str) -> str:
        """Format a provider call failure (always tagged with the platform)."""
        return LogTemplate(
            icon="🔴",
            title="Provider Call Failed",
            fields={
                "Platform": _escape(platform),
                "Capability": _escape(capability),
                "Reason": _escape(error),
            },
            hint="The provider's result is treated as empty - other providers are unaffected",
        ).format()

    @staticmethod
    def provider_call_timeout(platform: str, capability: str, timeout: float) -> str:
        return LogTemplate(
            icon="⏱️",
            title="Provider Call Timeout",
            fields={
                "Platform": _escape(platform),
                "Capability": _escape(capability),
                "Timeout": f"{timeout}s",
            },
            hint="Raise PROVIDERS__CALL_TIMEOUT_SECONDS or check the provider's upstream",
        ).format()
