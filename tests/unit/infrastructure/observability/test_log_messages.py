"""Tests for structured log message templates."""

from tunedock.infrastructure.observability.log_messages import LogMessages, LogTemplate


class TestLogTemplate:
    """Test the tree-style template rendering."""

    def test_renders_fields_and_hint(self) -> None:
        template = LogTemplate(
            icon="🔴",
            title="Something Broke",
            fields={"Platform": "{platform}", "Reason": "{reason}"},
            hint="Check {platform}",
        )

        text = template.format(platform="demo", reason="boom")

        assert text.splitlines() == [
            "🔴 Something Broke",
            "├─ Platform: demo",
            "├─ Reason: boom",
            "└─ 💡 Check demo",
        ]

    def test_last_field_closes_tree_without_hint(self) -> None:
        text = LogTemplate(icon="✅", title="Done", fields={"A": "1", "B": "2"}).format()
        assert text.splitlines()[-1] == "└─ B: 2"

    def test_missing_placeholder_does_not_raise(self) -> None:
        text = LogTemplate(icon="x", title="T", fields={"A": "{nope}"}).format()
        assert "<missing:" in text


class TestProviderMessages:
    """Test provider-specific messages always carry identity."""

    def test_call_failed_names_platform_and_capability(self) -> None:
        text = LogMessages.provider_call_failed("netease", "search", "ConnectError: refused")

        assert "Provider Call Failed" in text
        assert "Platform: netease" in text
        assert "Capability: search" in text
        assert "ConnectError: refused" in text

    def test_braces_in_errors_survive(self) -> None:
        text = LogMessages.provider_call_failed("demo", "search", "KeyError: {'data'}")
        assert "KeyError: {'data'}" in text

    def test_load_failed_hint_depends_on_reason(self) -> None:
        parse = LogMessages.provider_load_failed("a.py", "cannot-parse", "SyntaxError")
        version = LogMessages.provider_load_failed("a.py", "version-incompatible")

        assert "platform" in parse
        assert "app_version" in version
        assert "Error:" not in version

    def test_timeout_message(self) -> None:
        text = LogMessages.provider_call_timeout("slow", "search", 2.5)
        assert "Timeout: 2.5s" in text

    def test_installed_mentions_replaced_version(self) -> None:
        assert "Replaced: 1.0.0" in LogMessages.provider_installed("demo", "1.1.0", "1.0.0")
        assert "Replaced" not in LogMessages.provider_installed("demo", "1.1.0")
