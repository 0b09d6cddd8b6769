"""Tests for environment-driven settings."""

from pathlib import Path

import pytest

from tunedock.config import Settings


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()

        assert settings.app_version == "1.0.0"
        assert settings.providers.call_timeout_seconds is None
        assert settings.providers.enable_builtin is True
        assert settings.database.url.startswith("sqlite+aiosqlite")

    def test_nested_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PROVIDERS__PROVIDER_DIR", "/srv/providers")
        monkeypatch.setenv("PROVIDERS__CALL_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings()

        assert settings.providers.provider_dir == Path("/srv/providers")
        assert settings.providers.call_timeout_seconds == 2.5
        assert settings.log_level == "DEBUG"

    def test_non_positive_timeout_is_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PROVIDERS__CALL_TIMEOUT_SECONDS", "0")

        with pytest.raises(ValueError):
            Settings()

    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("sqlite+aiosqlite:///./data/x.db", Path("./data/x.db")),
            ("sqlite+aiosqlite:///:memory:", None),
            ("postgresql+asyncpg://u:p@db/tunedock", None),
        ],
    )
    def test_sqlite_path(self, url: str, expected: Path | None) -> None:
        settings = Settings(database={"url": url})
        assert settings._get_sqlite_db_path() == expected
