"""Application settings loaded from environment variables and `.env`.

Hey future me - nested settings use the "__" delimiter, so
PROVIDERS__PROVIDER_DIR=/data/providers sets settings.providers.provider_dir.
Everything has a sane default so tests can just call Settings() without env.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseModel):
    """Durable config store database."""

    url: str = Field(
        default="sqlite+aiosqlite:///./data/tunedock.db",
        description="SQLAlchemy async database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL statements")


class ProviderSettings(BaseModel):
    """Provider loading and invocation settings."""

    provider_dir: Path = Field(
        default=Path("./data/providers"),
        description="Directory holding installed provider source files",
    )
    local_library_path: Path = Field(
        default=Path("./data/music"),
        description="Music folder served by the built-in 'local' provider",
    )
    # Hey future me - None means the host imposes NO timeout on provider calls.
    # A slow provider then only delays the fan-out it takes part in.
    call_timeout_seconds: float | None = Field(
        default=None,
        description="Per-call timeout for provider capability calls (None = no timeout)",
    )
    download_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for fetching provider source from a URL",
    )
    enable_builtin: bool = Field(
        default=True,
        description="Register the built-in providers at startup",
    )

    @field_validator("call_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, value: float | None) -> float | None:
        if value is not None and value <= 0:
            raise ValueError("call_timeout_seconds must be positive")
        return value


class ObservabilitySettings(BaseModel):
    """Logging settings."""

    log_json_format: bool = Field(
        default=False, description="Emit JSON log lines (production)"
    )


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "tunedock"
    # Host version that provider `app_version` ranges are checked against.
    app_version: str = "1.0.0"
    log_level: str = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    observability: ObservabilitySettings = Field(
        default_factory=ObservabilitySettings
    )

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    def ensure_directories(self) -> None:
        """Create the provider storage directory if it does not exist."""
        self.providers.provider_dir.mkdir(parents=True, exist_ok=True)

    def _get_sqlite_db_path(self) -> Path | None:
        """Return the SQLite file path, or None for non-file databases."""
        url = self.database.url
        if not url.startswith("sqlite"):
            return None
        _, _, path = url.partition(":///")
        if not path or path == ":memory:":
            return None
        return Path(path)


@lru_cache
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
