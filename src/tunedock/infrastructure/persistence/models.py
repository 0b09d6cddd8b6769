"""SQLAlchemy ORM models for tunedock."""

from datetime import UTC, datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Hey future me, this is a plain key/value table. Keys look like
# "provider_config_<platform>" and value is the JSON blob {enabled, user_variables, order}.
# One row per provider = one key per read-modify-write, so a transaction per key is all the
# atomicity we need.
class ProviderConfigModel(Base):
    """Durable per-provider configuration row."""

    __tablename__ = "provider_config"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
