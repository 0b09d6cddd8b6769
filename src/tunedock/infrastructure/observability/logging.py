"""Structured logging configuration with JSON formatting and correlation IDs."""

import contextvars
import logging
import sys
import traceback
import uuid
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

# Chatty libraries that only get to speak at WARNING and above
NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "asyncio", "aiosqlite", "uvicorn.access")

# Hey future me, correlation IDs follow one request through every provider call it fans out
# to. contextvars is asyncio-safe: each task created by asyncio.gather copies the context,
# so all provider logs of one search share the request's ID. default="" covers startup logs.
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)


def get_correlation_id() -> str:
    """Correlation id of the running request, "" outside of one."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation id to the current context, minting one if none is given."""
    value = correlation_id or str(uuid.uuid4())
    correlation_id_var.set(value)
    return value


class CorrelationIdFilter(logging.Filter):
    """Stamps every record with the request's correlation id."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


class CompactExceptionFormatter(logging.Formatter):
    """Formatter that shows compact exception chains.

    Hey future me - provider errors usually come wrapped (ProviderCallError around
    httpx.ConnectError etc). We print the chain root-cause first with ╰─► markers and
    keep only frames from our own package plus provider scripts, which are compiled
    with a "<provider:...>" filename.
    """

    def formatException(self, ei: tuple[type, BaseException, Any]) -> str:  # type: ignore[override]
        """Format exception chain in a compact, readable way."""
        _exc_type, exc_value, _exc_tb = ei
        if exc_value is None:
            return ""

        exceptions: list[BaseException] = []
        current: BaseException | None = exc_value
        while current is not None:
            exceptions.append(current)
            current = current.__cause__ or current.__context__
        exceptions.reverse()

        lines: list[str] = []
        for exc in exceptions:
            lines.append(f"╰─► {exc.__class__.__name__}: {exc}")
            if not exc.__traceback__:
                continue
            for frame in traceback.extract_tb(exc.__traceback__):
                filepath = frame.filename
                if "/site-packages/" in filepath or "/usr/lib/python" in filepath:
                    continue
                if "tunedock" not in filepath and not filepath.startswith("<provider"):
                    continue
                name = filepath if filepath.startswith("<") else Path(filepath).name
                lines.append(f'    File "{name}", line {frame.lineno}, in {frame.name}')
                if frame.line:
                    lines.append(f"      {frame.line.strip()}")

        return "\n".join(lines)


class CustomJsonFormatter(jsonlogger.JsonFormatter):  # type: ignore[name-defined,misc]
    """Custom JSON formatter with additional fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno

        correlation_id = getattr(record, "correlation_id", "")
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        # Provider-tagged records (see LogMessages.provider_call_failed)
        platform = getattr(record, "platform", None)
        if platform:
            log_record["platform"] = platform

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)

        if record.stack_info:
            log_record["stack_info"] = self.formatStack(record.stack_info)


# Listen future me, call this ONCE at startup (lifecycle does). It configures the root logger,
# so provider logs (logger "tunedock.provider.<platform>") come out the same way.
def configure_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    app_name: str = "tunedock",
) -> None:
    """Install one stdout handler on the root logger.

    Args:
        log_level: Level name; unknown names fall back to INFO
        json_format: One JSON object per line instead of the compact console format
        app_name: Reported in the "Logging configured" record
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())

    if json_format:
        formatter: logging.Formatter = CustomJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    else:
        formatter = CompactExceptionFormatter(
            fmt="%(asctime)s │ %(levelname)-7s │ %(name)s:%(lineno)d │ %(message)s",
            datefmt="%H:%M:%S",
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(
        "Logging configured",
        extra={
            "app_name": app_name,
            "log_level": log_level,
            "json_format": json_format,
        },
    )
