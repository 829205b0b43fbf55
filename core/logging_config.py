"""
Logging for the Bubble Map API.

Development runs log readable, colored lines to stdout; every other
environment logs one JSON object per line so the output can be shipped to a
log collector as-is.

Key Components:
- `RequestContextFilter`: Stamps each record with the correlation ID of the
  HTTP request being served, or leaves it empty for background work such as
  the expiry sweep and the import cycle.
- `JSONLineFormatter` / `ConsoleFormatter`: Render a record. Both lift the
  well-known context fields passed through `extra=` (bubble IDs, event types,
  request timings) to the top level of the output.
- `get_logging_config`: Builds the `dictConfig` dictionary for an environment,
  level and optional rotating log file.
- `setup_logging`: Applies the configuration from the application settings.
- `log_duration`: Decorator for coroutines that logs how long they took and
  whether they failed.
"""

import functools
import json
import logging
import logging.config
import time
from contextvars import ContextVar
from typing import Any, Dict, Optional

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Keys services pass via `extra=` that are worth surfacing in every format
CONTEXT_FIELDS = (
    "bubble_id",
    "delta",
    "has_media",
    "event_type",
    "delivered",
    "failed_sources",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "error_type",
    "error_code",
)

APP_LOGGERS = ("api", "core", "providers", "services")
QUIET_LOGGERS = {
    "uvicorn.access": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "aiohttp": "WARNING",
}


def set_correlation_id(value: Optional[str]) -> None:
    _request_id.set(value)


def _context_of(record: logging.LogRecord) -> Dict[str, Any]:
    return {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}


class RequestContextFilter(logging.Filter):
    """Attach the current request's correlation ID to the record"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = _request_id.get()
        return True


class JSONLineFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": f"{self.formatTime(record, '%Y-%m-%dT%H:%M:%S')}.{int(record.msecs):03d}",
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        corr_id = getattr(record, "correlation_id", None)
        if corr_id:
            entry["correlation_id"] = corr_id
        entry.update(_context_of(record))
        if record.exc_info:
            entry["error"] = {
                "type": record.exc_info[0].__name__,
                "detail": str(record.exc_info[1]),
                "stack": self.formatException(record.exc_info),
            }
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Readable single-line output with colored level names"""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[2m",
        logging.INFO: "\033[34m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        line = (
            f"{self.formatTime(record, '%H:%M:%S')} "
            f"{color}{record.levelname:<7}{self.RESET} "
            f"{record.name}: {record.getMessage()}"
        )

        context = _context_of(record)
        corr_id = getattr(record, "correlation_id", None)
        if corr_id:
            context = {"req": corr_id, **context}
        if context:
            line += "  " + " ".join(f"{key}={value}" for key, value in context.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_logging_config(
    environment: str = "development",
    log_level: str = "INFO",
    log_file: Optional[str] = None,
) -> Dict[str, Any]:
    """dictConfig for the given environment"""
    level = log_level.upper()
    handlers = ["console"]

    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_context": {"()": RequestContextFilter}},
        "formatters": {
            "json": {"()": JSONLineFormatter},
            "console": {"()": ConsoleFormatter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "filters": ["request_context"],
                "formatter": "console" if environment.lower() == "development" else "json",
            },
        },
        "loggers": {},
        "root": {"level": "WARNING", "handlers": handlers},
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": 3,
            "filters": ["request_context"],
            "formatter": "json",
        }
        handlers.append("file")

    for name in APP_LOGGERS:
        config["loggers"][name] = {"level": level, "handlers": handlers, "propagate": False}
    config["loggers"]["uvicorn"] = {"level": "INFO", "handlers": handlers, "propagate": False}
    for name, quiet_level in QUIET_LOGGERS.items():
        config["loggers"][name] = {"level": quiet_level}

    return config


def setup_logging(settings=None) -> None:
    """Configure logging from the application settings"""
    if settings is None:
        from core.config import get_settings

        settings = get_settings()

    logging.config.dictConfig(
        get_logging_config(settings.ENVIRONMENT, settings.LOG_LEVEL, settings.LOG_FILE)
    )
    logging.getLogger("core.logging").info(
        f"Logging configured for {settings.ENVIRONMENT} at {settings.LOG_LEVEL.upper()}"
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_duration(logger: logging.Logger):
    """Log the duration of a coroutine, and its failure if it raises"""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"{func.__name__} failed: {e}",
                    extra={
                        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                        "error_type": type(e).__name__,
                    },
                )
                raise
            logger.info(
                f"{func.__name__} finished",
                extra={"duration_ms": round((time.perf_counter() - started) * 1000, 2)},
            )
            return result

        return wrapper

    return decorator
