from __future__ import annotations

import json
import logging
import logging.config
import os
from contextvars import ContextVar, Token

# Concurrent units run as separate asyncio tasks, each with its own context copy.
_CURRENT_OBJECT_KEY: ContextVar[str] = ContextVar("pixelpipe_object_key", default="-")

# Attributes every LogRecord has; anything else came in through `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

_QUIET_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "PIL")

DEFAULT_CONSOLE_FORMAT = (
    "%(asctime)s %(levelname)s [%(object_key)s] %(module)s %(pathname)s:%(lineno)d %(message)s"
)


class _ObjectKeyFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "object_key", None) in (None, ""):
            record.object_key = _CURRENT_OBJECT_KEY.get()
        return True


class _JsonExtraFormatter(logging.Formatter):
    """Appends `extra=` fields to the line as indented JSON."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key != "object_key"
        }
        if not extras:
            return base
        return f"{base}\n{json.dumps(extras, indent=2, default=str, sort_keys=True)}"


def set_object_key(key: str | None) -> Token[str]:
    """Set the `object_key` injected into log records for the current context."""
    return _CURRENT_OBJECT_KEY.set(key or "-")


def reset_object_key(token: Token[str]) -> None:
    _CURRENT_OBJECT_KEY.reset(token)


def current_object_key() -> str:
    return _CURRENT_OBJECT_KEY.get()


def configure_logging(*, log_level: str = "INFO") -> None:
    """Configure root logging to stdout.

    Each line carries the `object_key` being processed plus `module:lineno`,
    so interleaved output from concurrent units stays attributable.
    `CONSOLE_LOG_FORMAT` replaces the default format.
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "object_key": {"()": "pixelpipe.logging_setup._ObjectKeyFilter"},
            },
            "formatters": {
                "default": {
                    "()": "pixelpipe.logging_setup._JsonExtraFormatter",
                    "format": os.getenv("CONSOLE_LOG_FORMAT", DEFAULT_CONSOLE_FORMAT),
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": str(log_level).upper(),
                    "formatter": "default",
                    "filters": ["object_key"],
                    "stream": "ext://sys.stdout",
                }
            },
            "root": {"level": "DEBUG", "handlers": ["console"]},
        }
    )
    logging.captureWarnings(True)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
