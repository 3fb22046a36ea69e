"""Structured logging configuration for the Butler context engine."""

import logging
import sys
from typing import Any

# Rendered right after the message, in this order
CORRELATION_FIELDS = ("user_id", "source", "intent", "rule", "elapsed_ms")


def _quote(value: Any) -> str:
    text = str(value)
    return f'"{text}"' if " " in text else text


class StructuredFormatter(logging.Formatter):
    """
    key=value log formatter for retrieval logs.

    Correlation fields (user, source, intent, rule, timing) always follow the
    message in the same order so a gather can be traced across lines; any
    other context fields come after them.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured output."""
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        extra = dict(getattr(record, "extra_data", None) or {})
        if hasattr(record, "user_id"):
            extra["user_id"] = record.user_id

        for field in CORRELATION_FIELDS:
            if field in extra:
                log_data[field] = extra.pop(field)
        log_data.update(extra)

        if record.exc_info:
            log_data["exc"] = self.formatException(record.exc_info).splitlines()[-1]

        return " ".join(f"{k}={_quote(v)}" for k, v in log_data.items())


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only configure if not already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter())
        logger.addHandler(handler)

        # Set level based on environment
        try:
            from butler.core.config import get_settings

            settings = get_settings()
            if settings.BUTLER_ENV == "dev":
                logger.setLevel(logging.DEBUG)
            else:
                logger.setLevel(logging.INFO)
        except Exception:
            # Default to INFO if settings not available
            logger.setLevel(logging.INFO)

    return logger


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """
    Log with additional context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Additional context fields (e.g., user_id, source)
    """
    extra: dict[str, Any] = {"extra_data": kwargs}
    if "user_id" in kwargs:
        extra["user_id"] = kwargs.pop("user_id")
        extra["extra_data"] = kwargs

    logger.log(level, msg, extra=extra)
