"""Structured logging for case-workspace.

Loggers returned by get_logger accept keyword fields alongside the event
name, e.g. ``logger.info("case_created", case_id=case_id)``. The fields are
carried on the LogRecord and surfaced by JSONFormatter.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

# Attributes every LogRecord carries; anything else was passed as a field.
_RESERVED_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime"}

_LOGGING_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

_handler: logging.Handler | None = None


class StructuredLogger(logging.LoggerAdapter):
    """Logger adapter that moves keyword fields into ``extra``."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        fields = {key: kwargs.pop(key) for key in list(kwargs) if key not in _LOGGING_KWARGS}
        extra = dict(kwargs.pop("extra", None) or {})
        extra.update(fields)
        kwargs["extra"] = extra
        return msg, kwargs


class JSONFormatter(logging.Formatter):
    """Format logs as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS and value is not None:
                log[key] = value
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def get_logger(name: str) -> StructuredLogger:
    """Return a structured logger for the given module name.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        A StructuredLogger wrapping the stdlib logger of that name.
    """
    return StructuredLogger(logging.getLogger(name), {})


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure the root logger on startup.

    Calling it again replaces the handler installed by the previous call.

    Args:
        level: Root log level name.
        fmt: ``json`` for JSONFormatter, anything else for plain text.
    """
    global _handler
    handler = logging.StreamHandler()
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    if _handler is not None:
        logging.root.removeHandler(_handler)
    logging.root.addHandler(handler)
    _handler = handler
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
