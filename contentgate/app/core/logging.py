"""Logging setup for contentgate.

Everything goes through the standard library: ``setup_logging()`` applies a
dictConfig built from settings (``LOG_FORMAT`` = text | structured | json).
Request-scoped fields (request id, path, method) are held in a context
variable set by RequestIdMiddleware and stamped onto every record by
ContextFilter, so handlers deep in the call stack need not pass them.
"""

import json
import logging
import logging.config
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from contentgate.app.core.config import settings

# Fields promoted to the top level of JSON output
CONTEXT_FIELDS = (
    "request_id",
    "identity",     # user:<id> or anon:<uuid>
    "role",
    "path",
    "method",
    "status_code",
)

# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}

_request_context: ContextVar[Dict[str, Any]] = ContextVar("contentgate_request_context", default={})


def bind_request_context(**fields: Any) -> None:
    """Attach fields to every record logged from the current request."""
    _request_context.set({**_request_context.get(), **fields})


def clear_request_context() -> None:
    _request_context.set({})


def current_request_context() -> Dict[str, Any]:
    return dict(_request_context.get())


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Context fields sit at the top level; any other ``extra=`` values are
    grouped under ``"extra"``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        extra: Dict[str, Any] = {}
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS:
                continue
            if key in CONTEXT_FIELDS:
                if value is not None:
                    payload[key] = value
            else:
                extra[key] = value
        if extra:
            payload["extra"] = extra

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Fill context fields from the request context, defaulting to None.

    Values passed explicitly through ``extra=`` win over the bound context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        bound = _request_context.get()
        for field in CONTEXT_FIELDS:
            if getattr(record, field, None) is None:
                setattr(record, field, bound.get(field))
        return True


_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_STRUCTURED_FORMAT = _TEXT_FORMAT + " [request_id=%(request_id)s identity=%(identity)s]"


def get_logging_config() -> Dict[str, Any]:
    """Build the dictConfig for the configured format and level."""
    level = settings.log_level.upper()
    fmt = settings.log_format.lower()

    if fmt == "json":
        formatter: Dict[str, Any] = {"()": "contentgate.app.core.logging.JSONFormatter"}
    elif fmt == "structured":
        formatter = {"format": _STRUCTURED_FORMAT}
    else:
        fmt = "text"
        formatter = {"format": _TEXT_FORMAT}

    def logger_entry() -> Dict[str, Any]:
        return {"level": level, "handlers": ["console"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {fmt: formatter},
        "filters": {"context": {"()": "contentgate.app.core.logging.ContextFilter"}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "level": level,
                "formatter": fmt,
                "filters": ["context"],
            },
        },
        "loggers": {
            "contentgate": logger_entry(),
            "uvicorn": logger_entry(),
        },
        "root": {"level": level, "handlers": ["console"]},
    }


def setup_logging() -> None:
    logging.config.dictConfig(get_logging_config())
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpx", "aiosmtplib"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str = "contentgate") -> logging.Logger:
    return logging.getLogger(name)


def get_log_context(
    request_id: Optional[str] = None,
    identity: Optional[str] = None,
    role: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build an ``extra=`` mapping, dropping empty values.

    Example:
        >>> logger.info("Article served", extra=get_log_context(identity="anon:1234"))
    """
    context = {"request_id": request_id, "identity": identity, "role": role, **extra}
    return {k: v for k, v in context.items() if v is not None}
