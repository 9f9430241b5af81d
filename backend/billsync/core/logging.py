"""Logging for the billsync backend.

Exposes a module-level ``logger`` (a :class:`ContextualLogger`) that can be
specialised with ``with_context(**dimensions)``. Dimensions are attached to
every record and rendered as top-level keys by the JSON formatter.

Usage:
    from billsync.core.logging import logger

    log = logger.with_context(external_user_id="user_123", event_type="payment_failed")
    log.info("Applying billing event")
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, MutableMapping

from billsync.core.config import settings

_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "dimensions"}


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        """Serialize the record, its dimensions and any extra fields as JSON."""
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(getattr(record, "dimensions", {}) or {})
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ReadableFormatter(logging.Formatter):
    """Human-readable formatter used during local development."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the record and append its dimensions as key=value pairs."""
        line = super().format(record)
        dimensions = getattr(record, "dimensions", None)
        if dimensions:
            rendered = " ".join(f"{k}={v}" for k, v in dimensions.items())
            line = f"{line} [{rendered}]"
        return line


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that carries a dict of dimensions into every record."""

    def __init__(self, logger: logging.Logger, dimensions: dict[str, Any] | None = None):
        """Wrap ``logger`` with an initial set of dimensions."""
        super().__init__(logger, {})
        self.dimensions: dict[str, Any] = dict(dimensions or {})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        """Merge this logger's dimensions into the record's `extra`."""
        extra = dict(kwargs.get("extra") or {})
        extra["dimensions"] = {**self.dimensions, **extra.get("dimensions", {})}
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **dimensions: Any) -> "ContextualLogger":
        """Return a new logger with ``dimensions`` merged over the current ones."""
        merged = {**self.dimensions, **{k: v for k, v in dimensions.items() if v is not None}}
        return ContextualLogger(self.logger, merged)


def _configure_root(name: str) -> logging.Logger:
    base = logging.getLogger(name)
    base.setLevel(settings.LOG_LEVEL)
    if not base.handlers:
        handler = logging.StreamHandler(sys.stdout)
        if settings.LOCAL_DEVELOPMENT:
            handler.setFormatter(
                ReadableFormatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
            )
        else:
            handler.setFormatter(JSONFormatter())
        base.addHandler(handler)
    base.propagate = False
    return base


logger = ContextualLogger(_configure_root("billsync"))
