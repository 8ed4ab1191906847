"""Structured JSON logging correlated with the current request."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import sys
from typing import Any

import orjson

from opendata_search.observability.context import current_request


# Loggers too chatty at INFO for a search API: the client logs every request
_QUIET_LOGGERS = {
    "elastic_transport": "WARNING",
    "elasticsearch": "WARNING",
}


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, tagged with the request's trace ids and route.

    Fields passed through ``extra=`` are copied to the top level, except
    credentials, which are masked.
    """

    REDACT_KEYS = frozenset({"password", "token", "api_key", "secret", "authorization"})
    MAX_MESSAGE_LEN = 2000
    MAX_FIELD_LEN = 500
    _STANDARD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        request = current_request()
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "component": record.name.rpartition(".")[2],
            "message": self._clip(record.getMessage(), self.MAX_MESSAGE_LEN),
            "trace_id": request.trace_id,
            "span_id": request.span_id,
        }
        if request.route:
            entry["route"] = request.route
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        entry.update(self._extra_fields(record))
        return orjson.dumps(entry, default=str).decode()

    def _extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        fields = {}
        for key, value in record.__dict__.items():
            if key in self._STANDARD_ATTRS or key.startswith("_"):
                continue
            if key.lower() in self.REDACT_KEYS:
                value = "[REDACTED]"
            elif isinstance(value, str):
                value = self._clip(value, self.MAX_FIELD_LEN)
            fields[key] = value
        return fields

    @staticmethod
    def _clip(text: str, limit: int) -> str:
        return text if len(text) <= limit else text[:limit] + "..."


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    logger_levels: dict[str, str] | None = None,
    access_log: bool = False,
) -> None:
    """Send all logging to stdout through a single root handler.

    Args:
        level: Root log level name
        json_output: Emit ``JsonFormatter`` lines instead of plain text
        logger_levels: Per-logger level overrides, applied after the defaults
        access_log: Keep uvicorn's per-request access log at the root level
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JsonFormatter() if json_output else logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )
    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(_level(level))

    levels = dict(_QUIET_LOGGERS)
    if not access_log:
        levels["uvicorn.access"] = "WARNING"
    levels.update(logger_levels or {})
    for name, logger_level in levels.items():
        logging.getLogger(name).setLevel(_level(logger_level))
