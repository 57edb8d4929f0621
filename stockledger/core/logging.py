"""JSON logging for the service and the audit CLI.

Ledger events are logged by name (``stock.movement.recorded``,
``stock.debit.rejected`` ...) with their fields under ``extra_data`` so that
every line stays a flat, greppable JSON object.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from .context import actor_ctx_var, request_id_ctx_var

_RESERVED_KEYS = frozenset({"ts", "level", "logger", "event"})


def _context_fields() -> dict[str, str]:
    fields = {}
    request_id = request_id_ctx_var.get()
    if request_id:
        fields["request_id"] = request_id
    actor = actor_ctx_var.get()
    if actor:
        fields["actor"] = actor
    return fields


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
        }
        payload.update(_context_fields())
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, Mapping):
            # Event fields never overwrite the envelope keys.
            payload.update({key: value for key, value in extra.items() if key not in _RESERVED_KEYS})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), default=str)


def configure_logging(level: str = "INFO") -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    logging.root.handlers = [handler]
    logging.root.setLevel(level)
    # The access line comes from our own middleware.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields: object) -> None:
    """Emit ``event`` with ``fields`` attached as structured ``extra_data``."""

    logger.log(level, event, extra={"extra_data": fields})
