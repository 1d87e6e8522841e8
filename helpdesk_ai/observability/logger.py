from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from helpdesk_ai.observability.tracing import get_correlation_id
from helpdesk_ai.settings import settings

_CONFIGURED = False

# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}

_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "uvicorn.access")

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - [%(correlation_id)s] %(message)s"


class CorrelationIdFilter(logging.Filter):
    """Stamp each record with the request's correlation id unless the caller set one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_correlation_id("-")
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line. Event fields passed via ``extra=`` become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        correlation_id = getattr(record, "correlation_id", None)
        if not correlation_id or correlation_id == "-":
            correlation_id = get_correlation_id()

        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id,
        }
        for key, value in vars(record).items():
            if key in _RECORD_ATTRIBUTES or key in payload:
                continue
            payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(force: bool = False) -> None:
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    if settings.log_format.lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level.upper())
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    _CONFIGURED = True
