"""Structured JSON logging with request/transaction context fields."""

import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from dropgate.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
transaction_id_ctx: ContextVar[str] = ContextVar("transaction_id", default="")


def redact(value: str | None) -> str:
    """Keep only the last four characters of a token or identifier."""

    if not value or len(value) <= 4:
        return "****"
    return "****" + value[-4:]


class ContextFilter(logging.Filter):
    """Inject service and correlation identifiers into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = trace_id_ctx.get()
        record.transaction_id = redact(transaction_id_ctx.get()) if transaction_id_ctx.get() else ""
        return True


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(service_name)s %(trace_id)s %(transaction_id)s %(message)s"
RENAMED_FIELDS = {"asctime": "timestamp", "levelname": "level", "name": "logger"}

# Client libraries that log every outbound request at INFO.
QUIET_LOGGERS = ("httpx", "httpcore", "botocore", "urllib3")


def configure_logging(level: str | None = None) -> logging.Handler:
    """Send every record to stdout as one JSON object; returns the installed handler."""

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter(LOG_FORMAT, rename_fields=RENAMED_FIELDS))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level or settings.log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler


logger = logging.getLogger("dropgate")
