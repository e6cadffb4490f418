"""
Logging setup for the app.

Pretty single-line logs in dev, JSON lines in production. Everything logs
under the ``app`` logger hierarchy (``logging.getLogger(__name__)`` inside the
package), so one handler here covers every module.
"""
import json
import logging
import sys
from datetime import datetime, timezone

# Keys set via ``extra=`` that are worth carrying into the output
_CONTEXT_KEYS = ("event_id", "event_type", "user_id", "outcome", "status")


def _format_timestamp(record: logging.LogRecord) -> str:
    return datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z")


def _context(record: logging.LogRecord) -> dict:
    return {k: getattr(record, k) for k in _CONTEXT_KEYS if getattr(record, k, None) is not None}


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": _format_timestamp(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class PrettyFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        ctx = " ".join(f"{k}={v}" for k, v in _context(record).items())
        line = f"{_format_timestamp(record)} {record.levelname} [{record.name}] {record.getMessage()}"
        if ctx:
            line = f"{line} ({ctx})"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(level: str = "info", env: str = "dev") -> None:
    logger = logging.getLogger("app")
    logger.setLevel(level.upper())

    formatter: logging.Formatter
    if env.lower() in ("prod", "production"):
        formatter = JsonFormatter()
    else:
        formatter = PrettyFormatter()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    logger.handlers = [handler]
    logger.propagate = False
