"""Logging configuration driven by application settings."""

import json
import logging
import sys
from datetime import UTC, datetime

from app.core.config import LogFormatEnum, settings


class JsonFormatter(logging.Formatter):
    """Render log records as one-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging() -> None:
    """Configure the root logger once, from ``settings.log_level`` and ``settings.log_format``."""
    handler = logging.StreamHandler(sys.stdout)
    if settings.log_format == LogFormatEnum.json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level.value)

    # SQL echo is controlled by settings.debug on the engine
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
