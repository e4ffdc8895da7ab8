"""PINGSYNC - Structured JSON Logging."""

import logging
import json
import sys
from datetime import datetime, timezone
from pingsync.config import settings

EXTRA_FIELDS = (
    "entity_id",
    "entity_kind",
    "category",
    "points",
    "duration_ms",
    "status_code",
    "url",
)


class JSONFormatter(logging.Formatter):
    """Produces structured JSON log lines for production observability."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        # Attach extra fields if present
        for key in EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)
        return json.dumps(log_entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger with structured JSON handler."""
    logger = logging.getLogger(f"pingsync.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return logger


def set_level(level: str) -> None:
    """Change the level of every pingsync logger already created."""
    value = getattr(logging, level.upper(), logging.INFO)
    manager = logging.getLogger().manager
    for name, logger in list(manager.loggerDict.items()):
        if name.startswith("pingsync.") and isinstance(logger, logging.Logger):
            logger.setLevel(value)
