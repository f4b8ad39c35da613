# lambdas/trail_filter/log_setup.py
import json
import logging
import sys
from datetime import datetime, timezone

PACKAGE_LOGGER = "lambdas.trail_filter"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, so CloudWatch Logs Insights can query the fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "level": record.levelname.lower(),
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        fields = getattr(record, "fields", None)
        if isinstance(fields, dict):
            entry.update(fields)
        if record.exc_info:
            entry["error"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO", stream=None) -> logging.Logger:
    """
    Attaches a JSON stdout handler to the package logger. Safe to call on every
    warm start; the handler is only added once.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    if not any(getattr(h, "_trail_filter", False) for h in logger.handlers):
        handler = logging.StreamHandler(stream or sys.stdout)
        handler.setFormatter(JsonFormatter())
        handler._trail_filter = True
        logger.addHandler(handler)
    # The Lambda runtime puts its own plain-text handler on the root logger.
    logger.propagate = False
    return logger
