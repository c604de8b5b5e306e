"""
Structured JSON logging.

Logs go to stdout as one JSON object per line so a log collector can index
the structured fields (decision, reason, user id, ...). Structured fields are
attached with `logger.info("msg", extra={"event_data": {...}})`.

Token strings, passwords and digests must never appear in event_data.
"""

import json
import logging
import sys


class JSONLogFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Example output:

        {"timestamp": "2026-10-19 10:30:00,120", "level": "INFO", "logger": "gamehub.sessions",
         "message": "Session resolved", "decision": "access_token", "user_id": "USR0001"}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "event_data"):
            log_entry.update(record.event_data)
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def configure_logging(level: str = "info") -> None:
    """Install the JSON formatter on the root logger."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONLogFormatter())

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=[handler],
        force=True,
    )
