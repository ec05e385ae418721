"""Structured JSON logging configuration.

Every record handled by the root handler carries the session id and remote
peer of the connection that produced it, in both the JSON and the plain
text format.
"""

import logging
import json
import sys
from datetime import datetime, timezone

from .session_id import get_peer, get_session_id

PLAIN_FORMAT = (
    '%(asctime)s - %(levelname)s - %(session_id)s - %(peer)s - '
    '%(module)s.%(funcName)s - %(message)s'
)


class SessionIDFilter(logging.Filter):
    """Stamp session_id and peer onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        """Add correlation attributes to the record.

        A ``peer`` passed through ``extra`` is kept as given.

        Returns:
            bool: Always True (don't filter out records)
        """
        record.session_id = get_session_id()
        if not hasattr(record, "peer"):
            record.peer = get_peer()
        return True


class JSONFormatter(logging.Formatter):
    """Format log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "session_id": getattr(record, "session_id", "no-session"),
            "module": record.module,
            "function": record.funcName,
            "message": record.getMessage(),
        }

        peer = getattr(record, "peer", "-")
        if peer != "-":
            log_data["peer"] = str(peer)

        if record.exc_info:
            log_data["error"] = str(record.exc_info[1])
            log_data["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging(level: str = "INFO", json_format: bool = True) -> None:
    """Configure application-wide logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: If True, use JSON formatter; otherwise PLAIN_FORMAT
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level.upper()))
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(PLAIN_FORMAT))
    handler.addFilter(SessionIDFilter())
    root_logger.addHandler(handler)

    # asyncio logs every reset connection at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)
