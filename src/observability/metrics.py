"""Prometheus metrics for the SMTP mailbox server.

Defines operational metrics for monitoring and alerting, and a helper to
expose them over HTTP.
"""

import logging

from prometheus_client import Counter, Gauge, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Connection metrics
smtp_sessions_total = Counter(
    "smtp_sessions_total",
    "Total number of SMTP sessions started"
)

smtp_active_sessions = Gauge(
    "smtp_active_sessions",
    "Number of SMTP sessions currently open"
)

smtp_connections_rejected_total = Counter(
    "smtp_connections_rejected_total",
    "Connections closed before a session started",
    ["reason"]  # reason: connection_limit
)

# Protocol metrics
smtp_commands_total = Counter(
    "smtp_commands_total",
    "SMTP commands handled, by verb and reply code",
    ["command", "code"]  # command: HELO|MAIL|RCPT|DATA|QUIT|UNKNOWN
)

# Persistence metrics
smtp_messages_persisted_total = Counter(
    "smtp_messages_persisted_total",
    "Messages handed to the mailbox store",
    ["status"]  # status: success|error
)

smtp_persist_duration_seconds = Histogram(
    "smtp_persist_duration_seconds",
    "Time spent writing one message record in seconds",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)


def start_metrics_server(port: int, addr: str = "0.0.0.0") -> None:
    """Serve the default registry on ``addr:port`` from a background thread."""
    start_http_server(port, addr=addr)
    logger.info(f"Prometheus metrics exposed on {addr}:{port}")
