"""Observability module for the SMTP mailbox server.

Provides structured logging, metrics and session correlation.
"""

from .logging_config import configure_logging
from .metrics import (
    smtp_sessions_total,
    smtp_active_sessions,
    smtp_connections_rejected_total,
    smtp_commands_total,
    smtp_messages_persisted_total,
    smtp_persist_duration_seconds,
    start_metrics_server,
)
from .session_id import (
    session_id_var,
    get_session_id,
    set_session_id,
    generate_session_id,
    peer_var,
    get_peer,
    set_peer,
)

__all__ = [
    # Logging
    "configure_logging",
    # Metrics
    "smtp_sessions_total",
    "smtp_active_sessions",
    "smtp_connections_rejected_total",
    "smtp_commands_total",
    "smtp_messages_persisted_total",
    "smtp_persist_duration_seconds",
    "start_metrics_server",
    # Session ID
    "session_id_var",
    "get_session_id",
    "set_session_id",
    "generate_session_id",
    "peer_var",
    "get_peer",
    "set_peer",
]
