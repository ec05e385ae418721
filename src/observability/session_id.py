"""Session ID management for log correlation.

Each accepted connection runs in its own asyncio task; a ContextVar keeps the
session id of that task so concurrent sessions never mix ids in log lines.
"""

import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for session_id (async-safe)
session_id_var: ContextVar[Optional[str]] = ContextVar("session_id", default=None)


def generate_session_id() -> str:
    """Generate a new short session ID.

    Returns:
        str: First 12 hex characters of a UUID4
    """
    return uuid.uuid4().hex[:12]


def get_session_id() -> str:
    """Get current session ID from context.

    Returns:
        str: Current session ID or "no-session" if not set
    """
    return session_id_var.get() or "no-session"


def set_session_id(session_id: str) -> None:
    """Set session ID in current context."""
    session_id_var.set(session_id)


# Remote address of the connection served by the current task
peer_var: ContextVar[Optional[str]] = ContextVar("peer", default=None)


def set_peer(peer) -> None:
    """Set the remote address in current context.

    Args:
        peer: peername tuple from the transport, a preformatted string, or None
    """
    if isinstance(peer, (tuple, list)) and len(peer) >= 2:
        peer = f"{peer[0]}:{peer[1]}"
    peer_var.set(str(peer) if peer is not None else None)


def get_peer() -> str:
    """Remote address of the current session, or "-" outside a session."""
    return peer_var.get() or "-"
