"""SessionState state machine for one SMTP connection

State flow:
GREETING → COMMAND ⇄ DATA, any state → CLOSED
"""

from enum import Enum
from typing import Dict, List


class SessionState(str, Enum):
    """Lifecycle state of an SMTP session"""
    GREETING = "GREETING"  # Connected, greeting not yet sent
    COMMAND = "COMMAND"    # Reading protocol commands
    DATA = "DATA"          # Collecting body lines until the sentinel
    CLOSED = "CLOSED"      # QUIT, EOF or I/O error (terminal)


ALLOWED_TRANSITIONS: Dict[SessionState, List[SessionState]] = {
    SessionState.GREETING: [SessionState.COMMAND, SessionState.CLOSED],
    SessionState.COMMAND: [SessionState.DATA, SessionState.CLOSED],
    SessionState.DATA: [SessionState.COMMAND, SessionState.CLOSED],
    SessionState.CLOSED: [],
}


def can_transition(from_state: SessionState, to_state: SessionState) -> bool:
    """Validate if a session state transition is allowed

    Example:
        >>> can_transition(SessionState.COMMAND, SessionState.DATA)
        True
        >>> can_transition(SessionState.CLOSED, SessionState.COMMAND)
        False
    """
    return to_state in ALLOWED_TRANSITIONS.get(from_state, [])
