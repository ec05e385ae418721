"""SMTP protocol adapter: connection acceptor, session state machine, wire vocabulary."""

from .server import SMTPServer
from .session import SMTPSession

__all__ = ["SMTPServer", "SMTPSession"]
