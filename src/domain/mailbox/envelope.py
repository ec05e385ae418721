"""Envelope collected for one message submission within a session."""

from dataclasses import dataclass, field
from typing import List, Optional

# Canonical protocol line ending, used on the wire and in stored records
CRLF = "\r\n"


@dataclass
class Envelope:
    """Sender, recipient and body lines of the message in progress.

    Owned by exactly one session. ``sender`` and ``recipient`` are set by
    successful MAIL FROM / RCPT TO commands, ``body_lines`` only grows while
    the session is in DATA mode.
    """
    sender: Optional[str] = None
    recipient: Optional[str] = None
    body_lines: List[str] = field(default_factory=list)

    def add_body_line(self, line: str) -> None:
        self.body_lines.append(line)

    @property
    def body(self) -> str:
        """Body text with every line terminated by CRLF."""
        return "".join(line + CRLF for line in self.body_lines)

    def reset(self) -> None:
        """Clear sender, recipient and body after a completed message."""
        self.sender = None
        self.recipient = None
        self.body_lines.clear()
