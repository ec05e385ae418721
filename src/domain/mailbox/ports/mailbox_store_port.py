"""Mailbox Store Port - Domain interface for message persistence.

Adapters implement this interface to persist a completed message for a
recipient. The only shipped adapter is the filesystem store (one file per
message under a directory named after the recipient).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class MailboxStoreError(Exception):
    """Raised when a message could not be persisted."""
    pass


@dataclass(frozen=True)
class StoredMessage:
    """A persisted message record. Immutable once written.

    Attributes:
        sender: Envelope sender as received (None if MAIL FROM was never sent)
        recipient: Envelope recipient as received
        timestamp: Time the record was written (local time, tz-aware)
        body: Body text, CRLF-terminated per line
        location: Identity of the record in the backend (file path)
    """
    sender: Optional[str]
    recipient: str
    timestamp: datetime
    body: str
    location: str


class MailboxStorePort(ABC):
    """Port interface for persisting completed messages."""

    @abstractmethod
    async def persist(
        self,
        sender: Optional[str],
        recipient: str,
        body: str,
    ) -> StoredMessage:
        """Persist one message for ``recipient``.

        Args:
            sender: Envelope sender (may be None)
            recipient: Accepted recipient address
            body: Raw body text, already CRLF-terminated per line

        Returns:
            StoredMessage: The written record

        Raises:
            MailboxStoreError: If the record could not be written
        """
        pass
