"""Mailbox domain module - envelope, session states, address rules, store port"""

from .address import (
    clean_address,
    is_accepted_recipient,
    is_safe_mailbox_key,
    is_single_line,
    mailbox_key,
)
from .envelope import CRLF, Envelope
from .session_state import ALLOWED_TRANSITIONS, SessionState, can_transition
from .ports import MailboxStoreError, MailboxStorePort, StoredMessage

__all__ = [
    "CRLF",
    "Envelope",
    "SessionState",
    "can_transition",
    "ALLOWED_TRANSITIONS",
    "clean_address",
    "is_accepted_recipient",
    "is_safe_mailbox_key",
    "is_single_line",
    "mailbox_key",
    "MailboxStoreError",
    "MailboxStorePort",
    "StoredMessage",
]
