"""Filesystem Mailbox Store - Implementation of MailboxStorePort on local disk.

Stores each message as one self-contained ``.eml`` file under
``{root}/{lower-cased recipient}/``. Records are written to a hidden temp
file and renamed into place, so a reader never sees a half-written message.

Architecture: Hexagonal - Adapter implementation in infrastructure layer
"""

import asyncio
import logging
import os
import time
import uuid
from datetime import datetime
from email.utils import format_datetime
from pathlib import Path
from typing import Optional, Union

from domain.mailbox import CRLF, is_safe_mailbox_key, is_single_line, mailbox_key
from domain.mailbox.ports import MailboxStoreError, MailboxStorePort, StoredMessage
from observability.metrics import (
    smtp_messages_persisted_total,
    smtp_persist_duration_seconds,
)

logger = logging.getLogger(__name__)

# Written in the From header when MAIL FROM was never issued
NULL_SENDER = "<>"


class FilesystemMailboxStore(MailboxStorePort):
    """Mailbox store writing one file per message.

    Layout:
        {root}/you@hk.com/mail_20261019143005_3f2a9c1b7d4e.eml

    The filename keeps a second-resolution timestamp for sorting and adds
    12 hex characters of a UUID4 so concurrent writes to the same recipient
    never collide.

    Record format (CRLF line endings, UTF-8):
        From: me@hk.com
        To: you@hk.com
        Date: Mon, 19 Oct 2026 14:30:05 +0200

        <body as received>

    Example:
        store = FilesystemMailboxStore(settings.MAILBOX_ROOT)
        store.ensure_root()
        stored = await store.persist("me@hk.com", "you@hk.com", "Subject: hi\\r\\n")
    """

    def __init__(self, root: Union[str, Path]):
        """Initialize filesystem store.

        Args:
            root: Directory holding one subdirectory per recipient
        """
        self.root = Path(root)

    def ensure_root(self) -> None:
        """Create the root directory (and parents) if missing."""
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Mailbox root ready: {self.root.resolve()}")

    def recipient_dir(self, recipient: str) -> Path:
        """Directory holding the records of ``recipient``.

        Raises:
            MailboxStoreError: If the storage key is not a single safe path component
        """
        key = mailbox_key(recipient)
        if not is_safe_mailbox_key(key):
            raise MailboxStoreError(f"Unsafe mailbox name: {recipient!r}")
        return self.root / key

    @staticmethod
    def _check_header_values(sender: Optional[str], recipient: str) -> None:
        """Refuse envelope values that would break out of their header line."""
        for value in (sender, recipient):
            if value is not None and not is_single_line(value):
                raise MailboxStoreError(f"Line break in envelope address: {value!r}")

    @staticmethod
    def generate_filename(timestamp: datetime) -> str:
        """Unique record name: mail_{YYYYMMDDHHMMSS}_{12 hex chars}.eml"""
        return f"mail_{timestamp.strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:12]}.eml"

    @staticmethod
    def render(sender: Optional[str], recipient: str, timestamp: datetime, body: str) -> str:
        """Render headers, blank separator line and body as one record."""
        return (
            f"From: {sender if sender is not None else NULL_SENDER}{CRLF}"
            f"To: {recipient}{CRLF}"
            f"Date: {format_datetime(timestamp)}{CRLF}"
            f"{CRLF}"
            f"{body}"
        )

    async def persist(
        self,
        sender: Optional[str],
        recipient: str,
        body: str,
    ) -> StoredMessage:
        """Write one message record for ``recipient``.

        The directory is created on demand; concurrent callers racing to
        create it are fine. The write happens in the default executor.

        Raises:
            MailboxStoreError: If the directory or file could not be written
        """
        timestamp = datetime.now().astimezone()
        started = time.perf_counter()

        try:
            self._check_header_values(sender, recipient)
            directory = self.recipient_dir(recipient)
            path = directory / self.generate_filename(timestamp)
            content = self.render(sender, recipient, timestamp, body)

            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._write_atomic, directory, path, content)
        except MailboxStoreError:
            smtp_messages_persisted_total.labels(status="error").inc()
            raise
        except OSError as e:
            smtp_messages_persisted_total.labels(status="error").inc()
            raise MailboxStoreError(f"Failed to store message for {recipient}: {e}") from e

        smtp_messages_persisted_total.labels(status="success").inc()
        smtp_persist_duration_seconds.observe(time.perf_counter() - started)
        logger.info(f"Saved email to {path.resolve()}")

        return StoredMessage(
            sender=sender,
            recipient=recipient,
            timestamp=timestamp,
            body=body,
            location=str(path),
        )

    @staticmethod
    def _write_atomic(directory: Path, path: Path, content: str) -> None:
        """Write to a hidden .tmp file next to ``path`` then rename it."""
        directory.mkdir(parents=True, exist_ok=True)
        tmp_path = directory / f".{path.name}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8", newline="") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
