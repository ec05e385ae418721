"""Pytest fixtures for SMTP session and mailbox testing.

Provides reusable test fixtures for:
- Temporary mailbox roots and filesystem stores
- In-memory connection streams (fed StreamReader + recording writer)
- A mocked mailbox store port for session unit tests

Usage:
    @pytest.mark.asyncio
    async def test_greeting(make_session):
        session, writer = make_session()
        await session.run()
        assert writer.replies == ["220 Simple SMTP Server Ready"]
"""

import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

# Adjust imports based on project structure
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))

from domain.mailbox.ports import MailboxStorePort, StoredMessage
from infrastructure.mailbox import FilesystemMailboxStore
from infrastructure.smtp import SMTPSession


ACCEPTED_DOMAIN = "@hk.com"


class RecordingStreamWriter:
    """Stand-in for asyncio.StreamWriter that records written bytes."""

    def __init__(self, peername=("127.0.0.1", 40000), fail_after_writes: Optional[int] = None):
        self.buffer = bytearray()
        self.closed = False
        self.writes = 0
        self._peername = peername
        self._fail_after_writes = fail_after_writes

    def write(self, data: bytes) -> None:
        self.buffer.extend(data)
        self.writes += 1

    async def drain(self) -> None:
        if self._fail_after_writes is not None and self.writes > self._fail_after_writes:
            raise ConnectionResetError("Connection reset by peer")

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None

    def get_extra_info(self, name, default=None):
        if name == "peername":
            return self._peername
        return default

    @property
    def replies(self) -> List[str]:
        """Reply lines written so far, without CRLF."""
        return self.buffer.decode("utf-8").split("\r\n")[:-1]


def make_reader(*lines: str, eof: bool = True, limit: int = 65_536) -> asyncio.StreamReader:
    """StreamReader pre-fed with CRLF-terminated lines.

    Must be called while an event loop is running.
    """
    reader = asyncio.StreamReader(limit=limit)
    for line in lines:
        reader.feed_data(line.encode("utf-8") + b"\r\n")
    if eof:
        reader.feed_eof()
    return reader


@pytest.fixture
def mailbox_root(tmp_path) -> Path:
    """Mailbox root directory inside pytest's tmp_path."""
    return tmp_path / "mailbox"


@pytest.fixture
def fs_store(mailbox_root) -> FilesystemMailboxStore:
    """Filesystem store with its root already created."""
    store = FilesystemMailboxStore(mailbox_root)
    store.ensure_root()
    return store


@pytest.fixture
def mock_store():
    """Mock mailbox store port whose persist() succeeds."""
    store = Mock(spec=MailboxStorePort)
    store.persist = AsyncMock(return_value=StoredMessage(
        sender="me@hk.com",
        recipient="you@hk.com",
        timestamp=datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc),
        body="",
        location="/tmp/mailbox/you@hk.com/mail_20261019120000_000000000000.eml",
    ))
    return store


@pytest.fixture
def make_session(mock_store):
    """Factory building an SMTPSession over in-memory streams.

    Returns (session, writer). Lines are fed before the session starts;
    the reader hits EOF after the last line unless eof=False.
    """
    def _make(*lines: str, eof: bool = True, store=None, idle_timeout=None,
              limit: int = 65_536, fail_after_writes: Optional[int] = None):
        writer = RecordingStreamWriter(fail_after_writes=fail_after_writes)
        session = SMTPSession(
            make_reader(*lines, eof=eof, limit=limit),
            writer,
            store=store or mock_store,
            accepted_domain=ACCEPTED_DOMAIN,
            idle_timeout=idle_timeout,
        )
        return session, writer

    return _make
