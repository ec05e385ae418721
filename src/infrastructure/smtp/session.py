"""SMTP session: the per-connection protocol state machine.

One SMTPSession owns one accepted connection from greeting to close. It
reads a line, dispatches it according to the current state, writes the
reply and drains the writer before reading the next line.

Envelope policy:
- DATA is only accepted once a recipient in the accepted domain is set
  (otherwise 503); a missing sender is allowed.
- After the sentinel line the message is persisted exactly once and the
  whole envelope is cleared, whether persistence succeeded or not.
- A persistence failure is reported as 451, never as 250.
"""

import asyncio
import logging
from collections import deque
from typing import Deque, Optional

from domain.mailbox import (
    Envelope,
    SessionState,
    can_transition,
    clean_address,
    is_accepted_recipient,
)
from domain.mailbox.ports import MailboxStoreError, MailboxStorePort
from observability.metrics import (
    smtp_active_sessions,
    smtp_commands_total,
    smtp_sessions_total,
)
from observability.session_id import generate_session_id, set_peer, set_session_id

from .protocol import (
    DATA_SENTINEL,
    REPLY_BAD_DOMAIN,
    REPLY_BAD_SEQUENCE,
    REPLY_BYE,
    REPLY_GREETING,
    REPLY_HELLO,
    REPLY_IDLE_TIMEOUT,
    REPLY_OK,
    REPLY_START_DATA,
    REPLY_STORE_FAILED,
    REPLY_UNRECOGNIZED,
    Command,
    Verb,
    encode_reply,
    parse_command,
    split_lines,
)

logger = logging.getLogger(__name__)


class SMTPSession:
    """Stateful handler for one accepted connection.

    Example:
        session = SMTPSession(reader, writer, store, accepted_domain="@hk.com")
        await session.run()
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        store: MailboxStorePort,
        accepted_domain: str,
        idle_timeout: Optional[float] = None,
    ):
        """Initialize session.

        Args:
            reader: Connection input stream
            writer: Connection output stream
            store: Mailbox store receiving completed messages
            accepted_domain: Recipient suffix accepted by RCPT TO
            idle_timeout: Seconds to wait for each line (None or 0: wait forever)
        """
        self.reader = reader
        self.writer = writer
        self.store = store
        self.accepted_domain = accepted_domain
        self.idle_timeout = idle_timeout or None

        self.session_id = generate_session_id()
        self.state = SessionState.GREETING
        self.envelope = Envelope()
        self.peer = writer.get_extra_info("peername")
        # Lines already read but not yet handled (a chunk may hold several CR-separated lines)
        self._pending: Deque[str] = deque()

    async def run(self) -> None:
        """Serve the connection until QUIT, EOF, idle timeout or I/O error."""
        set_session_id(self.session_id)
        set_peer(self.peer)
        smtp_sessions_total.inc()
        smtp_active_sessions.inc()
        logger.info("Session opened")

        try:
            await self.reply(REPLY_GREETING)
            self._transition(SessionState.COMMAND)

            while self.state is not SessionState.CLOSED:
                line = await self._read_line()
                if line is None:
                    self._transition(SessionState.CLOSED)
                elif self.state is SessionState.DATA:
                    await self._handle_data_line(line)
                else:
                    await self._handle_command(line)

        except (ConnectionError, OSError) as e:
            logger.warning(f"Connection error, closing session: {e}")
        finally:
            self.state = SessionState.CLOSED
            smtp_active_sessions.dec()
            await self._close()
            logger.info("Session closed")

    async def reply(self, line: str) -> None:
        """Write one reply line and flush it to the peer."""
        self.writer.write(encode_reply(line))
        await self.writer.drain()

    async def _read_line(self) -> Optional[str]:
        """Read one line; None means the session must end."""
        if self._pending:
            return self._pending.popleft()

        try:
            if self.idle_timeout is None:
                raw = await self.reader.readline()
            else:
                raw = await asyncio.wait_for(self.reader.readline(), self.idle_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"No input for {self.idle_timeout}s, closing session")
            await self.reply(REPLY_IDLE_TIMEOUT)
            return None
        except ValueError as e:
            # StreamReader.readline raises ValueError when the line exceeds the buffer limit
            logger.warning(f"Line too long, closing session: {e}")
            return None

        if not raw:
            return None
        self._pending.extend(split_lines(raw))
        return self._pending.popleft()

    async def _handle_command(self, line: str) -> None:
        command = parse_command(line)
        reply = self._dispatch(command)
        smtp_commands_total.labels(command=command.verb.value, code=reply[:3]).inc()
        await self.reply(reply)

    def _dispatch(self, command: Command) -> str:
        """Apply a command to the envelope and return the reply line."""
        if command.verb is Verb.HELO:
            return REPLY_HELLO

        if command.verb is Verb.MAIL:
            self.envelope.sender = clean_address(command.argument)
            return REPLY_OK

        if command.verb is Verb.RCPT:
            address = clean_address(command.argument)
            if not is_accepted_recipient(address, self.accepted_domain):
                logger.info(f"Rejected recipient outside {self.accepted_domain}: {address}")
                return REPLY_BAD_DOMAIN
            self.envelope.recipient = address
            return REPLY_OK

        if command.verb is Verb.DATA:
            if self.envelope.recipient is None:
                return REPLY_BAD_SEQUENCE
            self._transition(SessionState.DATA)
            return REPLY_START_DATA

        if command.verb is Verb.QUIT:
            self._transition(SessionState.CLOSED)
            return REPLY_BYE

        return REPLY_UNRECOGNIZED

    async def _handle_data_line(self, line: str) -> None:
        if line != DATA_SENTINEL:
            self.envelope.add_body_line(line)
            return

        reply = await self._deliver()
        self.envelope.reset()
        self._transition(SessionState.COMMAND)
        await self.reply(reply)

    async def _deliver(self) -> str:
        """Persist the current envelope; return the reply for the sentinel."""
        try:
            await self.store.persist(
                self.envelope.sender,
                self.envelope.recipient,
                self.envelope.body,
            )
        except MailboxStoreError as e:
            logger.error(f"Failed to store message for {self.envelope.recipient}: {e}")
            return REPLY_STORE_FAILED
        except Exception as e:
            logger.error(
                f"Unexpected error storing message for {self.envelope.recipient}: {e}",
                exc_info=True,
            )
            return REPLY_STORE_FAILED
        return REPLY_OK

    def _transition(self, to_state: SessionState) -> None:
        if not can_transition(self.state, to_state):
            raise RuntimeError(f"Invalid session transition {self.state.value} -> {to_state.value}")
        self.state = to_state

    async def _close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Error while closing connection: {e}")
