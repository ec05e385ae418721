"""SMTP server: accepts connections and runs one SMTPSession per connection.

Each connection is served by its own asyncio task. The server never waits
on a session's lifetime; it only enforces the configured connection cap and
tracks live sessions so shutdown can let them finish.
"""

import asyncio
import logging
from typing import Optional, Set

from domain.mailbox.ports import MailboxStorePort
from observability.metrics import smtp_connections_rejected_total
from observability.session_id import set_peer

from .protocol import REPLY_TOO_MANY, encode_reply
from .session import SMTPSession

logger = logging.getLogger(__name__)


class SMTPServer:
    """Connection acceptor for the SMTP mailbox server.

    Connection policy:
    - max_connections > 0: a connection arriving while that many sessions
      are open gets ``421 Too many connections`` and is closed
    - max_connections == 0: no cap
    - idle_timeout is handed to every session as its per-line read deadline

    Example:
        server = SMTPServer(store, host="0.0.0.0", port=2525, accepted_domain="@hk.com")
        await server.start()
        ...
        await server.stop(grace=10)
    """

    def __init__(
        self,
        store: MailboxStorePort,
        host: str,
        port: int,
        accepted_domain: str,
        max_connections: int = 0,
        idle_timeout: Optional[float] = None,
        max_line_length: int = 65_536,
    ):
        self.store = store
        self.host = host
        self.port = port
        self.accepted_domain = accepted_domain
        self.max_connections = max_connections
        self.idle_timeout = idle_timeout
        self.max_line_length = max_line_length

        self._server: Optional[asyncio.AbstractServer] = None
        self._sessions: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings, store: MailboxStorePort) -> "SMTPServer":
        """Build a server from a Settings instance."""
        return cls(
            store=store,
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            accepted_domain=settings.SMTP_ACCEPTED_DOMAIN,
            max_connections=settings.SMTP_MAX_CONNECTIONS,
            idle_timeout=settings.SMTP_IDLE_TIMEOUT,
            max_line_length=settings.SMTP_MAX_LINE_LENGTH,
        )

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    @property
    def sockets(self):
        return self._server.sockets if self._server else ()

    @property
    def bound_port(self) -> int:
        """Actual listening port (useful when started with port 0)."""
        return self.sockets[0].getsockname()[1]

    async def start(self) -> None:
        """Bind and start accepting.

        Raises:
            OSError: If the address cannot be bound
        """
        self._server = await asyncio.start_server(
            self._handle_connection,
            host=self.host,
            port=self.port,
            limit=self.max_line_length,
        )
        logger.info(f"SMTP server listening on {self.host}:{self.bound_port}")

    async def stop(self, grace: float = 10.0) -> None:
        """Stop accepting, give open sessions ``grace`` seconds, cancel the rest."""
        if self._server is None:
            return

        self._server.close()
        pending = set(self._sessions)
        if pending:
            logger.info(f"Waiting up to {grace}s for {len(pending)} open session(s)")
            _, pending = await asyncio.wait(pending, timeout=grace)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} session(s) still open after {grace}s")
            await asyncio.gather(*pending, return_exceptions=True)

        await self._server.wait_closed()
        self._server = None
        logger.info("SMTP server stopped")

    async def _handle_connection(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        if self.max_connections and len(self._sessions) >= self.max_connections:
            await self._reject(writer)
            return

        task = asyncio.current_task()
        self._sessions.add(task)
        try:
            session = SMTPSession(
                reader,
                writer,
                store=self.store,
                accepted_domain=self.accepted_domain,
                idle_timeout=self.idle_timeout,
            )
            await session.run()
        finally:
            self._sessions.discard(task)

    async def _reject(self, writer: asyncio.StreamWriter) -> None:
        peer = writer.get_extra_info("peername")
        set_peer(peer)
        logger.warning(f"Connection limit {self.max_connections} reached, rejecting {peer}")
        smtp_connections_rejected_total.labels(reason="connection_limit").inc()
        try:
            writer.write(encode_reply(REPLY_TOO_MANY))
            await writer.drain()
        except (ConnectionError, OSError) as e:
            logger.debug(f"Could not send rejection to {peer}: {e}")
        finally:
            writer.close()
