"""Integration tests for the SMTP server over real loopback sockets.

Each test starts an SMTPServer on an ephemeral port with a filesystem store
in tmp_path and talks to it with asyncio streams.
"""

import asyncio
from email.utils import parsedate_to_datetime

import pytest
import pytest_asyncio

from infrastructure.mailbox import FilesystemMailboxStore
from infrastructure.smtp import SMTPServer


ACCEPTED_DOMAIN = "@hk.com"
READ_TIMEOUT = 5


class SMTPTestClient:
    """Minimal line client speaking the server's command subset."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer

    @classmethod
    async def connect(cls, port: int) -> "SMTPTestClient":
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        return cls(reader, writer)

    async def read_reply(self) -> str:
        line = await asyncio.wait_for(self.reader.readline(), READ_TIMEOUT)
        return line.decode("utf-8").rstrip("\r\n")

    async def send(self, line: str) -> None:
        self.writer.write(line.encode("utf-8") + b"\r\n")
        await self.writer.drain()

    async def command(self, line: str) -> str:
        await self.send(line)
        return await self.read_reply()

    async def send_message(self, sender: str, recipient: str, body_lines) -> list:
        """Run one full transaction after the greeting; return reply codes."""
        replies = [
            await self.command("HELO test"),
            await self.command(f"MAIL FROM:<{sender}>"),
            await self.command(f"RCPT TO:<{recipient}>"),
            await self.command("DATA"),
        ]
        for line in body_lines:
            await self.send(line)
        replies.append(await self.command("."))
        return [r[:3] for r in replies]

    async def close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            pass


async def start_server(store, **kwargs) -> SMTPServer:
    server = SMTPServer(
        store,
        host="127.0.0.1",
        port=0,
        accepted_domain=ACCEPTED_DOMAIN,
        **kwargs,
    )
    await server.start()
    return server


@pytest_asyncio.fixture
async def server(fs_store):
    """Running server with a 5 second idle deadline and no connection cap."""
    server = await start_server(fs_store, idle_timeout=5)
    yield server
    await server.stop(grace=1)


def records_for(mailbox_root, recipient):
    directory = mailbox_root / recipient.lower()
    if not directory.exists():
        return []
    return sorted(p for p in directory.iterdir() if p.suffix == ".eml")


def read_record(path):
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


class TestEndToEnd:
    """Test full client conversations"""

    @pytest.mark.asyncio
    async def test_single_message_scenario(self, server, mailbox_root):
        client = await SMTPTestClient.connect(server.bound_port)

        replies = [await client.read_reply()]
        for line in ["HELO x", "MAIL FROM:<me@hk.com>", "RCPT TO:<you@hk.com>", "DATA"]:
            replies.append(await client.command(line))
        await client.send("Subject: hi")
        replies.append(await client.command("."))
        replies.append(await client.command("QUIT"))

        assert [r[:3] for r in replies] == ["220", "250", "250", "250", "354", "250", "221"]
        assert replies[0] == "220 Simple SMTP Server Ready"
        assert await client.reader.read() == b""
        await client.close()

        records = records_for(mailbox_root, "you@hk.com")
        assert len(records) == 1
        lines = read_record(records[0]).split("\r\n")
        assert lines[0] == "From: me@hk.com"
        assert lines[1] == "To: you@hk.com"
        assert lines[2].startswith("Date: ")
        parsedate_to_datetime(lines[2][len("Date: "):])
        assert lines[3] == ""
        assert lines[4] == "Subject: hi"

    @pytest.mark.asyncio
    async def test_rejected_domain_stores_nothing(self, server, mailbox_root):
        client = await SMTPTestClient.connect(server.bound_port)
        await client.read_reply()

        assert await client.command("RCPT TO:<you@elsewhere.com>") == "550 Unsupported recipient domain"
        assert await client.command("DATA") == "503 Bad sequence of commands"
        assert await client.command("QUIT") == "221 Bye"
        await client.close()

        assert list(mailbox_root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_two_messages_one_connection(self, server, mailbox_root):
        client = await SMTPTestClient.connect(server.bound_port)
        await client.read_reply()

        first = await client.send_message("me@hk.com", "you@hk.com", ["one"])
        second = await client.send_message("me@hk.com", "you@hk.com", ["two"])
        await client.command("QUIT")
        await client.close()

        assert first == second == ["250", "250", "250", "354", "250"]
        bodies = {read_record(p).split("\r\n\r\n", 1)[1] for p in records_for(mailbox_root, "you@hk.com")}
        assert bodies == {"one\r\n", "two\r\n"}

    @pytest.mark.asyncio
    async def test_client_disconnect_mid_data(self, server, mailbox_root):
        client = await SMTPTestClient.connect(server.bound_port)
        await client.read_reply()
        await client.command("RCPT TO:<you@hk.com>")
        await client.command("DATA")
        await client.send("half a message")
        await client.close()

        for _ in range(50):
            if server.active_sessions == 0:
                break
            await asyncio.sleep(0.02)

        assert server.active_sessions == 0
        assert records_for(mailbox_root, "you@hk.com") == []


class TestConcurrency:
    """Test independent concurrent sessions"""

    @pytest.mark.asyncio
    async def test_two_clients_two_recipients(self, server, mailbox_root):
        async def conversation(recipient, body):
            client = await SMTPTestClient.connect(server.bound_port)
            await client.read_reply()
            codes = await client.send_message("me@hk.com", recipient, [body])
            await client.command("QUIT")
            await client.close()
            return codes

        results = await asyncio.gather(
            conversation("alice@hk.com", "for alice"),
            conversation("bob@hk.com", "for bob"),
        )

        assert results == [["250", "250", "250", "354", "250"]] * 2
        alice = records_for(mailbox_root, "alice@hk.com")
        bob = records_for(mailbox_root, "bob@hk.com")
        assert len(alice) == 1 and len(bob) == 1
        assert read_record(alice[0]).endswith("\r\n\r\nfor alice\r\n")
        assert read_record(bob[0]).endswith("\r\n\r\nfor bob\r\n")

    @pytest.mark.asyncio
    async def test_many_clients_same_recipient(self, server, mailbox_root):
        count = 10

        async def conversation(i):
            client = await SMTPTestClient.connect(server.bound_port)
            await client.read_reply()
            codes = await client.send_message("me@hk.com", "you@hk.com", [f"message {i}"])
            await client.close()
            return codes[-1]

        results = await asyncio.gather(*[conversation(i) for i in range(count)])

        assert results == ["250"] * count
        assert len(records_for(mailbox_root, "you@hk.com")) == count


class TestResourcePolicy:
    """Test connection cap, idle deadline and shutdown"""

    @pytest.mark.asyncio
    async def test_connection_limit(self, fs_store):
        server = await start_server(fs_store, max_connections=1, idle_timeout=5)
        try:
            first = await SMTPTestClient.connect(server.bound_port)
            assert (await first.read_reply()).startswith("220")

            second = await SMTPTestClient.connect(server.bound_port)
            assert await second.read_reply() == "421 Too many connections, try again later"
            assert await second.reader.read() == b""
            await second.close()

            assert await first.command("HELO x") == "250 Hello"
            await first.command("QUIT")
            await first.close()
        finally:
            await server.stop(grace=1)

    @pytest.mark.asyncio
    async def test_idle_timeout(self, fs_store):
        server = await start_server(fs_store, idle_timeout=0.2)
        try:
            client = await SMTPTestClient.connect(server.bound_port)
            await client.read_reply()

            assert await client.read_reply() == "421 Idle timeout, closing connection"
            assert await client.reader.read() == b""
            await client.close()
        finally:
            await server.stop(grace=1)

    @pytest.mark.asyncio
    async def test_stop_cancels_lingering_sessions(self, fs_store):
        server = await start_server(fs_store)
        client = await SMTPTestClient.connect(server.bound_port)
        await client.read_reply()
        assert server.active_sessions == 1

        await server.stop(grace=0.1)

        assert server.active_sessions == 0
        assert await asyncio.wait_for(client.reader.read(), READ_TIMEOUT) == b""
        await client.close()

    @pytest.mark.asyncio
    async def test_bind_conflict_raises(self, server, fs_store):
        other = SMTPServer(
            fs_store,
            host="127.0.0.1",
            port=server.bound_port,
            accepted_domain=ACCEPTED_DOMAIN,
        )

        with pytest.raises(OSError):
            await other.start()
