"""Wire vocabulary of the minimal SMTP subset: reply lines and command parsing.

Verbs are matched on exact, case-sensitive literal prefixes. Leading
whitespace or lowercase verbs fall through to UNKNOWN.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from domain.mailbox import CRLF

# Reply lines (without line ending)
REPLY_GREETING = "220 Simple SMTP Server Ready"
REPLY_HELLO = "250 Hello"
REPLY_OK = "250 OK"
REPLY_START_DATA = "354 End data with <CR><LF>.<CR><LF>"
REPLY_BYE = "221 Bye"
REPLY_UNRECOGNIZED = "500 Unrecognized command"
REPLY_BAD_DOMAIN = "550 Unsupported recipient domain"
REPLY_BAD_SEQUENCE = "503 Bad sequence of commands"
REPLY_STORE_FAILED = "451 Requested action aborted: local error in processing"
REPLY_TOO_MANY = "421 Too many connections, try again later"
REPLY_IDLE_TIMEOUT = "421 Idle timeout, closing connection"

# A line consisting of exactly this ends DATA mode
DATA_SENTINEL = "."

MAIL_FROM_PREFIX = "MAIL FROM:"
RCPT_TO_PREFIX = "RCPT TO:"


class Verb(str, Enum):
    """Command verbs understood in command mode"""
    HELO = "HELO"      # HELO or EHLO, any argument
    MAIL = "MAIL"
    RCPT = "RCPT"
    DATA = "DATA"
    QUIT = "QUIT"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class Command:
    """A parsed command line.

    Attributes:
        verb: Matched verb
        argument: Text after the MAIL FROM: / RCPT TO: prefix, else None
    """
    verb: Verb
    argument: Optional[str] = None


def parse_command(line: str) -> Command:
    """Classify one command-mode line.

    Examples:
        'EHLO client.example' → Command(Verb.HELO)
        'MAIL FROM:<me@hk.com>' → Command(Verb.MAIL, '<me@hk.com>')
        'mail from:<me@hk.com>' → Command(Verb.UNKNOWN)
        'DATA ' → Command(Verb.UNKNOWN)
    """
    if line.startswith("HELO") or line.startswith("EHLO"):
        return Command(Verb.HELO)
    if line.startswith(MAIL_FROM_PREFIX):
        return Command(Verb.MAIL, line[len(MAIL_FROM_PREFIX):])
    if line.startswith(RCPT_TO_PREFIX):
        return Command(Verb.RCPT, line[len(RCPT_TO_PREFIX):])
    if line == "DATA":
        return Command(Verb.DATA)
    if line == "QUIT":
        return Command(Verb.QUIT)
    return Command(Verb.UNKNOWN)


def split_lines(raw: bytes) -> List[str]:
    """Decode one chunk from readline() into protocol lines.

    CRLF, bare LF and bare CR all end a line, so a chunk like
    b"HELO x\\rQUIT\\r\\n" yields two lines. A final line without a
    terminator (peer closed mid-line) is returned as is.
    """
    text = raw.decode("utf-8", errors="replace")
    if text.endswith("\n"):
        text = text[:-1]
    if text.endswith("\r"):
        text = text[:-1]
    return text.split("\r")


def encode_reply(reply: str) -> bytes:
    return (reply + CRLF).encode("utf-8")
