"""Address handling for envelope commands.

The routing decision (does this recipient belong to the accepted domain?)
works on the address exactly as received. Only the storage key is
lower-cased.
"""

import re

_ANGLE_BRACKETS = re.compile(r"[<>]")


def clean_address(raw: str) -> str:
    """Remove angle brackets and surrounding whitespace.

    Examples:
        '<me@hk.com>' → 'me@hk.com'
        ' you@hk.com ' → 'you@hk.com'

    No well-formedness check is made.
    """
    return _ANGLE_BRACKETS.sub("", raw).strip()


def is_accepted_recipient(address: str, accepted_domain: str) -> bool:
    """Case-sensitive suffix match against the accepted domain."""
    return address.endswith(accepted_domain)


def mailbox_key(address: str) -> str:
    """Storage key (directory name) for a recipient address."""
    return address.lower()


def is_safe_mailbox_key(key: str) -> bool:
    """True if ``key`` is a single, non-special path component."""
    if not key or key in (".", ".."):
        return False
    return not any(ch in key for ch in ("/", "\\", "\x00"))


def is_single_line(value: str) -> bool:
    """True if ``value`` holds no CR or LF and can be written as one header line."""
    return "\r" not in value and "\n" not in value
