"""Majordomo protocol constants, the socket interface and shared helpers."""

from __future__ import annotations

from typing import Optional, Protocol, Sequence, runtime_checkable

#: Protocol header sent by MDP/Client peers.
MDPC_CLIENT = b"MDPC01"

#: Protocol header sent by MDP/Worker peers.
MDPW_WORKER = b"MDPW01"

#: MDP/Worker commands, each a single byte.
MDPW_READY = b"\x01"
MDPW_REQUEST = b"\x02"
MDPW_REPLY = b"\x03"
MDPW_HEARTBEAT = b"\x04"
MDPW_DISCONNECT = b"\x05"

COMMANDS: dict[bytes, str] = {
    MDPW_READY: "READY",
    MDPW_REQUEST: "REQUEST",
    MDPW_REPLY: "REPLY",
    MDPW_HEARTBEAT: "HEARTBEAT",
    MDPW_DISCONNECT: "DISCONNECT",
}


@runtime_checkable
class MessageSocket(Protocol):
    """A socket that exchanges whole multipart messages."""

    def send_multipart(self, frames: Sequence[bytes]) -> None:
        """Send one message made of ``frames``."""

    def recv_multipart(self) -> list[bytes]:
        """Block until a message arrives and return its frames."""

    def poll(self, timeout: Optional[float]) -> bool:
        """Wait up to ``timeout`` seconds (``None`` waits forever) for input.

        Returns true when a message can be received without blocking.
        """

    def close(self) -> None:
        """Release the socket."""


class MajordomoError(Exception):
    """Base class for Majordomo failures."""


class ProtocolError(MajordomoError):
    """A peer sent a message that breaks the protocol."""


def unwrap(msg: Sequence[bytes]) -> tuple[bytes, list[bytes]]:
    """Split off the first frame, and the empty delimiter after it if any."""
    if not msg:
        raise ValueError("cannot unwrap an empty message")
    head, *tail = msg
    if tail and tail[0] == b"":
        tail = tail[1:]
    return head, list(tail)


def command_name(command: bytes) -> str:
    """Return the printable name of a worker command, or "" if unknown."""
    return COMMANDS.get(command, "")