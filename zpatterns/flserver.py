"""Freelance servers: reply logic for the sequenced and the ROUTER-based models."""

from __future__ import annotations

from typing import Sequence

from zpatterns.mdp import ProtocolError

OK = b"OK"
PING = b"PING"
PONG = b"PONG"


def sequenced_reply(request: Sequence[bytes]) -> list[bytes]:
    """Answer a ``[sequence, body]`` request with ``[sequence, b"OK"]``."""
    if len(request) != 2:
        raise ProtocolError(f"request has {len(request)} frames, expected 2")
    return [bytes(request[0]), OK]


def freelance_reply(request: Sequence[bytes]) -> list[bytes]:
    """Answer a ROUTER request of identity, control frame and optional body.

    A PING gets ``[identity, b"PONG"]``; anything else gets
    ``[identity, control, b"OK"]``.
    """
    if len(request) < 2:
        raise ProtocolError(f"request has {len(request)} frames, expected at least 2")
    identity, control = bytes(request[0]), bytes(request[1])
    if control == PING:
        return [identity, PONG]
    return [identity, control, OK]