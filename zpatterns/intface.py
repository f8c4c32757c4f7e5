"""Peer discovery over UDP beacons: tracks which peers joined and left."""

from __future__ import annotations

import time
import uuid as _uuid
from dataclasses import dataclass
from typing import Callable, Optional

PING_PORT_NUMBER = 9999
#: Seconds between our own beacons.
PING_INTERVAL = 1.0
#: Seconds of silence after which a peer is gone.
PEER_EXPIRY = 5.0

JOINED = "JOINED"
LEFT = "LEFT  "

_UUID_SIZE = 16


@dataclass
class Peer:
    """A peer seen on the network and the time at which it expires."""

    uuid: _uuid.UUID
    expires_at: float = 0.0

    @property
    def uuid_string(self) -> str:
        return str(self.uuid)

    def is_alive(self, now: float) -> None:
        """Push the expiry time forward after activity from the peer."""
        self.expires_at = now + PEER_EXPIRY


class PeerTracker:
    """Turns incoming beacons into JOINED and LEFT events."""

    def __init__(
        self,
        own_uuid: Optional[_uuid.UUID] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.own_uuid = own_uuid if own_uuid is not None else _uuid.uuid4()
        self.clock = clock
        self.peers: dict[str, Peer] = {}

    @property
    def beacon(self) -> bytes:
        """The beacon we broadcast: our UUID as 16 raw bytes."""
        return self.own_uuid.bytes

    def handle_beacon(self, data: bytes) -> Optional[list[str]]:
        """Process one beacon.

        Returns ``["JOINED", uuid]`` for a newly seen peer, otherwise None.
        Our own echoed beacon is ignored.
        """
        if len(data) != _UUID_SIZE:
            raise ValueError("Not a uuid")
        if bytes(data) == self.own_uuid.bytes:
            return None
        peer_uuid = _uuid.UUID(bytes=bytes(data))
        key = str(peer_uuid)
        event = None
        peer = self.peers.get(key)
        if peer is None:
            peer = Peer(peer_uuid)
            self.peers[key] = peer
            event = [JOINED, key]
        peer.is_alive(self.clock())
        return event

    def reap(self) -> list[list[str]]:
        """Forget expired peers and return a ``["LEFT  ", uuid]`` event for each."""
        now = self.clock()
        events = []
        for key, peer in list(self.peers.items()):
            if now > peer.expires_at:
                del self.peers[key]
                events.append([LEFT, key])
        return events