"""Freelance client agent: sends requests to whichever server is alive, with pings."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Sequence

from zpatterns.mdp import MessageSocket, ProtocolError

logger = logging.getLogger(__name__)

#: If no server replies within this time, the request is abandoned.
GLOBAL_TIMEOUT = 3.0
#: Ping interval for servers we think are alive.
PING_INTERVAL = 2.0
#: A server is considered dead if silent for this long.
SERVER_TTL = 6.0
#: Longest wait the agent ever asks for.
MAX_WAIT = 3600.0

CONNECT = b"CONNECT"
REQUEST = b"REQUEST"
PING = b"PING"
OK = b"OK"
FAILED = b"FAILED"


class _RouterSocket(MessageSocket, Protocol):
    def connect(self, endpoint: str) -> None:
        ...


@dataclass(eq=False)
class Server:
    """One server the agent talks to, keyed by its endpoint."""

    endpoint: bytes
    alive: bool = False
    ping_at: float = 0.0
    expires: float = 0.0

    def ping(self, socket: MessageSocket, now: float) -> None:
        """Send a PING to the server if its ping time has passed."""
        if now > self.ping_at:
            socket.send_multipart([self.endpoint, PING])
            self.ping_at = now + PING_INTERVAL

    def tickless(self, t: float) -> float:
        """Return the earlier of ``t`` and this server's next ping time."""
        return self.ping_at if t > self.ping_at else t


class Agent:
    """Back-end state of a Freelance client talking to servers over a ROUTER socket."""

    def __init__(
        self,
        router: _RouterSocket,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.router = router
        self.clock = clock
        self.servers: dict[bytes, Server] = {}
        self.actives: list[Server] = []
        self.sequence = 0
        self.request: list[bytes] = []
        self.expires = 0.0

    def control_message(self, msg: Sequence[bytes]) -> None:
        """Process a CONNECT or REQUEST command from the application."""
        if not msg:
            raise ProtocolError("control message has no command")
        command, *body = msg
        if command == CONNECT:
            if not body:
                raise ProtocolError("CONNECT without an endpoint")
            endpoint = bytes(body[0])
            logger.info("I: connecting to %s...", endpoint.decode("utf-8", "replace"))
            self.router.connect(endpoint.decode("utf-8"))
            now = self.clock()
            server = Server(endpoint, ping_at=now + PING_INTERVAL, expires=now + SERVER_TTL)
            self.servers[endpoint] = server
            self.actives.append(server)
        elif command == REQUEST:
            if self.request:
                raise ProtocolError("a request is already in progress")
            self.sequence += 1
            self.request = [str(self.sequence).encode("ascii"), *(bytes(f) for f in body)]
            self.expires = self.clock() + GLOBAL_TIMEOUT

    def router_message(self, reply: Sequence[bytes]) -> Optional[list[bytes]]:
        """Process one message from a server.

        Returns ``[b"OK", *body]`` for the application when the reply answers
        the current request, otherwise None.
        """
        if len(reply) < 2:
            raise ProtocolError(f"server reply has {len(reply)} frames, expected at least 2")
        endpoint, sequence_frame, *body = reply
        server = self.servers.get(bytes(endpoint))
        if server is None:
            raise ProtocolError(f"no server for endpoint {endpoint!r}")
        if not server.alive:
            self.actives.append(server)
            server.alive = True
        now = self.clock()
        server.ping_at = now + PING_INTERVAL
        server.expires = now + SERVER_TTL

        try:
            sequence = int(sequence_frame)
        except ValueError:
            return None
        if self.request and sequence == self.sequence:
            self.request = []
            return [OK, *body]
        return None

    def dispatch(self) -> Optional[list[bytes]]:
        """Send the current request to the first live server.

        Returns ``[b"FAILED"]`` for the application when the request has
        expired, otherwise None. Expired servers are dropped from the
        active list on the way.
        """
        if not self.request:
            return None
        now = self.clock()
        if now > self.expires:
            self.request = []
            return [FAILED]
        while self.actives:
            server = self.actives[0]
            if now > server.expires:
                self.actives.pop(0)
                server.alive = False
            else:
                self.router.send_multipart([server.endpoint, *self.request])
                break
        return None

    def tickless(self) -> float:
        """Return the time of the next event: request expiry, a ping, or an hour away."""
        deadline = self.clock() + MAX_WAIT
        if self.request and deadline > self.expires:
            deadline = self.expires
        for server in self.servers.values():
            deadline = server.tickless(deadline)
        return deadline

    def send_pings(self) -> None:
        """Send heartbeats to servers whose ping time has come."""
        now = self.clock()
        for server in self.servers.values():
            server.ping(self.router, now)