"""Majordomo clients: a synchronous one with retries and an asynchronous one."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from zpatterns.mdp import MDPC_CLIENT, MajordomoError, MessageSocket, ProtocolError

logger = logging.getLogger(__name__)

SocketFactory = Callable[[str], MessageSocket]

DEFAULT_TIMEOUT = 2.5
DEFAULT_RETRIES = 3


def _to_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


class _BrokerConnection:
    """Shared socket management for the two client flavours."""

    def __init__(
        self,
        broker: str,
        socket_factory: SocketFactory,
        verbose: bool,
        timeout: float,
    ) -> None:
        self.broker = broker
        self.verbose = verbose
        self.timeout = timeout
        self._socket_factory = socket_factory
        self._socket: Optional[MessageSocket] = None
        self.connect_to_broker()

    def _log(self, level: int, message: str, *args: object) -> None:
        if self.verbose:
            logger.log(level, message, *args)

    @property
    def socket(self) -> MessageSocket:
        if self._socket is None:
            raise MajordomoError("client is closed")
        return self._socket

    def connect_to_broker(self) -> None:
        """Connect, or reconnect, to the broker with a fresh socket."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        self._log(logging.INFO, "I: connecting to broker at %s...", self.broker)
        self._socket = self._socket_factory(self.broker)

    def close(self) -> None:
        """Close the socket to the broker; calling it twice is harmless."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    def __enter__(self):
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class MajordomoClient(_BrokerConnection):
    """Synchronous client that retries a request before giving up."""

    def __init__(
        self,
        broker: str,
        socket_factory: SocketFactory,
        verbose: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
    ) -> None:
        self.retries = retries
        super().__init__(broker, socket_factory, verbose, timeout)

    def connect_to_broker(self) -> None:
        """Connect, or reconnect, to the broker with a fresh socket."""
        super().connect_to_broker()

    def send(self, service: bytes | str, *args: bytes | str) -> list[bytes]:
        """Send a request to ``service`` and return the reply body.

        Reconnects after each timeout and raises MajordomoError once
        every retry has gone unanswered.
        """
        service_frame = _to_bytes(service)
        request = [MDPC_CLIENT, service_frame, *(_to_bytes(a) for a in args)]
        self._log(logging.INFO, "I: send request to %r service: %r", service_frame, request)
        for _ in range(self.retries):
            self.socket.send_multipart(request)
            if self.socket.poll(self.timeout):
                msg = self.socket.recv_multipart()
                self._log(logging.INFO, "I: received reply: %r", msg)
                if len(msg) < 3:
                    raise ProtocolError(f"reply has {len(msg)} frames, expected at least 3")
                if msg[0] != MDPC_CLIENT:
                    raise ProtocolError(f"unexpected protocol header {msg[0]!r}")
                if msg[1] != service_frame:
                    raise ProtocolError(f"reply for service {msg[1]!r}, expected {service_frame!r}")
                return list(msg[2:])
            self._log(logging.WARNING, "W: no reply, reconnecting...")
            self.connect_to_broker()
        self._log(logging.WARNING, "W: permanent error, abandoning")
        raise MajordomoError("permanent error")

    def close(self) -> None:
        """Close the socket to the broker."""
        super().close()

    def __enter__(self) -> "MajordomoClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


class AsyncMajordomoClient(_BrokerConnection):
    """Client over a DEALER-style socket: sends without waiting for replies."""

    def __init__(
        self,
        broker: str,
        socket_factory: SocketFactory,
        verbose: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(broker, socket_factory, verbose, timeout)

    def connect_to_broker(self) -> None:
        """Connect, or reconnect, to the broker with a fresh socket."""
        super().connect_to_broker()

    def send(self, service: bytes | str, *args: bytes | str) -> None:
        """Send one request to ``service`` with an empty REQ-style envelope."""
        service_frame = _to_bytes(service)
        request = [b"", MDPC_CLIENT, service_frame, *(_to_bytes(a) for a in args)]
        self._log(logging.INFO, "I: send request to %r service: %r", service_frame, request)
        self.socket.send_multipart(request)

    def recv(self) -> list[bytes]:
        """Wait for one reply and return its body.

        Raises MajordomoError when nothing arrives within the timeout.
        """
        if self.socket.poll(self.timeout):
            msg = self.socket.recv_multipart()
            self._log(logging.INFO, "I: received reply: %r", msg)
            if len(msg) < 4:
                raise ProtocolError(f"reply has {len(msg)} frames, expected at least 4")
            if msg[0] != b"":
                raise ProtocolError("reply does not start with an empty delimiter")
            if msg[1] != MDPC_CLIENT:
                raise ProtocolError(f"unexpected protocol header {msg[1]!r}")
            return list(msg[3:])
        error = MajordomoError("permanent error, abandoning request")
        self._log(logging.WARNING, "%s", error)
        raise error

    def close(self) -> None:
        """Close the socket to the broker."""
        super().close()

    def __enter__(self) -> "AsyncMajordomoClient":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()