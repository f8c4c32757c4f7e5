"""Majordomo worker: registers a service and answers requests from a broker."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Sequence

from zpatterns.mdp import (
    MDPW_DISCONNECT,
    MDPW_HEARTBEAT,
    MDPW_READY,
    MDPW_REPLY,
    MDPW_REQUEST,
    MDPW_WORKER,
    MajordomoError,
    MessageSocket,
    ProtocolError,
    command_name,
    unwrap,
)

logger = logging.getLogger(__name__)

HEARTBEAT_LIVENESS = 3
DEFAULT_HEARTBEAT = 2.5
DEFAULT_RECONNECT = 2.5

SocketFactory = Callable[[str], MessageSocket]


def _to_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


class MajordomoWorker:
    """Worker side of the Majordomo protocol, with heartbeating."""

    def __init__(
        self,
        broker: str,
        service: bytes | str,
        socket_factory: SocketFactory,
        verbose: bool = False,
        heartbeat: float = DEFAULT_HEARTBEAT,
        reconnect: float = DEFAULT_RECONNECT,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.broker = broker
        self.service = _to_bytes(service)
        self.verbose = verbose
        self.heartbeat = heartbeat
        self.reconnect = reconnect
        self._sleep = sleep
        self._socket_factory = socket_factory
        self._socket: Optional[MessageSocket] = None
        self.liveness = HEARTBEAT_LIVENESS
        self.heartbeat_at = 0.0
        self.expect_reply = False
        self.reply_to: Optional[bytes] = None
        self.connect_to_broker()

    def _log(self, level: int, message: str, *args: object) -> None:
        if self.verbose:
            logger.log(level, message, *args)

    @property
    def socket(self) -> MessageSocket:
        if self._socket is None:
            raise MajordomoError("worker is closed")
        return self._socket

    def send_to_broker(
        self,
        command: bytes,
        option: bytes | str = b"",
        msg: Sequence[bytes | str] = (),
    ) -> None:
        """Send ``command`` to the broker, with an optional option frame and payload."""
        frames = [b"", MDPW_WORKER, command]
        option_frame = _to_bytes(option)
        if option_frame:
            frames.append(option_frame)
        frames.extend(_to_bytes(part) for part in msg)
        self._log(logging.INFO, "I: sending %s to broker %r", command_name(command), frames)
        self.socket.send_multipart(frames)

    def connect_to_broker(self) -> None:
        """Connect, or reconnect, to the broker and register the service."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        self._socket = self._socket_factory(self.broker)
        self._log(logging.INFO, "I: connecting to broker at %s...", self.broker)
        self.send_to_broker(MDPW_READY, self.service)
        self.liveness = HEARTBEAT_LIVENESS
        self.heartbeat_at = time.monotonic() + self.heartbeat

    def recv(self, reply: Sequence[bytes | str] = ()) -> list[bytes]:
        """Send ``reply`` for the previous request, then wait for the next request."""
        if not reply and self.expect_reply:
            raise ValueError("a reply is expected for the previous request")
        if reply:
            if self.reply_to is None:
                raise MajordomoError("no request to reply to")
            self.send_to_broker(MDPW_REPLY, b"", [self.reply_to, b"", *reply])
        self.expect_reply = True

        while True:
            if self.socket.poll(self.heartbeat):
                msg = self.socket.recv_multipart()
                self._log(logging.INFO, "I: received message from broker: %r", msg)
                self.liveness = HEARTBEAT_LIVENESS
                if len(msg) < 3:
                    raise ProtocolError(f"message has {len(msg)} frames, expected at least 3")
                if msg[0] != b"":
                    raise ProtocolError("message does not start with an empty delimiter")
                if msg[1] != MDPW_WORKER:
                    raise ProtocolError(f"unexpected protocol header {msg[1]!r}")
                command, body = msg[2], list(msg[3:])
                if command == MDPW_REQUEST:
                    self.reply_to, request = unwrap(body)
                    return request
                if command == MDPW_DISCONNECT:
                    self.connect_to_broker()
                elif command != MDPW_HEARTBEAT:
                    logger.error("E: invalid input message %r", body)
            else:
                self.liveness -= 1
                if self.liveness == 0:
                    self._log(logging.WARNING, "W: disconnected from broker - retrying...")
                    self._sleep(self.reconnect)
                    self.connect_to_broker()
            if time.monotonic() > self.heartbeat_at:
                self.send_to_broker(MDPW_HEARTBEAT)
                self.heartbeat_at = time.monotonic() + self.heartbeat

    def close(self) -> None:
        """Close the socket to the broker."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    def __enter__(self) -> "MajordomoWorker":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()