"""Majordomo broker: routes client requests to service workers over one socket."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence

from zpatterns.mdp import (
    MDPC_CLIENT,
    MDPW_DISCONNECT,
    MDPW_HEARTBEAT,
    MDPW_READY,
    MDPW_REPLY,
    MDPW_REQUEST,
    MDPW_WORKER,
    MessageSocket,
    ProtocolError,
    command_name,
    unwrap,
)

logger = logging.getLogger(__name__)

HEARTBEAT_LIVENESS = 3
HEARTBEAT_INTERVAL = 2.5
HEARTBEAT_EXPIRY = HEARTBEAT_INTERVAL * HEARTBEAT_LIVENESS

_MMI_PREFIX = b"mmi."
_MMI_SERVICE = b"mmi.service"


def _to_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _remove_all(items: list, item: object) -> None:
    items[:] = [entry for entry in items if entry is not item]


@dataclass(eq=False)
class Service:
    """A named service with its queued requests and idle workers."""

    broker: "Broker"
    name: bytes
    requests: list[list[bytes]] = field(default_factory=list)
    waiting: list["Worker"] = field(default_factory=list)

    def dispatch(self, msg: Sequence[bytes] = ()) -> None:
        """Queue ``msg`` if given, then hand queued requests to idle workers."""
        if msg:
            self.requests.append(list(msg))
        self.broker.purge()
        while self.waiting and self.requests:
            worker = self.waiting.pop(0)
            _remove_all(self.broker.waiting, worker)
            request = self.requests.pop(0)
            worker.send(MDPW_REQUEST, b"", request)


@dataclass(eq=False)
class Worker:
    """A worker known to the broker, idle or busy."""

    broker: "Broker"
    identity: bytes
    service: Optional[Service] = None
    expiry: float = 0.0

    def delete(self, disconnect: bool) -> None:
        """Forget this worker, telling it to disconnect first if asked."""
        if disconnect:
            self.send(MDPW_DISCONNECT, b"", [])
        if self.service is not None:
            _remove_all(self.service.waiting, self)
        _remove_all(self.broker.waiting, self)
        self.broker.workers.pop(self.identity, None)

    def send(
        self,
        command: bytes,
        option: bytes | str = b"",
        msg: Sequence[bytes | str] = (),
    ) -> None:
        """Send a command to the worker with an optional option frame and payload."""
        frames = [self.identity, b"", MDPW_WORKER, command]
        option_frame = _to_bytes(option)
        if option_frame:
            frames.append(option_frame)
        frames.extend(_to_bytes(part) for part in msg)
        if self.broker.verbose:
            logger.info("I: sending %s to worker %r", command_name(command), frames)
        self.broker.socket.send_multipart(frames)

    def mark_waiting(self) -> None:
        """Put the worker on the idle lists and try to give it work."""
        if self.service is None:
            raise ProtocolError("worker has no service")
        self.broker.waiting.append(self)
        self.service.waiting.append(self)
        self.expiry = self.broker.clock() + HEARTBEAT_EXPIRY
        self.service.dispatch([])


class Broker:
    """A Majordomo broker serving clients and workers on one socket."""

    def __init__(
        self,
        socket: MessageSocket,
        verbose: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.socket = socket
        self.verbose = verbose
        self.clock = clock
        self.services: dict[bytes, Service] = {}
        self.workers: dict[bytes, Worker] = {}
        self.waiting: list[Worker] = []
        self.heartbeat_at = clock() + HEARTBEAT_INTERVAL

    def handle_message(self, msg: Sequence[bytes]) -> None:
        """Process one message as read from the socket: sender, empty, header, body."""
        if len(msg) < 3:
            raise ProtocolError(f"message has {len(msg)} frames, expected at least 3")
        sender, _, header, *body = msg
        if header == MDPC_CLIENT:
            self.client_msg(sender, body)
        elif header == MDPW_WORKER:
            self.worker_msg(sender, body)
        else:
            logger.error("E: invalid message: %r", body)

    def worker_msg(self, sender: bytes, msg: Sequence[bytes]) -> None:
        """Process a READY, REPLY, HEARTBEAT or DISCONNECT from a worker."""
        if not msg:
            raise ProtocolError("worker message has no command")
        command, *body = msg
        worker_ready = sender in self.workers
        worker = self.worker_require(sender)

        if command == MDPW_READY:
            if worker_ready or sender.startswith(_MMI_PREFIX):
                worker.delete(True)
            else:
                if not body:
                    worker.delete(True)
                    raise ProtocolError("READY without a service name")
                worker.service = self.service_require(body[0])
                worker.mark_waiting()
        elif command == MDPW_REPLY:
            if worker_ready and worker.service is not None:
                client, reply = unwrap(body)
                self.socket.send_multipart(
                    [client, b"", MDPC_CLIENT, worker.service.name, *reply]
                )
                worker.mark_waiting()
            else:
                worker.delete(True)
        elif command == MDPW_HEARTBEAT:
            if worker_ready:
                worker.expiry = self.clock() + HEARTBEAT_EXPIRY
            else:
                worker.delete(True)
        elif command == MDPW_DISCONNECT:
            worker.delete(False)
        else:
            logger.error("E: invalid input message %r", body)

    def client_msg(self, sender: bytes, msg: Sequence[bytes]) -> None:
        """Process a client request, answering MMI requests directly."""
        if len(msg) < 2:
            raise ProtocolError(f"client message has {len(msg)} frames, expected at least 2")
        service_frame, *body = msg
        service = self.service_require(service_frame)
        request = [sender, b"", *body]

        if service_frame.startswith(_MMI_PREFIX):
            if service_frame == _MMI_SERVICE:
                target = self.services.get(request[-1])
                return_code = b"200" if target is not None and target.waiting else b"404"
            else:
                return_code = b"501"
            request[-1] = return_code
            client, reply = unwrap(request)
            self.socket.send_multipart([client, b"", MDPC_CLIENT, service_frame, *reply])
        else:
            service.dispatch(request)

    def purge(self) -> None:
        """Delete idle workers whose heartbeat has expired, oldest first."""
        now = self.clock()
        while self.waiting:
            worker = self.waiting[0]
            if worker.expiry > now:
                break
            if self.verbose:
                logger.info("I: deleting expired worker: %r", worker.identity)
            worker.delete(False)

    def service_require(self, name: bytes | str) -> Service:
        """Return the service called ``name``, creating it if needed."""
        key = _to_bytes(name)
        service = self.services.get(key)
        if service is None:
            service = Service(self, key)
            self.services[key] = service
            if self.verbose:
                logger.info("I: added service: %r", key)
        return service

    def worker_require(self, identity: bytes) -> Worker:
        """Return the worker with ``identity``, creating it if needed."""
        key = bytes(identity)
        worker = self.workers.get(key)
        if worker is None:
            worker = Worker(self, key)
            self.workers[key] = worker
            if self.verbose:
                logger.info("I: registering new worker: %r", key)
        return worker

    def send_heartbeats(self) -> None:
        """Purge expired workers and send a heartbeat to every idle one."""
        self.purge()
        for worker in list(self.waiting):
            worker.send(MDPW_HEARTBEAT, b"", [])
        self.heartbeat_at = self.clock() + HEARTBEAT_INTERVAL

    def run_once(self) -> bool:
        """Wait for and process one message, then heartbeat if due.

        Returns true when a message was processed.
        """
        handled = False
        if self.socket.poll(HEARTBEAT_INTERVAL):
            msg = self.socket.recv_multipart()
            if self.verbose:
                logger.info("I: received message: %r", msg)
            self.handle_message(msg)
            handled = True
        if self.clock() > self.heartbeat_at:
            self.send_heartbeats()
        return handled