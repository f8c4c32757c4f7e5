"""Paranoid Pirate queue: a load-balancing worker list with heartbeat expiry."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from zpatterns.mdp import unwrap

logger = logging.getLogger(__name__)

HEARTBEAT_LIVENESS = 3
HEARTBEAT_INTERVAL = 1.0

PPP_READY = b"\x01"
PPP_HEARTBEAT = b"\x02"


@dataclass
class WorkerEntry:
    """A ready worker and the time at which it expires."""

    identity: bytes
    expire: float


class WorkerQueue:
    """Workers ordered from least to most recently seen."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._workers: list[WorkerEntry] = []

    def ready(self, identity: bytes) -> WorkerEntry:
        """Move the worker to the end of the list with a fresh expiry time."""
        entry = WorkerEntry(
            bytes(identity), self.clock() + HEARTBEAT_INTERVAL * HEARTBEAT_LIVENESS
        )
        for index, worker in enumerate(self._workers):
            if worker.identity == entry.identity:
                del self._workers[index]
                break
        self._workers.append(entry)
        return entry

    def purge(self) -> None:
        """Drop expired workers from the front, stopping at the first live one."""
        now = self.clock()
        for index, worker in enumerate(self._workers):
            if now < worker.expire:
                del self._workers[:index]
                return
        self._workers.clear()

    def pop(self) -> bytes:
        """Remove and return the identity of the least recently used worker."""
        if not self._workers:
            raise IndexError("no workers available")
        return self._workers.pop(0).identity

    def identities(self) -> list[bytes]:
        """Return the identities of the ready workers, oldest first."""
        return [worker.identity for worker in self._workers]

    def __len__(self) -> int:
        return len(self._workers)

    def handle_worker_message(self, msg: Sequence[bytes]) -> Optional[list[bytes]]:
        """Process a message from a worker.

        Any message marks the worker ready. Returns the reply to forward to
        the client, or None for a READY, HEARTBEAT or invalid control frame.
        """
        identity, rest = unwrap(msg)
        self.ready(identity)
        if len(rest) == 1:
            if rest[0] not in (PPP_READY, PPP_HEARTBEAT):
                logger.error("E: invalid message from worker %r", rest)
            return None
        return rest