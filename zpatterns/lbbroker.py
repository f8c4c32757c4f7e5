"""Load-balancing broker logic: a queue of ready workers between clients and workers."""

from __future__ import annotations

from typing import Optional, Sequence

from zpatterns.mdp import ProtocolError, unwrap

#: Sent by a worker to say it is ready for work.
WORKER_READY = b"\x01"


class LoadBalancer:
    """Routes client requests to the least recently used ready worker."""

    def __init__(self) -> None:
        self.workers: list[bytes] = []

    def worker_message(self, msg: Sequence[bytes]) -> Optional[list[bytes]]:
        """Queue the worker that sent ``msg``.

        Returns the reply to forward to the frontend, or None for READY.
        """
        identity, rest = unwrap(msg)
        if not rest:
            raise ProtocolError("worker message has no body")
        self.workers.append(identity)
        if rest[0] == WORKER_READY:
            return None
        return rest

    def client_message(self, msg: Sequence[bytes]) -> list[bytes]:
        """Return the frames that route client ``msg`` to the next ready worker."""
        if not self.workers:
            raise IndexError("no workers available")
        worker = self.workers.pop(0)
        return [worker, b"", *msg]

    def __len__(self) -> int:
        return len(self.workers)