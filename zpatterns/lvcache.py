"""Last value cache: remembers the latest update per topic for new subscribers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from zpatterns.mdp import ProtocolError

logger = logging.getLogger(__name__)

#: First byte of an XPUB subscription event.
SUBSCRIBE = 1
#: First byte of an XPUB unsubscription event.
UNSUBSCRIBE = 0


@dataclass
class LastValueCache:
    """Caches the last body published on each topic."""

    cache: dict[bytes, bytes] = field(default_factory=dict)

    def publish(self, msg: Sequence[bytes]) -> list[bytes]:
        """Cache a ``[topic, body]`` update and return the frames to forward."""
        if len(msg) < 2:
            raise ProtocolError(f"update has {len(msg)} frames, expected at least 2")
        frames = [bytes(frame) for frame in msg]
        self.cache[frames[0]] = frames[1]
        return frames

    def subscription(self, frame: bytes) -> Optional[list[bytes]]:
        """Handle an XPUB subscription event.

        Returns ``[topic, body]`` to resend when the event subscribes to a
        cached topic, otherwise None.
        """
        if not frame:
            raise ProtocolError("empty subscription event")
        if frame[0] != SUBSCRIBE:
            return None
        topic = bytes(frame[1:])
        logger.info("Sending cached topic %r", topic)
        previous = self.cache.get(topic)
        if previous is None:
            return None
        return [topic, previous]