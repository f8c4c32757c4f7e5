"""Simple key-value message: key, sequence number and body frames."""

from __future__ import annotations

import struct
import sys
from typing import Optional, Sequence, TextIO

from zpatterns.mdp import MessageSocket

_KEY, _SEQ, _BODY = range(3)
_FRAME_COUNT = 3
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _encode_sequence(sequence: int) -> bytes:
    if not _INT64_MIN <= sequence <= _INT64_MAX:
        raise ValueError(f"sequence {sequence} does not fit in 64 bits")
    return struct.pack(">q", sequence)


def _decode_sequence(frame: bytes) -> int:
    if len(frame) < 8:
        raise ValueError("sequence frame is shorter than 8 bytes")
    return struct.unpack(">q", frame[:8])[0]


class KVMessage:
    """A key-value message carried as three frames."""

    def __init__(self, sequence: int) -> None:
        self._frames: list[Optional[bytes]] = [None] * _FRAME_COUNT
        self.sequence = sequence

    @classmethod
    def _from_frames(cls, msg: Sequence[bytes]) -> "KVMessage":
        kvmsg = cls.__new__(cls)
        frames: list[Optional[bytes]] = [bytes(f) for f in msg[:_FRAME_COUNT]]
        kvmsg._frames = frames + [None] * (_FRAME_COUNT - len(frames))
        return kvmsg

    def _require(self, index: int, what: str) -> bytes:
        frame = self._frames[index]
        if frame is None:
            raise KeyError(f"{what} not set")
        return frame

    @property
    def key(self) -> str:
        return self._require(_KEY, "Key").decode("utf-8", "surrogateescape")

    @key.setter
    def key(self, value: str) -> None:
        self._frames[_KEY] = value.encode("utf-8", "surrogateescape")

    @property
    def sequence(self) -> int:
        return _decode_sequence(self._require(_SEQ, "Sequence"))

    @sequence.setter
    def sequence(self, value: int) -> None:
        self._frames[_SEQ] = _encode_sequence(value)

    @property
    def body(self) -> bytes:
        return self._require(_BODY, "Body")

    @body.setter
    def body(self, value: bytes | str) -> None:
        if isinstance(value, str):
            value = value.encode("utf-8")
        self._frames[_BODY] = bytes(value)

    def frames(self) -> list[bytes]:
        """Return the wire frames; missing frames are sent empty."""
        return [frame if frame is not None else b"" for frame in self._frames]

    def send(self, socket: MessageSocket) -> None:
        """Send the message as one multipart message."""
        socket.send_multipart(self.frames())

    def size(self) -> int:
        """Return the body size, or 0 if there is no body."""
        frame = self._frames[_BODY]
        return len(frame) if frame is not None else 0

    def store(self, kvmap: dict[str, "KVMessage"]) -> None:
        """Store the message in ``kvmap`` under its key, if it has one."""
        if self._frames[_KEY] is not None:
            kvmap[self.key] = self

    def _describe(self) -> tuple[int, str, bytes]:
        seq = self.sequence if self._frames[_SEQ] is not None else 0
        key = self.key if self._frames[_KEY] is not None else ""
        body = self._frames[_BODY] or b""
        return seq, key, body

    def dump(self, file: Optional[TextIO] = None) -> None:
        """Print the message for tracing, to stderr by default."""
        out = file if file is not None else sys.stderr
        seq, key, body = self._describe()
        out.write(f"[seq:{seq}][key:{key}][size:{self.size()}]{body.hex().upper()}\n")


def recv_kvmsg(socket: MessageSocket) -> KVMessage:
    """Read one key-value message from ``socket``."""
    return KVMessage._from_frames(socket.recv_multipart())