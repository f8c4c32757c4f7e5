"""Key-value message with UUID and properties frames."""

from __future__ import annotations

import struct
import sys
import uuid as _uuid
from typing import Optional, Sequence, TextIO

from zpatterns.mdp import MessageSocket

_KEY, _SEQ, _UUID, _PROPS, _BODY = range(5)
_FRAME_COUNT = 5
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


def _decode_props(frame: bytes) -> list[str]:
    props = frame.decode("utf-8", "surrogateescape").split("\n")
    if props and props[-1] == "":
        props.pop()
    return props


class KVMessage:
    """A key-value message carried as five frames.

    Frames: key, sequence (8 bytes, network order), UUID (16 bytes),
    properties (``name=value`` lines) and body.
    """

    def __init__(self, sequence: int) -> None:
        self._frames: list[Optional[bytes]] = [None] * _FRAME_COUNT
        self.props: list[str] = []
        self.sequence = sequence

    @classmethod
    def _from_frames(cls, msg: Sequence[bytes]) -> "KVMessage":
        kvmsg = cls.__new__(cls)
        frames: list[Optional[bytes]] = [bytes(f) for f in msg[:_FRAME_COUNT]]
        kvmsg._frames = frames + [None] * (_FRAME_COUNT - len(frames))
        kvmsg.props = _decode_props(kvmsg._frames[_PROPS] or b"")
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

    @property
    def uuid(self) -> bytes:
        """The raw 16-byte UUID frame."""
        return self._require(_UUID, "Uuid")

    def generate_uuid(self) -> None:
        """Set the UUID frame to a fresh random UUID."""
        self._frames[_UUID] = _uuid.uuid4().bytes

    def _encode_props(self) -> None:
        text = "\n".join(self.props) + "\n"
        self._frames[_PROPS] = text.encode("utf-8", "surrogateescape")

    def frames(self) -> list[bytes]:
        """Return the wire frames; missing frames are sent empty."""
        self._encode_props()
        return [frame if frame is not None else b"" for frame in self._frames]

    def send(self, socket: MessageSocket) -> None:
        """Send the message as one multipart message."""
        socket.send_multipart(self.frames())

    def dup(self) -> "KVMessage":
        """Return an independent copy of this message."""
        copy = type(self).__new__(type(self))
        copy._frames = list(self._frames)
        copy.props = list(self.props)
        return copy

    def size(self) -> int:
        """Return the body size, or 0 if there is no body."""
        frame = self._frames[_BODY]
        return len(frame) if frame is not None else 0

    def get_prop(self, name: str) -> str:
        """Return the value of property ``name``."""
        if self._frames[_PROPS] is None:
            raise KeyError("No properties set")
        prefix = name + "="
        for prop in self.props:
            if prop.startswith(prefix):
                return prop[len(prefix):]
        raise KeyError("Property not set")

    def set_prop(self, name: str, value: str) -> None:
        """Set property ``name``, replacing any earlier value."""
        if "=" in name:
            raise ValueError("No '=' allowed in property name")
        prefix = name + "="
        for index, prop in enumerate(self.props):
            if prop.startswith(prefix):
                del self.props[index]
                break
        self.props.append(f"{name}={value}")
        self._encode_props()

    def store(self, kvmap: dict[str, "KVMessage"]) -> None:
        """Store under the key; a message with an empty body deletes the key."""
        if self._frames[_KEY] is None:
            return
        if self._frames[_BODY]:
            kvmap[self.key] = self
        else:
            kvmap.pop(self.key, None)

    def dump(self, file: Optional[TextIO] = None) -> None:
        """Print the message and its properties for tracing, to stderr by default."""
        out = file if file is not None else sys.stderr
        seq = self.sequence if self._frames[_SEQ] is not None else 0
        key = self.key if self._frames[_KEY] is not None else ""
        body = self._frames[_BODY] or b""
        parts = [f"[seq:{seq}][key:{key}][size:{self.size()}] "]
        if self.props:
            parts.append("[" + ";".join(self.props) + "]")
        parts.append(body.hex().upper())
        out.write("".join(parts) + "\n")


def recv_kvmsg(socket: MessageSocket) -> KVMessage:
    """Read one key-value message from ``socket``."""
    return KVMessage._from_frames(socket.recv_multipart())