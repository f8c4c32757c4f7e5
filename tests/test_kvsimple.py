import io
from collections import deque

import pytest

from zpatterns.kvsimple import KVMessage, recv_kvmsg


class _Pipe:
    """Loopback socket: what is sent is received in order."""

    def __init__(self):
        self._queue = deque()

    def send_multipart(self, frames):
        self._queue.append([bytes(f) for f in frames])

    def recv_multipart(self):
        return self._queue.popleft()

    def poll(self, timeout):
        return bool(self._queue)

    def close(self):
        self._queue.clear()


def test_send_and_receive_simple_message():
    pipe = _Pipe()
    kvmap = {}

    kvmsg = KVMessage(1)
    kvmsg.key = "key"
    kvmsg.body = "body"
    kvmsg.dump(io.StringIO())
    kvmsg.send(pipe)
    kvmsg.store(kvmap)
    assert kvmap["key"] is kvmsg

    received = recv_kvmsg(pipe)
    received.dump(io.StringIO())
    assert received.key == "key"
    assert received.sequence == 1
    assert received.body == b"body"
    received.store(kvmap)
    assert kvmap["key"] is received


def test_sequence_wire_format_is_big_endian():
    kvmsg = KVMessage(1)
    assert kvmsg.frames()[1] == b"\x00\x00\x00\x00\x00\x00\x00\x01"


def test_missing_frames_are_sent_empty():
    kvmsg = KVMessage(7)
    frames = kvmsg.frames()
    assert frames[0] == b""
    assert frames[2] == b""
    assert len(frames) == 3


@pytest.mark.parametrize("sequence", [0, 1, 255, 2**40, -1, 2**63 - 1, -(2**63)])
def test_sequence_round_trip(sequence):
    pipe = _Pipe()
    KVMessage(sequence).send(pipe)
    assert recv_kvmsg(pipe).sequence == sequence


def test_sequence_out_of_range_raises():
    with pytest.raises(ValueError):
        KVMessage(2**63)


def test_missing_key_and_body_raise():
    kvmsg = KVMessage(3)
    with pytest.raises(KeyError):
        _ = kvmsg.key
    with pytest.raises(KeyError):
        _ = kvmsg.body
    assert kvmsg.sequence == 3
    kvmsg.key = "k"
    kvmsg.body = "b"
    assert kvmsg.key == "k"
    assert kvmsg.body == b"b"


def test_short_message_leaves_frames_unset():
    pipe = _Pipe()
    pipe.send_multipart([b"only-key"])
    kvmsg = recv_kvmsg(pipe)
    assert kvmsg.key == "only-key"
    with pytest.raises(KeyError):
        kvmsg.sequence
    assert kvmsg.size() == 0


def test_size_counts_body_bytes():
    kvmsg = KVMessage(1)
    assert kvmsg.size() == 0
    kvmsg.body = b"\x00\x01\x02"
    assert kvmsg.size() == 3


def test_store_without_key_does_nothing():
    kvmap = {}
    KVMessage(1).store(kvmap)
    assert kvmap == {}


def test_dump_format():
    kvmsg = KVMessage(1)
    kvmsg.key = "key"
    kvmsg.body = "body"
    out = io.StringIO()
    kvmsg.dump(out)
    assert out.getvalue() == "[seq:1][key:key][size:4]626F6479\n"