import logging

import pytest

from zpatterns.ppqueue import (
    HEARTBEAT_INTERVAL,
    HEARTBEAT_LIVENESS,
    PPP_HEARTBEAT,
    PPP_READY,
    WorkerQueue,
)


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def test_protocol_bytes(caplog):
    queue = WorkerQueue(FakeClock())
    with caplog.at_level(logging.ERROR, logger="zpatterns.ppqueue"):
        assert queue.handle_worker_message([b"w1", b"\x01"]) is None
        assert queue.handle_worker_message([b"w2", b"\x02"]) is None
    assert "invalid message" not in caplog.text
    assert queue.identities() == [b"w1", b"w2"]


def test_ready_sets_expiry_from_clock():
    clock = FakeClock()
    queue = WorkerQueue(clock)
    entry = queue.ready(b"w1")
    assert entry.identity == b"w1"
    assert entry.expire == clock.now + HEARTBEAT_INTERVAL * HEARTBEAT_LIVENESS


def test_ready_moves_existing_worker_to_end():
    queue = WorkerQueue(FakeClock())
    for identity in (b"a", b"b", b"c"):
        queue.ready(identity)
    queue.ready(b"a")
    assert queue.identities() == [b"b", b"c", b"a"]
    assert len(queue) == 3


def test_pop_returns_oldest_first():
    queue = WorkerQueue(FakeClock())
    queue.ready(b"a")
    queue.ready(b"b")
    assert queue.pop() == b"a"
    assert queue.identities() == [b"b"]


def test_pop_empty_raises():
    with pytest.raises(IndexError):
        WorkerQueue(FakeClock()).pop()


def test_purge_drops_expired_prefix():
    clock = FakeClock()
    queue = WorkerQueue(clock)
    queue.ready(b"old")
    clock.now += HEARTBEAT_INTERVAL * HEARTBEAT_LIVENESS
    queue.ready(b"new")
    queue.purge()
    assert queue.identities() == [b"new"]


def test_purge_removes_all_when_all_expired():
    clock = FakeClock()
    queue = WorkerQueue(clock)
    queue.ready(b"a")
    queue.ready(b"b")
    clock.now += HEARTBEAT_INTERVAL * HEARTBEAT_LIVENESS + 1
    queue.purge()
    assert len(queue) == 0


def test_purge_keeps_live_workers():
    clock = FakeClock()
    queue = WorkerQueue(clock)
    queue.ready(b"a")
    queue.ready(b"b")
    queue.purge()
    assert queue.identities() == [b"a", b"b"]


def test_worker_reply_is_forwarded():
    queue = WorkerQueue(FakeClock())
    msg = [b"w1", b"client", b"", b"reply"]
    assert queue.handle_worker_message(msg) == [b"client", b"", b"reply"]
    assert queue.identities() == [b"w1"]


def test_ready_and_heartbeat_are_not_forwarded():
    queue = WorkerQueue(FakeClock())
    assert queue.handle_worker_message([b"w1", PPP_READY]) is None
    assert queue.handle_worker_message([b"w2", PPP_HEARTBEAT]) is None
    assert queue.identities() == [b"w1", b"w2"]


def test_invalid_control_frame_is_logged(caplog):
    queue = WorkerQueue(FakeClock())
    with caplog.at_level(logging.ERROR, logger="zpatterns.ppqueue"):
        assert queue.handle_worker_message([b"w1", b"bogus"]) is None
    assert "invalid message" in caplog.text
    assert queue.identities() == [b"w1"]


def test_empty_message_raises():
    with pytest.raises(ValueError):
        WorkerQueue(FakeClock()).handle_worker_message([])