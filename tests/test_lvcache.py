import pytest

from zpatterns.lvcache import LastValueCache
from zpatterns.mdp import ProtocolError


def test_publish_forwards_and_caches():
    cache = LastValueCache()
    forwarded = cache.publish([b"001", b"Save Roger"])
    assert forwarded == [b"001", b"Save Roger"]
    assert cache.cache == {b"001": b"Save Roger"}


def test_subscription_returns_cached_value():
    cache = LastValueCache()
    cache.publish([b"042", b"Save Roger"])
    assert cache.subscription(b"\x01042") == [b"042", b"Save Roger"]


def test_later_publish_replaces_value():
    cache = LastValueCache()
    cache.publish([b"042", b"Save Roger"])
    cache.publish([b"042", b"Off with his head!"])
    assert cache.subscription(b"\x01042") == [b"042", b"Off with his head!"]


def test_unsubscribe_sends_nothing():
    cache = LastValueCache()
    cache.publish([b"042", b"Save Roger"])
    assert cache.subscription(b"\x00042") is None


def test_unknown_topic_sends_nothing():
    cache = LastValueCache()
    cache.publish([b"042", b"Save Roger"])
    assert cache.subscription(b"\x01999") is None


def test_empty_event_is_rejected():
    with pytest.raises(ProtocolError):
        LastValueCache().subscription(b"")


def test_short_update_is_rejected():
    cache = LastValueCache()
    with pytest.raises(ProtocolError):
        cache.publish([b"042"])
    assert cache.cache == {}