import pytest

from zpatterns.flcliapi import (
    GLOBAL_TIMEOUT,
    PING_INTERVAL,
    SERVER_TTL,
    Agent,
    Server,
)
from zpatterns.mdp import ProtocolError


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeRouter:
    def __init__(self):
        self.sent = []
        self.connected = []

    def connect(self, endpoint):
        self.connected.append(endpoint)

    def send_multipart(self, frames):
        self.sent.append(list(frames))

    def recv_multipart(self):
        raise AssertionError("not used")

    def poll(self, timeout):
        return False

    def close(self):
        pass


ENDPOINT = b"tcp://localhost:5555"


@pytest.fixture
def setup():
    clock = FakeClock()
    router = FakeRouter()
    agent = Agent(router, clock)
    agent.control_message([b"CONNECT", ENDPOINT])
    return agent, router, clock


def test_connect_registers_server(setup):
    agent, router, _ = setup
    assert router.connected == ["tcp://localhost:5555"]
    assert list(agent.servers) == [ENDPOINT]
    assert agent.actives == [agent.servers[ENDPOINT]]
    assert agent.servers[ENDPOINT].ping_at == PING_INTERVAL
    assert agent.servers[ENDPOINT].expires == SERVER_TTL


def test_request_is_sent_with_sequence(setup):
    agent, router, _ = setup
    agent.control_message([b"REQUEST", b"random name"])
    assert agent.dispatch() is None
    assert router.sent == [[ENDPOINT, b"1", b"random name"]]


def test_matching_reply_is_returned_and_clears_request(setup):
    agent, router, _ = setup
    agent.control_message([b"REQUEST", b"random name"])
    agent.dispatch()
    assert agent.router_message([ENDPOINT, b"1", b"OK"]) == [b"OK", b"OK"]
    assert agent.request == []
    router.sent.clear()
    assert agent.dispatch() is None
    assert router.sent == []


def test_stale_reply_is_dropped(setup):
    agent, _, _ = setup
    agent.control_message([b"REQUEST", b"a"])
    agent.router_message([ENDPOINT, b"1", b"OK"])
    agent.control_message([b"REQUEST", b"b"])
    assert agent.router_message([ENDPOINT, b"1", b"OK"]) is None
    assert agent.request == [b"2", b"b"]


def test_pong_marks_server_alive(setup):
    agent, _, clock = setup
    clock.now = 1.0
    assert agent.router_message([ENDPOINT, b"PONG"]) is None
    server = agent.servers[ENDPOINT]
    assert server.alive is True
    assert server.expires == 1.0 + SERVER_TTL


def test_unknown_endpoint_raises(setup):
    agent, _, _ = setup
    with pytest.raises(ProtocolError):
        agent.router_message([b"tcp://elsewhere:1", b"1", b"OK"])


def test_second_request_while_pending_raises(setup):
    agent, _, _ = setup
    agent.control_message([b"REQUEST", b"a"])
    with pytest.raises(ProtocolError):
        agent.control_message([b"REQUEST", b"b"])


def test_request_expires(setup):
    agent, _, clock = setup
    agent.control_message([b"REQUEST", b"a"])
    clock.now = GLOBAL_TIMEOUT + 0.5
    assert agent.dispatch() == [b"FAILED"]
    assert agent.request == []


def test_expired_server_removed_from_actives(setup):
    agent, router, clock = setup
    clock.now = SERVER_TTL + 1.0
    agent.control_message([b"REQUEST", b"a"])
    assert agent.dispatch() is None
    assert agent.actives == []
    assert router.sent == []


def test_ping_only_when_due(setup):
    agent, router, clock = setup
    clock.now = 1.0
    agent.send_pings()
    assert router.sent == []
    clock.now = PING_INTERVAL + 0.5
    agent.send_pings()
    assert router.sent == [[ENDPOINT, b"PING"]]
    assert agent.servers[ENDPOINT].ping_at == PING_INTERVAL + 0.5 + PING_INTERVAL


def test_agent_tickless_uses_earliest_event(setup):
    agent, _, _ = setup
    assert agent.tickless() == PING_INTERVAL


def test_server_tickless_picks_earlier_time():
    server = Server(ENDPOINT, ping_at=5.0)
    assert server.tickless(10.0) == 5.0
    assert server.tickless(3.0) == 3.0