import pytest

from zpatterns.mdp import (
    MDPW_DISCONNECT,
    MDPW_HEARTBEAT,
    MDPW_READY,
    MDPW_REPLY,
    MDPW_REQUEST,
    command_name,
    unwrap,
)


def test_unwrap_drops_empty_delimiter():
    head, tail = unwrap([b"client", b"", b"body", b"more"])
    assert head == b"client"
    assert tail == [b"body", b"more"]


def test_unwrap_without_delimiter_keeps_rest():
    head, tail = unwrap([b"client", b"body"])
    assert head == b"client"
    assert tail == [b"body"]


def test_unwrap_single_frame():
    head, tail = unwrap([b"only"])
    assert head == b"only"
    assert tail == []


def test_unwrap_only_drops_one_empty_frame():
    head, tail = unwrap([b"a", b"", b""])
    assert head == b"a"
    assert tail == [b""]


def test_unwrap_does_not_modify_input():
    msg = [b"a", b"", b"b"]
    unwrap(msg)
    assert msg == [b"a", b"", b"b"]


def test_unwrap_empty_message_raises():
    with pytest.raises(ValueError):
        unwrap([])


@pytest.mark.parametrize(
    "command, name",
    [
        (MDPW_READY, "READY"),
        (MDPW_REQUEST, "REQUEST"),
        (MDPW_REPLY, "REPLY"),
        (MDPW_HEARTBEAT, "HEARTBEAT"),
        (MDPW_DISCONNECT, "DISCONNECT"),
    ],
)
def test_command_name_known(command, name):
    assert command_name(command) == name


def test_command_name_unknown_is_empty():
    assert command_name(b"\x00") == ""


def test_commands_are_consecutive_single_bytes():
    names = [command_name(bytes([n])) for n in range(1, 6)]
    assert names == ["READY", "REQUEST", "REPLY", "HEARTBEAT", "DISCONNECT"]
    assert command_name(bytes([6])) == ""