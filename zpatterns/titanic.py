"""Titanic service: disk-backed request and reply storage on top of Majordomo."""

from __future__ import annotations

import uuid as _uuid
from pathlib import Path
from typing import Optional, Protocol, Sequence

from zpatterns.mdp import MajordomoError

DEFAULT_DIRECTORY = ".titanic"

STATUS_OK = b"200"
STATUS_PENDING = b"300"
STATUS_UNKNOWN = b"400"
STATUS_SERVER_ERROR = b"500"

_MMI_SERVICE = b"mmi.service"


class _Session(Protocol):
    def send(self, service: bytes | str, *args: bytes | str) -> list[bytes]:
        ...


def _to_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def request_filename(uuid: str, directory: str | Path = DEFAULT_DIRECTORY) -> Path:
    """Return the path of the stored request for ``uuid``."""
    return Path(directory) / f"{uuid}req"


def reply_filename(uuid: str, directory: str | Path = DEFAULT_DIRECTORY) -> Path:
    """Return the path of the stored reply for ``uuid``."""
    return Path(directory) / f"{uuid}rep"


class TitanicStore:
    """Stores requests and replies as files, one pair per request UUID."""

    def __init__(self, directory: str | Path = DEFAULT_DIRECTORY) -> None:
        self.directory = Path(directory)
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        self.directory.mkdir(mode=0o700, parents=True, exist_ok=True)

    def store_request(self, request: Sequence[bytes | str]) -> str:
        """Write ``request`` to disk under a fresh UUID and return that UUID."""
        self._ensure_directory()
        uuid = str(_uuid.uuid4())
        data = b"\n".join(_to_bytes(frame) for frame in request)
        request_filename(uuid, self.directory).write_bytes(data)
        return uuid

    def load_request(self, uuid: str) -> list[bytes]:
        """Read the stored request frames; raises OSError if there is none."""
        return request_filename(uuid, self.directory).read_bytes().split(b"\n")

    def save_reply(self, uuid: str, reply: Sequence[bytes | str]) -> None:
        """Write the reply frames for ``uuid`` to disk."""
        self._ensure_directory()
        data = b"\n".join(_to_bytes(frame) for frame in reply)
        reply_filename(uuid, self.directory).write_bytes(data)

    def reply_for(self, uuid: str) -> list[bytes]:
        """Answer a titanic.reply query: 200 with the reply, 300 pending or 400 unknown."""
        try:
            data = reply_filename(uuid, self.directory).read_bytes()
        except OSError:
            if request_filename(uuid, self.directory).exists():
                return [STATUS_PENDING]
            return [STATUS_UNKNOWN]
        return [STATUS_OK, *data.split(b"\n")]

    def close(self, uuid: str) -> list[bytes]:
        """Remove the request and any reply for ``uuid``; safe to repeat."""
        request_filename(uuid, self.directory).unlink(missing_ok=True)
        reply_filename(uuid, self.directory).unlink(missing_ok=True)
        return [STATUS_OK]

    def pending(self) -> list[str]:
        """Return the UUIDs of stored requests that have no reply yet, by name."""
        if not self.directory.is_dir():
            return []
        result = []
        for path in sorted(self.directory.iterdir(), key=lambda p: p.name):
            name = path.name
            if name.endswith("req"):
                uuid = name[: -len("req")]
                if not reply_filename(uuid, self.directory).exists():
                    result.append(uuid)
        return result


def service_success(store: TitanicStore, uuid: str, client: _Session) -> bool:
    """Try to complete the stored request ``uuid`` through ``client``.

    Returns true when the request is done: it already has a reply, it was
    closed, or the service answered and the reply was saved.
    """
    if reply_filename(uuid, store.directory).exists():
        return True
    try:
        request = store.load_request(uuid)
    except OSError:
        return True

    service_name, *body = request
    try:
        mmi_reply = client.send(_MMI_SERVICE, service_name)
        if not mmi_reply or mmi_reply[0] != STATUS_OK:
            return False
        reply = client.send(service_name, *body)
    except MajordomoError:
        return False

    store.save_reply(uuid, reply)
    return True


def service_call(
    session: _Session, service: bytes | str, *args: bytes | str
) -> Optional[list[bytes]]:
    """Call a Titanic service and return the reply body on 200 OK.

    Returns None for any other non-fatal status, such as 300 pending.
    Raises MajordomoError on a 400 or 500 status; errors from the
    session propagate unchanged.
    """
    msg = session.send(service, *args)
    if not msg:
        return None
    status = msg[0]
    if status == STATUS_OK:
        return list(msg[1:])
    if status == STATUS_UNKNOWN:
        raise MajordomoError("client fatal error, aborting")
    if status == STATUS_SERVER_ERROR:
        raise MajordomoError("server fatal error, aborting")
    return None