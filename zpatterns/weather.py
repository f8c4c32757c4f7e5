"""Weather update messages: publishing random updates and averaging temperatures."""

from __future__ import annotations

import random
import re
from typing import Iterable, Optional

DEFAULT_FILTER = "10001 "
DEFAULT_COUNT = 100

_INTEGER = re.compile(r"[+-]?[0-9]+")


def format_update(zipcode: int, temperature: int, relhumidity: int) -> str:
    """Return the update text: zero-padded zipcode, temperature and humidity."""
    return f"{zipcode:05d} {temperature} {relhumidity}"


def random_update(rng: Optional[random.Random] = None) -> str:
    """Return an update with random values in the publisher's ranges."""
    rng = rng if rng is not None else random.Random()
    zipcode = rng.randrange(100000)
    temperature = rng.randrange(215) - 80
    relhumidity = rng.randrange(50) + 10
    return format_update(zipcode, temperature, relhumidity)


def parse_temperature(msg: bytes | str) -> Optional[int]:
    """Return the temperature field of an update, or None if it has none."""
    text = msg.decode("utf-8", "replace") if isinstance(msg, bytes) else msg
    fields = text.split()
    if len(fields) > 1 and _INTEGER.fullmatch(fields[1]):
        return int(fields[1])
    return None


def average_temperature(messages: Iterable[bytes | str], count: int = DEFAULT_COUNT) -> int:
    """Average the temperatures of the first ``count`` valid updates.

    Messages without a temperature are skipped. The result is truncated
    toward zero. Raises ValueError if fewer than ``count`` updates arrive.
    """
    if count <= 0:
        raise ValueError("count must be positive")
    total = 0
    updates = 0
    for msg in messages:
        temperature = parse_temperature(msg)
        if temperature is None:
            continue
        total += temperature
        updates += 1
        if updates == count:
            break
    if updates < count:
        raise ValueError(f"only {updates} of {count} updates received")
    quotient = abs(total) // count
    return -quotient if total < 0 else quotient