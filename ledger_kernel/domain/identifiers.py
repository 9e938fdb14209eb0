"""
IdentifierGenerator -- record identifiers for an offline store.

Responsibility:
    Produces opaque string identifiers that are unique within the store
    without any coordination with other devices.

Architecture position:
    Kernel > Domain -- pure except for its injected random and clock sources.
    Imported by db/base.py as the primary-key default for every model.

Behaviour:
    - Preferred path: a version-4 UUID built from 16 bytes of the secure
      random source (``os.urandom``).
    - Fallback path, when the secure source raises NotImplementedError:
      64 pseudo-random bits followed by the nanosecond clock reading, both
      rendered in base 36.  Two calls within the same clock tick still differ
      unless the PRNG repeats 64 bits, but the scheme does not carry the
      UUID's collision guarantees.  It is kept for offline-only hosts
      lacking an OS entropy source.
"""

import os
import random
import time
import uuid
from typing import Callable

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    """Render a non-negative integer in lowercase base 36."""
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


class IdentifierGenerator:
    """
    Generates record identifiers.

    Contract:
        ``generate()`` never returns the same value twice with overwhelming
        probability on the secure path.  The random source, PRNG and clock
        are injectable so the fallback path can be exercised in tests.
    """

    def __init__(
        self,
        urandom: Callable[[int], bytes] = os.urandom,
        rng: random.Random | None = None,
        clock_ns: Callable[[], int] = time.time_ns,
    ):
        self._urandom = urandom
        self._rng = rng or random.Random()
        self._clock_ns = clock_ns

    def generate(self) -> str:
        try:
            raw = self._urandom(16)
        except NotImplementedError:
            return self._fallback()
        return str(uuid.UUID(bytes=raw, version=4))

    def _fallback(self) -> str:
        return to_base36(self._rng.getrandbits(64)) + to_base36(self._clock_ns())


_default_generator = IdentifierGenerator()


def generate_id() -> str:
    """Generate an identifier using the process-wide default generator."""
    return _default_generator.generate()
