"""Seeded pseudo-random numbers for reproducible simulations.

The generator is mulberry32.  Its exact bit mixing is part of the
engine's contract: jittered retry delays produced from a given seed must
match across runs and across ports of the engine, so the algorithm is
reproduced step for step instead of delegating to :mod:`random`.

State is one unsigned 32-bit integer.  Each draw::

    s = (s + 0x6D2B79F5)             mod 2**32
    t = imul(s ^ (s >> 15), s | 1)
    t = (t + imul(t ^ (t >> 7), t | 61)) ^ t
    out = (t ^ (t >> 14)) / 2**32    in [0, 1)

where ``imul`` is multiplication modulo 2**32 and all shifts are logical.
"""

from __future__ import annotations

_MASK32 = 0xFFFFFFFF
_INCREMENT = 0x6D2B79F5
_TWO_POW_32 = 4294967296.0

DEFAULT_SEED = 42


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK32


class Mulberry32:
    """Deterministic uniform generator over ``[0, 1)``.

    Example:
        >>> rng = Mulberry32(42)
        >>> a = rng.random()
        >>> Mulberry32(42).random() == a
        True
    """

    __slots__ = ("_state",)

    def __init__(self, seed: int = DEFAULT_SEED) -> None:
        self._state = int(seed) & _MASK32

    @property
    def state(self) -> int:
        return self._state

    def next_uint32(self) -> int:
        """Advance the state and return the raw 32-bit output."""
        s = (self._state + _INCREMENT) & _MASK32
        self._state = s
        t = _imul(s ^ (s >> 15), s | 1)
        t = ((t + _imul(t ^ (t >> 7), t | 61)) & _MASK32) ^ t
        return (t ^ (t >> 14)) & _MASK32

    def random(self) -> float:
        """Return the next value in ``[0, 1)``."""
        return self.next_uint32() / _TWO_POW_32

    def __call__(self) -> float:
        return self.random()


__all__ = ["Mulberry32", "DEFAULT_SEED"]
