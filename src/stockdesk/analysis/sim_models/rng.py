"""Deterministic pseudo-random numbers for the Monte Carlo engine.

Mulberry32 keeps a single 32-bit state word. Every operation below is done on
Python ints masked to 32 bits, so the output sequence for a given seed is
identical on every platform and interpreter.
"""

import math

MASK32 = 0xFFFFFFFF
GOLDEN_GAMMA = 0x6D2B79F5
TWO_POW_32 = 4294967296.0


def _imul(a: int, b: int) -> int:
    """32-bit wrapping multiply."""
    return (a * b) & MASK32


class Mulberry32:
    """Seeded 32-bit mixing generator producing uniforms in [0, 1)."""

    def __init__(self, seed: int):
        self._state = seed & MASK32

    @property
    def state(self) -> int:
        return self._state

    def next_uint32(self) -> int:
        self._state = (self._state + GOLDEN_GAMMA) & MASK32
        t = self._state
        r = _imul(t ^ (t >> 15), 1 | t)
        r ^= (r + _imul(r ^ (r >> 7), 61 | r)) & MASK32
        return (r ^ (r >> 14)) & MASK32

    def random(self) -> float:
        return self.next_uint32() / TWO_POW_32

    __call__ = random


def normal01(rng: Mulberry32) -> float:
    """One standard normal draw (Box-Muller, cosine branch only).

    Consumes at least two uniforms; a uniform of exactly 0 is redrawn.
    """
    u = 0.0
    v = 0.0
    while u == 0.0:
        u = rng.random()
    while v == 0.0:
        v = rng.random()
    return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)
