"""Seeded, label-addressed randomness.

Single choke point for every random value used by combat.  A value is a
pure function of (seed, label): the same pair always yields the same
number, on any machine, so a session replays bit-for-bit from its seed.
Labels name the decision being made ("init:player:7", "<roll>:crit", ...),
which keeps independent rolls independent.
"""

from __future__ import annotations

import hashlib
import math
from typing import Sequence, TypeVar

T = TypeVar("T")

_MODULUS = 1_000_000_000


def rng01(seed: int, label: str) -> float:
    """Uniform float in [0, 1) derived from md5("<seed>:<label>")."""
    digest = hashlib.md5(f"{seed}:{label}".encode("utf-8")).hexdigest()
    return (int(digest[:16], 16) % _MODULUS) / _MODULUS


def rng_int(seed: int, label: str, lo: int, hi: int) -> int:
    """Integer in the closed range [lo, hi].  Bound order does not matter."""
    a, b = (lo, hi) if lo <= hi else (hi, lo)
    span = b - a + 1
    if span <= 1:
        return a
    return a + math.floor(rng01(seed, label) * span)


def rng_pick(seed: int, label: str, items: Sequence[T]) -> T:
    if not items:
        raise ValueError("rng_pick: empty list")
    return items[rng_int(seed, label, 0, len(items) - 1)]
