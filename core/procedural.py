"""
Deterministic procedural randomness.

SplitMix64 hashing turns integer coordinates (seed, axis, knot, ...) into
reproducible random numbers, so time-varying effects can be evaluated at any
timestamp without carrying generator state around.
"""

from __future__ import annotations
import math
import numpy as np


def splitmix64(x: int) -> int:
    x = (x + 0x9E3779B97F4A7C15) & 0xFFFFFFFFFFFFFFFF
    z = x
    z = (z ^ (z >> 30)) * 0xBF58476D1CE4E5B9 & 0xFFFFFFFFFFFFFFFF
    z = (z ^ (z >> 27)) * 0x94D049BB133111EB & 0xFFFFFFFFFFFFFFFF
    return (z ^ (z >> 31)) & 0xFFFFFFFFFFFFFFFF

def u01_from_u64(u: int) -> float:
    return (u >> 11) * (1.0 / (1 << 53))

def hash_u64(*vals: int) -> int:
    x = 0xA5A5A5A5A5A5A5A5
    for v in vals:
        x ^= (v & 0xFFFFFFFFFFFFFFFF)
        x = splitmix64(x)
    return x

def rng_from_seed(seed_u64: int) -> np.random.Generator:
    return np.random.default_rng(np.uint64(seed_u64 & 0xFFFFFFFFFFFFFFFF))

def value_noise_1d(seed: int, axis: int, t: float) -> float:
    """
    Smooth noise in [-1, 1] along one dimension.

    Hashed random values sit on integer knots and are joined by cosine
    interpolation, so nearby t give nearby values.
    """
    k = math.floor(t)
    frac = t - k
    a = u01_from_u64(hash_u64(seed, axis, k)) * 2.0 - 1.0
    b = u01_from_u64(hash_u64(seed, axis, k + 1)) * 2.0 - 1.0
    w = (1.0 - math.cos(frac * math.pi)) * 0.5
    return a + (b - a) * w
