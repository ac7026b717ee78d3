"""
Noise Model Utilities

Random primitives used throughout the simulation:
- Gaussian and Poisson draws from an explicit numpy Generator
- Deterministic hashing (SplitMix64) for reproducible procedural noise
"""

import numpy as np
from typing import Optional

from core.procedural import hash_u64, rng_from_seed, splitmix64, u01_from_u64

_default_rng = np.random.default_rng()


def resolve_rng(rng: Optional[np.random.Generator]) -> np.random.Generator:
    return _default_rng if rng is None else rng


def random_gaussian(mean: float, sigma: float,
                    rng: Optional[np.random.Generator] = None) -> float:
    """
    Draw from N(mean, sigma²)

    Args:
        mean: Distribution mean
        sigma: Standard deviation (0 returns mean)
        rng: NumPy random generator

    Returns:
        One sample
    """
    if sigma <= 0.0:
        return float(mean)
    return float(resolve_rng(rng).normal(mean, sigma))


def random_poisson(lam: float, rng: Optional[np.random.Generator] = None) -> int:
    """
    Draw from Poisson(lam)

    Non-positive rates produce 0.

    Args:
        lam: Expected count
        rng: NumPy random generator

    Returns:
        One sample
    """
    if not lam > 0.0:
        return 0
    return int(resolve_rng(rng).poisson(lam))


def poisson_field(expected: np.ndarray, rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Poisson sample of an array of expected counts (negative expectations count as 0)."""
    lam = np.clip(expected, 0.0, None)
    return resolve_rng(rng).poisson(lam).astype(np.float64)


__all__ = [
    'random_gaussian',
    'random_poisson',
    'poisson_field',
    'resolve_rng',
    'splitmix64',
    'hash_u64',
    'u01_from_u64',
    'rng_from_seed',
]
