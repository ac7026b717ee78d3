"""
Atmospheric Model: slow evolution of seeing and clouds during an exposure.

Both quantities are bounded random walks driven by an explicit numpy
Generator:
- Seeing reverts towards its starting value, with slow quasi-periodic trends
- Cloud coverage drifts with a very slow trend plus √dt noise
Transparency follows from cloud coverage.
"""
from __future__ import annotations

import math
from dataclasses import replace
from typing import Optional

import numpy as np

from core.coords import clamp
from core.types import AtmosphericState

SEEING_MIN = 0.5
SEEING_MAX = 5.0

# Seeing walk: mean reversion per second, trend and noise as fractions of current seeing
SEEING_REVERSION_RATE = 0.01
SEEING_TREND_FRACTION = 0.01
SEEING_NOISE_FRACTION = 0.02
# A single step never moves seeing by more than this fraction of its value
SEEING_MAX_STEP_FRACTION = 0.5

CLOUD_NOISE_SIGMA = 0.02
CLOUD_TREND_AMPLITUDE = 0.2


def _finite(name: str, value: float) -> float:
    assert math.isfinite(value), f"{name} evolved to a non-finite value"
    return value


def evolve_seeing_condition(current: float, timestep: float, elapsed: float,
                            total_duration: float,
                            rng: Optional[np.random.Generator] = None,
                            mean: Optional[float] = None) -> float:
    """
    Advance seeing by one timestep.

    Args:
        current: Seeing FWHM now (arcsec)
        timestep: Seconds to advance
        elapsed: Seconds since the start of the exposure
        total_duration: Length of the exposure, sets the period of the slowest trend
        rng: NumPy random generator
        mean: Value the walk reverts to (defaults to current)

    Returns:
        New seeing in [0.5, 5.0] arcsec
    """
    current = clamp(_finite("seeing", current), SEEING_MIN, SEEING_MAX)
    if timestep <= 0.0:
        return current
    rng = rng if rng is not None else np.random.default_rng()
    target = current if mean is None else clamp(mean, SEEING_MIN, SEEING_MAX)

    slow_period = max(total_duration, 1.0)
    trend = (math.sin(elapsed * 0.5) * 0.2
             + math.sin(elapsed * 0.05) * 0.3
             + math.sin(2.0 * math.pi * elapsed / slow_period) * 0.5)

    delta = (SEEING_REVERSION_RATE * (target - current) * timestep
             + SEEING_TREND_FRACTION * current * trend * timestep
             + SEEING_NOISE_FRACTION * current * math.sqrt(timestep) * rng.standard_normal())

    max_step = SEEING_MAX_STEP_FRACTION * current
    delta = clamp(delta, -max_step, max_step)
    return _finite("seeing", clamp(current + delta, SEEING_MIN, SEEING_MAX))


def evolve_cloud_coverage(current: float, timestep: float, elapsed: float,
                          total_duration: float,
                          rng: Optional[np.random.Generator] = None) -> float:
    """
    Advance cloud coverage by one timestep.

    Returns:
        New coverage fraction in [0, 1]
    """
    current = clamp(_finite("cloud coverage", current), 0.0, 1.0)
    if timestep <= 0.0:
        return current
    rng = rng if rng is not None else np.random.default_rng()

    # Weather systems evolve over hours; scale the trend to the exposure length
    period_scale = 100.0 + max(total_duration, 0.0)
    trend = math.sin(elapsed * 0.01 + 1.234) * CLOUD_TREND_AMPLITUDE * timestep / period_scale
    noise = CLOUD_NOISE_SIGMA * math.sqrt(timestep) * rng.standard_normal()
    return _finite("cloud coverage", clamp(current + trend + noise, 0.0, 1.0))


def transparency_from_coverage(coverage: float) -> float:
    """Sky transparency for a cloud coverage fraction (clear sky = 1)."""
    return clamp(1.0 - 0.8 * clamp(coverage, 0.0, 1.0), 0.0, 1.0)


def with_coverage_transparency(state: AtmosphericState) -> AtmosphericState:
    """The same atmosphere with its transparency derived from its cloud coverage."""
    return replace(state, transparency=transparency_from_coverage(state.cloud_coverage))


def evolve_atmosphere_state(state: AtmosphericState, timestep: float, elapsed: float,
                            total_duration: float,
                            rng: Optional[np.random.Generator] = None,
                            baseline: Optional[AtmosphericState] = None) -> AtmosphericState:
    """
    Advance seeing and clouds together.

    Args:
        state: Atmosphere now
        timestep: Seconds to advance
        elapsed: Seconds since the start of the exposure
        total_duration: Exposure length
        rng: NumPy random generator
        baseline: Atmosphere at the start of the exposure (seeing reverts to it)

    Returns:
        New AtmosphericState
    """
    rng = rng if rng is not None else np.random.default_rng()
    mean = baseline.seeing if baseline is not None else None
    seeing = evolve_seeing_condition(state.seeing, timestep, elapsed, total_duration, rng, mean=mean)
    coverage = evolve_cloud_coverage(state.cloud_coverage, timestep, elapsed, total_duration, rng)
    return AtmosphericState(
        seeing=seeing,
        cloud_coverage=coverage,
        transparency=transparency_from_coverage(coverage),
    )
