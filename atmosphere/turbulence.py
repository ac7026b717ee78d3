"""
Multi-layer turbulence and the image motion it causes.

Three frozen-flow layers (jet stream, mid troposphere, ground layer) each
push the star image around with their own wind speed, direction and
timescale. Their sum is the tip/tilt jitter applied to a subframe.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from core.coords import wrap_deg
from core.procedural import value_noise_1d

# (name, height range km, wind speed range, base strength, timescale range s)
LAYER_PROFILES = (
    ("jet_stream", (10.0, 15.0), (0.5, 2.0), 0.3, (5.0, 15.0)),
    ("mid", (5.0, 10.0), (0.2, 1.0), 0.4, (3.0, 10.0)),
    ("ground", (0.0, 1.0), (0.1, 0.4), 0.3, (1.0, 5.0)),
)

# Peak displacement of one layer, as a fraction of seeing × layer strength
JITTER_FRACTION = 0.5
MAX_JITTER_FACTOR = 1.5

# Along-wind and cross-wind weights; (0.8, 0.6) keeps each layer's vector inside a unit circle
_ALONG_WIND = 0.8
_CROSS_WIND = 0.6


@dataclass(frozen=True, slots=True)
class AtmosphericLayer:
    height: float       # km
    direction: float    # degrees, 0-360
    speed: float        # relative wind speed
    strength: float     # share of the total seeing, layers sum to 1
    time_scale: float   # seconds between independent states
    seed: int = 0


def generate_atmospheric_layers(seeing: float,
                                rng: Optional[np.random.Generator] = None) -> List[AtmosphericLayer]:
    """
    Draw the three turbulence layers for a seeing value.

    Worse seeing means faster-evolving turbulence, so timescales shrink as
    seeing grows.

    Args:
        seeing: Seeing FWHM in arcsec
        rng: NumPy random generator

    Returns:
        Exactly three layers, strengths summing to 1
    """
    rng = rng if rng is not None else np.random.default_rng()
    pace = 1.0 / max(0.5, min(seeing, 5.0)) ** 0.5

    raw = []
    for name, heights, speeds, strength, timescales in LAYER_PROFILES:
        raw.append((
            rng.uniform(*heights),
            rng.uniform(0.0, 360.0),
            rng.uniform(*speeds),
            strength * rng.uniform(0.8, 1.2),
            max(0.1, rng.uniform(*timescales) * pace),
            int(rng.integers(0, 2**63 - 1)),
        ))

    total = sum(r[3] for r in raw)
    strengths = [r[3] / total for r in raw]
    strengths[-1] = 1.0 - sum(strengths[:-1])

    return [
        AtmosphericLayer(height=h, direction=wrap_deg(d), speed=s, strength=w,
                         time_scale=ts, seed=seed)
        for (h, d, s, _, ts, seed), w in zip(raw, strengths)
    ]


def layer_displacement(layer: AtmosphericLayer, seeing: float, timestamp: float) -> Tuple[float, float]:
    """Image displacement caused by one layer, in arcsec."""
    # Faster wind sweeps more turbulence cells across the aperture per second
    t = timestamp * (1.0 + layer.speed) / layer.time_scale
    along = value_noise_1d(layer.seed, 0, t) * _ALONG_WIND
    cross = value_noise_1d(layer.seed, 1, t) * _CROSS_WIND

    amp = seeing * layer.strength * JITTER_FRACTION
    theta = math.radians(layer.direction)
    c, s = math.cos(theta), math.sin(theta)
    return amp * (along * c - cross * s), amp * (along * s + cross * c)


def _limit(dx: float, dy: float, seeing: float) -> Tuple[float, float]:
    limit = MAX_JITTER_FACTOR * seeing
    mag = math.hypot(dx, dy)
    if mag > limit > 0.0:
        scale = limit / mag
        dx, dy = dx * scale, dy * scale
    assert math.isfinite(dx) and math.isfinite(dy), "jitter must be finite"
    return dx, dy


def calculate_jitter(layers: Sequence[AtmosphericLayer], seeing: float,
                     timestamp: float) -> Tuple[float, float]:
    """
    Total image motion at a moment in time

    Args:
        layers: Turbulence layers
        seeing: Current seeing FWHM in arcsec
        timestamp: Seconds since the start of the exposure

    Returns:
        (dx, dy) in arcsec, never longer than 1.5× seeing
    """
    dx = dy = 0.0
    for layer in layers:
        lx, ly = layer_displacement(layer, seeing, timestamp)
        dx += lx
        dy += ly
    return _limit(dx, dy, seeing)


def calculate_simple_jitter(seeing: float, timestamp: float) -> Tuple[float, float]:
    """Single-layer fallback: slow quasi-periodic wander of the image."""
    amp = seeing * JITTER_FRACTION
    dx = amp * 0.6 * math.sin(timestamp * 1.3) + amp * 0.3 * math.sin(timestamp * 3.7 + 1.1)
    dy = amp * 0.6 * math.cos(timestamp * 1.1) + amp * 0.3 * math.sin(timestamp * 2.9 + 0.4)
    return _limit(dx, dy, seeing)
