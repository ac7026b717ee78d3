"""
CloudLayer: procedural cloud transmission across the sensor.

Clouds are a sum of drifting sinusoidal structures at three scales. The
resulting opacity pattern lives in [0, 1]; scaled by the coverage fraction
it attenuates each pixel by a factor in [1 - coverage, 1].
"""

from __future__ import annotations
import math
import numpy as np
from dataclasses import dataclass, field
from typing import Optional


CLOUD_UPDATE_INTERVAL_S: float = 0.5
DRIFT_SPEED: float = 0.05           # frame widths per second

# |n1| + |n2| + |n3| can reach at most this value
_NOISE_BOUND = 1.0 + 0.5 + 0.25


def cloud_opacity(width: int, height: int, time_s: float, seed: int = 42) -> np.ndarray:
    """
    Cloud opacity pattern (height, width) in [0, 1].

    0.0 → clear sky at this pixel, 1.0 → thickest cloud.
    """
    yy, xx = np.mgrid[0:height, 0:width].astype(np.float64)
    xn = xx / width + DRIFT_SPEED * time_s
    yn = yy / height + DRIFT_SPEED * 0.7 * time_s
    seed_f = float(seed % 1000)

    # Layer 1: large-scale cloud structures
    freq1 = 2.0 * math.pi * 0.8
    n1 = np.sin(xn * freq1 + seed_f * 1.3) * np.cos(yn * freq1 + seed_f * 0.9)

    # Layer 2: medium-scale structures
    freq2 = 2.0 * math.pi * 2.1
    n2 = np.sin((xn + yn) * freq2 * 0.5 + seed_f * 2.1) * np.cos((yn - xn) * freq2 + seed_f * 1.7) * 0.5

    # Layer 3: fine texture
    freq3 = 2.0 * math.pi * 5.3
    n3 = np.sin(xn * freq3 + seed_f * 3.7) * np.sin(yn * freq3 * 0.8) * 0.25

    return np.clip(0.5 + 0.5 * (n1 + n2 + n3) / _NOISE_BOUND, 0.0, 1.0)


def cloud_transmission_map(width: int, height: int, coverage: float,
                           time_s: float, seed: int = 42) -> np.ndarray:
    """Per-pixel transmission in [1 - coverage, 1]."""
    coverage = max(0.0, min(1.0, coverage))
    if coverage <= 0.0:
        return np.ones((height, width))
    return 1.0 - coverage * cloud_opacity(width, height, time_s, seed)


@dataclass
class CloudLayer:
    """
    Caches the opacity pattern between nearby subframes.

    The pattern drifts slowly, so it is only regenerated when the frame size
    changes or CLOUD_UPDATE_INTERVAL_S of simulated time has passed.
    """
    seed:             int   = 42

    # Internal state
    _opacity:         Optional[np.ndarray] = field(default=None, init=False, repr=False)
    _last_update_s:   float = field(default=-999.0, init=False)
    _last_shape:      tuple = field(default=(0, 0), init=False)
    regenerations:    int   = field(default=0, init=False)

    def transmission(self, width: int, height: int, coverage: float, time_s: float) -> np.ndarray:
        """Transmission map for the given frame size, coverage and time."""
        coverage = max(0.0, min(1.0, coverage))
        if coverage <= 0.0:
            return np.ones((height, width))

        shape = (height, width)
        if (self._opacity is None
                or shape != self._last_shape
                or abs(time_s - self._last_update_s) >= CLOUD_UPDATE_INTERVAL_S):
            self._opacity = cloud_opacity(width, height, time_s, self.seed)
            self._last_update_s = time_s
            self._last_shape = shape
            self.regenerations += 1
        return 1.0 - coverage * self._opacity
