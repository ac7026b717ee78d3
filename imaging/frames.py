"""
Subframes and exposure results.

A long exposure is simulated as a sequence of short subframes, each frozen
at one instant of mount and atmosphere, then summed:
- Subframe: one time slice and its pooled photon buffer
- ExposureStatistics: per-exposure diagnostics
- ExposureResult: the flattened image plus statistics
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

from core.types import AtmosphericState, MountState

from .buffer_pool import PooledBuffer


@dataclass
class Subframe:
    """
    One time slice of an exposure

    The buffer belongs to the subframe processor until the subframes are
    combined, at which point it goes back to its pool.
    """
    index: int
    duration: float                 # seconds
    timestamp: float                # seconds since exposure start
    buffer: PooledBuffer
    mount: MountState
    atmosphere: AtmosphericState
    jitter: Tuple[float, float]     # arcsec
    stars_rendered: int = 0
    photons: float = 0.0            # photons deposited in the buffer

    @property
    def data(self) -> np.ndarray:
        return self.buffer.data

    def release(self) -> None:
        self.buffer.release()


@dataclass(frozen=True)
class ExposureStatistics:
    """Diagnostics of one generated image"""
    subframes: int = 0
    stars_rendered: int = 0
    photons_collected: float = 0.0
    buffers_created: int = 0
    buffers_reused: int = 0
    final_seeing: Optional[float] = None
    final_cloud_coverage: Optional[float] = None


@dataclass(frozen=True, eq=False)
class ExposureResult:
    """Flattened row-major image with its dimensions after binning"""
    image: np.ndarray
    width: int
    height: int
    statistics: ExposureStatistics

    def as_2d(self) -> np.ndarray:
        """View of the image as (height, width)"""
        return self.image.reshape(self.height, self.width)
