"""
Snapshot types shared by the whole engine.

All of them are frozen: the star field, mount, camera and atmosphere are owned
by external collaborators and only ever read here. Evolved states are new
objects built with dataclasses.replace().
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

# Sidereal tracking rate in degrees per second
SIDEREAL_RATE = 360.0 / 86164.0905


@dataclass(frozen=True, slots=True)
class Star:
    id: int
    ra: float               # degrees
    dec: float              # degrees
    magnitude: float
    color_index: float = 0.65   # B-V


@dataclass(frozen=True, slots=True)
class StarField:
    """Immutable set of stars around a reference pointing."""
    stars: Tuple[Star, ...] = ()
    reference_ra: float = 0.0
    reference_dec: float = 0.0

    @classmethod
    def from_stars(cls, stars, reference_ra: float = 0.0, reference_dec: float = 0.0) -> "StarField":
        return cls(tuple(stars), reference_ra, reference_dec)

    def __len__(self) -> int:
        return len(self.stars)

    def query(self, ra: float, dec: float, radius_deg: float,
              limiting_magnitude: float = 99.0) -> Tuple[Star, ...]:
        """
        Stars within radius_deg of (ra, dec) and no fainter than limiting_magnitude.

        Uses the haversine great-circle distance so the region stays round
        near the poles.
        """
        ra0 = math.radians(ra)
        dec0 = math.radians(dec)
        cos_dec0 = math.cos(dec0)
        max_h = math.sin(math.radians(min(radius_deg, 180.0)) / 2.0) ** 2

        found = []
        for star in self.stars:
            if star.magnitude > limiting_magnitude:
                continue
            dec1 = math.radians(star.dec)
            h = (math.sin((dec1 - dec0) / 2.0) ** 2
                 + cos_dec0 * math.cos(dec1) * math.sin((math.radians(star.ra) - ra0) / 2.0) ** 2)
            if h <= max_h:
                found.append(star)
        return tuple(found)


@dataclass(frozen=True, slots=True)
class MountState:
    ra: float                               # degrees
    dec: float                              # degrees
    focal_length: float                     # mm
    tracking_rate: float = SIDEREAL_RATE    # degrees/second
    polar_alignment_error: float = 0.0      # degrees
    periodic_error_amplitude: float = 0.0   # arcsec
    periodic_error_period: float = 0.0      # seconds
    # (harmonic, relative amplitude, phase in radians)
    periodic_error_harmonics: Tuple[Tuple[int, float, float], ...] = ()
    is_slewing: bool = False
    slew_rate: float = 3.0                  # degrees/second


@dataclass(frozen=True, slots=True)
class CameraState:
    width: int
    height: int
    pixel_size: float               # microns
    exposure_time: float            # seconds
    binning: int = 1
    read_noise: float = 2.0         # e-
    dark_current: float = 0.01      # e-/px/s at 0°C
    is_exposing: bool = False


@dataclass(frozen=True, slots=True)
class AtmosphericState:
    seeing: float = 2.0             # arcsec FWHM
    cloud_coverage: float = 0.0     # 0..1
    transparency: float = 1.0       # 0..1


@dataclass(frozen=True, slots=True)
class SimulationState:
    """
    Everything an exposure depends on.

    Hashable and compared field by field, so two snapshots describing the same
    sky, mount, camera and atmosphere are interchangeable cache keys.
    """
    star_field: StarField
    mount: MountState
    camera: CameraState
    atmosphere: AtmosphericState = AtmosphericState()
    optics: Optional["OpticalParameters"] = None


@dataclass(slots=True)
class ProjectedStar:
    """A star placed on the sensor for one subframe."""
    star: Star
    x: float
    y: float
    photon_flux: Optional[float] = None
