"""
Telescope optics.

OpticalParameters is the optical half of the imaging train:
- Aperture, central obstruction and focal length (mm)
- Throughput (transmission) and wavefront quality (Strehl-like factor)
- Derived f/ratio and obstruction ratio
A small database of common telescopes is provided for convenience.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.errors import InvalidOpticalParameters
from core.types import MountState


class TelescopeType(Enum):
    """Types of telescopes"""
    REFRACTOR = "Refractor"
    REFLECTOR = "Reflector (Newtonian)"
    SCT = "Schmidt-Cassegrain"
    MAKSUTOV = "Maksutov-Cassegrain"
    RITCHEY_CHRETIEN = "Ritchey-Chrétien"


@dataclass(frozen=True)
class OpticalParameters:
    """Optical train description (all lengths in mm)"""
    aperture: float
    obstruction: float
    focal_length: float
    transmission: float = 0.85
    optical_quality: float = 0.85
    telescope_type: TelescopeType = TelescopeType.SCT

    def __post_init__(self):
        if not self.aperture > 0:
            raise InvalidOpticalParameters(f"Aperture must be positive, got {self.aperture}")
        if not self.focal_length > 0:
            raise InvalidOpticalParameters(f"Focal length must be positive, got {self.focal_length}")
        if self.obstruction < 0:
            raise InvalidOpticalParameters(f"Obstruction cannot be negative, got {self.obstruction}")
        if self.obstruction >= self.aperture:
            raise InvalidOpticalParameters(
                f"Obstruction ({self.obstruction} mm) must be smaller than aperture ({self.aperture} mm)")
        if not 0.0 < self.transmission <= 1.0:
            raise InvalidOpticalParameters(f"Transmission must be in (0, 1], got {self.transmission}")
        if not 0.0 < self.optical_quality <= 1.0:
            raise InvalidOpticalParameters(f"Optical quality must be in (0, 1], got {self.optical_quality}")

    @property
    def f_ratio(self) -> float:
        return self.focal_length / self.aperture

    @property
    def obstruction_ratio(self) -> float:
        return self.obstruction / self.aperture

    def pixel_scale(self, pixel_size_um: float) -> float:
        """
        Calculate pixel scale in arcsec/pixel

        Args:
            pixel_size_um: Camera pixel size in microns

        Returns:
            Pixel scale in arcsec/pixel
        """
        return 206.265 * pixel_size_um / self.focal_length

    def airy_radius_px(self, wavelength_nm: float, pixel_size_um: float) -> float:
        """Radius of the first dark ring in pixels (1.22·λ·N)."""
        return 1.22 * wavelength_nm * 1e-3 * self.f_ratio / pixel_size_um


def optics_from_mount(mount: MountState) -> OpticalParameters:
    """
    Default optics for a mount snapshot that only knows its focal length.

    Assumes an f/7 system with a 33% central obstruction.
    """
    aperture = mount.focal_length / 7.0
    return OpticalParameters(
        aperture=aperture,
        obstruction=aperture * 0.33,
        focal_length=mount.focal_length,
        transmission=0.85,
        optical_quality=0.85,
    )


# Telescope Database
TELESCOPE_DATABASE = {
    "REF_80_F5": OpticalParameters(
        aperture=80, obstruction=0.0, focal_length=400,
        transmission=0.92, optical_quality=0.95,
        telescope_type=TelescopeType.REFRACTOR,
    ),
    "REF_102_F7": OpticalParameters(
        aperture=102, obstruction=0.0, focal_length=714,
        transmission=0.92, optical_quality=0.95,
        telescope_type=TelescopeType.REFRACTOR,
    ),
    "NEWT_150_F5": OpticalParameters(
        aperture=150, obstruction=37.5, focal_length=750,
        transmission=0.85, optical_quality=0.85,
        telescope_type=TelescopeType.REFLECTOR,
    ),
    "NEWT_200_F5": OpticalParameters(
        aperture=200, obstruction=50.0, focal_length=1000,
        transmission=0.85, optical_quality=0.85,
        telescope_type=TelescopeType.REFLECTOR,
    ),
    "SCT_8_F10": OpticalParameters(
        aperture=203, obstruction=71.0, focal_length=2032,
        transmission=0.80, optical_quality=0.85,
        telescope_type=TelescopeType.SCT,
    ),
    "MAK_127_F12": OpticalParameters(
        aperture=127, obstruction=38.0, focal_length=1540,
        transmission=0.82, optical_quality=0.90,
        telescope_type=TelescopeType.MAKSUTOV,
    ),
    "RC_10_F8": OpticalParameters(
        aperture=254, obstruction=89.0, focal_length=2000,
        transmission=0.88, optical_quality=0.90,
        telescope_type=TelescopeType.RITCHEY_CHRETIEN,
    ),
}


def get_telescope(telescope_id: str) -> OpticalParameters:
    """Get optics by database key"""
    if telescope_id not in TELESCOPE_DATABASE:
        raise KeyError(
            f"Unknown telescope '{telescope_id}', known: {', '.join(sorted(TELESCOPE_DATABASE))}")
    return TELESCOPE_DATABASE[telescope_id]


def resolve_optics(optics: Optional[OpticalParameters], mount: MountState) -> OpticalParameters:
    """
    Optics for a simulation snapshot.

    Star positions use the mount's focal length, so explicit optics must
    share it.

    Raises:
        InvalidOpticalParameters: optics and mount disagree on focal length
    """
    if optics is None:
        return optics_from_mount(mount)
    if not math.isclose(optics.focal_length, mount.focal_length, rel_tol=1e-9):
        raise InvalidOpticalParameters(
            f"Optics focal length {optics.focal_length} mm does not match "
            f"the mount's {mount.focal_length} mm")
    return optics
