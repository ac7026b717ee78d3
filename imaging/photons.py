"""
Radiometry: from magnitudes to photons at the focal plane.

Pogson's law sets the relative brightness (5 mag = factor 100); the zero point
is a broadband photon rate for a magnitude-0 star, adjusted by effective
wavelength so red and blue stars are not treated as grey bodies.
"""

import math
from typing import Iterable, List

from core.coords import clamp
from core.types import ProjectedStar, Star

from .equipment import OpticalParameters

# Photons/s/m² from a magnitude 0 star across the sensor's pass band
ZERO_POINT_FLUX = 1.0e10


def color_index_to_wavelength(bv: float) -> float:
    """
    Effective wavelength in nm for a B-V colour index.

    Blue stars (negative B-V) sit near 400 nm, red giants near 700 nm.
    """
    return clamp(450.0 + (bv + 0.3) * 100.0, 400.0, 700.0)


def zero_point_flux(wavelength_nm: float) -> float:
    """Photon rate of a magnitude 0 star (photons/s/m²) at an effective wavelength."""
    if wavelength_nm < 500.0:
        return ZERO_POINT_FLUX * 0.8
    if wavelength_nm > 600.0:
        return ZERO_POINT_FLUX * 1.2
    return ZERO_POINT_FLUX


def aperture_area(aperture_mm: float, obstruction_mm: float) -> float:
    """Clear collecting area in m²."""
    area = math.pi * ((aperture_mm / 2.0) ** 2 - (obstruction_mm / 2.0) ** 2) / 1e6
    return max(0.0, area)


def photon_flux(star: Star, optics: OpticalParameters, exposure_s: float,
                transparency: float = 1.0) -> float:
    """
    Photons collected from a star

    Args:
        star: Source star
        optics: Telescope optics
        exposure_s: Integration time in seconds
        transparency: Atmospheric transmission (0-1)

    Returns:
        Expected photon count at the focal plane
    """
    if exposure_s <= 0.0:
        return 0.0
    wavelength = color_index_to_wavelength(star.color_index)
    return (zero_point_flux(wavelength)
            * 10.0 ** (-0.4 * star.magnitude)
            * aperture_area(optics.aperture, optics.obstruction)
            * optics.transmission
            * clamp(transparency, 0.0, 1.0)
            * exposure_s)


def calculate_photon_fluxes(stars: Iterable[ProjectedStar], optics: OpticalParameters,
                            exposure_s: float, transparency: float = 1.0) -> List[ProjectedStar]:
    """Fill in photon_flux for each projected star."""
    out = []
    for p in stars:
        p.photon_flux = photon_flux(p.star, optics, exposure_s, transparency)
        out.append(p)
    return out
