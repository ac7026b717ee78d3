"""
Point-spread functions.

A star image is the telescope's diffraction pattern blurred by the
atmosphere:
- Airy disk from a (possibly obstructed) circular aperture, via scipy's J1
- Gaussian seeing profile from the FWHM in pixels
- Their convolution, cropped back to an odd square grid and renormalised

Every kernel sums to 1 so multiplying by a photon count distributes exactly
that many photons, and the middle cell always holds the peak.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from functools import lru_cache

import numpy as np
from scipy import signal
from scipy.special import j1

from core.errors import InvalidDimensions, InvalidOpticalParameters

from .equipment import OpticalParameters

FWHM_TO_SIGMA = 1.0 / 2.35482

# Smallest and largest kernels the combined PSF will use
MIN_PSF_SIZE = 5
MAX_PSF_SIZE = 201

# Rings of the Airy pattern kept in the combined kernel
AIRY_SUPPORT_RADII = 3.5


@dataclass(frozen=True, eq=False)
class PSFKernel:
    """Square, odd-sized, read-only kernel normalised to sum 1."""
    values: np.ndarray
    total: float

    @classmethod
    def from_array(cls, values: np.ndarray) -> "PSFKernel":
        values = np.asarray(values, dtype=np.float64)
        if values.ndim != 2 or values.shape[0] != values.shape[1] or values.shape[0] % 2 == 0:
            raise InvalidDimensions(f"PSF kernel must be an odd square, got shape {values.shape}")
        values = np.clip(values, 0.0, None)
        total = float(values.sum())
        if not total > 0.0 or not math.isfinite(total):
            raise ValueError(f"PSF kernel has no usable weight (sum={total})")
        values = values / total
        values.flags.writeable = False
        return cls(values, float(values.sum()))

    @property
    def size(self) -> int:
        return self.values.shape[0]

    @property
    def center(self) -> int:
        return self.size // 2

    @property
    def peak(self) -> float:
        return float(self.values[self.center, self.center])


def _check_size(size: int) -> None:
    if int(size) != size or size < 1 or size % 2 == 0:
        raise InvalidDimensions(f"PSF size must be a positive odd integer, got {size}")


def _radius_grid(size: int) -> np.ndarray:
    half = size // 2
    y, x = np.ogrid[-half:half + 1, -half:half + 1]
    return np.sqrt(x * x + y * y)


def generate_airy_disk_psf(optics: OpticalParameters, wavelength_nm: float,
                           pixel_size_um: float, size: int) -> PSFKernel:
    """
    Diffraction pattern of the telescope.

    The annular-aperture Airy intensity is
    [(2·J1(x)/x - ε²·2·J1(εx)/(εx)) / (1 - ε²)]² with x = π·r·p/(λ·N),
    ε the obstruction ratio, p the pixel size and N the f/ratio. An optical
    quality below 1 moves that fraction of the light out of the diffraction
    core into a Gaussian halo twice the width of the first dark ring.

    Args:
        optics: Telescope optics
        wavelength_nm: Effective wavelength
        pixel_size_um: Pixel pitch in microns
        size: Kernel side length (odd)

    Returns:
        Normalised PSFKernel
    """
    _check_size(size)
    if optics.obstruction >= optics.aperture or optics.focal_length <= 0:
        raise InvalidOpticalParameters("Cannot form an Airy pattern with these optics")
    if wavelength_nm <= 0 or pixel_size_um <= 0:
        raise ValueError("Wavelength and pixel size must be positive")

    eps = optics.obstruction_ratio
    r = _radius_grid(size)
    x = np.pi * r * pixel_size_um / (wavelength_nm * 1e-3 * optics.f_ratio)

    with np.errstate(divide='ignore', invalid='ignore'):
        amplitude = np.where(x == 0, 1.0, 2.0 * j1(x) / x)
        if eps > 0.0:
            ex = eps * x
            inner = np.where(ex == 0, 1.0, 2.0 * j1(ex) / ex)
            amplitude = (amplitude - eps * eps * inner) / (1.0 - eps * eps)
    pattern = amplitude * amplitude
    pattern /= pattern.sum()

    quality = optics.optical_quality
    if quality < 1.0:
        halo_fwhm = 2.0 * optics.airy_radius_px(wavelength_nm, pixel_size_um)
        halo = _gaussian(r, halo_fwhm)
        pattern = quality * pattern + (1.0 - quality) * halo

    return PSFKernel.from_array(pattern)


def _gaussian(r: np.ndarray, fwhm_px: float) -> np.ndarray:
    if fwhm_px <= 0.0:
        g = np.zeros_like(r)
        g[r == 0] = 1.0
        return g
    sigma = fwhm_px * FWHM_TO_SIGMA
    g = np.exp(-(r * r) / (2.0 * sigma * sigma))
    return g / g.sum()


def generate_gaussian_psf(fwhm_px: float, size: int) -> PSFKernel:
    """
    Seeing blur as a symmetric Gaussian.

    Args:
        fwhm_px: Full width at half maximum in pixels (<= 0 gives a point)
        size: Kernel side length (odd)
    """
    _check_size(size)
    return PSFKernel.from_array(_gaussian(_radius_grid(size), fwhm_px))


def convolve_psfs(a: PSFKernel, b: PSFKernel) -> PSFKernel:
    """Convolve two kernels, crop centrally to the larger input and renormalise."""
    full = signal.convolve(a.values, b.values, mode='full', method='auto')
    out = max(a.size, b.size)
    start = (full.shape[0] - out) // 2
    return PSFKernel.from_array(full[start:start + out, start:start + out])


def calculate_psf_size(seeing_arcsec: float, plate_scale: float) -> int:
    """Smallest odd kernel size covering 5× the seeing FWHM."""
    if plate_scale <= 0:
        raise ValueError(f"Plate scale must be positive, got {plate_scale}")
    span = 5.0 * seeing_arcsec / plate_scale
    size = max(1, math.ceil(round(span, 9)))
    if size % 2 == 0:
        size += 1
    return size


def _odd(n: float) -> int:
    n = max(1, math.ceil(n))
    return n if n % 2 else n + 1


def combined_psf_size(optics: OpticalParameters, wavelength_nm: float,
                      pixel_size_um: float, seeing_arcsec: float, plate_scale: float) -> int:
    """Kernel size big enough for both the seeing disk and the inner Airy rings."""
    airy = _odd(2.0 * AIRY_SUPPORT_RADII * optics.airy_radius_px(wavelength_nm, pixel_size_um))
    size = max(calculate_psf_size(seeing_arcsec, plate_scale), airy, MIN_PSF_SIZE)
    return min(size, MAX_PSF_SIZE)


@lru_cache(maxsize=256)
def generate_combined_psf(optics: OpticalParameters, wavelength_nm: float,
                          pixel_size_um: float, seeing_arcsec: float,
                          plate_scale: float) -> PSFKernel:
    """
    Star image through telescope and atmosphere: Airy ⊗ seeing Gaussian.

    Results are cached; all inputs are hashable and the output is read-only.
    """
    size = combined_psf_size(optics, wavelength_nm, pixel_size_um, seeing_arcsec, plate_scale)
    airy = generate_airy_disk_psf(optics, wavelength_nm, pixel_size_um, size)
    seeing = generate_gaussian_psf(seeing_arcsec / plate_scale, size)
    return convolve_psfs(airy, seeing)
