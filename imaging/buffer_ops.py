"""
Pixel buffer operations.

Buffers are 2D float64 arrays indexed [y, x] holding photon (later electron)
counts:
- Splatting a star's photons through its PSF
- Cloud attenuation
- Summing subframes
- k×k binning and row-major flattening
"""

import math
from typing import Optional, Sequence

import numpy as np

from atmosphere.cloud_layer import CloudLayer, cloud_transmission_map
from core.errors import InvalidDimensions, check_dimensions

from .psf import PSFKernel


def create_empty_buffer(width: int, height: int) -> np.ndarray:
    check_dimensions(width, height)
    return np.zeros((int(height), int(width)), dtype=np.float64)


def _stamp(buffer: np.ndarray, ix: int, iy: int, kernel: np.ndarray, scale: float) -> float:
    """Add kernel*scale centred on pixel (ix, iy), clipped to the buffer. Returns the weight used."""
    H, W = buffer.shape
    half = kernel.shape[0] // 2

    y0 = max(0, iy - half);  y1 = min(H, iy + half + 1)
    x0 = max(0, ix - half);  x1 = min(W, ix + half + 1)
    if y0 >= y1 or x0 >= x1:
        return 0.0
    ky0 = half - (iy - y0);  ky1 = ky0 + (y1 - y0)
    kx0 = half - (ix - x0);  kx1 = kx0 + (x1 - x0)

    patch = kernel[ky0:ky1, kx0:kx1]
    buffer[y0:y1, x0:x1] += patch * scale
    return float(patch.sum())


def accumulate_photons(buffer: np.ndarray, x: float, y: float,
                       photons: float, psf: PSFKernel) -> float:
    """
    Spread a star's photons over the buffer.

    The PSF is shared between the four pixels around (x, y) with bilinear
    weights, so sub-pixel positions (jitter, drift) move the centroid
    smoothly while the total stays exact.

    Args:
        buffer: Target buffer, modified in place
        x, y: Star position in pixels (pixel centres at integer coordinates)
        photons: Photons to deposit
        psf: Normalised kernel

    Returns:
        Photons that landed inside the buffer
    """
    if photons <= 0.0 or not (math.isfinite(x) and math.isfinite(y)):
        return 0.0

    x0 = math.floor(x)
    y0 = math.floor(y)
    fx = x - x0
    fy = y - y0

    deposited = 0.0
    for dx, dy, w in ((0, 0, (1.0 - fx) * (1.0 - fy)),
                      (1, 0, fx * (1.0 - fy)),
                      (0, 1, (1.0 - fx) * fy),
                      (1, 1, fx * fy)):
        if w > 0.0:
            deposited += _stamp(buffer, x0 + dx, y0 + dy, psf.values, photons * w) * photons * w
    return deposited


def apply_cloud_cover(buffer: np.ndarray, coverage: float, timestamp: float,
                      clouds: Optional[CloudLayer] = None) -> np.ndarray:
    """
    Attenuate the buffer in place by the cloud pattern.

    Every pixel keeps between (1 - coverage) and all of its signal.

    Args:
        buffer: Photon buffer, modified in place
        coverage: Cloud coverage fraction (0-1)
        timestamp: Seconds into the exposure (clouds drift)
        clouds: Optional cache of the cloud pattern

    Returns:
        The same buffer
    """
    if coverage <= 0.0:
        return buffer
    H, W = buffer.shape
    if clouds is not None:
        transmission = clouds.transmission(W, H, coverage, timestamp)
    else:
        transmission = cloud_transmission_map(W, H, coverage, timestamp)
    buffer *= transmission
    return buffer


def combine_buffers(buffers: Sequence[np.ndarray], out: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Element-wise sum of equally sized buffers.

    Args:
        buffers: Buffers to add
        out: Optional zeroed accumulator to sum into

    Returns:
        The sum (out when given)
    """
    if not buffers and out is None:
        raise ValueError("No buffers to combine")
    shape = buffers[0].shape if buffers else out.shape
    if out is not None and out.shape != shape:
        raise InvalidDimensions(f"Accumulator shape {out.shape} does not match buffers {shape}")
    for b in buffers:
        if b.shape != shape:
            raise InvalidDimensions(f"Cannot combine buffers of shapes {shape} and {b.shape}")

    total = out if out is not None else np.zeros(shape, dtype=np.float64)
    for b in buffers:
        total += b
    return total


def apply_binning(buffer: np.ndarray, factor: int) -> np.ndarray:
    """
    Sum k×k pixel blocks into one pixel.

    Raises:
        InvalidDimensions: factor is not a positive integer dividing both dimensions
    """
    if int(factor) != factor or factor < 1:
        raise InvalidDimensions(f"Binning factor must be a positive integer, got {factor}")
    factor = int(factor)
    H, W = buffer.shape
    if H % factor or W % factor:
        raise InvalidDimensions(f"Binning {factor}x{factor} does not divide a {W}x{H} frame")
    if factor == 1:
        return buffer.copy()
    return buffer.reshape(H // factor, factor, W // factor, factor).sum(axis=(1, 3))


def buffer_to_array(buffer: np.ndarray) -> np.ndarray:
    """Flatten row by row (index = y * width + x) into a new 1D array."""
    return np.array(buffer, dtype=np.float64, order='C').ravel()
