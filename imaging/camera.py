"""
Sensor Physics

Turns photons at the focal plane into recorded counts:
- Quantum efficiency (Poisson thinning of the photon stream)
- Dark current with its temperature law and hot pixels
- Read noise and fixed-pattern row/column offsets
- Digitization (bias, gain, full well, bit depth)
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from core.types import CameraState

from .noise_model import hash_u64, poisson_field, rng_from_seed, resolve_rng

# Dark current doubles every this many °C
DARK_DOUBLING_TEMP_C = 6.5


class SensorType(Enum):
    """Sensor technologies with their spectral response (peak QE, peak nm, width nm)"""
    CCD = ("CCD", 0.85, 650.0, 150.0)
    CMOS = ("CMOS", 0.75, 550.0, 180.0)
    BSI_CMOS = ("Back-illuminated CMOS", 0.95, 550.0, 200.0)

    def __init__(self, label: str, peak_qe: float, peak_nm: float, width_nm: float):
        self.label = label
        self.peak_qe = peak_qe
        self.peak_nm = peak_nm
        self.width_nm = width_nm

    @classmethod
    def from_name(cls, name: str) -> "SensorType":
        key = name.strip().upper()
        if key not in cls.__members__:
            raise ValueError(f"Unknown sensor type '{name}'")
        return cls[key]

    def quantum_efficiency_at(self, wavelength_nm: float) -> float:
        """Gaussian approximation of the QE curve."""
        return self.peak_qe * math.exp(-((wavelength_nm - self.peak_nm) / self.width_nm) ** 2)

    def relative_response(self, wavelength_nm: float) -> float:
        """QE at a wavelength relative to the peak QE (0-1]."""
        return self.quantum_efficiency_at(wavelength_nm) / self.peak_qe


@dataclass(frozen=True)
class SensorModel:
    """Electronic characteristics of the sensor at its operating temperature"""
    width: int
    height: int
    pixel_size: float               # microns
    quantum_efficiency: float       # 0-1
    read_noise: float               # e- RMS
    dark_current: float             # e-/px/s at 0°C
    gain: float                     # e-/ADU
    full_well: int                  # e-
    bias_level: int                 # ADU
    bit_depth: int
    temperature: float              # °C
    sensor_type: SensorType = SensorType.CMOS

    def __post_init__(self):
        assert 0.0 < self.quantum_efficiency <= 1.0, "QE must be in (0, 1]"
        assert self.full_well > 1000, "Full well must exceed 1000 e-"
        assert self.bit_depth >= 8, "Bit depth must be at least 8"
        assert self.gain > 0.0, "Gain must be positive"
        assert self.read_noise >= 0.0, "Read noise cannot be negative"

    @property
    def dark_current_rate(self) -> float:
        """Dark current at the operating temperature (e-/px/s)"""
        return calculate_dark_current(self.dark_current, self.temperature)

    @property
    def max_adu(self) -> int:
        return (1 << self.bit_depth) - 1


def calculate_dark_current(base: float, temp_delta_c: float) -> float:
    """
    Dark current after a temperature change.

    Args:
        base: Dark current at the reference temperature (e-/px/s)
        temp_delta_c: Degrees above (+) or below (-) the reference

    Returns:
        Dark current in e-/px/s
    """
    return base * 2.0 ** (temp_delta_c / DARK_DOUBLING_TEMP_C)


def create_sensor_model(camera: CameraState, temperature: float,
                        sensor_type: SensorType = SensorType.CMOS) -> SensorModel:
    """
    Derive the electronic model from a camera configuration.

    Full well scales with pixel area (about 1500 e- per µm²), the gain maps the
    full well onto the ADC range, and the ADC is 16 bit for pixels of 4.5 µm
    and up, 14 bit below.
    """
    area = camera.pixel_size * camera.pixel_size
    full_well = int(min(200000, max(5000, 1500.0 * area)))
    bit_depth = 16 if camera.pixel_size >= 4.5 else 14
    gain = full_well / float((1 << bit_depth) - 1)
    bias = 1000 if sensor_type is SensorType.CCD else 500

    return SensorModel(
        width=camera.width,
        height=camera.height,
        pixel_size=camera.pixel_size,
        quantum_efficiency=sensor_type.peak_qe,
        read_noise=max(0.0, camera.read_noise),
        dark_current=max(0.0, camera.dark_current),
        gain=gain,
        full_well=full_well,
        bias_level=bias,
        bit_depth=bit_depth,
        temperature=temperature,
        sensor_type=sensor_type,
    )


def apply_quantum_efficiency(buffer: np.ndarray, qe: float,
                             rng: Optional[np.random.Generator] = None,
                             stochastic: bool = True) -> np.ndarray:
    """
    Convert photons to photo-electrons.

    Args:
        buffer: Expected photon counts
        qe: Quantum efficiency (0-1]
        rng: NumPy random generator
        stochastic: Draw Poisson counts (True) or return the expectation

    Returns:
        New array of electrons
    """
    expected = np.clip(buffer, 0.0, None) * qe
    if not stochastic:
        return expected
    return poisson_field(expected, rng)


def apply_dark_current(buffer: np.ndarray, rate: float, exposure_s: float,
                       rng: Optional[np.random.Generator] = None,
                       hot_pixels: Optional[np.ndarray] = None,
                       stochastic: bool = True) -> np.ndarray:
    """
    Add thermal electrons in place.

    Args:
        buffer: Electron image, modified in place
        rate: Dark current (e-/px/s)
        exposure_s: Integration time
        rng: NumPy random generator
        hot_pixels: Optional per-pixel multiplier map (1 = normal pixel)
        stochastic: Poisson draw (True) or add the mean

    Returns:
        The same buffer
    """
    mean = max(0.0, rate) * max(0.0, exposure_s)
    if mean == 0.0:
        return buffer
    expected = np.full(buffer.shape, mean) if hot_pixels is None else mean * hot_pixels
    if stochastic:
        buffer += poisson_field(expected, rng)
    else:
        buffer += expected
    return buffer


def apply_read_noise(buffer: np.ndarray, read_noise: float,
                     rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Add Gaussian read noise (e- RMS) in place and return the buffer."""
    if read_noise > 0.0:
        buffer += resolve_rng(rng).normal(0.0, read_noise, size=buffer.shape)
    return buffer


@dataclass(frozen=True, eq=False)
class FixedPattern:
    """Per-sensor defects that repeat identically in every frame"""
    hot_pixels: np.ndarray          # dark current multiplier per pixel
    column_offsets: np.ndarray      # e- per column
    row_offsets: np.ndarray         # e- per row

    def apply(self, buffer: np.ndarray) -> np.ndarray:
        buffer += self.column_offsets[np.newaxis, :]
        buffer += self.row_offsets[:, np.newaxis]
        return buffer


def generate_fixed_pattern(width: int, height: int, seed: int,
                           hot_pixel_rate: float = 0.0001) -> FixedPattern:
    """
    Deterministic fixed-pattern noise for one sensor.

    Hot pixels run 1-10× the normal dark current; column and row offsets are
    small Gaussian pedestals (0.5 and 0.3 e- RMS).
    """
    rng = rng_from_seed(hash_u64(seed, width, height, 99999))
    hot = np.ones((height, width))
    n_hot = int(width * height * hot_pixel_rate)
    if n_hot > 0:
        ys = rng.integers(0, height, size=n_hot)
        xs = rng.integers(0, width, size=n_hot)
        hot[ys, xs] = rng.uniform(1.0, 10.0, size=n_hot)
    columns = rng.normal(0.0, 0.5, size=width)
    rows = rng.normal(0.0, 0.3, size=height)
    return FixedPattern(hot, columns, rows)


def apply_adc(buffer: np.ndarray, model: SensorModel) -> np.ndarray:
    """
    Digitize electrons to ADU: bias + e-/gain, saturating at full well and the ADC range.

    Returns:
        New float array of integer ADU values
    """
    electrons = np.clip(buffer, 0.0, model.full_well)
    adu = model.bias_level + np.floor(electrons / model.gain)
    return np.clip(adu, 0, model.max_adu)


def normalize_adu(adu: np.ndarray, model: SensorModel) -> np.ndarray:
    """Scale ADU values to [0, 1]."""
    return np.clip(adu / float(model.max_adu), 0.0, 1.0)


def process_sensor_physics(buffer: np.ndarray, model: SensorModel, exposure_s: float,
                           rng: Optional[np.random.Generator] = None,
                           full: bool = True,
                           pattern: Optional[FixedPattern] = None) -> np.ndarray:
    """
    Full sensor chain on an accumulated photon image

    Args:
        buffer: Photon counts (left untouched)
        model: Sensor model
        exposure_s: Total integration time
        rng: NumPy random generator
        full: Stochastic QE/dark current and fixed pattern (True),
              or expectation values with read noise only (False)
        pattern: Fixed-pattern noise, used only when full is True

    Returns:
        New array of electrons, never negative
    """
    electrons = apply_quantum_efficiency(buffer, model.quantum_efficiency, rng, stochastic=full)
    hot = pattern.hot_pixels if (full and pattern is not None) else None
    apply_dark_current(electrons, model.dark_current_rate, exposure_s, rng,
                       hot_pixels=hot, stochastic=full)
    apply_read_noise(electrons, model.read_noise, rng)
    if full and pattern is not None:
        pattern.apply(electrons)
    np.clip(electrons, 0.0, None, out=electrons)
    return electrons
