"""
Image generators.

Two variants share one entry point:
- SIMPLE: single pass, Gaussian seeing PSF, no subframes (quick previews)
- HIGH_FIDELITY: subframe processor with turbulence, tracking errors,
  clouds and the full sensor chain

ImageGenerator wraps a variant with a per-instance lock and a one-entry
memo cache: asking again for an unchanged snapshot returns the very same
array.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from atmosphere.atmospheric_model import with_coverage_transparency
from core.config import SimulationParameters
from core.coords import field_radius, get_visible_stars, plate_scale
from core.types import SimulationState

from .buffer_ops import accumulate_photons, apply_binning, buffer_to_array, create_empty_buffer
from .buffer_pool import BufferPoolManager, PoolStatistics
from .camera import SensorType, apply_adc, create_sensor_model, process_sensor_physics
from .equipment import resolve_optics
from .frames import ExposureResult, ExposureStatistics
from .photons import color_index_to_wavelength, photon_flux
from .psf import calculate_psf_size, generate_gaussian_psf, MIN_PSF_SIZE
from .subframe_processor import SubframeProcessor, validate_binning

logger = logging.getLogger(__name__)


class GeneratorKind(Enum):
    SIMPLE = "simple"
    HIGH_FIDELITY = "high_fidelity"


@dataclass(frozen=True)
class GeneratorCapabilities:
    name: str
    fidelity_level: int             # 1-10
    uses_subframes: bool
    supports_real_time_preview: bool
    supports_advanced_physics: bool


CAPABILITIES = {
    GeneratorKind.SIMPLE: GeneratorCapabilities(
        name="Simple",
        fidelity_level=3,
        uses_subframes=False,
        supports_real_time_preview=True,
        supports_advanced_physics=False,
    ),
    GeneratorKind.HIGH_FIDELITY: GeneratorCapabilities(
        name="High fidelity",
        fidelity_level=10,
        uses_subframes=True,
        supports_real_time_preview=True,
        supports_advanced_physics=True,
    ),
}


def capabilities(kind: GeneratorKind) -> GeneratorCapabilities:
    return CAPABILITIES[kind]


def generate_simple(state: SimulationState, parameters: SimulationParameters,
                    rng: np.random.Generator) -> ExposureResult:
    """
    One-pass rendering of the snapshot.

    Stars are placed once with a Gaussian seeing profile, dimmed by the
    transparency of the cloud cover, weighted by the sensor's spectral
    response and read out through the sensor model.
    """
    camera = state.camera
    mount = state.mount
    validate_binning(camera)

    optics = resolve_optics(state.optics, mount)
    atmosphere = with_coverage_transparency(state.atmosphere)
    sensor_type = SensorType.from_name(parameters.sensor_type)
    scale = plate_scale(mount.focal_length, camera.pixel_size)
    seeing = atmosphere.seeing
    psf = generate_gaussian_psf(seeing / scale, max(MIN_PSF_SIZE, calculate_psf_size(seeing, scale)))

    field = create_empty_buffer(camera.width, camera.height)
    region = state.star_field.query(mount.ra, mount.dec, field_radius(mount, camera),
                                    parameters.limiting_magnitude)
    rendered = 0
    for p in get_visible_stars(region, mount, camera):
        wavelength = color_index_to_wavelength(p.star.color_index)
        photons = (photon_flux(p.star, optics, camera.exposure_time, atmosphere.transparency)
                   * sensor_type.relative_response(wavelength))
        if accumulate_photons(field, p.x, p.y, photons, psf) > 0.0:
            rendered += 1
    collected = float(field.sum())

    model = create_sensor_model(camera, parameters.sensor_temperature, sensor_type)
    signal = process_sensor_physics(field, model, camera.exposure_time, rng,
                                    full=parameters.simulate_full_sensor_physics)
    if parameters.output_adu:
        signal = apply_adc(signal, model)
    binned = apply_binning(signal, camera.binning)

    return ExposureResult(
        image=buffer_to_array(binned),
        width=binned.shape[1],
        height=binned.shape[0],
        statistics=ExposureStatistics(
            subframes=0,
            stars_rendered=rendered,
            photons_collected=collected,
            final_seeing=seeing,
            final_cloud_coverage=state.atmosphere.cloud_coverage,
        ),
    )


def generate_high_fidelity(state: SimulationState, parameters: SimulationParameters,
                           rng: np.random.Generator,
                           manager: Optional[BufferPoolManager] = None) -> ExposureResult:
    """Subframe-based rendering of the snapshot."""
    processor = SubframeProcessor(manager, parameters, rng)
    return processor.run(state)


def generate(kind: GeneratorKind, state: SimulationState, parameters: SimulationParameters,
             rng: np.random.Generator, manager: Optional[BufferPoolManager] = None) -> ExposureResult:
    """Render with the requested variant."""
    if kind is GeneratorKind.SIMPLE:
        return generate_simple(state, parameters, rng)
    if kind is GeneratorKind.HIGH_FIDELITY:
        return generate_high_fidelity(state, parameters, rng, manager)
    raise ValueError(f"Unknown generator kind: {kind}")


class ImageGenerator:
    """
    Memoizing, serialized front end to one generator variant.

    generate() holds a per-instance lock for the whole exposure, so callers
    on other threads wait rather than overlap. The last result is kept
    together with the (state, parameters) it was made from; an equal request
    gets that same array back.
    """

    def __init__(self, kind: GeneratorKind = GeneratorKind.HIGH_FIDELITY,
                 parameters: Optional[SimulationParameters] = None,
                 seed: Optional[int] = None,
                 manager: Optional[BufferPoolManager] = None):
        self.kind = kind
        self.parameters = parameters if parameters is not None else SimulationParameters()
        if seed is None:
            seed = self.parameters.seed
        self._rng = np.random.default_rng(seed)
        self._manager = manager if manager is not None else BufferPoolManager()
        self._lock = threading.Lock()
        self._busy = False

        self._cache_key = None
        self._cache_result: Optional[ExposureResult] = None
        self.cache_hits = 0
        self.cache_misses = 0

    @property
    def capabilities(self) -> GeneratorCapabilities:
        return CAPABILITIES[self.kind]

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def last_result(self) -> Optional[ExposureResult]:
        return self._cache_result

    @property
    def last_statistics(self) -> Optional[ExposureStatistics]:
        return self._cache_result.statistics if self._cache_result is not None else None

    def pool_statistics(self) -> PoolStatistics:
        return self._manager.statistics()

    def generate(self, state: SimulationState) -> np.ndarray:
        """Flattened raw image for the snapshot (read-only, possibly cached)."""
        return self.generate_result(state).image

    def generate_result(self, state: SimulationState) -> ExposureResult:
        with self._lock:
            key = (state, self.parameters)
            if self._cache_result is not None and self._cache_key == key:
                self.cache_hits += 1
                logger.debug(f"{self.capabilities.name}: cache hit")
                return self._cache_result

            self.cache_misses += 1
            self._busy = True
            try:
                result = generate(self.kind, state, self.parameters, self._rng, self._manager)
            finally:
                self._busy = False
            result.image.flags.writeable = False

            self._cache_key = key
            self._cache_result = result
            return result

    def update_parameters(self, parameters: SimulationParameters) -> None:
        with self._lock:
            if parameters != self.parameters:
                self.parameters = parameters
                self._invalidate()

    def invalidate(self) -> None:
        with self._lock:
            self._invalidate()

    def _invalidate(self) -> None:
        self._cache_key = None
        self._cache_result = None

    def clear_buffers(self) -> None:
        """Drop pooled buffers (e.g. after the sensor size changed)."""
        with self._lock:
            self._manager.clear_all()


def create_image_generator(high_fidelity: bool = True,
                           parameters: Optional[SimulationParameters] = None,
                           seed: Optional[int] = None) -> ImageGenerator:
    kind = GeneratorKind.HIGH_FIDELITY if high_fidelity else GeneratorKind.SIMPLE
    return ImageGenerator(kind, parameters, seed)
