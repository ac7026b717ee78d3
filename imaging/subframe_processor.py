"""
Subframe processor: turns a simulation snapshot into a raw exposure.

The exposure is cut into short subframes. Each subframe freezes the
atmosphere and mount at its timestamp, projects the stars, and splats their
photons through the combined optics ⊗ seeing PSF into a pooled buffer. The
subframes are then summed and the sensor is read out once.

States advance synchronously:
    IDLE → GENERATING (subframe i of N) → COMBINING → SENSOR_READOUT → DONE
Stopping between steps and calling cancel() releases every pooled buffer.
"""
from __future__ import annotations

import logging
import math
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from atmosphere.atmospheric_model import evolve_atmosphere_state, with_coverage_transparency
from atmosphere.cloud_layer import CloudLayer
from atmosphere.turbulence import calculate_jitter, calculate_simple_jitter, generate_atmospheric_layers
from core.config import SimulationParameters
from core.coords import field_radius, get_visible_stars, plate_scale
from core.errors import InvalidDimensions, check_dimensions
from core.tracking import TrackingErrorModel, evolve_mount_state
from core.types import CameraState, SimulationState

from .buffer_ops import accumulate_photons, apply_binning, apply_cloud_cover, buffer_to_array, combine_buffers
from .buffer_pool import BufferPoolManager, PooledBuffer
from .camera import (
    FixedPattern,
    SensorType,
    apply_adc,
    create_sensor_model,
    generate_fixed_pattern,
    process_sensor_physics,
)
from .equipment import resolve_optics
from .frames import ExposureResult, ExposureStatistics, Subframe
from .photons import color_index_to_wavelength, photon_flux
from .psf import generate_combined_psf

logger = logging.getLogger(__name__)

# PSF cache granularity
SEEING_STEP_ARCSEC = 0.05
WAVELENGTH_STEP_NM = 10.0

# Extra search radius for stars drifting into the frame during the exposure
REGION_PADDING = 1.1


class ProcessorState(Enum):
    IDLE = "idle"
    GENERATING = "generating"
    COMBINING = "combining"
    SENSOR_READOUT = "sensor_readout"
    DONE = "done"


def calculate_subframe_count(exposure_time: float, subframe_duration: float) -> int:
    """Number of subframes covering the exposure (the last one may be shorter)."""
    if subframe_duration <= 0:
        raise ValueError(f"Subframe duration must be positive, got {subframe_duration}")
    if exposure_time <= 0:
        return 0
    # 2.7 / 0.1 is 27.000000000000004 in floating point
    return max(1, math.ceil(round(exposure_time / subframe_duration, 9)))


def subframe_schedule(exposure_time: float, subframe_duration: float) -> List[Tuple[float, float]]:
    """
    Start time and duration of every subframe.

    Returns:
        [(timestamp, duration), ...] summing to exposure_time
    """
    n = calculate_subframe_count(exposure_time, subframe_duration)
    schedule = []
    for i in range(n):
        start = i * subframe_duration
        duration = subframe_duration if i < n - 1 else exposure_time - start
        schedule.append((start, max(0.0, duration)))
    return schedule


def validate_binning(camera: CameraState) -> None:
    check_dimensions(camera.width, camera.height)
    b = camera.binning
    if int(b) != b or b < 1:
        raise InvalidDimensions(f"Binning factor must be a positive integer, got {b}")
    if camera.width % b or camera.height % b:
        raise InvalidDimensions(
            f"Binning {b}x{b} does not divide a {camera.width}x{camera.height} sensor")


def _quantize(value: float, step: float) -> float:
    return round(round(value / step) * step, 6)


class SubframeProcessor:
    """
    Renders one exposure at a time.

    Not thread-safe: one coordinating caller drives begin/step/combine/readout
    (or run) and must not start a new exposure while one is in flight.
    """

    def __init__(self, manager: Optional[BufferPoolManager] = None,
                 parameters: Optional[SimulationParameters] = None,
                 rng: Optional[np.random.Generator] = None):
        self.manager = manager if manager is not None else BufferPoolManager()
        self.parameters = parameters if parameters is not None else SimulationParameters()
        self.rng = rng if rng is not None else np.random.default_rng(self.parameters.seed)

        self.state = ProcessorState.IDLE
        self.subframes: List[Subframe] = []
        self._reset()

    def _reset(self) -> None:
        self._sim = None
        self._schedule: List[Tuple[float, float]] = []
        self._combined: Optional[PooledBuffer] = None
        self._layers = []
        self._tracking: Optional[TrackingErrorModel] = None
        self._clouds: Optional[CloudLayer] = None
        self._region_stars = ()
        self._atmosphere = None
        self._pool_baseline = (0, 0)
        self._photons = 0.0
        self._optics = None
        self._sensor = None
        self._pattern: Optional[FixedPattern] = None
        self._sensor_type = SensorType.CMOS
        self._result: Optional[ExposureResult] = None

    # -- Progress -----------------------------------------------------------

    @property
    def total_subframes(self) -> int:
        return len(self._schedule)

    @property
    def completed_subframes(self) -> int:
        return len(self.subframes)

    @property
    def progress(self) -> float:
        if self.state in (ProcessorState.SENSOR_READOUT, ProcessorState.DONE):
            return 1.0
        if self.state is ProcessorState.IDLE or not self._schedule:
            return 0.0
        return self.completed_subframes / self.total_subframes

    @property
    def result(self) -> Optional[ExposureResult]:
        return self._result

    def _require(self, *states: ProcessorState) -> None:
        if self.state not in states:
            expected = " or ".join(s.value for s in states)
            raise RuntimeError(f"Processor is {self.state.value}, expected {expected}")

    # -- State machine ------------------------------------------------------

    def begin(self, sim: SimulationState) -> None:
        """Prepare an exposure of sim.camera.exposure_time seconds."""
        self._require(ProcessorState.IDLE, ProcessorState.DONE)
        camera = sim.camera
        validate_binning(camera)
        optics = resolve_optics(sim.optics, sim.mount)

        self._reset()
        self.subframes = []
        params = self.parameters

        self._sim = sim
        self._optics = optics
        self._sensor_type = SensorType.from_name(params.sensor_type)
        self._sensor = create_sensor_model(camera, params.sensor_temperature, self._sensor_type)
        if params.simulate_full_sensor_physics:
            seed = params.seed if params.seed is not None else 0
            self._pattern = generate_fixed_pattern(camera.width, camera.height, seed)

        self._schedule = subframe_schedule(camera.exposure_time, params.subframe_duration)
        self._atmosphere = with_coverage_transparency(sim.atmosphere)
        if params.use_multi_layer_atmosphere:
            self._layers = generate_atmospheric_layers(sim.atmosphere.seeing, self.rng)
        if params.simulate_tracking_errors:
            self._tracking = TrackingErrorModel(self.rng)
        if params.simulate_cloud_patterns:
            self._clouds = CloudLayer(seed=params.seed if params.seed is not None else 42)

        radius = field_radius(sim.mount, camera) * REGION_PADDING
        self._region_stars = sim.star_field.query(
            sim.mount.ra, sim.mount.dec, radius, params.limiting_magnitude)

        stats = self.manager.statistics()
        self._pool_baseline = (stats.created, stats.reused)

        self.state = ProcessorState.GENERATING if self._schedule else ProcessorState.COMBINING
        logger.debug(f"Exposure of {camera.exposure_time}s: {len(self._schedule)} subframes, "
                     f"{len(self._region_stars)} candidate stars")

    def step(self) -> Subframe:
        """Render the next subframe."""
        self._require(ProcessorState.GENERATING)
        index = len(self.subframes)
        subframe = self._render_subframe(index)
        self.subframes.append(subframe)
        if len(self.subframes) == len(self._schedule):
            self.state = ProcessorState.COMBINING
        return subframe

    def combine(self) -> np.ndarray:
        """Sum every subframe into one photon buffer and release the subframe buffers."""
        self._require(ProcessorState.COMBINING)
        camera = self._sim.camera
        self._combined = self.manager.acquire(camera.width, camera.height)
        try:
            combine_buffers([s.data for s in self.subframes], out=self._combined.data)
            self._photons = float(self._combined.data.sum())
        finally:
            self._release_subframes()
        self.state = ProcessorState.SENSOR_READOUT
        return self._combined.data

    def readout(self) -> ExposureResult:
        """Apply sensor physics and binning once, and flatten the image."""
        self._require(ProcessorState.SENSOR_READOUT)
        camera = self._sim.camera
        params = self.parameters
        try:
            signal = process_sensor_physics(
                self._combined.data, self._sensor, camera.exposure_time, self.rng,
                full=params.simulate_full_sensor_physics, pattern=self._pattern)
        finally:
            self._combined.release()
            self._combined = None

        if params.output_adu:
            signal = apply_adc(signal, self._sensor)
        binned = apply_binning(signal, camera.binning)
        image = buffer_to_array(binned)

        stats = self.manager.statistics()
        result = ExposureResult(
            image=image,
            width=binned.shape[1],
            height=binned.shape[0],
            statistics=ExposureStatistics(
                subframes=len(self._schedule),
                stars_rendered=sum(s.stars_rendered for s in self.subframes),
                photons_collected=self._photons,
                buffers_created=stats.created - self._pool_baseline[0],
                buffers_reused=stats.reused - self._pool_baseline[1],
                final_seeing=self._atmosphere.seeing,
                final_cloud_coverage=self._atmosphere.cloud_coverage,
            ),
        )
        self._result = result
        self.state = ProcessorState.DONE
        logger.info(f"Exposure done: {result.width}x{result.height}, {result.statistics.subframes} subframes, "
                    f"{result.statistics.photons_collected:.3g} photons")
        return result

    def cancel(self) -> None:
        """Abandon the exposure in progress, returning all buffers to the pool."""
        if self.state is ProcessorState.IDLE:
            return
        self._release_subframes()
        if self._combined is not None:
            self._combined.release()
        n = len(self._schedule)
        self._reset()
        self.state = ProcessorState.IDLE
        logger.debug(f"Exposure cancelled ({n} subframes planned)")

    def run(self, sim: SimulationState) -> ExposureResult:
        """Drive a whole exposure from IDLE to DONE."""
        self.begin(sim)
        try:
            while self.state is ProcessorState.GENERATING:
                self.step()
            self.combine()
            return self.readout()
        except BaseException:
            self.cancel()
            raise

    # -- Rendering ----------------------------------------------------------

    def _release_subframes(self) -> None:
        for s in self.subframes:
            s.release()

    def _evolve_atmosphere(self, index: int, timestamp: float):
        if index == 0:
            return self._atmosphere
        previous = self._schedule[index - 1][0]
        self._atmosphere = evolve_atmosphere_state(
            self._atmosphere, timestamp - previous, timestamp, self._sim.camera.exposure_time,
            self.rng, baseline=self._sim.atmosphere)
        return self._atmosphere

    def _render_subframe(self, index: int) -> Subframe:
        sim = self._sim
        camera = sim.camera
        params = self.parameters
        timestamp, duration = self._schedule[index]
        timestep = timestamp - self._schedule[index - 1][0] if index > 0 else 0.0

        atmosphere = self._evolve_atmosphere(index, timestamp)
        mount = evolve_mount_state(sim.mount, timestamp, timestep, self._tracking)

        if params.use_multi_layer_atmosphere:
            jitter = calculate_jitter(self._layers, atmosphere.seeing, timestamp)
        else:
            jitter = calculate_simple_jitter(atmosphere.seeing, timestamp)

        scale = plate_scale(mount.focal_length, camera.pixel_size)
        seeing = _quantize(atmosphere.seeing, SEEING_STEP_ARCSEC)
        # Cloud patterns attenuate the buffer below; otherwise dim uniformly
        transparency = 1.0 if params.simulate_cloud_patterns else atmosphere.transparency

        handle = self.manager.acquire(camera.width, camera.height)
        rendered = 0
        try:
            for p in get_visible_stars(self._region_stars, mount, camera):
                wavelength = color_index_to_wavelength(p.star.color_index)
                photons = (photon_flux(p.star, self._optics, duration, transparency)
                           * self._sensor_type.relative_response(wavelength))
                psf = generate_combined_psf(self._optics, _quantize(wavelength, WAVELENGTH_STEP_NM),
                                            camera.pixel_size, seeing, scale)
                x = p.x + jitter[0] / scale
                y = p.y + jitter[1] / scale
                if accumulate_photons(handle.data, x, y, photons, psf) > 0.0:
                    rendered += 1

            if params.simulate_cloud_patterns and atmosphere.cloud_coverage > 0.0:
                apply_cloud_cover(handle.data, atmosphere.cloud_coverage, timestamp, self._clouds)
        except BaseException:
            handle.release()
            raise

        logger.debug(f"Subframe {index + 1}/{len(self._schedule)} at t={timestamp:.2f}s: "
                     f"{rendered} stars, seeing {atmosphere.seeing:.2f}\"")
        return Subframe(
            index=index,
            duration=duration,
            timestamp=timestamp,
            buffer=handle,
            mount=mount,
            atmosphere=atmosphere,
            jitter=jitter,
            stars_rendered=rendered,
            photons=float(handle.data.sum()),
        )
