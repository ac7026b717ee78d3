"""
Mount tracking errors seen during an exposure.

The mount itself (slews, backlash, guiding) lives elsewhere; this module only
answers "where is the mount pointing t seconds into the exposure", combining:
- Drift from a tracking rate that differs from sidereal
- Periodic worm error with harmonics
- Declination drift from polar misalignment
- A slow random walk plus occasional mechanical binding jumps
"""
from __future__ import annotations

import math
from dataclasses import replace
from typing import Optional, Tuple

import numpy as np

from .coords import to_radians
from .types import SIDEREAL_RATE, MountState

EARTH_ROTATION_RAD_S = 7.2921159e-5

RANDOM_WALK_RA = 0.2            # arcsec / sqrt(s)
RANDOM_WALK_DEC = 0.1           # arcsec / sqrt(s)
BINDING_MEAN_INTERVAL = 600.0   # seconds


def periodic_error(mount: MountState, elapsed: float) -> float:
    """
    RA periodic error at a moment of the exposure.

    Args:
        mount: Mount snapshot carrying amplitude, period and harmonics
        elapsed: Seconds since the start of the exposure

    Returns:
        Error in arcseconds on the sky
    """
    if mount.periodic_error_period <= 0.0 or mount.periodic_error_amplitude == 0.0:
        return 0.0
    phase = 2.0 * math.pi * elapsed / mount.periodic_error_period
    err = mount.periodic_error_amplitude * math.sin(phase)
    for harmonic, rel_amp, harmonic_phase in mount.periodic_error_harmonics:
        err += mount.periodic_error_amplitude * rel_amp * math.sin(harmonic * phase + harmonic_phase)
    return err


def polar_alignment_drift(mount: MountState, elapsed: float,
                          hour_angle_deg: float = 0.0) -> float:
    """
    Declination drift accumulated after `elapsed` seconds, in arcseconds.

    A polar axis misaligned by e drifts in Dec at roughly e·ω·cos(HA), with ω
    the Earth's rotation rate. The hour angle advances with elapsed time.
    """
    if mount.polar_alignment_error <= 0.0 or elapsed <= 0.0:
        return 0.0
    err_arcsec = mount.polar_alignment_error * 3600.0
    ha0 = to_radians(hour_angle_deg)
    # Integral of cos(ha0 + ω t) dt from 0 to elapsed
    w = EARTH_ROTATION_RAD_S
    return err_arcsec * (math.sin(ha0 + w * elapsed) - math.sin(ha0))


class TrackingErrorModel:
    """
    Stochastic part of the tracking error.

    Keeps the random walk and the time of the last binding event between
    calls, so one instance must follow a single exposure from start to end.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None,
                 binding_interval: float = BINDING_MEAN_INTERVAL):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.binding_interval = binding_interval
        self.ra_offset = 0.0        # arcsec
        self.dec_offset = 0.0       # arcsec
        self.last_binding_time = 0.0
        self.binding_events = 0

    def step(self, elapsed: float, timestep: float) -> Tuple[float, float]:
        """
        Advance the random walk by one timestep.

        Returns:
            Accumulated (ra, dec) offsets in arcseconds
        """
        if timestep > 0.0:
            root_dt = math.sqrt(timestep)
            self.ra_offset += RANDOM_WALK_RA * root_dt * self.rng.standard_normal()
            self.dec_offset += RANDOM_WALK_DEC * root_dt * self.rng.standard_normal()

        since_last = max(0.0, elapsed - self.last_binding_time)
        probability = 0.1 * (1.0 - math.exp(-since_last / self.binding_interval))
        if self.rng.random() < probability:
            magnitude = 0.5 + self.rng.random() * 1.5
            angle = self.rng.random() * 2.0 * math.pi
            self.ra_offset += magnitude * math.cos(angle)
            self.dec_offset += magnitude * math.sin(angle)
            self.last_binding_time = elapsed
            self.binding_events += 1

        return self.ra_offset, self.dec_offset

    def reset(self) -> None:
        self.ra_offset = 0.0
        self.dec_offset = 0.0
        self.last_binding_time = 0.0
        self.binding_events = 0


def evolve_mount_state(mount: MountState, elapsed: float, timestep: float,
                       errors: Optional[TrackingErrorModel] = None) -> MountState:
    """
    Pointing of the mount `elapsed` seconds into an exposure.

    Args:
        mount: Mount snapshot at the start of the exposure
        elapsed: Seconds since the start of the exposure
        timestep: Seconds since the previous call (drives the random walk)
        errors: Stochastic error state, or None for perfect mechanics

    Returns:
        New MountState with updated RA/Dec
    """
    if mount.is_slewing:
        return mount

    # Sky turns under a mount tracking slower than sidereal
    ra = mount.ra + (SIDEREAL_RATE - mount.tracking_rate) * elapsed
    dec = mount.dec

    if errors is not None:
        cos_dec = max(1e-6, math.cos(to_radians(mount.dec)))
        ra_walk, dec_walk = errors.step(elapsed, timestep)
        ra += (periodic_error(mount, elapsed) + ra_walk) / 3600.0 / cos_dec
        dec += (polar_alignment_drift(mount, elapsed) + dec_walk) / 3600.0

    dec = max(-90.0, min(90.0, dec))
    return replace(mount, ra=ra % 360.0, dec=dec)
