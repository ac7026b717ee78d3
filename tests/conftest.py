"""Shared fixtures for the virtual sensor tests."""

import dataclasses

import numpy as np
import pytest

from core.config import SimulationParameters
from core.types import AtmosphericState, CameraState, MountState, SimulationState, Star, StarField
from imaging.equipment import OpticalParameters, TelescopeType


@pytest.fixture
def rng():
    return np.random.default_rng(20240611)


@pytest.fixture
def camera():
    return CameraState(width=64, height=64, pixel_size=4.0, exposure_time=1.0,
                       binning=1, read_noise=2.0, dark_current=0.01)


@pytest.fixture
def mount():
    return MountState(ra=83.82, dec=-5.39, focal_length=800.0)


@pytest.fixture
def optics():
    return OpticalParameters(aperture=100.0, obstruction=0.0, focal_length=800.0,
                             telescope_type=TelescopeType.REFRACTOR)


@pytest.fixture
def params():
    return SimulationParameters(seed=1234)


@pytest.fixture
def make_state(camera, mount, optics):
    """Factory for simulation snapshots with a bright star at the frame centre."""
    def _make(magnitude=0.0, seeing=2.0, cloud_coverage=0.0,
              stars=None, **camera_changes):
        cam = dataclasses.replace(camera, **camera_changes)
        if stars is None:
            stars = [Star(1, mount.ra, mount.dec, magnitude, 0.65)]
        return SimulationState(
            star_field=StarField.from_stars(stars, mount.ra, mount.dec),
            mount=mount,
            camera=cam,
            atmosphere=AtmosphericState(seeing=seeing, cloud_coverage=cloud_coverage),
            optics=optics,
        )
    return _make
