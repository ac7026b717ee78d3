"""
Tests for mount drift, periodic error and the stochastic tracking model.
"""

import dataclasses
import math

import numpy as np
import pytest

from core.tracking import (
    TrackingErrorModel,
    evolve_mount_state,
    periodic_error,
    polar_alignment_drift,
)
from core.types import SIDEREAL_RATE


class TestDeterministicDrift:

    def test_perfect_tracking_does_not_move(self, mount):
        moved = evolve_mount_state(mount, 120.0, 0.1)
        assert moved.ra == pytest.approx(mount.ra)
        assert moved.dec == pytest.approx(mount.dec)

    def test_untracked_mount_drifts_at_sidereal(self, mount):
        stopped = dataclasses.replace(mount, tracking_rate=0.0)
        moved = evolve_mount_state(stopped, 10.0, 10.0)
        assert moved.ra == pytest.approx(mount.ra + SIDEREAL_RATE * 10.0)

    def test_ra_wraps(self, mount):
        near_end = dataclasses.replace(mount, ra=359.9999, tracking_rate=0.0)
        moved = evolve_mount_state(near_end, 100.0, 100.0)
        assert 0.0 <= moved.ra < 360.0
        assert moved.ra == pytest.approx((359.9999 + SIDEREAL_RATE * 100.0) % 360.0)

    def test_slewing_mount_unchanged(self, mount, rng):
        slewing = dataclasses.replace(mount, is_slewing=True, tracking_rate=0.0)
        assert evolve_mount_state(slewing, 30.0, 0.1, TrackingErrorModel(rng)) is slewing

    def test_original_not_mutated(self, mount):
        stopped = dataclasses.replace(mount, tracking_rate=0.0)
        evolve_mount_state(stopped, 10.0, 10.0)
        assert stopped.ra == mount.ra


class TestPeriodicError:

    def test_zero_without_amplitude(self, mount):
        assert periodic_error(mount, 100.0) == 0.0

    def test_sinusoid(self, mount):
        pe = dataclasses.replace(mount, periodic_error_amplitude=8.0, periodic_error_period=480.0)
        assert periodic_error(pe, 0.0) == pytest.approx(0.0, abs=1e-12)
        assert periodic_error(pe, 120.0) == pytest.approx(8.0)
        assert periodic_error(pe, 360.0) == pytest.approx(-8.0)

    def test_harmonics_add(self, mount):
        pe = dataclasses.replace(mount, periodic_error_amplitude=8.0, periodic_error_period=480.0,
                                 periodic_error_harmonics=((2, 0.5, 0.0),))
        t = 60.0
        phase = 2.0 * math.pi * t / 480.0
        assert periodic_error(pe, t) == pytest.approx(8.0 * math.sin(phase) + 4.0 * math.sin(2 * phase))


class TestPolarDrift:

    def test_aligned_mount(self, mount):
        assert polar_alignment_drift(mount, 600.0) == 0.0

    def test_grows_with_misalignment(self, mount):
        small = dataclasses.replace(mount, polar_alignment_error=0.1)
        large = dataclasses.replace(mount, polar_alignment_error=0.5)
        assert 0.0 < polar_alignment_drift(small, 600.0) < polar_alignment_drift(large, 600.0)

    def test_shifts_declination(self, mount, rng):
        misaligned = dataclasses.replace(mount, polar_alignment_error=1.0)
        errors = TrackingErrorModel(rng)
        moved = evolve_mount_state(misaligned, 600.0, 600.0, errors)
        expected = (polar_alignment_drift(misaligned, 600.0) + errors.dec_offset) / 3600.0
        assert moved.dec == pytest.approx(mount.dec + expected)


class TestTrackingErrorModel:

    def test_reproducible(self):
        a = TrackingErrorModel(np.random.default_rng(5))
        b = TrackingErrorModel(np.random.default_rng(5))
        for i in range(1, 50):
            assert a.step(i * 0.1, 0.1) == b.step(i * 0.1, 0.1)

    def test_random_walk_scale(self):
        offsets = []
        for seed in range(200):
            model = TrackingErrorModel(np.random.default_rng(seed), binding_interval=1e12)
            for i in range(1, 101):
                ra, dec = model.step(i * 0.1, 0.1)
            offsets.append(ra)
        # 100 steps of 0.1 s: sigma = 0.2 * sqrt(10)
        assert np.std(offsets) == pytest.approx(0.2 * math.sqrt(10.0), rel=0.2)

    def test_binding_events_happen_eventually(self):
        model = TrackingErrorModel(np.random.default_rng(3), binding_interval=1.0)
        for i in range(1, 500):
            model.step(i * 1.0, 1.0)
        assert model.binding_events > 0

    def test_reset(self, rng):
        model = TrackingErrorModel(rng, binding_interval=1.0)
        for i in range(1, 100):
            model.step(float(i), 1.0)
        model.reset()
        assert (model.ra_offset, model.dec_offset, model.binding_events) == (0.0, 0.0, 0)

    def test_error_scaled_by_declination(self, mount):
        high = dataclasses.replace(mount, dec=60.0, periodic_error_amplitude=10.0,
                                   periodic_error_period=400.0)
        errors = TrackingErrorModel(np.random.default_rng(0), binding_interval=1e12)
        moved = evolve_mount_state(high, 100.0, 0.0, errors)
        assert errors.ra_offset == 0.0
        assert (moved.ra - high.ra) * 3600.0 == pytest.approx(10.0 / 0.5)
