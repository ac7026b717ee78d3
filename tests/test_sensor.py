"""
Tests for the noise primitives and sensor physics chain.
"""

import numpy as np
import pytest

from core.types import CameraState
from imaging.camera import (
    SensorType,
    apply_adc,
    apply_dark_current,
    apply_quantum_efficiency,
    apply_read_noise,
    calculate_dark_current,
    create_sensor_model,
    generate_fixed_pattern,
    normalize_adu,
    process_sensor_physics,
)
from imaging.noise_model import random_gaussian, random_poisson


class TestNoisePrimitives:

    def test_gaussian_statistics(self, rng):
        samples = np.array([random_gaussian(5.0, 2.0, rng) for _ in range(20000)])
        assert samples.mean() == pytest.approx(5.0, abs=0.06)
        assert samples.std() == pytest.approx(2.0, rel=0.03)

    def test_gaussian_zero_sigma(self, rng):
        assert random_gaussian(3.0, 0.0, rng) == 3.0

    @pytest.mark.parametrize("lam", [0.5, 4.0, 29.0, 50.0, 1000.0])
    def test_poisson_mean_equals_variance(self, rng, lam):
        samples = np.array([random_poisson(lam, rng) for _ in range(20000)])
        assert samples.mean() == pytest.approx(lam, rel=0.05)
        assert samples.var() == pytest.approx(lam, rel=0.08)
        assert samples.min() >= 0

    @pytest.mark.parametrize("lam", [0.0, -3.0])
    def test_poisson_non_positive_rate(self, rng, lam):
        assert random_poisson(lam, rng) == 0


class TestDarkCurrent:

    def test_doubles_every_six_and_a_half_degrees(self):
        assert calculate_dark_current(1.0, 6.5) == pytest.approx(2.0)
        assert calculate_dark_current(1.0, 13.0) == pytest.approx(4.0)

    def test_halves_when_cooled(self):
        assert calculate_dark_current(0.8, -6.5) == pytest.approx(0.4)

    def test_reference_temperature_unchanged(self):
        assert calculate_dark_current(0.02, 0.0) == pytest.approx(0.02)

    def test_adds_in_place(self, rng):
        buffer = np.zeros((200, 200))
        out = apply_dark_current(buffer, 5.0, 2.0, rng)
        assert out is buffer
        assert buffer.mean() == pytest.approx(10.0, rel=0.02)
        assert buffer.var() == pytest.approx(10.0, rel=0.1)

    def test_hot_pixels_multiply_rate(self, rng):
        buffer = np.zeros((10, 10))
        hot = np.ones((10, 10))
        hot[5, 5] = 1000.0
        apply_dark_current(buffer, 1.0, 1.0, rng, hot_pixels=hot)
        assert buffer[5, 5] > buffer.max() * 0.5


class TestSensorModel:

    @pytest.mark.parametrize("pixel_size", [1.5, 2.4, 3.76, 5.4, 9.0, 24.0])
    @pytest.mark.parametrize("sensor_type", list(SensorType))
    def test_physical_ranges(self, pixel_size, sensor_type):
        camera = CameraState(width=100, height=80, pixel_size=pixel_size, exposure_time=1.0)
        model = create_sensor_model(camera, -10.0, sensor_type)
        assert 0.0 < model.quantum_efficiency <= 1.0
        assert model.full_well > 1000
        assert model.bit_depth >= 8
        assert model.gain > 0.0
        assert model.width == 100 and model.height == 80

    def test_temperature_sets_dark_rate(self):
        camera = CameraState(width=10, height=10, pixel_size=4.0, exposure_time=1.0, dark_current=0.1)
        warm = create_sensor_model(camera, 13.0)
        cold = create_sensor_model(camera, -13.0)
        assert warm.dark_current_rate == pytest.approx(0.4)
        assert cold.dark_current_rate == pytest.approx(0.025)

    def test_sensor_type_lookup(self):
        assert SensorType.from_name("bsi_cmos") is SensorType.BSI_CMOS
        with pytest.raises(ValueError):
            SensorType.from_name("vidicon")

    def test_qe_curve_peaks_at_peak_wavelength(self):
        for st in SensorType:
            assert st.quantum_efficiency_at(st.peak_nm) == pytest.approx(st.peak_qe)
            assert st.relative_response(st.peak_nm + 100.0) < 1.0


class TestConversion:

    def test_quantum_efficiency_poisson(self, rng):
        photons = np.full((200, 200), 100.0)
        electrons = apply_quantum_efficiency(photons, 0.6, rng)
        assert electrons is not photons
        assert electrons.mean() == pytest.approx(60.0, rel=0.01)
        assert electrons.var() == pytest.approx(60.0, rel=0.1)
        assert np.all(photons == 100.0)

    def test_quantum_efficiency_expectation(self):
        electrons = apply_quantum_efficiency(np.full((4, 4), 10.0), 0.5, stochastic=False)
        assert np.all(electrons == 5.0)

    def test_read_noise(self, rng):
        buffer = np.full((200, 200), 50.0)
        apply_read_noise(buffer, 3.0, rng)
        assert buffer.mean() == pytest.approx(50.0, abs=0.1)
        assert buffer.std() == pytest.approx(3.0, rel=0.05)

    def test_adc_bias_and_saturation(self):
        camera = CameraState(width=4, height=4, pixel_size=4.0, exposure_time=1.0)
        model = create_sensor_model(camera, 0.0)
        electrons = np.array([[0.0, model.gain * 100.0], [1e9, -5.0]])
        adu = apply_adc(electrons, model)
        assert adu[0, 0] == model.bias_level
        assert adu[0, 1] == pytest.approx(model.bias_level + 100, abs=1)
        assert adu[1, 0] <= model.max_adu
        assert adu[1, 1] == model.bias_level
        norm = normalize_adu(adu, model)
        assert norm.min() >= 0.0 and norm.max() <= 1.0


class TestProcessSensorPhysics:

    def test_leaves_input_untouched_and_non_negative(self, rng):
        camera = CameraState(width=32, height=32, pixel_size=4.0, exposure_time=1.0, read_noise=5.0)
        model = create_sensor_model(camera, -10.0)
        photons = np.zeros((32, 32))
        photons[16, 16] = 1e5
        out = process_sensor_physics(photons, model, 1.0, rng)
        assert photons.sum() == 1e5
        assert out.min() >= 0.0
        assert out[16, 16] == pytest.approx(1e5 * model.quantum_efficiency, rel=0.02)

    def test_fallback_is_expectation_plus_read_noise(self, rng):
        camera = CameraState(width=32, height=32, pixel_size=4.0, exposure_time=1.0, read_noise=0.0)
        model = create_sensor_model(camera, 0.0)
        photons = np.full((32, 32), 10.0)
        out = process_sensor_physics(photons, model, 2.0, rng, full=False)
        expected = 10.0 * model.quantum_efficiency + model.dark_current_rate * 2.0
        assert np.allclose(out, expected)

    def test_fixed_pattern_is_deterministic(self):
        a = generate_fixed_pattern(50, 40, seed=9)
        b = generate_fixed_pattern(50, 40, seed=9)
        c = generate_fixed_pattern(50, 40, seed=10)
        assert np.array_equal(a.column_offsets, b.column_offsets)
        assert np.array_equal(a.hot_pixels, b.hot_pixels)
        assert not np.array_equal(a.column_offsets, c.column_offsets)
        assert a.hot_pixels.shape == (40, 50)
