"""
Tests for SimulationParameters.
"""

import pytest
import yaml

from core.config import SimulationParameters


class TestDefaults:

    def test_defaults(self):
        p = SimulationParameters()
        assert p.subframe_duration == 0.1
        assert p.use_multi_layer_atmosphere
        assert p.simulate_tracking_errors
        assert p.simulate_full_sensor_physics
        assert p.simulate_cloud_patterns
        assert p.sensor_type == "cmos"
        assert not p.output_adu

    def test_hashable(self):
        assert hash(SimulationParameters(seed=1)) == hash(SimulationParameters(seed=1))
        assert SimulationParameters(seed=1) != SimulationParameters(seed=2)


class TestValidation:

    @pytest.mark.parametrize("duration", [0.0, -0.1])
    def test_subframe_duration(self, duration):
        with pytest.raises(ValueError):
            SimulationParameters(subframe_duration=duration)

    def test_sensor_type(self):
        with pytest.raises(ValueError):
            SimulationParameters(sensor_type="film")

    def test_temperature(self):
        with pytest.raises(ValueError):
            SimulationParameters(sensor_temperature=500.0)


class TestSerialisation:

    def test_dict_round_trip(self):
        p = SimulationParameters(subframe_duration=0.25, sensor_type="ccd", seed=7)
        assert SimulationParameters.from_dict(p.to_dict()) == p

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="frobnicate"):
            SimulationParameters.from_dict({"frobnicate": True})

    def test_yaml_round_trip(self, tmp_path):
        p = SimulationParameters(simulate_cloud_patterns=False, output_adu=True, seed=99)
        path = tmp_path / "sensor.yaml"
        p.to_yaml(path)
        assert SimulationParameters.from_yaml(path) == p

    def test_partial_yaml(self, tmp_path):
        path = tmp_path / "partial.yaml"
        path.write_text(yaml.safe_dump({"subframe_duration": 0.5, "sensor_type": "bsi_cmos"}))
        p = SimulationParameters.from_yaml(path)
        assert p.subframe_duration == 0.5
        assert p.sensor_type == "bsi_cmos"
        assert p.simulate_tracking_errors

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert SimulationParameters.from_yaml(path) == SimulationParameters()

    def test_replace(self):
        p = SimulationParameters()
        q = p.replace(subframe_duration=0.2)
        assert q.subframe_duration == 0.2
        assert p.subframe_duration == 0.1
