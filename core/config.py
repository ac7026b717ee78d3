"""
Configuration for the virtual sensor.
"""

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

SENSOR_TYPES = ("ccd", "cmos", "bsi_cmos")


@dataclass(frozen=True)
class SimulationParameters:
    """
    Options recognised by the image generators.

    Each simulate_* / use_* flag switches one physical effect between its
    full model and a cheaper fallback.
    """

    subframe_duration: float = 0.1          # seconds
    use_multi_layer_atmosphere: bool = True
    simulate_tracking_errors: bool = True
    simulate_full_sensor_physics: bool = True
    simulate_cloud_patterns: bool = True

    sensor_temperature: float = -10.0       # °C
    sensor_type: str = "cmos"
    limiting_magnitude: float = 16.0
    output_adu: bool = False                # False: electrons, True: digitised ADU
    seed: Optional[int] = None

    def __post_init__(self):
        if not self.subframe_duration > 0:
            raise ValueError(f"subframe_duration must be positive, got {self.subframe_duration}")
        if self.sensor_type not in SENSOR_TYPES:
            raise ValueError(f"Unknown sensor_type '{self.sensor_type}', expected one of {SENSOR_TYPES}")
        if not -100.0 <= self.sensor_temperature <= 60.0:
            raise ValueError(f"sensor_temperature out of range: {self.sensor_temperature}")

    @classmethod
    def from_yaml(cls, path: Path) -> "SimulationParameters":
        """Load parameters from a YAML file."""
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        logger.info(f"Loaded simulation parameters from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> "SimulationParameters":
        """Create parameters from a dictionary, rejecting unknown keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown simulation parameters: {', '.join(unknown)}")
        return cls(**data)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    def to_yaml(self, path: Path) -> None:
        """Save parameters to a YAML file."""
        with open(path, "w") as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def replace(self, **changes) -> "SimulationParameters":
        return dataclasses.replace(self, **changes)
