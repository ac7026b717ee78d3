"""
Atmosphere package: turbulence, seeing and cloud evolution.

Main exports:
    AtmosphericLayer           - one frozen-flow turbulence layer
    generate_atmospheric_layers - three layers for a seeing value
    calculate_jitter           - image motion at a timestamp
    evolve_atmosphere_state    - seeing/cloud random walk for one timestep
    CloudLayer                 - cached cloud transmission pattern
"""
from .turbulence import (
    AtmosphericLayer,
    generate_atmospheric_layers,
    calculate_jitter,
    calculate_simple_jitter,
)
from .atmospheric_model import (
    SEEING_MIN,
    SEEING_MAX,
    evolve_seeing_condition,
    evolve_cloud_coverage,
    evolve_atmosphere_state,
    transparency_from_coverage,
    with_coverage_transparency,
)
from .cloud_layer import CloudLayer, cloud_opacity, cloud_transmission_map

__all__ = [
    "AtmosphericLayer",
    "generate_atmospheric_layers",
    "calculate_jitter",
    "calculate_simple_jitter",
    "SEEING_MIN",
    "SEEING_MAX",
    "evolve_seeing_condition",
    "evolve_cloud_coverage",
    "evolve_atmosphere_state",
    "transparency_from_coverage",
    "with_coverage_transparency",
    "CloudLayer",
    "cloud_opacity",
    "cloud_transmission_map",
]
