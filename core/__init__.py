"""
Shared building blocks of the virtual sensor.

- Snapshot types (stars, mount, camera, atmosphere, simulation state)
- Error taxonomy
- Sky-to-pixel projection
- Mount tracking errors
- Simulation parameters
"""

from .types import (
    SIDEREAL_RATE,
    Star,
    StarField,
    MountState,
    CameraState,
    AtmosphericState,
    SimulationState,
    ProjectedStar,
)
from .errors import SimulationError, InvalidDimensions, InvalidOpticalParameters
from .coords import (
    VISIBILITY_MARGIN_PX,
    plate_scale,
    project_star,
    is_star_visible,
    get_visible_stars,
)
from .config import SimulationParameters

__all__ = [
    'SIDEREAL_RATE',
    'Star',
    'StarField',
    'MountState',
    'CameraState',
    'AtmosphericState',
    'SimulationState',
    'ProjectedStar',
    'SimulationError',
    'InvalidDimensions',
    'InvalidOpticalParameters',
    'VISIBILITY_MARGIN_PX',
    'plate_scale',
    'project_star',
    'is_star_visible',
    'get_visible_stars',
    'SimulationParameters',
]
