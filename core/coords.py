"""
Sky-to-sensor coordinate helpers.

Projection is the small-field tangent approximation used for telescope
fields: RA offsets are scaled by cos(Dec) of the pointing, RA grows to the
left of the frame and Dec grows downward in pixel rows.
"""
from __future__ import annotations

import math
from typing import Iterable, List, Tuple

from .types import CameraState, MountState, ProjectedStar, Star

# Stars this far outside the sensor still spill PSF light onto the frame
VISIBILITY_MARGIN_PX = 20.0


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def wrap_deg(x: float) -> float:
    x = x % 360.0
    return x if x >= 0 else x + 360.0


def ang_diff_deg(a: float, b: float) -> float:
    """Smallest signed difference a-b in degrees in [-180,180)."""
    d = (a - b + 180.0) % 360.0 - 180.0
    return d


def to_radians(deg: float) -> float:
    return deg * math.pi / 180.0


def to_degrees(rad: float) -> float:
    return rad * 180.0 / math.pi


def plate_scale(focal_length_mm: float, pixel_size_um: float) -> float:
    """Arcseconds of sky per pixel."""
    return 206.265 * pixel_size_um / focal_length_mm


def field_of_view(mount: MountState, camera: CameraState) -> Tuple[float, float]:
    """
    Field of view in degrees.

    Returns:
        (width_deg, height_deg)
    """
    scale = plate_scale(mount.focal_length, camera.pixel_size)
    return camera.width * scale / 3600.0, camera.height * scale / 3600.0


def field_radius(mount: MountState, camera: CameraState,
                 margin_px: float = VISIBILITY_MARGIN_PX) -> float:
    """Radius in degrees of a circle enclosing the frame plus the visibility margin."""
    scale = plate_scale(mount.focal_length, camera.pixel_size)
    half_w = camera.width / 2.0 + margin_px
    half_h = camera.height / 2.0 + margin_px
    return math.hypot(half_w, half_h) * scale / 3600.0


def project_star(star: Star, mount: MountState, camera: CameraState) -> ProjectedStar:
    """
    Place a star on the sensor.

    Args:
        star: Catalog star
        mount: Pointing and focal length
        camera: Sensor geometry

    Returns:
        ProjectedStar with pixel coordinates relative to the frame origin
    """
    scale = plate_scale(mount.focal_length, camera.pixel_size)
    d_ra = ang_diff_deg(star.ra, mount.ra) * math.cos(to_radians(mount.dec)) * 3600.0
    d_dec = (star.dec - mount.dec) * 3600.0

    x = camera.width / 2.0 - d_ra / scale
    y = camera.height / 2.0 + d_dec / scale
    return ProjectedStar(star, x, y)


def is_star_visible(projected: ProjectedStar, camera: CameraState,
                    margin: float = VISIBILITY_MARGIN_PX) -> bool:
    return (-margin <= projected.x < camera.width + margin
            and -margin <= projected.y < camera.height + margin)


def get_visible_stars(stars: Iterable[Star], mount: MountState,
                      camera: CameraState) -> List[ProjectedStar]:
    """Project every star and keep those landing on (or just off) the sensor."""
    visible = []
    for star in stars:
        p = project_star(star, mount, camera)
        if is_star_visible(p, camera):
            visible.append(p)
    return visible
