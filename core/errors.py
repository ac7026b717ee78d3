"""
Exceptions raised by the sensor simulation.

Everything derives from SimulationError so callers can catch the whole family,
and the concrete errors are also ValueErrors because they always describe bad
input rather than a broken engine.
"""


class SimulationError(Exception):
    """Base class for all simulation errors"""


class InvalidDimensions(SimulationError, ValueError):
    """Non-positive width/height/binning, or a binning factor that does not divide the frame"""


class InvalidOpticalParameters(SimulationError, ValueError):
    """Optics that cannot form an image (obstruction >= aperture, focal length <= 0, ...)"""


def check_dimensions(width: int, height: int) -> None:
    """Raise InvalidDimensions unless width and height are positive integers."""
    if int(width) != width or int(height) != height:
        raise InvalidDimensions(f"Buffer dimensions must be integers, got {width}x{height}")
    if width <= 0 or height <= 0:
        raise InvalidDimensions(f"Buffer dimensions must be positive, got {width}x{height}")
