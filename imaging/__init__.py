"""
Virtual sensor imaging engine

Turns a star field plus mount/camera/atmosphere snapshot into a raw image:
- Pooled pixel buffers
- Optics, photon flux and point-spread functions
- Sensor physics (QE, dark current, read noise, ADC)
- Subframe-based exposure processing
- Simple and high-fidelity generators
"""

from .buffer_pool import BufferPool, BufferPoolManager, PooledBuffer, PoolStatistics
from .equipment import OpticalParameters, TelescopeType, optics_from_mount, resolve_optics, get_telescope
from .photons import color_index_to_wavelength, aperture_area, photon_flux
from .psf import (
    PSFKernel,
    generate_airy_disk_psf,
    generate_gaussian_psf,
    convolve_psfs,
    calculate_psf_size,
    generate_combined_psf,
)
from .camera import SensorModel, SensorType, calculate_dark_current, create_sensor_model
from .frames import Subframe, ExposureResult, ExposureStatistics
from .subframe_processor import ProcessorState, SubframeProcessor, calculate_subframe_count
from .generators import (
    GeneratorKind,
    GeneratorCapabilities,
    ImageGenerator,
    create_image_generator,
)

__all__ = [
    'BufferPool',
    'BufferPoolManager',
    'PooledBuffer',
    'PoolStatistics',
    'OpticalParameters',
    'TelescopeType',
    'optics_from_mount',
    'resolve_optics',
    'get_telescope',
    'color_index_to_wavelength',
    'aperture_area',
    'photon_flux',
    'PSFKernel',
    'generate_airy_disk_psf',
    'generate_gaussian_psf',
    'convolve_psfs',
    'calculate_psf_size',
    'generate_combined_psf',
    'SensorModel',
    'SensorType',
    'calculate_dark_current',
    'create_sensor_model',
    'Subframe',
    'ExposureResult',
    'ExposureStatistics',
    'ProcessorState',
    'SubframeProcessor',
    'calculate_subframe_count',
    'GeneratorKind',
    'GeneratorCapabilities',
    'ImageGenerator',
    'create_image_generator',
]

__version__ = '0.1.0'
