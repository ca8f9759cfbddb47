"""fdkct - FDK cone-beam CT reconstruction.

Feldkamp-Davis-Kress filtered backprojection for circular cone-beam
geometries, built with NumPy, PyTorch (FFT filtering) and Numba (CPU and
CUDA backprojection kernels).
"""

import logging

from .errors import (
    FDKError,
    InvalidGeometryError,
    IndexOutOfRangeError,
    ShapeMismatchError,
    NumericConfigError,
    BackendUnavailableError,
    ReconstructionCancelledError,
)

from .images import (
    ProjectionStack,
    ReconstructionVolume,
    VolumeGeometry,
    VolumeRegion,
    paste_regions,
)

from .geometry import (
    ProjectionRecord,
    ThreeDCircularProjectionGeometry,
    circular_geometry,
)

from .weighting import weight_projections
from .filtering import RampFilterConfig, ramp_filter, ramp_kernel, padded_length
from .backprojection import backproject
from .fov import field_of_view_mask, apply_field_of_view
from .reconstruction import (
    filter_projections,
    reconstruct,
    reconstruct_streamed,
    split_region,
)
from .quality import ImageQuality, image_quality

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = '0.1.0'

__all__ = [
    # Errors
    'FDKError',
    'InvalidGeometryError',
    'IndexOutOfRangeError',
    'ShapeMismatchError',
    'NumericConfigError',
    'BackendUnavailableError',
    'ReconstructionCancelledError',
    # Images
    'ProjectionStack',
    'ReconstructionVolume',
    'VolumeGeometry',
    'VolumeRegion',
    'paste_regions',
    # Geometry
    'ProjectionRecord',
    'ThreeDCircularProjectionGeometry',
    'circular_geometry',
    # Pipeline stages
    'weight_projections',
    'RampFilterConfig',
    'ramp_filter',
    'ramp_kernel',
    'padded_length',
    'backproject',
    'field_of_view_mask',
    'apply_field_of_view',
    'filter_projections',
    'reconstruct',
    'reconstruct_streamed',
    'split_region',
    'ImageQuality',
    'image_quality',
]
