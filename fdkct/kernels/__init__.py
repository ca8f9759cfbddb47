"""Numba kernels for cone-beam backprojection.

This subpackage contains the voxel-driven CPU (numba parallel) and CUDA
kernels used by the backprojector and the field-of-view mask.
"""

from .cone_beam import (
    _fdk_backproject_cpu_kernel,
    _fdk_backproject_cuda_kernel,
    _field_of_view_cpu_kernel,
)

__all__ = [
    '_fdk_backproject_cpu_kernel',
    '_fdk_backproject_cuda_kernel',
    '_field_of_view_cpu_kernel',
]
