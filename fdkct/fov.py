"""Field-of-view masking of reconstructions.

A voxel belongs to the field of view when its centre projects inside the
detector for every view, i.e. when every projection contributed to it during
backprojection. Voxels outside are incompletely sampled and are set to 0.
"""

import logging

import numpy as np

from .backprojection import _check_inputs, _resolve_region
from .kernels import _field_of_view_cpu_kernel

logger = logging.getLogger(__name__)


def field_of_view_mask(geometry, projections, volume, region=None):
    """Boolean mask of the voxels seen by every view.

    Parameters
    ----------
    geometry : ThreeDCircularProjectionGeometry
        Acquisition geometry.
    projections : ProjectionStack
        Supplies the detector size, spacing and origin.
    volume : VolumeGeometry
        Full reconstruction volume.
    region : VolumeRegion, optional
        Part of ``volume`` to evaluate (default: the whole volume).

    Returns
    -------
    numpy.ndarray
        Boolean array of shape (n_z, n_y, n_x) of the region.
    """
    _check_inputs(projections, geometry)
    region = _resolve_region(volume, region)
    matrices = geometry.projection_matrices(volume.origin, volume.spacing,
                                            projections.origin, projections.spacing)
    mask = np.zeros(region.shape, dtype=np.bool_)
    i0, j0, k0 = region.index
    _field_of_view_cpu_kernel(matrices, projections.n_u, projections.n_v, mask, i0, j0, k0)
    logger.debug("Field of view covers %d of %d voxels", int(mask.sum()), mask.size)
    return mask


def apply_field_of_view(reconstruction, geometry, projections, volume):
    """Zero the voxels of ``reconstruction`` that lie outside the field of view.

    Parameters
    ----------
    reconstruction : ReconstructionVolume
        Reconstructed region of ``volume``.
    geometry : ThreeDCircularProjectionGeometry
        Acquisition geometry.
    projections : ProjectionStack
        Projections the reconstruction was computed from.
    volume : VolumeGeometry
        Full reconstruction volume.

    Returns
    -------
    ReconstructionVolume
        Masked copy of ``reconstruction``.
    """
    mask = field_of_view_mask(geometry, projections, volume, reconstruction.region)
    return reconstruction.with_data(np.where(mask, reconstruction.data, 0.0))
