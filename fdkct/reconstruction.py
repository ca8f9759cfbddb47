"""FDK reconstruction entry points.

:func:`reconstruct` chains weighting, ramp filtering and backprojection for
one region of the output volume. :func:`reconstruct_streamed` is a region
decomposition driver: it filters the projections once and backprojects the
volume piece by piece, which bounds the memory held by the output of each
call without changing any voxel value.
"""

import logging

import numpy as np

from .backprojection import _check_inputs, _resolve_region, backproject
from .errors import NumericConfigError, ShapeMismatchError
from .filtering import RampFilterConfig, ramp_filter
from .fov import apply_field_of_view
from .images import VolumeRegion, paste_regions
from .utils import check_backend
from .weighting import weight_projections

logger = logging.getLogger(__name__)


def _check_filter_config(filter_config):
    if filter_config is None:
        return RampFilterConfig()
    if not isinstance(filter_config, RampFilterConfig):
        raise NumericConfigError(
            f"Expected a RampFilterConfig, got {type(filter_config).__name__}"
        )
    return filter_config


def filter_projections(projections, geometry, filter_config=None, backend='cpu'):
    """Weight and ramp filter projections, ready for backprojection.

    Parameters
    ----------
    projections : ProjectionStack
        Raw line-integral projections.
    geometry : ThreeDCircularProjectionGeometry
        Acquisition geometry.
    filter_config : RampFilterConfig, optional
        Ramp filter settings (default: Ram-Lak).
    backend : {'cpu', 'cuda'}, optional
        Device the filter FFTs run on.

    Returns
    -------
    ProjectionStack
    """
    filter_config = _check_filter_config(filter_config)
    backend = check_backend(backend)
    weighted = weight_projections(projections, geometry)
    return ramp_filter(weighted, filter_config, device='cuda' if backend == 'cuda' else None)


def reconstruct(projections, geometry, volume, region=None, filter_config=None,
                backend='cpu', mask_field_of_view=False, views_per_chunk=None,
                cancel_event=None):
    """Reconstruct a volume, or a region of it, with the FDK algorithm.

    Parameters
    ----------
    projections : ProjectionStack
        Raw line-integral projections, shape (n_views, n_v, n_u).
    geometry : ThreeDCircularProjectionGeometry
        Acquisition geometry with one record per projection.
    volume : VolumeGeometry
        Full reconstruction volume (origin, spacing, size).
    region : VolumeRegion, optional
        Part of ``volume`` to reconstruct (default: all of it).
    filter_config : RampFilterConfig, optional
        Ramp filter settings (default: Ram-Lak, full bandwidth).
    backend : {'cpu', 'cuda'}, optional
        Backprojection implementation (default: 'cpu').
    mask_field_of_view : bool, optional
        Zero voxels not seen by every view (default: False).
    views_per_chunk : int, optional
        Views backprojected between cancellation checks.
    cancel_event : object, optional
        Anything with an ``is_set()`` method; checked between view chunks.

    Returns
    -------
    ReconstructionVolume
        The reconstructed region.

    Raises
    ------
    ShapeMismatchError, NumericConfigError, BackendUnavailableError
        On invalid inputs, before any computation.
    ReconstructionCancelledError
        If ``cancel_event`` is set during backprojection.

    Examples
    --------
    >>> geometry = circular_geometry(180, sid=600.0, sdd=1200.0)
    >>> volume = VolumeGeometry.centered((128, 128, 128), (2.0, 2.0, 2.0))
    >>> recon = reconstruct(projections, geometry, volume, mask_field_of_view=True)
    """
    _check_inputs(projections, geometry)
    region = _resolve_region(volume, region)
    filter_config = _check_filter_config(filter_config)
    backend = check_backend(backend)

    filtered = filter_projections(projections, geometry, filter_config, backend)
    recon = backproject(filtered, geometry, volume, region, backend=backend,
                        views_per_chunk=views_per_chunk, cancel_event=cancel_event)
    if mask_field_of_view:
        recon = apply_field_of_view(recon, geometry, projections, volume)
    return recon


def split_region(region, n_divisions):
    """Split a region into at most ``n_divisions`` contiguous boxes.

    The split runs along z, or along y (then x) when the region is a single
    slice thick, like a streaming image splitter.

    Parameters
    ----------
    region : VolumeRegion
        Region to split.
    n_divisions : int
        Requested number of pieces, ``>= 1``.

    Returns
    -------
    list of VolumeRegion
        Disjoint regions covering ``region``, in increasing index order.

    Examples
    --------
    >>> parts = split_region(VolumeRegion((0, 0, 0), (128, 128, 128)), 8)
    >>> [p.size[2] for p in parts]
    [16, 16, 16, 16, 16, 16, 16, 16]
    """
    if int(n_divisions) < 1:
        raise ShapeMismatchError(f"Number of divisions must be >= 1, got {n_divisions}")
    axis = next((a for a in (2, 1, 0) if region.size[a] > 1), 2)
    n_pieces = min(int(n_divisions), region.size[axis])

    parts = []
    for chunk in np.array_split(np.arange(region.size[axis]), n_pieces):
        index = list(region.index)
        size = list(region.size)
        index[axis] += int(chunk[0])
        size[axis] = len(chunk)
        parts.append(VolumeRegion(tuple(index), tuple(size)))
    return parts


def reconstruct_streamed(projections, geometry, volume, n_divisions=8, filter_config=None,
                         backend='cpu', mask_field_of_view=False, views_per_chunk=None,
                         cancel_event=None):
    """Reconstruct the full volume region by region.

    The projections are weighted and filtered once; each of the
    ``n_divisions`` regions is then backprojected (and masked) separately and
    pasted into the output. The result equals :func:`reconstruct` on the
    full volume voxel for voxel.

    Parameters
    ----------
    n_divisions : int, optional
        Number of regions (default: 8).

    Other parameters are as for :func:`reconstruct`.

    Returns
    -------
    ReconstructionVolume
        The full reconstructed volume.
    """
    _check_inputs(projections, geometry)
    filter_config = _check_filter_config(filter_config)
    backend = check_backend(backend)
    parts_regions = split_region(volume.full_region(), n_divisions)

    filtered = filter_projections(projections, geometry, filter_config, backend)
    parts = []
    for n, part_region in enumerate(parts_regions):
        part = backproject(filtered, geometry, volume, part_region, backend=backend,
                           views_per_chunk=views_per_chunk, cancel_event=cancel_event)
        if mask_field_of_view:
            part = apply_field_of_view(part, geometry, projections, volume)
        parts.append(part)
        logger.debug("Reconstructed region %d/%d (index=%s size=%s)",
                     n + 1, len(parts_regions), part_region.index, part_region.size)
    return paste_regions(volume, parts)
