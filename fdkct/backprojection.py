"""FDK weighted backprojection.

For every voxel of the requested region and every view, the voxel centre is
mapped onto the detector with the view's projection matrix. Views whose ray
misses the detector are skipped for that voxel; otherwise the filtered
projection is sampled bilinearly and accumulated with the weight::

    c_i * (sid_i / w)**2,    c_i = 0.5 * gap_i * (sdd_i / sid_i)**2

``w`` is the depth of the voxel from the source along the central ray and
``gap_i`` the angular weight of the view (half the gap to its neighbours,
see :meth:`ThreeDCircularProjectionGeometry.angular_gap_weights`). The
factor 0.5 removes the double coverage of a full turn and
``(sdd / sid)**2`` maps detector-plane filtering to the isocentre plane. For
N evenly spaced views over 360 degrees, ``c_i`` is the constant
``pi / N * (sdd / sid)**2``.
"""

import logging

import numpy as np
import torch

from .constants import _DEFAULT_VIEWS_PER_CHUNK, _DTYPE, _MATRIX_DTYPE
from .errors import ReconstructionCancelledError, ShapeMismatchError
from .images import ReconstructionVolume, VolumeRegion
from .kernels import _fdk_backproject_cpu_kernel, _fdk_backproject_cuda_kernel
from .utils import TorchCUDABridge, _get_numba_external_stream_for, _grid_3d, check_backend

logger = logging.getLogger(__name__)


def view_weights(geometry):
    """Per-view backprojection constants ``c_i * sid_i**2``, shape (n_views,).

    ``c_i * sid_i**2`` simplifies to ``0.5 * gap_i * sdd_i**2``, which stays
    finite when a source sits on the isocentre.
    """
    sdd = geometry.source_to_detector_distances
    return (0.5 * geometry.angular_gap_weights() * sdd * sdd).astype(_MATRIX_DTYPE)


def _resolve_region(volume, region):
    if region is None:
        return volume.full_region()
    if not isinstance(region, VolumeRegion):
        raise ShapeMismatchError(f"Expected a VolumeRegion, got {type(region).__name__}")
    return volume.check_region(region)


def _check_inputs(stack, geometry):
    if stack.n_views != geometry.projection_count():
        raise ShapeMismatchError(
            f"Projection stack has {stack.n_views} views but geometry has "
            f"{geometry.projection_count()} projections"
        )
    if stack.n_u < 2 or stack.n_v < 2:
        raise ShapeMismatchError(
            f"Detector must be at least 2x2 pixels for interpolation, got {stack.n_u}x{stack.n_v}"
        )


def _view_chunks(n_views, views_per_chunk):
    step = max(1, int(views_per_chunk or _DEFAULT_VIEWS_PER_CHUNK))
    for start in range(0, n_views, step):
        yield start, min(start + step, n_views)


def _check_cancelled(cancel_event):
    if cancel_event is not None and cancel_event.is_set():
        raise ReconstructionCancelledError("Backprojection cancelled")


def backproject(filtered, geometry, volume, region=None, backend='cpu',
                views_per_chunk=None, cancel_event=None):
    """Backproject filtered projections into a region of a volume.

    Parameters
    ----------
    filtered : ProjectionStack
        Weighted and ramp filtered projections, shape (n_views, n_v, n_u).
    geometry : ThreeDCircularProjectionGeometry
        Acquisition geometry, one record per view.
    volume : VolumeGeometry
        Full reconstruction volume.
    region : VolumeRegion, optional
        Part of ``volume`` to compute (default: the whole volume).
    backend : {'cpu', 'cuda'}, optional
        Kernel implementation (default: 'cpu').
    views_per_chunk : int, optional
        Views accumulated between two cancellation checks.
    cancel_event : object, optional
        Anything with an ``is_set()`` method, such as ``threading.Event``.

    Returns
    -------
    ReconstructionVolume
        Reconstructed region, positioned in ``volume``.

    Raises
    ------
    ShapeMismatchError
        If the stack does not match the geometry or the region does not fit.
    BackendUnavailableError
        If the backend cannot run on this machine.
    ReconstructionCancelledError
        If ``cancel_event`` is set while views remain.

    Notes
    -----
    Each voxel is computed from its global index only, so reconstructing a
    region gives exactly the values of the same voxels in a full
    reconstruction.
    """
    _check_inputs(filtered, geometry)
    region = _resolve_region(volume, region)
    backend = check_backend(backend)

    matrices = geometry.projection_matrices(volume.origin, volume.spacing,
                                            filtered.origin, filtered.spacing)
    weights = view_weights(geometry)
    logger.debug("Backprojecting %d views into region index=%s size=%s (%s)",
                 filtered.n_views, region.index, region.size, backend)

    if backend == 'cuda':
        data = _backproject_cuda(filtered.data, matrices, weights, region,
                                 views_per_chunk, cancel_event)
    else:
        data = _backproject_cpu(filtered.data, matrices, weights, region,
                                views_per_chunk, cancel_event)
    return ReconstructionVolume(data, volume.origin, volume.spacing, region.index)


def _backproject_cpu(proj, matrices, weights, region, views_per_chunk, cancel_event):
    out = np.zeros(region.shape, dtype=_DTYPE)
    i0, j0, k0 = region.index
    for start, stop in _view_chunks(proj.shape[0], views_per_chunk):
        _check_cancelled(cancel_event)
        _fdk_backproject_cpu_kernel(proj, start, stop, matrices, weights, out, i0, j0, k0)
        logger.debug("Accumulated views %d-%d", start, stop - 1)
    return out


def _backproject_cuda(proj, matrices, weights, region, views_per_chunk, cancel_event):
    device = torch.device('cuda')
    proj_t = torch.tensor(proj, dtype=torch.float32, device=device).contiguous()
    matrices_t = torch.tensor(matrices, dtype=torch.float32, device=device).contiguous()
    weights_t = torch.tensor(weights, dtype=torch.float32, device=device).contiguous()
    out = torch.zeros(region.shape, dtype=torch.float32, device=device)

    d_proj = TorchCUDABridge.tensor_to_cuda_array(proj_t)
    d_matrices = TorchCUDABridge.tensor_to_cuda_array(matrices_t)
    d_weights = TorchCUDABridge.tensor_to_cuda_array(weights_t)
    d_vol = TorchCUDABridge.tensor_to_cuda_array(out)

    nx, ny, nz = region.size
    i0, j0, k0 = region.index
    n_v, n_u = proj.shape[1], proj.shape[2]
    grid, tpb = _grid_3d(nx, ny, nz)

    pt_stream = torch.cuda.current_stream()
    numba_stream = _get_numba_external_stream_for(pt_stream)
    for start, stop in _view_chunks(proj.shape[0], views_per_chunk):
        _check_cancelled(cancel_event)
        _fdk_backproject_cuda_kernel[grid, tpb, numba_stream](
            d_proj, n_u, n_v, start, stop, d_matrices, d_weights,
            d_vol, nx, ny, nz, i0, j0, k0
        )
    return out.cpu().numpy()
