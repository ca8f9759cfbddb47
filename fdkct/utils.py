"""Utility helpers for fdkct.

This module provides the PyTorch-CUDA bridge, stream caching, CUDA grid
computation and backend availability checks used by the backprojector.
"""

import math

import torch
from numba import cuda

from .constants import _BACKENDS, _TPB_3D
from .errors import BackendUnavailableError


# ============================================================================
# Backend Selection
# ============================================================================

def cuda_available():
    """Return True when both torch and numba can reach a CUDA device."""
    return torch.cuda.is_available() and cuda.is_available()


def check_backend(backend):
    """Validate a backend name and make sure it can run here.

    Parameters
    ----------
    backend : str
        'cpu' or 'cuda'.

    Returns
    -------
    str
        The normalized backend name.

    Raises
    ------
    BackendUnavailableError
        If the backend is unknown or CUDA is requested without a device.
    """
    name = str(backend).lower()
    if name not in _BACKENDS:
        raise BackendUnavailableError(f"Unknown backend {backend!r}; expected one of {_BACKENDS}")
    if name == 'cuda' and not cuda_available():
        raise BackendUnavailableError("CUDA backend requested but no CUDA device is available")
    return name


# ============================================================================
# PyTorch-CUDA Bridge
# ============================================================================

class TorchCUDABridge:
    """Bridge between PyTorch tensors and Numba CUDA arrays."""

    @staticmethod
    def tensor_to_cuda_array(tensor):
        """Convert a PyTorch CUDA tensor to a Numba CUDA DeviceNDArray.

        The returned array is a zero-copy view sharing memory with `tensor`.

        Parameters
        ----------
        tensor : torch.Tensor
            PyTorch tensor on a CUDA device.

        Returns
        -------
        numba.cuda.cudadrv.devicearray.DeviceNDArray
            Numba CUDA array view sharing memory with `tensor`.

        Raises
        ------
        ValueError
            If `tensor` is not on a CUDA device.
        """
        if not tensor.is_cuda:
            raise ValueError("Tensor must be on CUDA device")
        return cuda.as_cuda_array(tensor.detach())


# ============================================================================
# Stream Management (cached external Numba stream)
# ============================================================================

_cached_stream_ptr = None
_cached_numba_stream = None


def _get_numba_external_stream_for(pt_stream=None):
    """Return a cached numba.cuda.external_stream for the current PyTorch CUDA stream.

    Parameters
    ----------
    pt_stream : torch.cuda.Stream, optional
        PyTorch CUDA stream. If None, uses current stream.

    Returns
    -------
    numba.cuda.cudadrv.driver.Stream
        Numba external stream wrapper around PyTorch CUDA stream.
    """
    global _cached_stream_ptr, _cached_numba_stream
    if pt_stream is None:
        pt_stream = torch.cuda.current_stream()
    ptr = int(pt_stream.cuda_stream)
    if _cached_stream_ptr == ptr and _cached_numba_stream is not None:
        return _cached_numba_stream
    numba_stream = cuda.external_stream(pt_stream.cuda_stream)
    _cached_stream_ptr = ptr
    _cached_numba_stream = numba_stream
    return numba_stream


# ============================================================================
# CUDA Grid Computation
# ============================================================================

def _grid_3d(n1, n2, n3, tpb=_TPB_3D):
    """Compute 3D CUDA grid and block dimensions for voxel-driven kernels.

    Parameters
    ----------
    n1, n2, n3 : int
        Number of voxels along x, y and z.
    tpb : tuple of int, optional
        Threads per block (default is `_TPB_3D`).

    Returns
    -------
    grid : tuple of int
        Blocks count per axis.
    tpb : tuple of int
        Threads per block per axis.

    Examples
    --------
    >>> grid, tpb = _grid_3d(128, 128, 16)
    >>> grid
    (16, 16, 2)
    """
    return (
        math.ceil(n1 / tpb[0]),
        math.ceil(n2 / tpb[1]),
        math.ceil(n3 / tpb[2]),
    ), tpb
