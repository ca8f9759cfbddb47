"""Voxel-driven kernels for cone-beam backprojection.

Every kernel owns whole voxels: a voxel is written by exactly one thread, so
no atomic operations are needed and a voxel's value never depends on the
region it is computed in. Voxel positions are always derived from global
voxel indices (region start + local index).

Projection matrices map homogeneous voxel indices to ``(x*w, y*w, w)``
where ``(x, y)`` is the continuous detector pixel index and ``w`` the depth
of the voxel from the source in mm (see :mod:`fdkct.geometry`).
"""

import math

from numba import cuda, prange

from ..constants import _CPU_PARALLEL_DECORATOR, _EPSILON, _FASTMATH_DECORATOR


# ============================================================================
# CPU kernels (numba parallel)
# ============================================================================

@_CPU_PARALLEL_DECORATOR
def _fdk_backproject_cpu_kernel(
    d_proj, view_start, view_stop,
    d_matrices, d_view_weights,
    d_vol, i0, j0, k0
):
    """Accumulate FDK contributions of views ``[view_start, view_stop)``.

    Parameters
    ----------
    d_proj : numpy.ndarray
        Filtered projections, shape (n_views, n_v, n_u), float32.
    view_start, view_stop : int
        Half-open range of views to accumulate.
    d_matrices : numpy.ndarray
        Projection matrices, shape (n_views, 3, 4), float64.
    d_view_weights : numpy.ndarray
        Per-view constants ``c_i * sid_i**2``, shape (n_views,), float64.
    d_vol : numpy.ndarray
        Output region, shape (nz, ny, nx), float32, accumulated in place.
    i0, j0, k0 : int
        Global index of ``d_vol[0, 0, 0]`` along x, y and z.

    Notes
    -----
    z slices are distributed over threads with ``prange``; inside a slice
    the views are visited in order, so each voxel sums its contributions in
    the same order whatever region it belongs to. Each contribution is
    computed in float64 and added to the float32 voxel, which is rounded
    after every view, so splitting the views into chunks leaves the sum
    unchanged.
    """
    nz, ny, nx = d_vol.shape
    n_v = d_proj.shape[1]
    n_u = d_proj.shape[2]
    u_max = n_u - 1.0
    v_max = n_v - 1.0

    for k in prange(nz):
        z = float(k0 + k)
        for iview in range(view_start, view_stop):
            m00, m01, m02, m03 = d_matrices[iview, 0, 0], d_matrices[iview, 0, 1], d_matrices[iview, 0, 2], d_matrices[iview, 0, 3]
            m10, m11, m12, m13 = d_matrices[iview, 1, 0], d_matrices[iview, 1, 1], d_matrices[iview, 1, 2], d_matrices[iview, 1, 3]
            m20, m21, m22, m23 = d_matrices[iview, 2, 0], d_matrices[iview, 2, 1], d_matrices[iview, 2, 2], d_matrices[iview, 2, 3]
            cw = d_view_weights[iview]

            for j in range(ny):
                y = float(j0 + j)
                # Row constant part of the projection
                bu = m01 * y + m02 * z + m03
                bv = m11 * y + m12 * z + m13
                bw = m21 * y + m22 * z + m23

                for i in range(nx):
                    x = float(i0 + i)
                    w = m20 * x + bw
                    if w <= _EPSILON:
                        continue  # behind the source
                    inv_w = 1.0 / w
                    u = (m00 * x + bu) * inv_w
                    v = (m10 * x + bv) * inv_w
                    if u < 0.0 or u > u_max or v < 0.0 or v > v_max:
                        continue  # ray misses the detector

                    # === BILINEAR INTERPOLATION ON THE DETECTOR ===
                    iu = min(int(math.floor(u)), n_u - 2)
                    iv = min(int(math.floor(v)), n_v - 2)
                    fu = u - iu
                    fv = v - iv
                    val = ((1.0 - fv) * ((1.0 - fu) * d_proj[iview, iv, iu] + fu * d_proj[iview, iv, iu + 1])
                           + fv * ((1.0 - fu) * d_proj[iview, iv + 1, iu] + fu * d_proj[iview, iv + 1, iu + 1]))

                    # (sid / w)^2 magnification weighting, sid^2 folded into cw
                    d_vol[k, j, i] += cw * inv_w * inv_w * val


@_CPU_PARALLEL_DECORATOR
def _field_of_view_cpu_kernel(d_matrices, n_u, n_v, d_mask, i0, j0, k0):
    """Flag voxels that project inside the detector for every view.

    Parameters
    ----------
    d_matrices : numpy.ndarray
        Projection matrices, shape (n_views, 3, 4), float64.
    n_u, n_v : int
        Detector size in pixels.
    d_mask : numpy.ndarray
        Output boolean mask, shape (nz, ny, nx).
    i0, j0, k0 : int
        Global index of ``d_mask[0, 0, 0]``.
    """
    nz, ny, nx = d_mask.shape
    n_views = d_matrices.shape[0]
    u_max = n_u - 1.0
    v_max = n_v - 1.0

    for k in prange(nz):
        z = float(k0 + k)
        for j in range(ny):
            y = float(j0 + j)
            for i in range(nx):
                x = float(i0 + i)
                inside = True
                for iview in range(n_views):
                    w = (d_matrices[iview, 2, 0] * x + d_matrices[iview, 2, 1] * y
                         + d_matrices[iview, 2, 2] * z + d_matrices[iview, 2, 3])
                    if w <= _EPSILON:
                        inside = False
                        break
                    u = (d_matrices[iview, 0, 0] * x + d_matrices[iview, 0, 1] * y
                         + d_matrices[iview, 0, 2] * z + d_matrices[iview, 0, 3]) / w
                    v = (d_matrices[iview, 1, 0] * x + d_matrices[iview, 1, 1] * y
                         + d_matrices[iview, 1, 2] * z + d_matrices[iview, 1, 3]) / w
                    if u < 0.0 or u > u_max or v < 0.0 or v > v_max:
                        inside = False
                        break
                d_mask[k, j, i] = inside


# ============================================================================
# CUDA kernel
# ============================================================================

@_FASTMATH_DECORATOR
def _fdk_backproject_cuda_kernel(
    d_proj, n_u, n_v, view_start, view_stop,
    d_matrices, d_view_weights,
    d_vol, nx, ny, nz, i0, j0, k0
):
    """CUDA variant of :func:`_fdk_backproject_cpu_kernel`, one thread per voxel.

    Parameters
    ----------
    d_proj : numba.cuda.cudadrv.devicearray.DeviceNDArray
        Filtered projections on CUDA, shape (n_views, n_v, n_u).
    n_u, n_v : int
        Detector size in pixels.
    view_start, view_stop : int
        Half-open range of views to accumulate.
    d_matrices : numba.cuda.cudadrv.devicearray.DeviceNDArray
        Projection matrices on CUDA, shape (n_views, 3, 4).
    d_view_weights : numba.cuda.cudadrv.devicearray.DeviceNDArray
        Per-view constants ``c_i * sid_i**2`` on CUDA, shape (n_views,).
    d_vol : numba.cuda.cudadrv.devicearray.DeviceNDArray
        Output region on CUDA, shape (nz, ny, nx), accumulated in place.
    nx, ny, nz : int
        Region size.
    i0, j0, k0 : int
        Global index of the region start.
    """
    i, j, k = cuda.grid(3)
    if i >= nx or j >= ny or k >= nz:
        return

    x = float(i0 + i)
    y = float(j0 + j)
    z = float(k0 + k)
    u_max = n_u - 1.0
    v_max = n_v - 1.0

    accum = 0.0
    for iview in range(view_start, view_stop):
        w = d_matrices[iview, 2, 0] * x + d_matrices[iview, 2, 1] * y + d_matrices[iview, 2, 2] * z + d_matrices[iview, 2, 3]
        if w <= _EPSILON:
            continue
        inv_w = 1.0 / w
        u = (d_matrices[iview, 0, 0] * x + d_matrices[iview, 0, 1] * y + d_matrices[iview, 0, 2] * z + d_matrices[iview, 0, 3]) * inv_w
        v = (d_matrices[iview, 1, 0] * x + d_matrices[iview, 1, 1] * y + d_matrices[iview, 1, 2] * z + d_matrices[iview, 1, 3]) * inv_w
        if u < 0.0 or u > u_max or v < 0.0 or v > v_max:
            continue

        iu = min(int(math.floor(u)), n_u - 2)
        iv = min(int(math.floor(v)), n_v - 2)
        fu = u - iu
        fv = v - iv
        val = ((1.0 - fv) * ((1.0 - fu) * d_proj[iview, iv, iu] + fu * d_proj[iview, iv, iu + 1])
               + fv * ((1.0 - fu) * d_proj[iview, iv + 1, iu] + fu * d_proj[iview, iv + 1, iu + 1]))
        accum += d_view_weights[iview] * inv_w * inv_w * val

    d_vol[k, j, i] += accum
