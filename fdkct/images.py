"""Value types for projection stacks and reconstruction volumes.

Projection data is stored as ``(n_views, n_v, n_u)`` (views, detector rows,
detector columns) and volumes as ``(n_z, n_y, n_x)``. Physical positions
follow the usual image convention: ``origin`` is the position of index 0
along each axis and ``spacing`` the distance between neighbouring samples,
both in millimetres and ordered ``(x, y[, z])``.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .constants import _DTYPE
from .errors import ShapeMismatchError


def _as_readonly(data, ndim, name):
    array = np.ascontiguousarray(data, dtype=_DTYPE)
    if array.ndim != ndim:
        raise ShapeMismatchError(f"{name} must be {ndim}D, got {array.ndim}D")
    if array is data:
        array = array.copy()
    array.flags.writeable = False
    return array


def _as_triple(values, name, cast=float):
    values = tuple(cast(v) for v in values)
    if len(values) != 3:
        raise ShapeMismatchError(f"{name} must have 3 components, got {len(values)}")
    return values


# ============================================================================
# Projections
# ============================================================================

class ProjectionStack:
    """A read-only stack of 2D projections, one per view.

    Parameters
    ----------
    data : array-like
        Projection values, shape (n_views, n_v, n_u).
    spacing : tuple of float, optional
        Detector pixel spacing (du, dv) in mm (default: (1.0, 1.0)).
    origin : tuple of float, optional
        Physical (u, v) position of pixel (0, 0) in mm. By default the
        detector is centred: ``-(n - 1) / 2 * spacing`` along each axis.

    Examples
    --------
    >>> stack = ProjectionStack(np.zeros((180, 128, 128)), spacing=(4.0, 4.0))
    >>> stack.origin
    (-254.0, -254.0)
    """

    def __init__(self, data, spacing=(1.0, 1.0), origin=None):
        self.data = _as_readonly(data, 3, "Projection stack")
        self.spacing = (float(spacing[0]), float(spacing[1]))
        if min(self.spacing) <= 0:
            raise ShapeMismatchError(f"Detector spacing must be positive, got {self.spacing}")
        if origin is None:
            origin = (-(self.n_u - 1) * 0.5 * self.spacing[0],
                      -(self.n_v - 1) * 0.5 * self.spacing[1])
        self.origin = (float(origin[0]), float(origin[1]))

    @property
    def n_views(self):
        return self.data.shape[0]

    @property
    def n_v(self):
        return self.data.shape[1]

    @property
    def n_u(self):
        return self.data.shape[2]

    @property
    def u_coordinates(self):
        """Physical u position of every detector column, shape (n_u,)."""
        return self.origin[0] + np.arange(self.n_u) * self.spacing[0]

    @property
    def v_coordinates(self):
        """Physical v position of every detector row, shape (n_v,)."""
        return self.origin[1] + np.arange(self.n_v) * self.spacing[1]

    def with_data(self, data):
        """Return a stack with new values and the same detector layout."""
        if np.shape(data) != self.data.shape:
            raise ShapeMismatchError(
                f"Expected projection data of shape {self.data.shape}, got {np.shape(data)}"
            )
        return ProjectionStack(data, spacing=self.spacing, origin=self.origin)

    def __repr__(self):
        return (f"ProjectionStack(shape={self.data.shape}, spacing={self.spacing}, "
                f"origin={self.origin})")


# ============================================================================
# Volumes
# ============================================================================

@dataclass(frozen=True)
class VolumeRegion:
    """Box of voxels given by its start ``index`` and ``size``, both (x, y, z)."""

    index: Tuple[int, int, int]
    size: Tuple[int, int, int]

    def __post_init__(self):
        object.__setattr__(self, "index", _as_triple(self.index, "Region index", int))
        object.__setattr__(self, "size", _as_triple(self.size, "Region size", int))
        if min(self.size) <= 0:
            raise ShapeMismatchError(f"Region size must be positive, got {self.size}")

    @property
    def stop(self):
        return tuple(i + n for i, n in zip(self.index, self.size))

    @property
    def shape(self):
        """Array shape (n_z, n_y, n_x) of the region."""
        return self.size[::-1]

    @property
    def slices(self):
        """Slices selecting the region out of a (n_z, n_y, n_x) array."""
        return tuple(slice(i, s) for i, s in zip(self.index[::-1], self.stop[::-1]))

    def contains(self, other):
        return all(a <= b and b_stop <= a_stop
                   for a, b, a_stop, b_stop in zip(self.index, other.index, self.stop, other.stop))


@dataclass(frozen=True)
class VolumeGeometry:
    """Full extent of a reconstruction volume.

    Parameters
    ----------
    origin : tuple of float
        Physical position (x, y, z) of voxel (0, 0, 0) in mm.
    spacing : tuple of float
        Voxel size (x, y, z) in mm.
    size : tuple of int
        Number of voxels (n_x, n_y, n_z).

    Examples
    --------
    >>> volume = VolumeGeometry((-127.0,) * 3, (2.0,) * 3, (128,) * 3)
    >>> volume.full_region().shape
    (128, 128, 128)
    """

    origin: Tuple[float, float, float]
    spacing: Tuple[float, float, float]
    size: Tuple[int, int, int]

    def __post_init__(self):
        object.__setattr__(self, "origin", _as_triple(self.origin, "Volume origin"))
        object.__setattr__(self, "spacing", _as_triple(self.spacing, "Volume spacing"))
        object.__setattr__(self, "size", _as_triple(self.size, "Volume size", int))
        if min(self.spacing) <= 0:
            raise ShapeMismatchError(f"Volume spacing must be positive, got {self.spacing}")
        if min(self.size) <= 0:
            raise ShapeMismatchError(f"Volume size must be positive, got {self.size}")

    @classmethod
    def centered(cls, size, spacing):
        """Volume whose centre sits on the isocentre."""
        size = _as_triple(size, "Volume size", int)
        spacing = _as_triple(spacing, "Volume spacing")
        origin = tuple(-(n - 1) * 0.5 * s for n, s in zip(size, spacing))
        return cls(origin, spacing, size)

    @property
    def shape(self):
        return self.size[::-1]

    def full_region(self):
        return VolumeRegion((0, 0, 0), self.size)

    def region(self, index, size):
        """Sub-region of this volume; raises if it does not fit."""
        region = VolumeRegion(index, size)
        self.check_region(region)
        return region

    def check_region(self, region):
        if not self.full_region().contains(region):
            raise ShapeMismatchError(
                f"Region index={region.index} size={region.size} is not contained in "
                f"volume of size {self.size}"
            )
        return region


class ReconstructionVolume:
    """Reconstructed voxels of a region of a :class:`VolumeGeometry`.

    ``origin`` and ``spacing`` are those of the full volume; ``index`` is the
    position of ``data[0, 0, 0]`` in the full volume, so regions computed
    separately can be pasted back together.
    """

    def __init__(self, data, origin, spacing, index=(0, 0, 0)):
        self.data = _as_readonly(data, 3, "Volume")
        self.origin = _as_triple(origin, "Volume origin")
        self.spacing = _as_triple(spacing, "Volume spacing")
        self.index = _as_triple(index, "Region index", int)

    @property
    def region(self):
        return VolumeRegion(self.index, self.data.shape[::-1])

    @property
    def shape(self):
        return self.data.shape

    def with_data(self, data):
        return ReconstructionVolume(data, self.origin, self.spacing, self.index)

    def __repr__(self):
        return (f"ReconstructionVolume(shape={self.data.shape}, index={self.index}, "
                f"origin={self.origin}, spacing={self.spacing})")


def paste_regions(volume: VolumeGeometry, parts, out: Optional[np.ndarray] = None):
    """Assemble region reconstructions into one (n_z, n_y, n_x) array."""
    if out is None:
        out = np.zeros(volume.shape, dtype=_DTYPE)
    for part in parts:
        volume.check_region(part.region)
        out[part.region.slices] = part.data
    return ReconstructionVolume(out, volume.origin, volume.spacing)
