"""Acquisition geometry for circular cone-beam CT.

This module stores one acquisition record per projection and derives the
3x4 projection matrices used by the backprojector.

Coordinate conventions
----------------------
World coordinates are in millimetres with the isocentre at the origin. The
rotation axis is the world y-axis. At gantry angle 0 the source sits at
``(0, 0, sid)`` and the detector plane is ``z = sid - sdd``; detector ``u``
runs along x and ``v`` along y.

A view is described by the world-to-view rotation::

    R = Rz(-in_plane) @ Rx(-out_of_plane_1) @ Ry(-gantry) @ Rz(-out_of_plane_2)

read right to left: ``out_of_plane_2`` turns the object about the fixed
world z-axis (tilting the rotation axis), the gantry rotates about y,
``out_of_plane_1`` tilts the orbit plane about the view x-axis and
``in_plane`` rolls the detector about the central ray. In view coordinates
the source is at ``(source_offset_x, source_offset_y, sid)`` and the detector
plane is ``z = sid - sdd``. A detector position in view coordinates is the
physical detector coordinate plus the projection offset.

All rotations are about the isocentre, so with zero offsets the isocentre
projects onto the detector centre for every view.
"""

import logging
import math
from typing import NamedTuple

import numpy as np

from .constants import _MATRIX_DTYPE
from .errors import IndexOutOfRangeError, InvalidGeometryError

logger = logging.getLogger(__name__)


# ============================================================================
# Elementary rotations
# ============================================================================

def _rot_x(angle):
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]], dtype=_MATRIX_DTYPE)


def _rot_y(angle):
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]], dtype=_MATRIX_DTYPE)


def _rot_z(angle):
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]], dtype=_MATRIX_DTYPE)


# ============================================================================
# Acquisition records
# ============================================================================

class ProjectionRecord(NamedTuple):
    """Acquisition parameters of one view. Angles in degrees, lengths in mm."""

    source_to_isocenter_distance: float
    source_to_detector_distance: float
    gantry_angle: float
    projection_offset_x: float = 0.0
    projection_offset_y: float = 0.0
    in_plane_angle: float = 0.0
    out_of_plane_angle_1: float = 0.0
    out_of_plane_angle_2: float = 0.0
    source_offset_x: float = 0.0
    source_offset_y: float = 0.0


class ThreeDCircularProjectionGeometry:
    """Ordered list of cone-beam acquisition records.

    Records can only be appended. Projection matrices are computed on demand
    and cached per view and image layout, so several reconstructions sharing
    a geometry reuse them.

    Examples
    --------
    >>> geometry = ThreeDCircularProjectionGeometry()
    >>> for i in range(180):
    ...     geometry.add_projection(600.0, 1200.0, i * 2.0)
    >>> geometry.projection_count()
    180
    """

    def __init__(self):
        self._records = []
        self._matrix_cache = {}

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_projection(self, source_to_isocenter_distance, source_to_detector_distance,
                       gantry_angle, projection_offset_x=0.0, projection_offset_y=0.0,
                       in_plane_angle=0.0, out_of_plane_angle_1=0.0, out_of_plane_angle_2=0.0,
                       *, source_offset_x=0.0, source_offset_y=0.0):
        """Append the record of one view.

        Parameters
        ----------
        source_to_isocenter_distance : float
            Source-to-Isocenter Distance (SID) in mm, ``>= 0``.
        source_to_detector_distance : float
            Source-to-Detector Distance (SDD) in mm, ``> SID``.
        gantry_angle : float
            Rotation angle in degrees; stored modulo 360.
        projection_offset_x, projection_offset_y : float, optional
            Detector shift in mm.
        in_plane_angle : float, optional
            Detector roll about the central ray, in degrees.
        out_of_plane_angle_1, out_of_plane_angle_2 : float, optional
            Orbit tilt about the view x-axis and rotation-axis tilt about the
            world z-axis, in degrees.
        source_offset_x, source_offset_y : float, optional
            Source shift in mm, parallel to the detector axes.

        Raises
        ------
        InvalidGeometryError
            If a value is not finite, a distance is negative or
            ``SDD <= SID``.
        """
        values = (source_to_isocenter_distance, source_to_detector_distance, gantry_angle,
                  projection_offset_x, projection_offset_y, in_plane_angle,
                  out_of_plane_angle_1, out_of_plane_angle_2, source_offset_x, source_offset_y)
        try:
            values = tuple(float(v) for v in values)
        except (TypeError, ValueError) as exc:
            raise InvalidGeometryError(f"Geometry values must be numbers: {exc}") from exc
        if not all(math.isfinite(v) for v in values):
            raise InvalidGeometryError(f"Geometry values must be finite, got {values}")

        sid, sdd = values[0], values[1]
        if sid < 0 or sdd < 0:
            raise InvalidGeometryError(f"Distances must be non-negative (sid={sid}, sdd={sdd})")
        if sdd <= sid:
            raise InvalidGeometryError(
                f"Source-to-detector distance ({sdd}) must exceed "
                f"source-to-isocenter distance ({sid})"
            )

        # x % 360 rounds up to 360.0 for tiny negative x
        angle = values[2] % 360.0
        angle = 0.0 if angle >= 360.0 else angle
        record = ProjectionRecord(sid, sdd, angle, *values[3:])
        self._records.append(record)
        return record

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def projection_count(self):
        return len(self._records)

    def __len__(self):
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    def record(self, view_index):
        return self._records[self._check_index(view_index)]

    @property
    def gantry_angles(self):
        """Gantry angles in degrees, shape (n_views,)."""
        return np.array([r.gantry_angle for r in self._records], dtype=_MATRIX_DTYPE)

    @property
    def source_to_isocenter_distances(self):
        return np.array([r.source_to_isocenter_distance for r in self._records], dtype=_MATRIX_DTYPE)

    @property
    def source_to_detector_distances(self):
        return np.array([r.source_to_detector_distance for r in self._records], dtype=_MATRIX_DTYPE)

    def _check_index(self, view_index):
        if isinstance(view_index, bool) or not isinstance(view_index, (int, np.integer)):
            raise IndexOutOfRangeError(f"View index must be an integer, got {view_index!r}")
        if not 0 <= view_index < len(self._records):
            raise IndexOutOfRangeError(
                f"View index {view_index} out of range for {len(self._records)} projections"
            )
        return int(view_index)

    # ------------------------------------------------------------------
    # Derived geometry
    # ------------------------------------------------------------------

    def rotation_matrix(self, view_index):
        """World-to-view rotation of a view, shape (3, 3)."""
        r = self.record(view_index)
        return (_rot_z(-math.radians(r.in_plane_angle))
                @ _rot_x(-math.radians(r.out_of_plane_angle_1))
                @ _rot_y(-math.radians(r.gantry_angle))
                @ _rot_z(-math.radians(r.out_of_plane_angle_2)))

    def source_position(self, view_index):
        """Source position in world coordinates (mm), shape (3,)."""
        r = self.record(view_index)
        source = np.array([r.source_offset_x, r.source_offset_y,
                           r.source_to_isocenter_distance], dtype=_MATRIX_DTYPE)
        return self.rotation_matrix(view_index).T @ source

    def detector_frame(self, view_index):
        """Detector placement of a view in world coordinates.

        Returns
        -------
        det_origin : numpy.ndarray
            World position of the physical detector coordinate (0, 0), shape (3,).
        det_u_vec : numpy.ndarray
            Unit vector along detector u, shape (3,).
        det_v_vec : numpy.ndarray
            Unit vector along detector v, shape (3,).
        """
        r = self.record(view_index)
        rotation_t = self.rotation_matrix(view_index).T
        origin = np.array([r.projection_offset_x, r.projection_offset_y,
                           r.source_to_isocenter_distance - r.source_to_detector_distance],
                          dtype=_MATRIX_DTYPE)
        return rotation_t @ origin, rotation_t[:, 0].copy(), rotation_t[:, 1].copy()

    def compute_projection_matrix(self, view_index, volume_origin, volume_spacing,
                                  detector_origin, detector_spacing):
        """Projection matrix from voxel indices to detector pixel indices.

        Parameters
        ----------
        view_index : int
            View to project onto.
        volume_origin, volume_spacing : tuple of float
            Physical position of voxel (0, 0, 0) and voxel size, (x, y, z).
        detector_origin, detector_spacing : tuple of float
            Physical position of pixel (0, 0) and pixel size, (u, v).

        Returns
        -------
        numpy.ndarray
            Matrix ``P`` of shape (3, 4) such that ``P @ (i, j, k, 1) = (x*w, y*w, w)``,
            where ``(x, y)`` is the continuous pixel index and ``w`` the depth of
            the voxel from the source along the central ray, in mm.

        Raises
        ------
        IndexOutOfRangeError
            If ``view_index`` is not a valid view.
        """
        view_index = self._check_index(view_index)
        key = (view_index, tuple(map(float, volume_origin)), tuple(map(float, volume_spacing)),
               tuple(map(float, detector_origin)), tuple(map(float, detector_spacing)))
        cached = self._matrix_cache.get(key)
        if cached is not None:
            return cached.copy()

        r = self._records[view_index]
        sid, sdd = r.source_to_isocenter_distance, r.source_to_detector_distance
        sx, sy = r.source_offset_x, r.source_offset_y

        # (1) voxel index -> physical volume coordinates
        index_to_physical = np.diag(list(map(float, volume_spacing)) + [1.0])
        index_to_physical[:3, 3] = key[1]

        # (2) world -> view rotation
        rotation = np.eye(4, dtype=_MATRIX_DTYPE)
        rotation[:3, :3] = self.rotation_matrix(view_index)

        # (3) central projection from the source onto the detector plane
        projection = np.array([
            [sdd, 0.0, -sx, sx * (sid - sdd)],
            [0.0, sdd, -sy, sy * (sid - sdd)],
            [0.0, 0.0, -1.0, sid],
        ], dtype=_MATRIX_DTYPE)

        # (4) view detector coordinates -> pixel indices, removing the detector shift
        du, dv = key[4]
        physical_to_index = np.array([
            [1.0 / du, 0.0, -(r.projection_offset_x + key[3][0]) / du],
            [0.0, 1.0 / dv, -(r.projection_offset_y + key[3][1]) / dv],
            [0.0, 0.0, 1.0],
        ], dtype=_MATRIX_DTYPE)

        matrix = physical_to_index @ projection @ rotation @ index_to_physical
        self._matrix_cache[key] = matrix
        return matrix.copy()

    def projection_matrices(self, volume_origin, volume_spacing, detector_origin, detector_spacing):
        """Stacked projection matrices of all views, shape (n_views, 3, 4)."""
        matrices = np.empty((len(self._records), 3, 4), dtype=_MATRIX_DTYPE)
        for i in range(len(self._records)):
            matrices[i] = self.compute_projection_matrix(
                i, volume_origin, volume_spacing, detector_origin, detector_spacing)
        return matrices

    def angular_gap_weights(self):
        """Angular weight of every view, in radians.

        Each view is weighted by half the angular gap to its previous and next
        neighbour in sorted gantry-angle order, wrapping around 360 degrees.
        For N evenly spaced views over a full turn every weight is 2*pi/N.

        Returns
        -------
        numpy.ndarray
            Weights of shape (n_views,), in acquisition order.
        """
        n_views = len(self._records)
        if n_views == 0:
            return np.zeros(0, dtype=_MATRIX_DTYPE)
        if n_views == 1:
            return np.full(1, 2.0 * math.pi, dtype=_MATRIX_DTYPE)

        angles = np.radians(self.gantry_angles)
        order = np.argsort(angles, kind="stable")
        sorted_angles = angles[order]
        next_gap = np.roll(sorted_angles, -1) - sorted_angles
        next_gap[-1] += 2.0 * math.pi
        prev_gap = np.roll(next_gap, 1)

        weights = np.empty(n_views, dtype=_MATRIX_DTYPE)
        weights[order] = 0.5 * (prev_gap + next_gap)
        return weights


# ============================================================================
# Trajectory helpers
# ============================================================================

def circular_geometry(n_views, sid, sdd, first_angle=0.0, arc=360.0, **kwargs):
    """Build a circular geometry with evenly spaced gantry angles.

    Parameters
    ----------
    n_views : int
        Number of projection views.
    sid : float
        Source-to-Isocenter Distance (SID), in mm.
    sdd : float
        Source-to-Detector Distance (SDD), in mm.
    first_angle : float, optional
        Gantry angle of the first view in degrees (default: 0.0).
    arc : float, optional
        Angular range covered, in degrees, end point excluded (default: 360.0).
    **kwargs
        Passed to :meth:`ThreeDCircularProjectionGeometry.add_projection`
        for every view (offsets and tilts).

    Returns
    -------
    ThreeDCircularProjectionGeometry

    Examples
    --------
    >>> geometry = circular_geometry(180, sid=600.0, sdd=1200.0)
    >>> geometry.gantry_angles[:3]
    array([0., 2., 4.])
    """
    geometry = ThreeDCircularProjectionGeometry()
    step = arc / n_views
    for i in range(n_views):
        geometry.add_projection(sid, sdd, first_angle + i * step, **kwargs)
    logger.debug("Circular geometry: %d views, sid=%g, sdd=%g, arc=%g", n_views, sid, sdd, arc)
    return geometry
