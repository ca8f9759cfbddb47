"""Cosine and distance weighting of cone-beam projections.

Before ramp filtering, every detector pixel is scaled to compensate for the
obliquity and the varying length of the divergent ray reaching it.
"""

import logging

import numpy as np

from .constants import _DTYPE
from .errors import ShapeMismatchError

logger = logging.getLogger(__name__)


def weight_image(stack, record):
    """Weight map of one view, shape (n_v, n_u).

    The weight of pixel (u, v) is ``sid / sqrt(sdd**2 + u**2 + v**2)`` where
    (u, v) is measured on the detector from the piercing point of the source,
    in mm.

    Parameters
    ----------
    stack : ProjectionStack
        Supplies the detector layout.
    record : ProjectionRecord
        Acquisition record of the view.
    """
    u = stack.u_coordinates + record.projection_offset_x - record.source_offset_x
    v = stack.v_coordinates + record.projection_offset_y - record.source_offset_y
    sdd = record.source_to_detector_distance
    return record.source_to_isocenter_distance / np.sqrt(
        sdd * sdd + u[None, :] ** 2 + v[:, None] ** 2
    )


def weight_projections(stack, geometry):
    """Apply the FDK cosine/distance weights to every projection.

    Parameters
    ----------
    stack : ProjectionStack
        Raw (line integral) projections, shape (n_views, n_v, n_u).
    geometry : ThreeDCircularProjectionGeometry
        Acquisition geometry with one record per view.

    Returns
    -------
    ProjectionStack
        New stack holding the weighted projections.

    Raises
    ------
    ShapeMismatchError
        If the number of projections differs from the number of records.
    """
    if stack.n_views != geometry.projection_count():
        raise ShapeMismatchError(
            f"Projection stack has {stack.n_views} views but geometry has "
            f"{geometry.projection_count()} projections"
        )
    logger.debug("Weighting %d projections of %dx%d pixels", stack.n_views, stack.n_u, stack.n_v)

    weighted = np.empty(stack.data.shape, dtype=_DTYPE)
    cache = {}
    for iview, record in enumerate(geometry):
        # Views of a plain circular orbit share one weight map
        key = (record.source_to_isocenter_distance, record.source_to_detector_distance,
               record.projection_offset_x - record.source_offset_x,
               record.projection_offset_y - record.source_offset_y)
        weights = cache.get(key)
        if weights is None:
            weights = cache[key] = weight_image(stack, record)
        weighted[iview] = stack.data[iview] * weights
    return stack.with_data(weighted)
