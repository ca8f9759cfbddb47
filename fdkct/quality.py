"""Image quality figures comparing a reconstruction with a reference."""

import logging
import math
from typing import NamedTuple

import numpy as np

from .errors import ShapeMismatchError

logger = logging.getLogger(__name__)


class ImageQuality(NamedTuple):
    error_per_pixel: float
    mse: float
    psnr: float
    qi: float


def image_quality(recon, reference, dynamic_range=2.0):
    """Compare a reconstruction with a reference image.

    Parameters
    ----------
    recon, reference : array-like or ReconstructionVolume
        Images of identical shape.
    dynamic_range : float, optional
        Peak value used for PSNR and the quality index (default: 2.0).

    Returns
    -------
    ImageQuality
        Mean absolute error per pixel, mean squared error,
        ``PSNR = 20 log10(range) - 10 log10(MSE)`` in dB and the quality
        index ``QI = (range - error_per_pixel) / range``.

    Raises
    ------
    ShapeMismatchError
        If the images differ in shape.

    Examples
    --------
    >>> image_quality(np.zeros(4), np.full(4, 0.5)).error_per_pixel
    0.5
    """
    recon = np.asarray(getattr(recon, "data", recon), dtype=np.float64)
    reference = np.asarray(getattr(reference, "data", reference), dtype=np.float64)
    if recon.shape != reference.shape:
        raise ShapeMismatchError(f"Cannot compare images of shape {recon.shape} and {reference.shape}")

    diff = reference - recon
    error_per_pixel = float(np.mean(np.abs(diff)))
    mse = float(np.mean(diff * diff))
    psnr = math.inf if mse == 0 else 20 * math.log10(dynamic_range) - 10 * math.log10(mse)
    qi = (dynamic_range - error_per_pixel) / dynamic_range

    quality = ImageQuality(error_per_pixel, mse, psnr, qi)
    logger.info("Error per pixel = %g, MSE = %g, PSNR = %g dB, QI = %g",
                error_per_pixel, mse, psnr, qi)
    return quality
