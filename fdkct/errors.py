"""Exceptions raised by the reconstruction pipeline.

Every stage validates its inputs on entry and raises one of these before any
computation starts. A voxel whose ray misses the detector is not an error;
the backprojector simply skips that view for that voxel.
"""


class FDKError(Exception):
    """Base class for all fdkct errors."""


class InvalidGeometryError(FDKError, ValueError):
    """Malformed acquisition record (distances, non-finite values)."""


class IndexOutOfRangeError(FDKError, IndexError):
    """View or voxel index outside the valid bounds."""


class ShapeMismatchError(FDKError, ValueError):
    """Array dimensions inconsistent with the geometry or the volume extent."""


class NumericConfigError(FDKError, ValueError):
    """Invalid ramp filter configuration."""


class BackendUnavailableError(FDKError, RuntimeError):
    """The requested compute backend cannot run on this machine."""


class ReconstructionCancelledError(FDKError):
    """Raised when a caller cancels a running backprojection."""
