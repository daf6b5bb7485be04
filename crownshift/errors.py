# CrownShift/crownshift/errors.py
"""
Exception types raised by the CrownShift package.
"""


class CrownShiftError(Exception):
    """Base exception for all CrownShift errors."""
    pass


class DegenerateCylinderError(CrownShiftError):
    """Raised when a kernel cylinder collects no usable weight."""

    def __init__(self, seed, centroid, iteration):
        self.seed = tuple(float(v) for v in seed)
        self.centroid = tuple(float(v) for v in centroid)
        self.iteration = iteration
        super().__init__(
            f"Degenerate cylinder for seed {self.seed} at iteration {iteration}: "
            f"zero weight sum around centroid {self.centroid}"
        )


class PointCloudFormatError(CrownShiftError):
    """Raised when a point cloud cannot be read or has the wrong shape."""
    pass
