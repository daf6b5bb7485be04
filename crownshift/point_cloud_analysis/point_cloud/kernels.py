# crownshift/point_cloud_analysis/point_cloud/kernels.py
"""
Kernel geometry and weighting functions of the adaptive mean shift.

All functions are pure and work on python scalars as well as on numpy
arrays of candidate coordinates, so the driver can evaluate a whole
point cloud in one call.
"""

from enum import Enum
from typing import NamedTuple

import numpy as np

from crownshift.config import constants


class Variant(str, Enum):
    """Cylinder placement and vertical weighting convention."""
    CLASSIC = "classic"
    IMPROVED = "improved"


class Cylinder(NamedTuple):
    """Vertical kernel cylinder around a centroid estimate."""
    center_x: float
    center_y: float
    center_z: float
    radius: float
    height: float


def intersects_cylinder(x, y, z, cylinder):
    """
    Check whether points lie inside a vertical cylinder.

    The horizontal test compares squared distances, the vertical span
    ``[center_z - height/2, center_z + height/2]`` is inclusive at both ends.

    Args:
        x, y, z (float or np.ndarray): Point coordinates.
        cylinder (Cylinder): The kernel cylinder.

    Returns:
        bool or np.ndarray: Membership for each point.
    """
    top = cylinder.center_z + 0.5 * cylinder.height
    bottom = top - cylinder.height
    horizontal = (
        np.square(x - cylinder.center_x) + np.square(y - cylinder.center_y)
        <= np.square(cylinder.radius)
    )
    return horizontal & (bottom <= z) & (z <= top)


def epanechnikov(d):
    """Epanechnikov profile ``1 - d^2``, zero at and beyond ``|d| = 1``."""
    return np.maximum(0.0, 1.0 - np.square(d))


def gauss(d):
    """Gaussian profile ``exp(-5 d^2)``."""
    return np.exp(constants.GAUSS_DECAY * np.square(d))


def vertical_mask(z, center_z, height):
    """
    1-0 mask for the upper three quarters of a cylinder.

    Returns 1 where ``z`` lies in ``[center_z - height/4, center_z + height/2]``
    and 0 elsewhere.
    """
    lower = center_z - constants.CLASSIC_BAND_BOTTOM * height
    upper = center_z + constants.CLASSIC_BAND_TOP * height
    return np.where((z >= lower) & (z <= upper), 1, 0)


def classic_vertical_weight(z, center_z, height):
    """
    Epanechnikov weight over the upper three quarters of a cylinder.

    The distance is measured from the middle of the masked band
    (``center_z + height/8``) and normalized by half the band, 3/8 of the
    cylinder height. Points outside the band get 0.
    """
    band_center = center_z + (constants.CLASSIC_BAND_TOP - constants.CLASSIC_BAND_BOTTOM) * height / 2.0
    d = np.abs(band_center - z) / (height * constants.CLASSIC_BAND_HALF_SPAN)
    return vertical_mask(z, center_z, height) * epanechnikov(d)


def improved_vertical_weight(z, center_z, height):
    """
    Epanechnikov weight across a cylinder that was already shifted and rescaled.

    ``center_z`` is the cylinder middle, the distance is normalized by half
    of ``height``.
    """
    d = np.abs(center_z - z) / (height * constants.IMPROVED_HALF_SPAN)
    return epanechnikov(d)


def horizontal_weight(x, y, center_x, center_y, radius):
    """Gaussian weight of the planar distance to the cylinder axis relative to ``radius``."""
    d = np.hypot(center_x - x, center_y - y) / radius
    return gauss(d)


def classic_cylinder(centroid, crown_diameter_to_tree_height, crown_height_to_tree_height):
    """Cylinder centered on the centroid, sized by the centroid height."""
    cx, cy, cz = centroid
    return Cylinder(
        center_x=cx,
        center_y=cy,
        center_z=cz,
        radius=crown_diameter_to_tree_height * cz * constants.RADIUS_FROM_DIAMETER,
        height=crown_height_to_tree_height * cz,
    )


def improved_cylinder(centroid, crown_diameter_to_tree_height, crown_height_to_tree_height):
    """Cylinder scaled to 3/4 height and lifted by a sixth of that height."""
    cx, cy, cz = centroid
    height = crown_height_to_tree_height * cz * constants.IMPROVED_HEIGHT_SCALE
    return Cylinder(
        center_x=cx,
        center_y=cy,
        center_z=cz + height * constants.IMPROVED_CENTER_SHIFT,
        radius=crown_diameter_to_tree_height * cz * constants.RADIUS_FROM_DIAMETER,
        height=height,
    )


class KernelProfile:
    """
    Capability set {cylinder, contains, vertical_weight, horizontal_weight}
    the mean shift driver composes for one variant.
    """

    _PLACEMENT = {
        Variant.CLASSIC: (classic_cylinder, classic_vertical_weight),
        Variant.IMPROVED: (improved_cylinder, improved_vertical_weight),
    }

    def __init__(self, variant, crown_diameter_to_tree_height, crown_height_to_tree_height):
        self.variant = Variant(variant)
        self.crown_diameter_to_tree_height = crown_diameter_to_tree_height
        self.crown_height_to_tree_height = crown_height_to_tree_height
        self._make_cylinder, self._vertical = self._PLACEMENT[self.variant]

    def cylinder(self, centroid):
        return self._make_cylinder(
            centroid, self.crown_diameter_to_tree_height, self.crown_height_to_tree_height
        )

    def contains(self, points, cylinder):
        points = np.asarray(points, dtype=float)
        return intersects_cylinder(points[:, 0], points[:, 1], points[:, 2], cylinder)

    def vertical_weight(self, z, cylinder):
        return self._vertical(z, cylinder.center_z, cylinder.height)

    def horizontal_weight(self, x, y, cylinder):
        return horizontal_weight(x, y, cylinder.center_x, cylinder.center_y, cylinder.radius)

    def weights(self, points, cylinder):
        """Combined vertical * horizontal weight for an ``(N, 3)`` array."""
        points = np.asarray(points, dtype=float)
        return (
            self.vertical_weight(points[:, 2], cylinder)
            * self.horizontal_weight(points[:, 0], points[:, 1], cylinder)
        )

    def __repr__(self):
        return (
            f"KernelProfile(variant={self.variant.value!r}, "
            f"crown_diameter_to_tree_height={self.crown_diameter_to_tree_height}, "
            f"crown_height_to_tree_height={self.crown_height_to_tree_height})"
        )
