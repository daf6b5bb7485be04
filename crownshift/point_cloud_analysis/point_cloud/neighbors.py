# crownshift/point_cloud_analysis/point_cloud/neighbors.py

import logging

import numpy as np
from scipy.spatial import cKDTree

# Configure logging
logger = logging.getLogger(__name__)


class NeighborSearch:
    """
    Spatial query behind the cylinder membership test.

    Subclasses return the indices of all cloud points inside a cylinder,
    in ascending order, using the kernel's ``contains`` test as the final
    decision.
    """

    def __init__(self, points):
        """
        Args:
            points (np.ndarray): Read-only ``(N, 3)`` point cloud.
        """
        self.points = np.asarray(points, dtype=float)

    def query(self, cylinder, kernel):
        raise NotImplementedError


class BruteForceNeighbors(NeighborSearch):
    """Scans the whole cloud for every query."""

    def query(self, cylinder, kernel):
        return np.flatnonzero(kernel.contains(self.points, cylinder))


class KDTreeNeighbors(NeighborSearch):
    """
    Prefilters candidates with a 2-D KD-tree on the XY coordinates, then
    applies the exact membership test on the candidates only.
    """

    def __init__(self, points, leafsize=16):
        super().__init__(points)
        self.tree = cKDTree(self.points[:, :2], leafsize=leafsize)
        logger.info(f"Built XY KD-tree over {len(self.points)} points.")

    def query(self, cylinder, kernel):
        radius = cylinder.radius
        if not np.isfinite(radius) or radius < 0:
            return np.empty(0, dtype=np.intp)
        # Slightly widened so rim points survive rounding; contains() decides.
        candidates = self.tree.query_ball_point(
            [cylinder.center_x, cylinder.center_y], r=radius * (1.0 + 1e-9) + 1e-12
        )
        if not candidates:
            return np.empty(0, dtype=np.intp)
        candidates = np.sort(np.asarray(candidates, dtype=np.intp))
        inside = kernel.contains(self.points[candidates], cylinder)
        return candidates[inside]


def make_neighbor_search(points, method="brute_force"):
    """
    Create a neighbor search by name.

    Args:
        points (np.ndarray): ``(N, 3)`` point cloud.
        method (str): ``"brute_force"`` or ``"kd_tree"``.

    Returns:
        NeighborSearch: The search object.
    """
    if method == "brute_force":
        return BruteForceNeighbors(points)
    elif method == "kd_tree":
        return KDTreeNeighbors(points)
    else:
        raise ValueError(f"Unknown neighbor search method: {method}")
