# CrownShift/tests/test_neighbors.py
"""
Unit tests for the neighbor search module.
"""

import numpy as np
import pytest

from crownshift.point_cloud_analysis.point_cloud.kernels import Cylinder, KernelProfile
from crownshift.point_cloud_analysis.point_cloud.neighbors import (
    BruteForceNeighbors,
    KDTreeNeighbors,
    NeighborSearch,
    make_neighbor_search,
)


@pytest.fixture
def random_cloud():
    rng = np.random.default_rng(7)
    return np.column_stack([
        rng.uniform(0.0, 30.0, 800),
        rng.uniform(0.0, 30.0, 800),
        rng.uniform(2.0, 25.0, 800),
    ])


class TestBruteForceNeighbors:
    """Test the full cloud scan."""

    def test_returns_sorted_member_indices(self):
        points = np.array([
            [0.0, 0.0, 10.0],
            [5.0, 0.0, 10.0],
            [1.0, 1.0, 10.5],
        ])
        kernel = KernelProfile("classic", 0.6, 0.5)
        search = BruteForceNeighbors(points)

        members = search.query(kernel.cylinder((0.0, 0.0, 10.0)), kernel)
        assert members.tolist() == [0, 2]

    def test_empty_cylinder(self):
        kernel = KernelProfile("classic", 0.6, 0.5)
        search = BruteForceNeighbors(np.array([[0.0, 0.0, -5.0]]))
        assert len(search.query(kernel.cylinder((0.0, 0.0, -5.0)), kernel)) == 0


class TestKDTreeNeighbors:
    """Test the KD-tree prefiltered search."""

    @pytest.mark.parametrize("variant", ["classic", "improved"])
    def test_matches_brute_force(self, random_cloud, variant):
        """Both searches return identical member sets."""
        kernel = KernelProfile(variant, 0.6, 0.5)
        brute = BruteForceNeighbors(random_cloud)
        tree = KDTreeNeighbors(random_cloud)

        for centroid in random_cloud[::40]:
            cylinder = kernel.cylinder(centroid)
            np.testing.assert_array_equal(
                tree.query(cylinder, kernel), brute.query(cylinder, kernel)
            )

    def test_rim_point_is_found(self):
        """Points exactly on the rim survive the prefilter."""
        points = np.array([[0.0, 0.0, 10.0], [2.0, 0.0, 10.0]])
        kernel = KernelProfile("classic", 0.6, 0.5)
        cylinder = Cylinder(0.0, 0.0, 10.0, radius=2.0, height=4.0)

        assert KDTreeNeighbors(points).query(cylinder, kernel).tolist() == [0, 1]

    def test_invalid_radius_returns_nothing(self):
        points = np.array([[0.0, 0.0, 10.0]])
        kernel = KernelProfile("classic", 0.6, 0.5)
        search = KDTreeNeighbors(points)

        assert len(search.query(Cylinder(0.0, 0.0, 10.0, np.nan, 4.0), kernel)) == 0
        assert len(search.query(Cylinder(0.0, 0.0, 10.0, -1.0, 4.0), kernel)) == 0


class TestMakeNeighborSearch:
    """Test the factory function."""

    def test_known_methods(self):
        points = np.zeros((3, 3))
        assert isinstance(make_neighbor_search(points), BruteForceNeighbors)
        assert isinstance(make_neighbor_search(points, "kd_tree"), KDTreeNeighbors)

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            make_neighbor_search(np.zeros((3, 3)), "octree")

    def test_base_class_is_abstract(self):
        with pytest.raises(NotImplementedError):
            NeighborSearch(np.zeros((1, 3))).query(None, None)
