# CrownShift/tests/conftest.py
"""
Shared fixtures for the CrownShift tests.
"""

import numpy as np
import pytest


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: synthetic forest runs")
    config.addinivalue_line("markers", "integration: end-to-end CLI runs")


@pytest.fixture
def cross_cloud():
    """Five points in a symmetric cross at height 10."""
    return np.array([
        [0.0, 0.0, 10.0],
        [0.5, 0.0, 10.0],
        [0.0, 0.5, 10.0],
        [-0.5, 0.0, 10.0],
        [0.0, -0.5, 10.0],
    ])


@pytest.fixture
def ramp_cloud():
    """Points on the z axis from 10 to 40, one per meter."""
    z = np.arange(10.0, 41.0)
    return np.column_stack([np.zeros_like(z), np.zeros_like(z), z])


def make_tree(rng, apex_x, apex_y, height, crown_ratio=0.3, num_points=150):
    """
    Sample points on a cone-shaped crown whose apex sits at (apex_x, apex_y, height).
    """
    crown_length = height * 0.5
    depth = rng.uniform(0.0, crown_length, num_points)
    radius = crown_ratio * depth * rng.uniform(0.0, 1.0, num_points)
    angle = rng.uniform(0.0, 2 * np.pi, num_points)
    return np.column_stack([
        apex_x + radius * np.cos(angle),
        apex_y + radius * np.sin(angle),
        height - depth,
    ])


@pytest.fixture
def two_tree_cloud():
    """Two well separated synthetic crowns, 20 m apart."""
    rng = np.random.default_rng(42)
    tree_a = make_tree(rng, 0.0, 0.0, 20.0)
    tree_b = make_tree(rng, 20.0, 0.0, 15.0)
    return np.vstack([tree_a, tree_b]), len(tree_a)
