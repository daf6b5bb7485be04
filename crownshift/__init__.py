"""Adaptive mean-shift tree crown delineation for lidar point clouds."""

__version__ = "1.0.0"
