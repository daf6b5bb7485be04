# CrownShift/crownshift/config/constants.py
"""
Constants and default values for the CrownShift system.
This file centralizes the tuned numbers of the AMS3D kernel.
"""

# Mean Shift Iteration
DEFAULT_MAX_ITERATIONS = 200
DEFAULT_EPSILON = 0.01  # same unit as the point coordinates (usually meters)

# Cylinder Geometry
RADIUS_FROM_DIAMETER = 0.5
IMPROVED_HEIGHT_SCALE = 0.75
IMPROVED_CENTER_SHIFT = 1.0 / 6.0  # fraction of the scaled height

# Classic vertical band: upper three quarters of the cylinder
CLASSIC_BAND_BOTTOM = 0.25  # below center, fraction of height
CLASSIC_BAND_TOP = 0.5  # above center, fraction of height
CLASSIC_BAND_HALF_SPAN = 3.0 / 8.0  # fraction of height

# Improved vertical normalization
IMPROVED_HALF_SPAN = 0.5  # fraction of the scaled height

# Horizontal Gaussian
GAUSS_DECAY = -5.0

# Tiling
DEFAULT_BUFFER_WIDTH = 10.0
DEFAULT_MIN_HEIGHT = 2.0

# Input / Output
POINT_CLOUD_TEXT_EXTENSIONS = ('.csv', '.txt', '.xyz')
POINT_CLOUD_OPEN3D_EXTENSIONS = ('.ply', '.pcd')
MODE_TABLE_COLUMNS = ('X', 'Y', 'Z', 'modeX', 'modeY', 'modeZ')
DIAGNOSTIC_COLUMNS = ('iterations', 'converged')
