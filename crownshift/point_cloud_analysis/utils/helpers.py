# crownshift/point_cloud_analysis/utils/helpers.py

import csv
import logging
import sys
from pathlib import Path

import numpy as np

from crownshift.config import constants
from crownshift.errors import PointCloudFormatError
from crownshift.point_cloud_analysis.point_cloud.mean_shift import ModeTable

logger = logging.getLogger(__name__)


def setup_logging(log_file=None, level=logging.INFO):
    """
    Sets up logging to the console and, optionally, a log file.

    Args:
        log_file (Path, optional): Path to the log file.
        level (int): Console log level.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if log_file else level)

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    # Avoid adding multiple handlers if already present
    if not root.handlers:
        ch = logging.StreamHandler(sys.stdout)
        ch.setLevel(level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        if log_file:
            fh = logging.FileHandler(log_file, mode='a')
            fh.setLevel(logging.DEBUG)
            fh.setFormatter(formatter)
            root.addHandler(fh)


def _load_text_point_cloud(path):
    """Read the first three numeric columns of a delimited text file."""
    with open(path, 'r', newline='', encoding='utf-8') as f:
        sample = f.readline()
    delimiter = ',' if ',' in sample else None
    try:
        [float(v) for v in sample.replace(',', ' ').split()[:3]]
        has_header = False
    except ValueError:
        has_header = True
    try:
        data = np.loadtxt(
            path, delimiter=delimiter, skiprows=1 if has_header else 0,
            usecols=(0, 1, 2), ndmin=2,
        )
    except (ValueError, IndexError) as e:
        raise PointCloudFormatError(f"Could not parse coordinates from {path}: {e}") from e
    return data


def _load_open3d_point_cloud(path):
    """Read a .ply or .pcd file with Open3D."""
    import open3d as o3d

    pcd = o3d.io.read_point_cloud(str(path))
    if not pcd.has_points():
        raise PointCloudFormatError(f"No points in {path}")
    return np.asarray(pcd.points, dtype=float)


def load_point_cloud(filename):
    """
    Load a point cloud as an ``(N, 3)`` float array.

    Text files (.csv, .txt, .xyz) contribute their first three columns, an
    optional header line is skipped. PLY and PCD files are read with Open3D.

    Raises:
        FileNotFoundError: If the file does not exist.
        PointCloudFormatError: If the file cannot be interpreted as XYZ points.
    """
    path = Path(filename)
    if not path.exists():
        logger.error(f"Point cloud not found: {path}")
        raise FileNotFoundError(f"{path} not found")

    suffix = path.suffix.lower()
    if suffix in constants.POINT_CLOUD_TEXT_EXTENSIONS:
        points = _load_text_point_cloud(path)
    elif suffix in constants.POINT_CLOUD_OPEN3D_EXTENSIONS:
        points = _load_open3d_point_cloud(path)
    else:
        raise PointCloudFormatError(f"Unsupported point cloud format: {suffix}")

    if len(points) == 0:
        logger.error(f"No points found: {path}")
        raise PointCloudFormatError(f"No points in {path}")
    logger.info(f"Loaded point cloud: {path} ({len(points)} points)")
    return points


def write_mode_table_csv(table, csv_path, include_diagnostics=False):
    """
    Write a ModeTable to CSV, one row per input point in input order.

    Args:
        table (ModeTable): Result of the mean shift.
        csv_path (str or Path): Output file.
        include_diagnostics (bool): Append ``iterations`` and ``converged`` columns.
    """
    headers = list(table.columns(include_diagnostics))
    with open(csv_path, 'w', newline='', encoding='utf-8') as f:
        writer = csv.DictWriter(f, fieldnames=headers)
        writer.writeheader()
        for row in table.to_rows(include_diagnostics):
            if include_diagnostics:
                row["converged"] = int(row["converged"])
            writer.writerow(row)
    logger.info(f"Wrote {len(table)} rows to {csv_path}")


def read_mode_table_csv(csv_path):
    """
    Read a CSV written by :func:`write_mode_table_csv` back into a ModeTable.
    """
    with open(csv_path, 'r', newline='', encoding='utf-8') as f:
        rows = list(csv.DictReader(f))

    points = [[float(r["X"]), float(r["Y"]), float(r["Z"])] for r in rows]
    modes = [[float(r["modeX"]), float(r["modeY"]), float(r["modeZ"])] for r in rows]
    iterations = converged = None
    if rows and "iterations" in rows[0]:
        iterations = [int(r["iterations"]) for r in rows]
        converged = [bool(int(r["converged"])) for r in rows]
    return ModeTable(points, modes, iterations=iterations, converged=converged)
