# crownshift/point_cloud_analysis/point_cloud/tiling.py

import logging
from typing import List, NamedTuple, Tuple

import numpy as np
from tqdm import tqdm

from crownshift.point_cloud_analysis.point_cloud.mean_shift import (
    MeanShiftDriver,
    ModeTable,
    as_point_array,
)

# Configure logging
logger = logging.getLogger(__name__)


class Tile(NamedTuple):
    """A square core area plus the buffer points around it."""
    tile_id: int
    cell: Tuple[int, int]
    core_bounds: Tuple[float, float, float, float]  # min_x, min_y, max_x, max_y
    points: np.ndarray
    is_buffer: np.ndarray

    @property
    def core_points(self):
        return self.points[~self.is_buffer]

    def in_core(self, xy):
        """Mask of XY positions inside the half-open core square."""
        xy = np.asarray(xy, dtype=float).reshape(-1, 2)
        min_x, min_y, max_x, max_y = self.core_bounds
        return (
            (xy[:, 0] >= min_x) & (xy[:, 0] < max_x)
            & (xy[:, 1] >= min_y) & (xy[:, 1] < max_y)
        )


def filter_min_height(points, min_height):
    """
    Removes ground and near-ground returns.

    Args:
        points (np.ndarray): ``(N, 3)`` point cloud.
        min_height (float): Points with ``z < min_height`` are dropped.

    Returns:
        np.ndarray: The remaining points.
    """
    points = as_point_array(points)
    kept = points[points[:, 2] >= min_height]
    logger.info(f"Filtered points below z={min_height}. Remaining points: {len(kept)} of {len(points)}")
    return kept


def split_point_cloud_buffered(points, core_width, buffer_width) -> List[Tile]:
    """
    Splits one large point cloud into square tiles with buffer areas.

    The grid is anchored at the lower left corner of the cloud rounded down to
    a multiple of ``core_width``. Each occupied cell becomes a tile holding its
    own points plus every point of the neighboring cells that lies within
    ``buffer_width`` of the cell edges.

    Args:
        points (np.ndarray): ``(N, 3)`` point cloud.
        core_width (float): Edge length of the core squares.
        buffer_width (float): Width of the buffer around each core; should be
            at least the largest expected crown radius.

    Returns:
        list[Tile]: Tiles ordered by cell (column-major in x, then y).
    """
    if core_width <= 0:
        raise ValueError(f"core_width must be positive, got {core_width}")
    if buffer_width < 0:
        raise ValueError(f"buffer_width must not be negative, got {buffer_width}")

    points = as_point_array(points)
    if len(points) == 0:
        return []

    origin_x = np.floor(points[:, 0].min() / core_width) * core_width
    origin_y = np.floor(points[:, 1].min() / core_width) * core_width
    cells = np.floor((points[:, :2] - [origin_x, origin_y]) / core_width).astype(int)
    occupied = np.unique(cells, axis=0)

    tiles = []
    for tile_id, (i, j) in enumerate(occupied):
        min_x = origin_x + i * core_width
        min_y = origin_y + j * core_width
        max_x = min_x + core_width
        max_y = min_y + core_width

        in_core = (cells[:, 0] == i) & (cells[:, 1] == j)
        in_reach = (
            (points[:, 0] >= min_x - buffer_width) & (points[:, 0] <= max_x + buffer_width)
            & (points[:, 1] >= min_y - buffer_width) & (points[:, 1] <= max_y + buffer_width)
        )
        in_buffer = in_reach & ~in_core

        tile_points = np.vstack([points[in_core], points[in_buffer]])
        is_buffer = np.concatenate([
            np.zeros(int(in_core.sum()), dtype=bool),
            np.ones(int(in_buffer.sum()), dtype=bool),
        ])
        tiles.append(Tile(
            tile_id=tile_id,
            cell=(int(i), int(j)),
            core_bounds=(min_x, min_y, max_x, max_y),
            points=tile_points,
            is_buffer=is_buffer,
        ))

    logger.info(
        f"Split {len(points)} points into {len(tiles)} tiles "
        f"(core width {core_width}, buffer width {buffer_width})."
    )
    return tiles


def mean_shift_tile(tile, config):
    """
    Runs the mean shift on one buffered tile and keeps the rows whose mode
    falls inside the tile core.

    Points whose mode lies in a neighboring core are left to that tile,
    where they show up as buffer points.
    """
    if len(tile.points) == 0:
        return ModeTable(np.empty((0, 3)), np.empty((0, 3)))
    driver = MeanShiftDriver.from_config(tile.points, config)
    table = driver.run()
    keep = tile.in_core(table.modes[:, :2])
    logger.debug(f"Tile {tile.tile_id}: kept {int(keep.sum())} of {len(table)} rows.")
    return table.subset(keep)


def mean_shift_tiles(tiles, config, show_progress=False) -> ModeTable:
    """
    Runs the mean shift tile by tile and concatenates the core results.

    Args:
        tiles (list[Tile]): Output of :func:`split_point_cloud_buffered`.
        config (MeanShiftConfig): Validated mean shift parameters.
        show_progress (bool): Show a tqdm progress bar over tiles.

    Returns:
        ModeTable: Rows of all tiles, tile by tile.
    """
    tables = [
        mean_shift_tile(tile, config)
        for tile in tqdm(tiles, desc="Tiles", disable=not show_progress)
    ]
    result = ModeTable.concatenate(tables)
    logger.info(f"Tiled mean shift finished: {len(result)} rows from {len(tiles)} tiles.")
    return result
