# crownshift/point_cloud_analysis/point_cloud/mean_shift.py

import logging
from enum import Enum
from typing import NamedTuple, Tuple

import numpy as np
from tqdm import tqdm

from crownshift.config import constants
from crownshift.errors import DegenerateCylinderError, PointCloudFormatError
from crownshift.point_cloud_analysis.point_cloud.kernels import KernelProfile, Variant
from crownshift.point_cloud_analysis.point_cloud.neighbors import make_neighbor_search

# Configure logging
logger = logging.getLogger(__name__)


class Convergence(str, Enum):
    """Stopping rule of the per-seed iteration."""
    EUCLIDEAN = "euclidean"
    PER_AXIS = "per_axis"
    PER_AXIS_LEGACY = "per_axis_legacy"


class DegeneratePolicy(str, Enum):
    """What to do when a cylinder collects no weight."""
    PROPAGATE = "propagate"
    RAISE = "raise"


class ModeResult(NamedTuple):
    """Outcome of one seed's mode search."""
    mode: Tuple[float, float, float]
    iterations: int
    converged: bool
    degenerate: bool


def as_point_array(points):
    """
    Convert a sequence of (x, y, z) triples into a float ``(N, 3)`` array.

    Raises:
        PointCloudFormatError: If the input does not have three columns.
    """
    array = np.asarray(points, dtype=float)
    if array.size == 0:
        return array.reshape(0, 3)
    if array.ndim != 2 or array.shape[1] != 3:
        raise PointCloudFormatError(
            f"Expected an (N, 3) array of coordinates, got shape {array.shape}"
        )
    return array


def should_continue(old, new, epsilon, convergence):
    """
    Loop guard evaluated after every iteration.

    ``euclidean`` keeps going while the centroid moved more than ``epsilon``.
    ``per_axis`` keeps going until every axis moved less than ``epsilon``.
    ``per_axis_legacy`` is the inverted guard of early AMS3D releases and
    keeps going *while* every axis moved less than ``epsilon``.
    """
    delta = np.abs(np.asarray(new, dtype=float) - np.asarray(old, dtype=float))
    convergence = Convergence(convergence)
    if convergence is Convergence.EUCLIDEAN:
        return bool(np.sqrt(np.sum(np.square(delta))) > epsilon)
    all_below = bool(np.all(delta < epsilon))
    if convergence is Convergence.PER_AXIS:
        return not all_below
    return all_below


class ModeTable:
    """
    Ordered result table: row ``i`` pairs input point ``i`` with its mode.

    The default shape is ``X, Y, Z, modeX, modeY, modeZ``; the iteration
    count and the converged flag are kept as optional diagnostics.
    """

    def __init__(self, points, modes, iterations=None, converged=None):
        self.points = as_point_array(points).copy()
        self.modes = as_point_array(modes).copy()
        if len(self.points) != len(self.modes):
            raise ValueError(
                f"Row count mismatch: {len(self.points)} points, {len(self.modes)} modes"
            )
        n = len(self.points)
        self.iterations = np.zeros(n, dtype=int) if iterations is None else np.asarray(iterations, dtype=int).copy()
        self.converged = np.zeros(n, dtype=bool) if converged is None else np.asarray(converged, dtype=bool).copy()
        for array in (self.points, self.modes, self.iterations, self.converged):
            array.setflags(write=False)

    @classmethod
    def from_results(cls, points, results):
        points = as_point_array(points)
        modes = np.array([r.mode for r in results], dtype=float).reshape(-1, 3)
        return cls(
            points,
            modes,
            iterations=[r.iterations for r in results],
            converged=[r.converged for r in results],
        )

    @classmethod
    def concatenate(cls, tables):
        tables = list(tables)
        if not tables:
            return cls(np.empty((0, 3)), np.empty((0, 3)))
        return cls(
            np.vstack([t.points for t in tables]),
            np.vstack([t.modes for t in tables]),
            iterations=np.concatenate([t.iterations for t in tables]),
            converged=np.concatenate([t.converged for t in tables]),
        )

    def subset(self, mask):
        """Return a new table with the rows selected by a boolean mask."""
        mask = np.asarray(mask, dtype=bool)
        return ModeTable(
            self.points[mask], self.modes[mask],
            iterations=self.iterations[mask], converged=self.converged[mask],
        )

    @staticmethod
    def columns(include_diagnostics=False):
        if include_diagnostics:
            return constants.MODE_TABLE_COLUMNS + constants.DIAGNOSTIC_COLUMNS
        return constants.MODE_TABLE_COLUMNS

    def to_array(self, include_diagnostics=False):
        """Return the table as an ``(N, 6)`` (or ``(N, 8)``) float array."""
        blocks = [self.points, self.modes]
        if include_diagnostics:
            blocks += [self.iterations[:, None], self.converged[:, None]]
        return np.hstack([np.asarray(b, dtype=float) for b in blocks])

    def to_rows(self, include_diagnostics=False):
        """Return the table as a list of dicts keyed by column name."""
        rows = []
        for i in range(len(self)):
            row = dict(zip(constants.MODE_TABLE_COLUMNS, map(float, (*self.points[i], *self.modes[i]))))
            if include_diagnostics:
                row["iterations"] = int(self.iterations[i])
                row["converged"] = bool(self.converged[i])
            rows.append(row)
        return rows

    def __len__(self):
        return len(self.points)

    def __repr__(self):
        return f"ModeTable(rows={len(self)}, converged={int(self.converged.sum())})"


class MeanShiftDriver:
    def __init__(
        self,
        points,
        crown_diameter_to_tree_height: float,
        crown_height_to_tree_height: float,
        max_iterations: int = constants.DEFAULT_MAX_ITERATIONS,
        uniform_kernel: bool = False,
        variant: str = "classic",
        convergence: str = "euclidean",
        epsilon: float = constants.DEFAULT_EPSILON,
        degenerate: str = "propagate",
        neighbor_search: str = "brute_force",
    ):
        """
        Initializes the adaptive mean shift for one point cloud.

        Args:
            points (np.ndarray): ``(N, 3)`` point cloud, read-only during the run.
            crown_diameter_to_tree_height (float): Ratio that turns a height into the cylinder diameter.
            crown_height_to_tree_height (float): Ratio that turns a height into the cylinder height.
            max_iterations (int): Maximum number of kernel moves per seed.
            uniform_kernel (bool): Weight every member with 1 (classic variant only).
            variant (str): ``"classic"`` or ``"improved"`` cylinder placement.
            convergence (str): ``"euclidean"``, ``"per_axis"`` or ``"per_axis_legacy"``.
            epsilon (float): Convergence tolerance.
            degenerate (str): ``"propagate"`` NaN modes or ``"raise"`` on zero weight sums.
            neighbor_search (str): ``"brute_force"`` or ``"kd_tree"``.
        """
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be positive, got {max_iterations}")
        self.points = as_point_array(points).copy()
        self.points.setflags(write=False)
        self.kernel = KernelProfile(variant, crown_diameter_to_tree_height, crown_height_to_tree_height)
        if uniform_kernel and self.kernel.variant is not Variant.CLASSIC:
            raise ValueError("uniform_kernel is only supported by the classic variant")
        self.uniform_kernel = uniform_kernel
        self.max_iterations = max_iterations
        self.convergence = Convergence(convergence)
        self.epsilon = epsilon
        self.degenerate = DegeneratePolicy(degenerate)
        self.neighbor_search = make_neighbor_search(self.points, neighbor_search)

    @classmethod
    def from_config(cls, points, config):
        """
        Build a driver from a validated ``MeanShiftConfig``.
        """
        return cls(
            points,
            crown_diameter_to_tree_height=config.crown_diameter_to_tree_height,
            crown_height_to_tree_height=config.crown_height_to_tree_height,
            max_iterations=config.max_iterations,
            uniform_kernel=config.uniform_kernel,
            variant=config.variant,
            convergence=config.convergence,
            epsilon=config.epsilon,
            degenerate=config.degenerate,
            neighbor_search=config.neighbor_search,
        )

    def _shift(self, centroid):
        """One iteration body: weighted centroid of the cylinder members."""
        cylinder = self.kernel.cylinder(centroid)
        members = self.neighbor_search.query(cylinder, self.kernel)
        neighbors = self.points[members]
        if self.uniform_kernel:
            weights = np.ones(len(neighbors))
        else:
            with np.errstate(divide='ignore', invalid='ignore'):
                weights = self.kernel.weights(neighbors, cylinder)
        sum_weights = weights.sum()
        if sum_weights == 0 or not np.isfinite(sum_weights):
            return None
        return weights @ neighbors / sum_weights

    def find_mode(self, seed) -> ModeResult:
        """
        Shift a kernel from ``seed`` until the stopping rule fires or the
        iteration budget is spent.

        Each call only reads ``self.points``; seeds are independent of
        each other.

        Args:
            seed (array-like): Starting (x, y, z).

        Returns:
            ModeResult: Final centroid plus diagnostics.

        Raises:
            DegenerateCylinderError: On a zero weight sum with the ``raise`` policy.
        """
        seed = np.asarray(seed, dtype=float)
        centroid = seed.copy()
        iterations = 0

        while True:
            old = centroid
            centroid = self._shift(old)
            iterations += 1

            if centroid is None:
                if self.degenerate is DegeneratePolicy.RAISE:
                    raise DegenerateCylinderError(seed, old, iterations)
                logger.warning(
                    f"Degenerate cylinder for seed {tuple(seed)} at iteration {iterations}; "
                    f"mode set to NaN."
                )
                return ModeResult((np.nan, np.nan, np.nan), iterations, False, True)

            keep_going = should_continue(old, centroid, self.epsilon, self.convergence)
            if not keep_going or iterations >= self.max_iterations:
                break

        # The inverted guard stops on movement, so judge its last step per axis
        if self.convergence is Convergence.PER_AXIS_LEGACY:
            converged = not should_continue(old, centroid, self.epsilon, Convergence.PER_AXIS)
        else:
            converged = not keep_going
        return ModeResult(tuple(float(v) for v in centroid), iterations, converged, False)

    def run(self, seeds=None, show_progress=False) -> ModeTable:
        """
        Find the mode of every seed (every point of the cloud by default).

        Args:
            seeds (np.ndarray, optional): ``(M, 3)`` seed positions.
            show_progress (bool): Show a tqdm progress bar.

        Returns:
            ModeTable: One row per seed, in seed order.
        """
        seeds = self.points if seeds is None else as_point_array(seeds)
        logger.info(
            f"Running {self.kernel.variant.value} mean shift on {len(seeds)} seeds "
            f"({len(self.points)} points, max {self.max_iterations} iterations)."
        )
        results = [
            self.find_mode(seed)
            for seed in tqdm(seeds, desc="Mean shift", disable=not show_progress)
        ]
        table = ModeTable.from_results(seeds, results)

        num_degenerate = sum(r.degenerate for r in results)
        num_exhausted = len(results) - int(table.converged.sum()) - num_degenerate
        logger.info(
            f"Mean shift finished: {int(table.converged.sum())} converged, "
            f"{num_exhausted} reached the iteration budget, {num_degenerate} degenerate."
        )
        return table


def mean_shift(
    points,
    crown_diameter_to_tree_height: float,
    crown_height_to_tree_height: float,
    max_iterations: int = constants.DEFAULT_MAX_ITERATIONS,
    uniform_kernel: bool = False,
    variant: str = "classic",
    show_progress: bool = False,
    **options,
) -> ModeTable:
    """
    Adaptive mean shift clustering to delineate tree crowns from lidar point clouds.

    Args:
        points (array-like): ``(N, 3)`` X, Y, Z coordinates.
        crown_diameter_to_tree_height (float): Ratio of crown diameter to tree height.
        crown_height_to_tree_height (float): Ratio of crown height to tree height.
        max_iterations (int): Maximum number of kernel moves per point.
        uniform_kernel (bool): Turn off distance weighting (classic variant only).
        variant (str): ``"classic"`` or ``"improved"``.
        show_progress (bool): Show a progress bar.
        **options: ``convergence``, ``epsilon``, ``degenerate``, ``neighbor_search``.

    Returns:
        ModeTable: Input coordinates paired with their modes.
    """
    driver = MeanShiftDriver(
        points,
        crown_diameter_to_tree_height,
        crown_height_to_tree_height,
        max_iterations=max_iterations,
        uniform_kernel=uniform_kernel,
        variant=variant,
        **options,
    )
    return driver.run(show_progress=show_progress)
