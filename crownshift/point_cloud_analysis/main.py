# crownshift/point_cloud_analysis/main.py

import argparse
import logging
import sys
from pathlib import Path

import yaml
from pydantic import ValidationError

from crownshift.config.config_validation import (
    ConfigValidator,
    CrownShiftConfig,
    validate_config_file,
)
from crownshift.errors import CrownShiftError
from crownshift.point_cloud_analysis.point_cloud.mean_shift import MeanShiftDriver
from crownshift.point_cloud_analysis.point_cloud.tiling import (
    filter_min_height,
    mean_shift_tiles,
    split_point_cloud_buffered,
)
from crownshift.point_cloud_analysis.utils.helpers import (
    load_point_cloud,
    setup_logging,
    write_mode_table_csv,
)

logger = logging.getLogger(__name__)


###############################################################################
# 1) Configuration
###############################################################################

def build_config(args):
    """
    Merge the config file (or the defaults) with command line overrides.
    """
    if args.config:
        config_data = validate_config_file(args.config).dict()
    else:
        config_data = ConfigValidator.create_default_config()

    overrides = {
        "crown_diameter_to_tree_height": args.crown_diameter_ratio,
        "crown_height_to_tree_height": args.crown_height_ratio,
        "max_iterations": args.max_iterations,
        "variant": args.variant,
        "convergence": args.convergence,
        "epsilon": args.epsilon,
        "degenerate": args.degenerate,
    }
    for key, value in overrides.items():
        if value is not None:
            config_data["mean_shift"][key] = value
    if args.uniform_kernel:
        config_data["mean_shift"]["uniform_kernel"] = True
    if args.kd_tree:
        config_data["mean_shift"]["neighbor_search"] = "kd_tree"

    for key in ("tile_width", "buffer_width", "min_height"):
        value = getattr(args, key)
        if value is not None:
            config_data["tiling"]["core_width" if key == "tile_width" else key] = value

    return ConfigValidator.validate_config(config_data)


###############################################################################
# 2) Run
###############################################################################

def process_point_cloud(points, config: CrownShiftConfig, show_progress=False):
    """
    Run the mean shift on one point cloud, tile by tile when a core width is set.

    The untiled run keeps every input row in input order; the min height
    filter only applies before tiling.

    Returns:
        ModeTable: The result table.
    """
    if config.tiling.core_width:
        points = filter_min_height(points, config.tiling.min_height)
        tiles = split_point_cloud_buffered(points, config.tiling.core_width, config.tiling.buffer_width)
        return mean_shift_tiles(tiles, config.mean_shift, show_progress=show_progress)

    driver = MeanShiftDriver.from_config(points, config.mean_shift)
    return driver.run(show_progress=show_progress)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Adaptive mean shift (AMS3D) mode finding for tree crown delineation.'
    )
    parser.add_argument('path', help='Point cloud file (.csv, .txt, .xyz, .ply, .pcd).')
    parser.add_argument('--config', help='YAML or JSON configuration file.')
    parser.add_argument('--csv-out', default='modes.csv', help='Output CSV file.')
    parser.add_argument('--variant', choices=['classic', 'improved'], help='Cylinder placement convention.')
    parser.add_argument('--crown-diameter-ratio', type=float, help='Ratio of crown diameter to tree height.')
    parser.add_argument('--crown-height-ratio', type=float, help='Ratio of crown height to tree height.')
    parser.add_argument('--max-iterations', type=int, help='Maximum kernel moves per point.')
    parser.add_argument('--uniform-kernel', action='store_true', help='Turn off distance weighting (classic only).')
    parser.add_argument('--convergence', choices=['euclidean', 'per_axis', 'per_axis_legacy'],
                        help='Stopping rule.')
    parser.add_argument('--epsilon', type=float, help='Convergence tolerance.')
    parser.add_argument('--degenerate', choices=['propagate', 'raise'],
                        help='Zero weight sum policy.')
    parser.add_argument('--kd-tree', action='store_true', help='Use an XY KD-tree for the neighbor scan.')
    parser.add_argument('--min-height', type=float, help='Drop points below this height before tiling.')
    parser.add_argument('--tile-width', type=float, help='Split into tiles of this core width.')
    parser.add_argument('--buffer-width', type=float, help='Buffer width around each tile core.')
    parser.add_argument('--diagnostics', action='store_true',
                        help='Add iteration count and converged flag to the CSV.')
    parser.add_argument('--progress', action='store_true', help='Show progress bars.')
    parser.add_argument('--log-file', help='Also write a debug log to this file.')

    args = parser.parse_args(argv)

    setup_logging(Path(args.log_file) if args.log_file else None)

    try:
        config = build_config(args)
    except (ValidationError, ValueError, FileNotFoundError, yaml.YAMLError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        points = load_point_cloud(args.path)
        table = process_point_cloud(points, config, show_progress=args.progress)
    except (CrownShiftError, FileNotFoundError) as e:
        logger.error(f"Mean shift failed: {e}")
        return 1

    try:
        write_mode_table_csv(table, args.csv_out, include_diagnostics=args.diagnostics)
    except OSError as e:
        logger.error(f"Could not write {args.csv_out}: {e}")
        return 1
    logger.info("All processing completed.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
