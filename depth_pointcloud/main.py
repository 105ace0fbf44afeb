"""
Main entry point for the Depth Point Cloud pipeline

Reconstructs every recorded frame in a directory into one session and exports
it as a timestamped PLY file.
"""

import argparse
import logging
import sys
from pathlib import Path

from depth_pointcloud.capture.frame_loader import FrameLoader
from depth_pointcloud.errors import InputShapeMismatchError, PointCloudExportError
from depth_pointcloud.export.ply_writer import PointCloudWriter
from depth_pointcloud.reconstruction.frame_reconstructor import FrameReconstructor
from depth_pointcloud.session.point_cloud_store import PointCloudStore
from depth_pointcloud.utils.config_manager import ConfigManager
from depth_pointcloud.utils.metrics import MetricsCalculator


def main(argv=None):
    """Main entry point for the depth point cloud pipeline."""
    parser = argparse.ArgumentParser(
        description="Colored point cloud reconstruction from recorded depth frames"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration file"
    )

    parser.add_argument(
        "--input-dir",
        type=str,
        required=True,
        help="Directory containing recorded depth frames"
    )

    parser.add_argument(
        "--output-dir",
        type=str,
        help="Output directory for the PLY file (defaults to export.output_dir)"
    )

    parser.add_argument(
        "--point-limit",
        type=int,
        help="Maximum depth pixels scanned per frame"
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    # Load configuration
    try:
        config = ConfigManager(args.config)
        print(f"Loaded configuration from: {config.config_path}")
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading configuration: {e}")
        return 1

    # Validate input directory
    input_path = Path(args.input_dir)
    if not input_path.is_dir():
        print(f"Input directory does not exist: {args.input_dir}")
        return 1

    loader = FrameLoader(input_path, config)
    stems = loader.list_frames()

    print("Depth Point Cloud Reconstruction")
    print("=" * 50)
    print(f"Input directory: {args.input_dir}")
    print(f"Frames found: {len(stems)}")

    store = PointCloudStore()
    reconstructor = FrameReconstructor(config, store)
    metrics = MetricsCalculator()

    skipped = 0
    for stem in stems:
        try:
            frame = loader.load_frame(stem)
            result = reconstructor.reconstruct(frame, args.point_limit)
        except (InputShapeMismatchError, FileNotFoundError, ValueError) as e:
            logging.getLogger(__name__).warning(f"Skipping frame {stem}: {e}")
            skipped += 1
            continue

        frame_stats = metrics.frame_metrics(result)
        print(f"  {stem}: {frame_stats['accepted_points']}/{frame_stats['scanned_pixels']} points "
              f"(step={frame_stats['step']})")

    stats = metrics.cloud_statistics(store.snapshot())
    print(f"\nAccumulated {stats['point_count']} points from {store.frame_count} frames "
          f"({skipped} skipped)")

    with PointCloudWriter(store, args.output_dir, config) as writer:
        try:
            output_file = writer.write_in_background().result()
        except PointCloudExportError as e:
            print(f"Export failed: {e}")
            return 1

    print(f"Point cloud written to: {output_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
