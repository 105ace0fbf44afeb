"""
Frame Reconstructor

Converts one depth frame (depth, confidence, YUV color, intrinsics, pose) into
world-space colored points. Depth pixels are unprojected through the pinhole
model into a right-handed camera frame looking down -Z, then moved to world
space with the camera pose.
"""

import math
import time
import logging
from typing import Optional

import numpy as np

from ..data_models import CameraFrameInputs, FrameBuffers, FrameReconstructionResult
from ..errors import InputShapeMismatchError
from ..session.point_cloud_store import PointCloudStore
from ..utils.config_manager import ConfigManager
from .color_conversion import yuv_to_rgb, float_to_unsigned_byte
from .coordinate_mapping import TextureCoordinateMapper, color_row_range


def calculate_subsampling_step(image_width: int, image_height: int, point_limit: int) -> int:
    """
    Row and column increment that samples the image about `point_limit` times.

    Args:
        image_width: Image width in pixels
        image_height: Image height in pixels
        point_limit: Target number of samples (positive)

    Returns:
        Stride >= 1, equal to 1 when point_limit covers every pixel
    """
    if point_limit <= 0:
        raise ValueError("point_limit must be positive")
    return max(1, int(math.ceil(math.sqrt(image_width * image_height / point_limit))))


class FrameReconstructor:
    """Unprojects depth frames into colored world-space points."""

    def __init__(self,
                 config_manager: Optional[ConfigManager] = None,
                 store: Optional[PointCloudStore] = None):
        """
        Initialize frame reconstructor.

        Args:
            config_manager: Configuration manager instance
            store: Session that receives the reconstructed points. A new one
                is created when omitted.
        """
        self.config = config_manager or ConfigManager()
        self.store = store if store is not None else PointCloudStore()
        self.logger = logging.getLogger(__name__)

        # Get reconstruction configuration
        rec_config = self.config.get_reconstruction_params()

        self.point_limit = int(rec_config.get('point_limit', 20000))
        self.min_confidence = np.float32(rec_config.get('min_confidence', 0.1))
        self.depth_units_per_meter = np.float32(rec_config.get('depth_units_per_meter', 1000.0))

        self.logger.info(f"Frame reconstructor initialized: point_limit={self.point_limit}, "
                         f"min_confidence={float(self.min_confidence):.3f}")

    def validate_inputs(self, frame: CameraFrameInputs) -> None:
        """Reject frames whose depth and confidence maps disagree in size."""
        depth, confidence = frame.depth, frame.confidence
        if (depth.width, depth.height) != (confidence.width, confidence.height):
            raise InputShapeMismatchError(
                f"Depth ({depth.width}x{depth.height}) and confidence "
                f"({confidence.width}x{confidence.height}) maps must have same dimensions")
        if frame.color.width <= 0 or frame.color.height <= 0:
            raise InputShapeMismatchError("Color frame has no pixels")

    def reconstruct(self,
                    frame: CameraFrameInputs,
                    point_limit: Optional[int] = None) -> FrameReconstructionResult:
        """
        Reconstruct one frame and append its points to the session.

        Args:
            frame: Sensor inputs for this frame
            point_limit: Maximum number of depth pixels to scan; defaults to
                the configured limit

        Returns:
            FrameReconstructionResult with world points and camera-space buffers

        Raises:
            InputShapeMismatchError: Depth and confidence dimensions differ.
                Nothing is appended to the session.
            ValueError: Invalid point limit or an inverted color row range.
                Nothing is appended to the session.
        """
        start_time = time.time()

        limit = self.point_limit if point_limit is None else point_limit
        if isinstance(limit, bool) or not isinstance(limit, (int, np.integer)) or limit <= 0:
            raise ValueError(f"point_limit must be a positive integer, got {limit!r}")

        self.validate_inputs(frame)

        depth_width, depth_height = frame.depth.width, frame.depth.height
        step = calculate_subsampling_step(depth_width, depth_height, int(limit))

        # Row-major strided scan
        grid_y, grid_x = np.meshgrid(np.arange(0, depth_height, step),
                                     np.arange(0, depth_width, step),
                                     indexing='ij')
        ys = grid_y.ravel()
        xs = grid_x.ravel()

        depth_mm = frame.depth.data[ys, xs]
        confidence = frame.confidence.plane.sample(ys, xs).astype(np.float32) / np.float32(255.0)

        no_depth = depth_mm == 0
        low_confidence = ~no_depth & (confidence < self.min_confidence)
        accepted = ~(no_depth | low_confidence)

        ys, xs = ys[accepted], xs[accepted]
        depth_mm, confidence = depth_mm[accepted], confidence[accepted]

        camera_points = self._unproject(frame, xs, ys, depth_mm)
        world_points = self._to_world(frame, camera_points)
        rgb = self._sample_colors(frame, xs, ys)
        rgb_bytes = float_to_unsigned_byte(rgb)

        frame_buffers = FrameBuffers(
            points=np.column_stack([camera_points, confidence]),
            colors=rgb,
        )

        self.store.append_frame(world_points, rgb_bytes, confidence, frame_buffers)

        result = FrameReconstructionResult(
            frame_buffers=frame_buffers,
            positions=world_points,
            colors=rgb_bytes,
            confidences=confidence,
            step=step,
            scanned_pixels=int(grid_y.size),
            rejected_no_depth=int(np.count_nonzero(no_depth)),
            rejected_low_confidence=int(np.count_nonzero(low_confidence)),
            processing_time=time.time() - start_time,
        )

        if result.point_count == 0:
            self.logger.debug(f"Frame produced no points: {result.scanned_pixels} scanned, "
                              f"{result.rejected_no_depth} without depth, "
                              f"{result.rejected_low_confidence} below confidence")
        else:
            self.logger.debug(f"Reconstructed {result.point_count}/{result.scanned_pixels} pixels "
                              f"(step={step}) in {result.processing_time:.3f}s")

        return result

    def _unproject(self,
                   frame: CameraFrameInputs,
                   xs: np.ndarray,
                   ys: np.ndarray,
                   depth_mm: np.ndarray) -> np.ndarray:
        """
        Pinhole unprojection to camera space.

        Returns:
            (N, 3) float32 camera coordinates, Y up and Z = -depth
        """
        fx, fy, cx, cy = frame.intrinsics.scaled_to(frame.depth.width, frame.depth.height)

        depth_m = depth_mm.astype(np.float32) / self.depth_units_per_meter
        x = depth_m * (xs.astype(np.float32) - cx) / fx
        y = depth_m * (cy - ys.astype(np.float32)) / fy
        z = -depth_m

        return np.column_stack([x, y, z]).astype(np.float32)

    def _to_world(self, frame: CameraFrameInputs, camera_points: np.ndarray) -> np.ndarray:
        """Apply the camera-to-world pose and divide by the homogeneous w."""
        homogeneous = np.column_stack([camera_points, np.ones(len(camera_points), dtype=np.float32)])
        transformed = homogeneous @ frame.pose.matrix.T

        return (transformed[:, :3] / transformed[:, 3:4]).astype(np.float32)

    def _sample_colors(self, frame: CameraFrameInputs, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """
        Look up the color of each depth pixel in the YUV frame.

        Returns:
            (N, 3) float32 RGB in [0, 1]
        """
        color = frame.color
        depth_width, depth_height = frame.depth.width, frame.depth.height

        mapper = frame.coordinate_mapper or TextureCoordinateMapper(color.width, color.height)
        color_min_y, color_max_y = color_row_range(mapper)
        color_region_height = color_max_y - color_min_y

        color_x = xs.astype(np.int64) * color.width // depth_width
        color_y = color_min_y + ys.astype(np.int64) * color_region_height // depth_height

        # 4:2:0 chroma is subsampled by two in both axes
        luma = color.y_plane.sample(color_y, color_x)
        chroma_u = color.u_plane.sample(color_y // 2, color_x // 2)
        chroma_v = color.v_plane.sample(color_y // 2, color_x // 2)

        return yuv_to_rgb(luma, chroma_u, chroma_v).reshape(-1, 3)
