"""
Recorded Frame Loader

Reads frames captured to disk and turns them into reconstruction inputs.
A frame `<stem>` is made of:

- `<stem>_depth.png`       16-bit depth in millimeters
- `<stem>_confidence.png`  8-bit confidence
- `<stem>_color.png`       BGR color image, or `<stem>_color.nv21` raw NV21
- `<stem>_camera.yaml`     intrinsics, pose and optional color crop
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import cv2
import numpy as np
import yaml

from ..data_models import (
    CameraFrameInputs, CameraIntrinsics, CameraPose, ConfidenceImage, DepthImage, ImagePlane, YuvImage
)
from ..reconstruction.coordinate_mapping import TextureCoordinateMapper
from ..utils.config_manager import ConfigManager


def bgr_to_yuv420(image: np.ndarray) -> YuvImage:
    """
    Convert a BGR image to full-range planar YUV 4:2:0.

    Luma keeps the 0-255 range expected by the color conversion. Chroma is
    averaged over 2x2 blocks. Odd dimensions are cropped by one pixel.
    """
    height, width = image.shape[:2]
    height -= height % 2
    width -= width % 2
    image = np.ascontiguousarray(image[:height, :width])

    ycrcb = cv2.cvtColor(image, cv2.COLOR_BGR2YCrCb)
    chroma = cv2.resize(np.ascontiguousarray(ycrcb[:, :, 1:]), (width // 2, height // 2),
                        interpolation=cv2.INTER_AREA)

    return YuvImage(
        width=width,
        height=height,
        y_plane=ImagePlane.from_array(ycrcb[:, :, 0]),
        u_plane=ImagePlane.from_array(chroma[:, :, 1]),
        v_plane=ImagePlane.from_array(chroma[:, :, 0]),
    )


class FrameLoader:
    """Loads recorded depth frames from a directory."""

    def __init__(self, frames_dir: Union[str, Path], config_manager: Optional[ConfigManager] = None):
        """
        Initialize frame loader.

        Args:
            frames_dir: Directory containing recorded frames
            config_manager: Configuration manager instance
        """
        self.frames_dir = Path(frames_dir)
        self.config = config_manager or ConfigManager()
        self.logger = logging.getLogger(__name__)

        capture_config = self.config.get_capture_params()
        self.depth_suffix = capture_config.get('depth_suffix', '_depth.png')
        self.confidence_suffix = capture_config.get('confidence_suffix', '_confidence.png')
        self.color_suffixes = list(capture_config.get('color_suffixes', ['_color.png', '_color.nv21']))
        self.camera_suffix = capture_config.get('camera_suffix', '_camera.yaml')

        if not self.frames_dir.is_dir():
            raise FileNotFoundError(f"Frames directory not found: {self.frames_dir}")

    def list_frames(self) -> List[str]:
        """Sorted stems of all frames that have a depth image."""
        stems = [p.name[:-len(self.depth_suffix)]
                 for p in self.frames_dir.glob(f"*{self.depth_suffix}")]
        return sorted(stems)

    def __iter__(self) -> Iterator[CameraFrameInputs]:
        for stem in self.list_frames():
            yield self.load_frame(stem)

    def load_frame(self, stem: str) -> CameraFrameInputs:
        """
        Load one frame.

        Args:
            stem: Frame name without suffix

        Returns:
            CameraFrameInputs ready for reconstruction
        """
        metadata = self._load_metadata(self.frames_dir / f"{stem}{self.camera_suffix}")

        depth = self._read_image(self.frames_dir / f"{stem}{self.depth_suffix}", cv2.IMREAD_ANYDEPTH)
        if depth.dtype != np.uint16:
            raise ValueError(f"Depth image for {stem} must be 16-bit, got {depth.dtype}")

        confidence = self._read_image(self.frames_dir / f"{stem}{self.confidence_suffix}",
                                      cv2.IMREAD_GRAYSCALE)
        color = self._load_color(stem, metadata)

        frame = CameraFrameInputs(
            depth=DepthImage(depth),
            confidence=ConfidenceImage.from_array(confidence),
            color=color,
            intrinsics=self._parse_intrinsics(metadata),
            pose=self._parse_pose(metadata),
            coordinate_mapper=self._parse_color_crop(metadata, color),
        )

        self.logger.debug(f"Loaded frame {stem}: depth {depth.shape[1]}x{depth.shape[0]}, "
                          f"color {color.width}x{color.height}")
        return frame

    def _read_image(self, path: Path, flags: int) -> np.ndarray:
        image = cv2.imread(str(path), flags)
        if image is None:
            raise FileNotFoundError(f"Could not read image: {path}")
        return image

    def _load_metadata(self, path: Path) -> Dict[str, Any]:
        try:
            with open(path, 'r') as file:
                metadata = yaml.safe_load(file)
        except FileNotFoundError:
            raise FileNotFoundError(f"Camera metadata not found: {path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Error parsing camera metadata {path}: {e}")

        if not isinstance(metadata, dict) or 'intrinsics' not in metadata:
            raise ValueError(f"Camera metadata {path} has no intrinsics")
        return metadata

    def _load_color(self, stem: str, metadata: Dict[str, Any]) -> YuvImage:
        for suffix in self.color_suffixes:
            path = self.frames_dir / f"{stem}{suffix}"
            if not path.exists():
                continue

            if path.suffix == '.nv21':
                size = metadata.get('color', {}).get('image_dimensions')
                if size is None:
                    raise ValueError(f"{path.name} needs color.image_dimensions in the camera metadata")
                width, height = int(size[0]), int(size[1])
                return YuvImage.from_nv21(path.read_bytes(), width, height)

            return bgr_to_yuv420(self._read_image(path, cv2.IMREAD_COLOR))

        raise FileNotFoundError(f"No color image for frame {stem} in {self.frames_dir}")

    def _parse_intrinsics(self, metadata: Dict[str, Any]) -> CameraIntrinsics:
        intr = metadata['intrinsics']
        return CameraIntrinsics(
            focal_length=tuple(float(v) for v in intr['focal_length']),
            principal_point=tuple(float(v) for v in intr['principal_point']),
            image_dimensions=tuple(int(v) for v in intr['image_dimensions']),
        )

    def _parse_pose(self, metadata: Dict[str, Any]) -> CameraPose:
        pose = metadata.get('pose')
        if pose is None:
            return CameraPose.identity()
        if 'matrix' in pose:
            return CameraPose.from_column_major(pose['matrix'])
        return CameraPose.from_translation_rotation(pose.get('translation', [0.0, 0.0, 0.0]),
                                                    pose.get('rotation', [0.0, 0.0, 0.0, 1.0]))

    def _parse_color_crop(self, metadata: Dict[str, Any], color: YuvImage) -> TextureCoordinateMapper:
        crop = metadata.get('color', {}).get('crop', {})
        return TextureCoordinateMapper(
            color.width,
            color.height,
            row_offset=crop.get('row_offset', 0),
            visible_rows=crop.get('visible_rows'),
        )
