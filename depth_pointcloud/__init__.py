"""
Depth Point Cloud Reconstruction

Reconstructs colored world-space point clouds from depth sensor frames and
exports them as ASCII PLY.

This package implements:
- Strided unprojection of 16-bit depth maps with confidence filtering
- Depth-to-color pixel mapping across resolutions and vertical crops
- Planar YUV 4:2:0 to RGB conversion
- Thread-safe accumulation of points across frames
- Background PLY export with timestamped file names
"""

__version__ = "1.0.0"
__author__ = "Depth Point Cloud Team"

from .reconstruction import FrameReconstructor, TextureCoordinateMapper, yuv_to_rgb
from .session import PointCloudStore
from .export import PointCloudWriter
from .capture import FrameLoader
from .errors import InputShapeMismatchError, PointCloudExportError
from .data_models import (
    ReconstructedPoint, FrameBuffers, DepthImage, ImagePlane, ConfidenceImage, YuvImage,
    CameraIntrinsics, CameraPose, CameraFrameInputs, PointCloudSnapshot,
    FrameReconstructionResult
)

__all__ = [
    # Reconstruction
    'FrameReconstructor', 'TextureCoordinateMapper', 'yuv_to_rgb',
    # Session and export
    'PointCloudStore', 'PointCloudWriter',
    # Capture
    'FrameLoader',
    # Errors
    'InputShapeMismatchError', 'PointCloudExportError',
    # Data Models
    'ReconstructedPoint', 'FrameBuffers', 'DepthImage', 'ImagePlane', 'ConfidenceImage',
    'YuvImage', 'CameraIntrinsics', 'CameraPose', 'CameraFrameInputs', 'PointCloudSnapshot',
    'FrameReconstructionResult'
]
