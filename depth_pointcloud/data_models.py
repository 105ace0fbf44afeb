"""
Data Models for the Depth Point Cloud Pipeline

Defines all data structures used throughout the system.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence, Tuple, Any
import numpy as np

from .errors import InputShapeMismatchError


def _frozen(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class ReconstructedPoint:
    """One world-space sample with its quantized color."""
    x: float
    y: float
    z: float
    r: int  # [0, 255]
    g: int
    b: int
    confidence: float = 1.0  # [0, 1], not persisted to file

    @property
    def position(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    @property
    def color(self) -> Tuple[int, int, int]:
        return (self.r, self.g, self.b)


@dataclass(eq=False)
class FrameBuffers:
    """
    Raw per-frame output: camera-space (x, y, z, confidence) quads and
    float (r, g, b) triples, one per accepted pixel in the same order.
    """
    points: np.ndarray
    colors: np.ndarray

    def __post_init__(self):
        self.points = _frozen(np.array(self.points, dtype=np.float32).ravel())
        self.colors = _frozen(np.array(self.colors, dtype=np.float32).ravel())

        if self.points.size % 4 != 0:
            raise ValueError("Point buffer length must be a multiple of 4 (x, y, z, confidence)")
        if self.colors.size % 3 != 0:
            raise ValueError("Color buffer length must be a multiple of 3 (r, g, b)")
        if self.points.size // 4 != self.colors.size // 3:
            raise ValueError(f"Point and color buffers describe different pixel counts: "
                             f"{self.points.size // 4} vs {self.colors.size // 3}")

    @classmethod
    def empty(cls) -> 'FrameBuffers':
        return cls(np.zeros(0, dtype=np.float32), np.zeros(0, dtype=np.float32))

    @property
    def point_count(self) -> int:
        return self.points.size // 4

    def points_as_array(self) -> np.ndarray:
        """Point buffer viewed as an (N, 4) array."""
        return self.points.reshape(-1, 4)

    def colors_as_array(self) -> np.ndarray:
        """Color buffer viewed as an (N, 3) array."""
        return self.colors.reshape(-1, 3)


@dataclass(eq=False)
class DepthImage:
    """
    Depth map in millimeters.

    The buffer is tightly packed row-major: pixel (x, y) lives at index
    y * width + x. No row or pixel stride is applied.
    """
    data: np.ndarray  # (H, W) uint16

    def __post_init__(self):
        self.data = np.asarray(self.data)
        if self.data.ndim != 2:
            raise ValueError("Depth image must be HxW")
        if self.data.dtype != np.uint16:
            self.data = self.data.astype(np.uint16)

    @classmethod
    def from_buffer(cls, buffer: Any, width: int, height: int) -> 'DepthImage':
        """Wrap raw native-order 16-bit samples."""
        samples = np.frombuffer(buffer, dtype=np.uint16, count=width * height)
        return cls(samples.reshape(height, width))

    @property
    def width(self) -> int:
        return self.data.shape[1]

    @property
    def height(self) -> int:
        return self.data.shape[0]


@dataclass(eq=False)
class ImagePlane:
    """Single 8-bit image plane addressed through its row and pixel strides."""
    buffer: np.ndarray  # flat uint8
    row_stride: int
    pixel_stride: int = 1

    def __post_init__(self):
        self.buffer = np.frombuffer(self.buffer, dtype=np.uint8) \
            if isinstance(self.buffer, (bytes, bytearray, memoryview)) \
            else np.asarray(self.buffer, dtype=np.uint8).ravel()
        if self.row_stride <= 0 or self.pixel_stride <= 0:
            raise ValueError("Plane strides must be positive")

    @classmethod
    def from_array(cls, array: np.ndarray) -> 'ImagePlane':
        """Tightly packed plane from a 2D array."""
        array = np.ascontiguousarray(array, dtype=np.uint8)
        if array.ndim != 2:
            raise ValueError("Image plane array must be 2D")
        return cls(array.ravel(), row_stride=array.shape[1], pixel_stride=1)

    def sample(self, rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
        """
        Gather plane values at the given pixel coordinates.

        Args:
            rows: Row indices
            cols: Column indices (same shape as rows)

        Returns:
            uint8 array of sampled values
        """
        indices = np.asarray(rows, dtype=np.int64) * self.row_stride \
            + np.asarray(cols, dtype=np.int64) * self.pixel_stride
        if indices.size and (indices.min() < 0 or indices.max() >= self.buffer.size):
            raise InputShapeMismatchError(
                f"Pixel lookup outside plane buffer: index range "
                f"[{indices.min()}, {indices.max()}] for buffer of {self.buffer.size} bytes")
        return self.buffer[indices]


@dataclass(eq=False)
class ConfidenceImage:
    """Per-pixel depth confidence, 8-bit unsigned, possibly padded."""
    width: int
    height: int
    plane: ImagePlane

    @classmethod
    def from_array(cls, array: np.ndarray) -> 'ConfidenceImage':
        array = np.asarray(array)
        return cls(width=array.shape[1], height=array.shape[0], plane=ImagePlane.from_array(array))


@dataclass(eq=False)
class YuvImage:
    """Planar YUV 4:2:0 color frame: full-resolution luma, half-resolution chroma."""
    width: int
    height: int
    y_plane: ImagePlane
    u_plane: ImagePlane
    v_plane: ImagePlane

    @classmethod
    def from_i420(cls, buffer: Any, width: int, height: int) -> 'YuvImage':
        """
        Build from a contiguous I420 buffer (Y, then U, then V).

        Args:
            buffer: Bytes or array of width*height*3/2 samples
            width: Luma width (even)
            height: Luma height (even)
        """
        data = np.asarray(np.frombuffer(buffer, dtype=np.uint8)
                          if isinstance(buffer, (bytes, bytearray)) else buffer,
                          dtype=np.uint8).ravel()
        luma_size = width * height
        chroma_size = (width // 2) * (height // 2)
        if data.size < luma_size + 2 * chroma_size:
            raise ValueError(f"I420 buffer too small for {width}x{height}: {data.size} bytes")

        return cls(
            width=width,
            height=height,
            y_plane=ImagePlane(data[:luma_size], row_stride=width),
            u_plane=ImagePlane(data[luma_size:luma_size + chroma_size], row_stride=width // 2),
            v_plane=ImagePlane(data[luma_size + chroma_size:luma_size + 2 * chroma_size],
                               row_stride=width // 2),
        )

    @classmethod
    def from_nv21(cls, buffer: Any, width: int, height: int) -> 'YuvImage':
        """
        Build from an NV21 buffer (Y plane followed by interleaved V/U).

        Chroma planes share the interleaved block with a pixel stride of 2.
        """
        data = np.asarray(np.frombuffer(buffer, dtype=np.uint8)
                          if isinstance(buffer, (bytes, bytearray)) else buffer,
                          dtype=np.uint8).ravel()
        luma_size = width * height
        if data.size < luma_size + 2 * (width // 2) * (height // 2):
            raise ValueError(f"NV21 buffer too small for {width}x{height}: {data.size} bytes")

        vu = data[luma_size:]
        return cls(
            width=width,
            height=height,
            y_plane=ImagePlane(data[:luma_size], row_stride=width),
            u_plane=ImagePlane(vu[1:], row_stride=width, pixel_stride=2),
            v_plane=ImagePlane(vu, row_stride=width, pixel_stride=2),
        )


@dataclass
class CameraIntrinsics:
    """Pinhole intrinsics and the image size they were measured against."""
    focal_length: Tuple[float, float]  # (fx, fy) pixels
    principal_point: Tuple[float, float]  # (cx, cy) pixels
    image_dimensions: Tuple[int, int]  # (width, height)

    def scaled_to(self, width: int, height: int) -> Tuple[np.float32, np.float32, np.float32, np.float32]:
        """
        Scale intrinsics to another resolution of the same sensor.

        Returns:
            Tuple of (fx, fy, cx, cy) in single precision
        """
        native_width, native_height = self.image_dimensions
        if native_width <= 0 or native_height <= 0:
            raise ValueError("Intrinsics image dimensions must be positive")

        fx = np.float32(self.focal_length[0]) * np.float32(width) / np.float32(native_width)
        fy = np.float32(self.focal_length[1]) * np.float32(height) / np.float32(native_height)
        cx = np.float32(self.principal_point[0]) * np.float32(width) / np.float32(native_width)
        cy = np.float32(self.principal_point[1]) * np.float32(height) / np.float32(native_height)
        return fx, fy, cx, cy


@dataclass(eq=False)
class CameraPose:
    """Camera-to-world rigid transform as a 4x4 homogeneous matrix."""
    matrix: np.ndarray = field(default_factory=lambda: np.eye(4, dtype=np.float32))

    def __post_init__(self):
        self.matrix = np.asarray(self.matrix, dtype=np.float32)
        if self.matrix.shape != (4, 4):
            raise ValueError("Pose matrix must be 4x4")

    @classmethod
    def identity(cls) -> 'CameraPose':
        return cls(np.eye(4, dtype=np.float32))

    @classmethod
    def from_column_major(cls, values: Sequence[float]) -> 'CameraPose':
        """Pose from 16 values in column-major order (the tracker's native layout)."""
        values = np.asarray(values, dtype=np.float32)
        if values.size != 16:
            raise ValueError("Column-major pose needs exactly 16 values")
        return cls(values.reshape(4, 4).T)

    @classmethod
    def from_translation_rotation(cls,
                                  translation: Sequence[float],
                                  rotation_xyzw: Sequence[float]) -> 'CameraPose':
        """
        Pose from a translation and a quaternion [x, y, z, w].

        A zero quaternion yields no rotation.
        """
        quat = np.asarray(rotation_xyzw, dtype=np.float32)
        if quat.shape != (4,):
            raise ValueError("Quaternion must have four components [x, y, z, w]")
        x, y, z, w = quat
        norm = np.sqrt(x * x + y * y + z * z + w * w)

        matrix = np.eye(4, dtype=np.float32)
        if norm > 0:
            x, y, z, w = x / norm, y / norm, z / norm, w / norm
            xx, yy, zz = x * x, y * y, z * z
            xy, xz, yz = x * y, x * z, y * z
            wx, wy, wz = w * x, w * y, w * z
            matrix[:3, :3] = [
                [1.0 - 2.0 * (yy + zz), 2.0 * (xy - wz), 2.0 * (xz + wy)],
                [2.0 * (xy + wz), 1.0 - 2.0 * (xx + zz), 2.0 * (yz - wx)],
                [2.0 * (xz - wy), 2.0 * (yz + wx), 1.0 - 2.0 * (xx + yy)],
            ]
        matrix[:3, 3] = np.asarray(translation, dtype=np.float32)
        return cls(matrix)

    def to_column_major(self) -> np.ndarray:
        return self.matrix.T.ravel().copy()


@dataclass(eq=False)
class CameraFrameInputs:
    """Read-only inputs to one reconstruction call."""
    depth: DepthImage
    confidence: ConfidenceImage
    color: YuvImage
    intrinsics: CameraIntrinsics
    pose: CameraPose
    coordinate_mapper: Optional[Any] = None  # CoordinateMapper; full-frame when None


@dataclass(eq=False)
class PointCloudSnapshot:
    """Immutable copy of the accumulated points at one instant."""
    positions: np.ndarray  # (N, 3) float32, world space
    colors: np.ndarray  # (N, 3) uint8
    confidences: np.ndarray  # (N,) float32

    def __post_init__(self):
        self.positions = _frozen(np.array(self.positions, dtype=np.float32).reshape(-1, 3))
        self.colors = _frozen(np.array(self.colors, dtype=np.uint8).reshape(-1, 3))
        self.confidences = _frozen(np.array(self.confidences, dtype=np.float32).ravel())
        if not (len(self.positions) == len(self.colors) == len(self.confidences)):
            raise ValueError("Snapshot positions, colors and confidences must have equal length")

    @classmethod
    def empty(cls) -> 'PointCloudSnapshot':
        return cls(np.zeros((0, 3), dtype=np.float32),
                   np.zeros((0, 3), dtype=np.uint8),
                   np.zeros(0, dtype=np.float32))

    def __len__(self) -> int:
        return len(self.positions)

    def points(self) -> Iterator[ReconstructedPoint]:
        for (x, y, z), (r, g, b), confidence in zip(self.positions, self.colors, self.confidences):
            yield ReconstructedPoint(float(x), float(y), float(z), int(r), int(g), int(b),
                                     float(confidence))

    def to_open3d(self):
        """Convert to an Open3D point cloud (colors scaled to [0, 1])."""
        import open3d as o3d

        pcd = o3d.geometry.PointCloud()
        pcd.points = o3d.utility.Vector3dVector(self.positions.astype(np.float64))
        pcd.colors = o3d.utility.Vector3dVector(self.colors.astype(np.float64) / 255.0)
        return pcd


@dataclass(eq=False)
class FrameReconstructionResult:
    """Results from reconstructing one frame."""
    frame_buffers: FrameBuffers
    positions: np.ndarray  # (N, 3) world space
    colors: np.ndarray  # (N, 3) uint8
    confidences: np.ndarray  # (N,)
    step: int
    scanned_pixels: int
    rejected_no_depth: int
    rejected_low_confidence: int
    processing_time: float

    @property
    def point_count(self) -> int:
        return len(self.positions)
