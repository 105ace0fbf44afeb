"""
Pytest configuration and fixtures for depth point cloud tests.
"""

import pytest
import numpy as np

from depth_pointcloud.data_models import (
    CameraFrameInputs, CameraIntrinsics, CameraPose, ConfidenceImage, DepthImage, ImagePlane, YuvImage
)
from depth_pointcloud.session.point_cloud_store import PointCloudStore
from depth_pointcloud.utils.config_manager import ConfigManager


def pytest_configure(config):
    config.addinivalue_line("markers", "property: property-based tests")


def make_yuv_image(width, height, luma=128, chroma_u=128, chroma_v=128):
    """
    Planar I420 image. Each channel is either a constant or a full-size
    (luma) / half-size (chroma) array.
    """
    y_plane = np.broadcast_to(np.asarray(luma, dtype=np.uint8), (height, width))
    u_plane = np.broadcast_to(np.asarray(chroma_u, dtype=np.uint8), (height // 2, width // 2))
    v_plane = np.broadcast_to(np.asarray(chroma_v, dtype=np.uint8), (height // 2, width // 2))
    return YuvImage(
        width=width,
        height=height,
        y_plane=ImagePlane.from_array(y_plane),
        u_plane=ImagePlane.from_array(u_plane),
        v_plane=ImagePlane.from_array(v_plane),
    )


def make_frame(depth, confidence=255, color=None, intrinsics=None, pose=None, coordinate_mapper=None):
    """Assemble CameraFrameInputs from plain arrays."""
    depth = np.asarray(depth, dtype=np.uint16)
    height, width = depth.shape

    confidence = np.broadcast_to(np.asarray(confidence, dtype=np.uint8), (height, width))
    if color is None:
        color = make_yuv_image(max(2, width - width % 2), max(2, height - height % 2))
    if intrinsics is None:
        intrinsics = CameraIntrinsics(
            focal_length=(float(width), float(height)),
            principal_point=(width / 2.0, height / 2.0),
            image_dimensions=(width, height),
        )

    return CameraFrameInputs(
        depth=DepthImage(depth),
        confidence=ConfidenceImage.from_array(confidence),
        color=color,
        intrinsics=intrinsics,
        pose=pose or CameraPose.identity(),
        coordinate_mapper=coordinate_mapper,
    )


@pytest.fixture(scope="session")
def frame_factory():
    """Fixture providing the CameraFrameInputs builder."""
    return make_frame


@pytest.fixture(scope="session")
def yuv_factory():
    """Fixture providing the planar YUV image builder."""
    return make_yuv_image


@pytest.fixture
def config_manager():
    """Fixture providing a configuration manager instance."""
    return ConfigManager()


@pytest.fixture
def store():
    """Fixture providing an empty point cloud session."""
    return PointCloudStore()


@pytest.fixture
def sample_intrinsics():
    """Fixture providing intrinsics measured at 8x8 for a 4x4 depth map."""
    return CameraIntrinsics(
        focal_length=(4.0, 4.0),
        principal_point=(4.0, 4.0),
        image_dimensions=(8, 8),
    )


@pytest.fixture
def uniform_frame():
    """Fixture providing a 4x4 frame at 1 m with full confidence."""
    return make_frame(np.full((4, 4), 1000, dtype=np.uint16), confidence=255)


@pytest.fixture
def populated_store():
    """Fixture providing a session with a handful of known points."""
    store = PointCloudStore()
    store.append_points(
        positions=[[0.0, 0.0, -1.0], [0.25, -0.5, -2.125], [1.5, 2.0, 3.0], [-0.1, 0.2, -0.3]],
        colors=[[255, 0, 0], [0, 255, 0], [0, 0, 255], [12, 34, 56]],
        confidences=[1.0, 0.5, 0.25, 0.9],
    )
    return store

