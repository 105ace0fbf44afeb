"""
Tests for the recorded frame loader and the command line entry point
"""

import pytest
import numpy as np
import cv2
import yaml

from depth_pointcloud.capture.frame_loader import FrameLoader, bgr_to_yuv420
from depth_pointcloud.export.ply_writer import read_ply
from depth_pointcloud.main import main
from depth_pointcloud.reconstruction.color_conversion import float_to_unsigned_byte, yuv_to_rgb
from depth_pointcloud.reconstruction.frame_reconstructor import FrameReconstructor
from depth_pointcloud.session.point_cloud_store import PointCloudStore


def write_frame(directory, stem, depth, confidence, color_bgr=None, camera=None, nv21=None):
    """Write one recorded frame in the loader's on-disk layout."""
    cv2.imwrite(str(directory / f"{stem}_depth.png"), depth)
    cv2.imwrite(str(directory / f"{stem}_confidence.png"), confidence)
    if color_bgr is not None:
        cv2.imwrite(str(directory / f"{stem}_color.png"), color_bgr)
    if nv21 is not None:
        (directory / f"{stem}_color.nv21").write_bytes(nv21)

    camera = camera or {
        'intrinsics': {
            'focal_length': [8.0, 8.0],
            'principal_point': [4.0, 3.0],
            'image_dimensions': [8, 6],
        },
        'pose': {
            'translation': [0.0, 1.0, 0.0],
            'rotation': [0.0, 0.0, 0.0, 1.0],
        },
    }
    with open(directory / f"{stem}_camera.yaml", 'w') as file:
        yaml.safe_dump(camera, file)


@pytest.fixture
def recording_dir(tmp_path):
    """Directory with two recorded 8x6 frames of gray color."""
    directory = tmp_path / "recording"
    directory.mkdir()

    depth = np.full((6, 8), 1500, dtype=np.uint16)
    depth[0, :] = 0
    confidence = np.full((6, 8), 255, dtype=np.uint8)
    color = np.full((12, 16, 3), 128, dtype=np.uint8)

    write_frame(directory, "frame_0001", depth, confidence, color_bgr=color)
    write_frame(directory, "frame_0002", depth, confidence, color_bgr=color)
    return directory


class TestFrameLoader:
    """Test suite for loading recorded frames."""

    def test_bgr_to_yuv420(self):
        """Gray BGR converts to full-range luma with neutral chroma."""
        image = bgr_to_yuv420(np.full((4, 6, 3), 128, dtype=np.uint8))

        assert (image.width, image.height) == (6, 4)
        assert abs(int(image.y_plane.sample(np.array([3]), np.array([5]))[0]) - 128) <= 1
        assert abs(int(image.u_plane.sample(np.array([1]), np.array([2]))[0]) - 128) <= 1
        assert abs(int(image.v_plane.sample(np.array([1]), np.array([2]))[0]) - 128) <= 1

    @pytest.mark.parametrize("level", [0, 128, 255])
    def test_gray_levels_survive_color_conversion(self, level):
        """Black, gray and white PNG colors come back as the same RGB bytes."""
        image = bgr_to_yuv420(np.full((4, 4, 3), level, dtype=np.uint8))
        rows, cols = np.array([0, 3]), np.array([1, 2])

        rgb = float_to_unsigned_byte(yuv_to_rgb(
            image.y_plane.sample(rows, cols),
            image.u_plane.sample(rows // 2, cols // 2),
            image.v_plane.sample(rows // 2, cols // 2),
        ))

        assert np.all(np.abs(rgb.astype(int) - level) <= 1)

    def test_chroma_is_block_averaged(self):
        """Chroma of a 2x2 block is the mean of its pixels."""
        bgr = np.zeros((2, 2, 3), dtype=np.uint8)
        bgr[:, 0] = [0, 0, 255]
        bgr[:, 1] = [255, 0, 0]
        ycrcb = cv2.cvtColor(bgr, cv2.COLOR_BGR2YCrCb).astype(int)

        image = bgr_to_yuv420(bgr)

        expected_v = ycrcb[:, :, 1].mean()
        expected_u = ycrcb[:, :, 2].mean()
        assert abs(int(image.v_plane.sample(np.array([0]), np.array([0]))[0]) - expected_v) <= 1
        assert abs(int(image.u_plane.sample(np.array([0]), np.array([0]))[0]) - expected_u) <= 1

    def test_bgr_to_yuv420_odd_size(self):
        """Odd dimensions are cropped to even ones."""
        image = bgr_to_yuv420(np.zeros((5, 7, 3), dtype=np.uint8))

        assert (image.width, image.height) == (6, 4)

    def test_list_frames(self, recording_dir):
        loader = FrameLoader(recording_dir)

        assert loader.list_frames() == ["frame_0001", "frame_0002"]

    def test_load_frame(self, recording_dir):
        """Loaded frames carry depth, confidence, color and camera parameters."""
        frame = FrameLoader(recording_dir).load_frame("frame_0001")

        assert (frame.depth.width, frame.depth.height) == (8, 6)
        assert frame.depth.data[1, 1] == 1500
        assert (frame.confidence.width, frame.confidence.height) == (8, 6)
        assert (frame.color.width, frame.color.height) == (16, 12)
        assert frame.intrinsics.focal_length == (8.0, 8.0)
        np.testing.assert_allclose(frame.pose.matrix[:3, 3], [0.0, 1.0, 0.0])

    def test_reconstruct_loaded_frames(self, recording_dir):
        """Loaded frames reconstruct into gray points offset by the pose."""
        store = PointCloudStore()
        reconstructor = FrameReconstructor(store=store)

        for frame in FrameLoader(recording_dir):
            reconstructor.reconstruct(frame, point_limit=48)

        # First depth row is empty in both frames
        assert len(store) == 2 * 40
        snapshot = store.snapshot()
        assert np.all(np.abs(snapshot.colors.astype(int) - snapshot.colors[:, :1].astype(int)) <= 3)
        np.testing.assert_allclose(snapshot.positions[:, 2], -1.5, rtol=1e-6)

    def test_nv21_color(self, tmp_path):
        """Raw NV21 color needs its dimensions from the camera metadata."""
        depth = np.full((2, 4), 1000, dtype=np.uint16)
        confidence = np.full((2, 4), 255, dtype=np.uint8)
        camera = {
            'intrinsics': {'focal_length': [4.0, 4.0], 'principal_point': [2.0, 1.0],
                           'image_dimensions': [4, 2]},
            'pose': {'matrix': np.eye(4).ravel().tolist()},
            'color': {'image_dimensions': [4, 2]},
        }
        nv21 = bytes([200] * 8 + [128, 128, 128, 128])
        write_frame(tmp_path, "f", depth, confidence, camera=camera, nv21=nv21)

        frame = FrameLoader(tmp_path).load_frame("f")

        assert (frame.color.width, frame.color.height) == (4, 2)
        assert frame.color.y_plane.sample(np.array([1]), np.array([3]))[0] == 200

    def test_missing_color(self, tmp_path):
        depth = np.full((2, 2), 1000, dtype=np.uint16)
        write_frame(tmp_path, "f", depth, np.full((2, 2), 255, dtype=np.uint8))

        with pytest.raises(FileNotFoundError, match="No color image"):
            FrameLoader(tmp_path).load_frame("f")

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FrameLoader(tmp_path / "absent")


class TestMain:
    """Test suite for the command line entry point."""

    def test_main_exports_ply(self, recording_dir, tmp_path):
        """The CLI reconstructs every frame and writes one PLY file."""
        output_dir = tmp_path / "out"

        exit_code = main(["--input-dir", str(recording_dir), "--output-dir", str(output_dir),
                          "--point-limit", "48"])

        assert exit_code == 0
        files = list(output_dir.glob("pointcloud*.ply"))
        assert len(files) == 1
        assert len(read_ply(files[0])) == 80

    def test_main_skips_mismatched_frame(self, recording_dir, tmp_path):
        """A frame with mismatched confidence is skipped, the rest is exported."""
        cv2.imwrite(str(recording_dir / "frame_0002_confidence.png"), np.full((3, 8), 255, dtype=np.uint8))
        output_dir = tmp_path / "out"

        exit_code = main(["--input-dir", str(recording_dir), "--output-dir", str(output_dir),
                          "--point-limit", "48"])

        assert exit_code == 0
        assert len(read_ply(next(output_dir.glob("*.ply")))) == 40

    def test_main_missing_input(self, tmp_path):
        assert main(["--input-dir", str(tmp_path / "missing")]) == 1
