"""
ASCII PLY Point Cloud Writer

Serializes the accumulated session to a colored ASCII PLY file. The writer
reads a snapshot of the session and never mutates it, so a failed export can
simply be retried.
"""

import os
import logging
import tempfile
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

import numpy as np

from ..data_models import PointCloudSnapshot
from ..errors import PointCloudExportError
from ..session.point_cloud_store import PointCloudStore
from ..utils.config_manager import ConfigManager

PLY_EXTENSION = ".ply"
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
VERTEX_ALPHA = 255

# Process umask, applied to files created through mkstemp (which uses 0600)
_UMASK = os.umask(0)
os.umask(_UMASK)

PathLike = Union[str, Path]


def format_ply_header(vertex_count: int) -> str:
    """Header for `vertex_count` vertices with x y z red green blue alpha and no faces."""
    return (
        "ply\n"
        "format ascii 1.0\n"
        f"element vertex {vertex_count}\n"
        "property float x\n"
        "property float y\n"
        "property float z\n"
        "property uchar red\n"
        "property uchar green\n"
        "property uchar blue\n"
        "property uchar alpha\n"
        "element face 0\n"
        "property list uchar int vertex_indices\n"
        "end_header\n"
    )


def write_ply(snapshot: PointCloudSnapshot, path: PathLike) -> Path:
    """
    Write a snapshot as ASCII PLY.

    The data goes to a temporary file in the destination directory and is
    renamed into place only once complete.

    Args:
        snapshot: Points to write
        path: Destination file

    Returns:
        Path of the written file

    Raises:
        PointCloudExportError: The file could not be created or written
    """
    path = Path(path)
    tmp_name = None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "w", encoding="ascii", newline="\n") as handle:
            os.fchmod(handle.fileno(), 0o666 & ~_UMASK)
            handle.write(format_ply_header(len(snapshot)))
            for (x, y, z), (r, g, b) in zip(snapshot.positions, snapshot.colors):
                # str() of a float32 is its shortest round-trip representation
                handle.write(f"{str(x)} {str(y)} {str(z)} {r} {g} {b} {VERTEX_ALPHA}\n")
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise PointCloudExportError(f"Failed to write point cloud to {path}: {e}", path=str(path)) from e

    return path


def read_ply(path: PathLike) -> PointCloudSnapshot:
    """
    Parse an ASCII PLY written by `write_ply`.

    Confidence is not stored in the file and comes back as 1.0.
    """
    path = Path(path)
    with open(path, "r", encoding="ascii") as handle:
        if handle.readline().strip() != "ply":
            raise ValueError(f"{path} is not a PLY file")

        vertex_count = None
        for line in handle:
            line = line.strip()
            if line.startswith("format") and line != "format ascii 1.0":
                raise ValueError(f"Unsupported PLY format: {line}")
            if line.startswith("element vertex"):
                vertex_count = int(line.split()[2])
            if line == "end_header":
                break
        else:
            raise ValueError(f"{path} has no end_header")

        if vertex_count is None:
            raise ValueError(f"{path} declares no vertex element")

        rows = [handle.readline().split() for _ in range(vertex_count)]

    if any(len(row) != 7 for row in rows):
        raise ValueError(f"{path} has fewer vertex lines than declared ({vertex_count})")

    data = np.array(rows, dtype=np.float64).reshape(-1, 7)
    return PointCloudSnapshot(
        positions=data[:, :3].astype(np.float32),
        colors=data[:, 3:6].astype(np.uint8),
        confidences=np.ones(vertex_count, dtype=np.float32),
    )


class PointCloudWriter:
    """Exports the accumulated session to timestamped PLY files."""

    def __init__(self,
                 store: PointCloudStore,
                 output_dir: Optional[PathLike] = None,
                 config_manager: Optional[ConfigManager] = None):
        """
        Initialize point cloud writer.

        Args:
            store: Session to export
            output_dir: Directory for generated files; defaults to export.output_dir
            config_manager: Configuration manager instance
        """
        self.config = config_manager or ConfigManager()
        self.store = store
        self.logger = logging.getLogger(__name__)

        export_config = self.config.get_export_params()

        self.output_dir = Path(output_dir or export_config.get('output_dir', 'output'))
        self.file_prefix = export_config.get('file_prefix', 'pointcloud')

        # One worker: background exports complete in submission order
        self._executor: Optional[ThreadPoolExecutor] = None
        self._closed = False

        self.logger.info(f"Point cloud writer initialized: output_dir={self.output_dir}")

    def build_file_name(self, timestamp: Optional[datetime] = None) -> str:
        """File name `<prefix><yyyyMMdd_HHmmss>.ply`."""
        timestamp = timestamp or datetime.now()
        return f"{self.file_prefix}{timestamp.strftime(TIMESTAMP_FORMAT)}{PLY_EXTENSION}"

    def _resolve_path(self, path: Optional[PathLike]) -> Path:
        if path is not None:
            return Path(path)
        return self.output_dir / self.build_file_name()

    def _ensure_directory(self, path: Path) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PointCloudExportError(f"Cannot create output directory {path.parent}: {e}",
                                        path=str(path)) from e

    def write(self, path: Optional[PathLike] = None) -> Path:
        """
        Write the current session synchronously.

        Args:
            path: Destination; defaults to a timestamped file in output_dir

        Returns:
            Path of the written file
        """
        snapshot = self.store.snapshot()
        return self._write_snapshot(snapshot, self._resolve_path(path))

    def _write_snapshot(self, snapshot: PointCloudSnapshot, path: Path) -> Path:
        try:
            self._ensure_directory(path)
            written = write_ply(snapshot, path)
        except PointCloudExportError as e:
            self.logger.error(f"Point cloud export failed: {e}")
            raise

        self.logger.info(f"Exported {len(snapshot)} points to {written}")
        return written

    def write_in_background(self,
                            path: Optional[PathLike] = None,
                            callback: Optional[Callable[[Future], None]] = None) -> Future:
        """
        Export on a worker thread.

        The snapshot is taken before returning, so points appended afterwards
        are not part of this export.

        Args:
            path: Destination; defaults to a timestamped file in output_dir
            callback: Called once with the completed future

        Returns:
            Future resolving to the written Path or raising PointCloudExportError
        """
        if self._closed:
            raise RuntimeError("Point cloud writer is closed")

        snapshot = self.store.snapshot()
        destination = self._resolve_path(path)

        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ply-writer")

        future = self._executor.submit(self._write_snapshot, snapshot, destination)
        if callback is not None:
            future.add_done_callback(callback)
        return future

    def close(self) -> None:
        """Wait for pending background exports and release the worker."""
        self._closed = True
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> 'PointCloudWriter':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
