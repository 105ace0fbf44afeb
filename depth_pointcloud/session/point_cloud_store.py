"""
Accumulated Point Cloud Session

Append-only storage of reconstructed points and per-frame buffers. All access
goes through append, snapshot and reset so readers never see a half-written
batch.
"""

import logging
import threading
from typing import Iterator, List, Tuple

import numpy as np

from ..data_models import FrameBuffers, PointCloudSnapshot, ReconstructedPoint


class PointCloudStore:
    """Thread-safe accumulation of world-space colored points across frames."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

        # Frozen (positions, colors, confidences) chunks, one per append call
        self._chunks: List[Tuple[np.ndarray, np.ndarray, np.ndarray]] = []
        self._frame_buffers: List[FrameBuffers] = []
        self._point_count = 0

        self._lock = threading.RLock()

    def append_point(self, point: ReconstructedPoint) -> None:
        """Append a single point."""
        self.append_points(
            np.array([point.position], dtype=np.float32),
            np.array([point.color], dtype=np.uint8),
            np.array([point.confidence], dtype=np.float32),
        )

    def append_points(self,
                      positions: np.ndarray,
                      colors: np.ndarray,
                      confidences: np.ndarray) -> None:
        """
        Append a batch of points atomically.

        Args:
            positions: (N, 3) world-space coordinates
            colors: (N, 3) RGB bytes
            confidences: (N,) normalized confidence
        """
        chunk = self._freeze_batch(positions, colors, confidences)
        if chunk is None:
            return

        with self._lock:
            self._add_chunk(chunk)

    def append_frame(self,
                     positions: np.ndarray,
                     colors: np.ndarray,
                     confidences: np.ndarray,
                     buffers: FrameBuffers) -> None:
        """
        Append one frame's points together with its camera-space buffers.

        Both land under a single lock acquisition, so a concurrent drain or
        reset sees either the whole frame or none of it.
        """
        chunk = self._freeze_batch(positions, colors, confidences)
        point_count = 0 if chunk is None else len(chunk[0])
        if buffers.point_count != point_count:
            raise ValueError(f"Frame buffers describe {buffers.point_count} points, "
                             f"batch has {point_count}")

        with self._lock:
            if chunk is not None:
                self._add_chunk(chunk)
            self._frame_buffers.append(buffers)

    def _freeze_batch(self, positions, colors, confidences):
        positions = np.array(positions, dtype=np.float32).reshape(-1, 3)
        colors = np.array(colors, dtype=np.uint8).reshape(-1, 3)
        confidences = np.array(confidences, dtype=np.float32).ravel()

        if not (len(positions) == len(colors) == len(confidences)):
            raise ValueError(f"Batch lengths differ: {len(positions)} positions, "
                             f"{len(colors)} colors, {len(confidences)} confidences")
        if len(positions) == 0:
            return None

        for array in (positions, colors, confidences):
            array.setflags(write=False)
        return positions, colors, confidences

    def _add_chunk(self, chunk: Tuple[np.ndarray, np.ndarray, np.ndarray]) -> None:
        self._chunks.append(chunk)
        self._point_count += len(chunk[0])

    def append_frame_buffers(self, buffers: FrameBuffers) -> None:
        """Record one frame's raw camera-space buffers."""
        with self._lock:
            self._frame_buffers.append(buffers)

    def frame_buffers(self) -> Tuple[FrameBuffers, ...]:
        with self._lock:
            return tuple(self._frame_buffers)

    @property
    def frame_count(self) -> int:
        with self._lock:
            return len(self._frame_buffers)

    def __len__(self) -> int:
        with self._lock:
            return self._point_count

    def __iter__(self) -> Iterator[ReconstructedPoint]:
        return self.snapshot().points()

    def snapshot(self) -> PointCloudSnapshot:
        """
        Stable copy of every point appended so far.

        Only the chunk list is copied under the lock; chunks are immutable so
        concatenation runs without blocking writers.
        """
        with self._lock:
            chunks = list(self._chunks)

        if not chunks:
            return PointCloudSnapshot.empty()

        positions, colors, confidences = zip(*chunks)
        return PointCloudSnapshot(
            positions=np.concatenate(positions),
            colors=np.concatenate(colors),
            confidences=np.concatenate(confidences),
        )

    def reset(self) -> None:
        """Discard all accumulated points and frame buffers."""
        with self._lock:
            dropped = self._point_count
            self._chunks = []
            self._frame_buffers = []
            self._point_count = 0

        self.logger.info(f"Point cloud session reset ({dropped} points discarded)")

    def drain(self) -> PointCloudSnapshot:
        """Snapshot and reset in one step, so no append falls between the two."""
        with self._lock:
            snapshot = self.snapshot()
            self.reset()
        return snapshot
