"""
Exceptions raised by the point cloud pipeline.
"""

from typing import Optional


class InputShapeMismatchError(ValueError):
    """Frame inputs whose dimensions disagree. The frame is skipped, never retried."""


class PointCloudExportError(OSError):
    """Writing the point cloud file failed; the in-memory session is untouched."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
