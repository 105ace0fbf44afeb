"""
Point Cloud Session

Accumulates reconstructed points across frames.
"""

from .point_cloud_store import PointCloudStore

__all__ = ['PointCloudStore']
