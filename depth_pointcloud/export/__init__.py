"""
Point Cloud Export

ASCII PLY serialization of the accumulated session.
"""

from .ply_writer import PointCloudWriter, format_ply_header, write_ply, read_ply

__all__ = ['PointCloudWriter', 'format_ply_header', 'write_ply', 'read_ply']
