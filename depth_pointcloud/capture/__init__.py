"""
Frame Capture Sources

Loads recorded depth frames from disk.
"""

from .frame_loader import FrameLoader, bgr_to_yuv420

__all__ = ['FrameLoader', 'bgr_to_yuv420']
