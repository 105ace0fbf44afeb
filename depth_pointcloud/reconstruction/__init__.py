"""
Frame Reconstruction Module

Implements depth unprojection, color lookup and YUV to RGB conversion.
"""

from .frame_reconstructor import FrameReconstructor, calculate_subsampling_step
from .color_conversion import yuv_to_rgb, clamp01, float_to_unsigned_byte
from .coordinate_mapping import CoordinateMapper, TextureCoordinateMapper, color_row_range

__all__ = ['FrameReconstructor', 'calculate_subsampling_step',
           'yuv_to_rgb', 'clamp01', 'float_to_unsigned_byte',
           'CoordinateMapper', 'TextureCoordinateMapper', 'color_row_range']
