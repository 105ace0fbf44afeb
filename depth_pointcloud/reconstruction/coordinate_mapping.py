"""
Texture-to-Image Coordinate Mapping

The tracking service exposes a transform from normalized texture coordinates to
pixel coordinates of the full CPU color image. The depth image covers the full
texture, so mapping the texture corners gives the color rows that overlap it.
"""

import math
from typing import Optional, Protocol, Tuple

import numpy as np


# Corners (u, v): (0, 0), (0, 1), (1, 0), (1, 1)
FULL_TEXTURE_COORDS = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]], dtype=np.float32)


class CoordinateMapper(Protocol):
    """Anything that converts normalized texture coordinates to color-image pixels."""

    def texture_to_image_pixels(self, texture_coords: np.ndarray) -> np.ndarray:
        """Map an (N, 2) array of (u, v) in [0, 1] to (N, 2) pixel (x, y)."""
        ...


class TextureCoordinateMapper:
    """
    Linear texture-to-pixel mapping for a color image whose depth-aligned
    region is a horizontal band starting at `row_offset`.
    """

    def __init__(self,
                 image_width: int,
                 image_height: int,
                 row_offset: float = 0.0,
                 visible_rows: Optional[float] = None):
        if image_width <= 0 or image_height <= 0:
            raise ValueError("Image dimensions must be positive")
        self.image_width = image_width
        self.image_height = image_height
        self.row_offset = float(row_offset)
        self.visible_rows = float(image_height - row_offset if visible_rows is None else visible_rows)

        if self.visible_rows < 0:
            raise ValueError(f"Visible rows must be non-negative, got {self.visible_rows}")
        if self.row_offset < 0 or self.row_offset + self.visible_rows > image_height:
            raise ValueError(f"Visible band [{self.row_offset}, {self.row_offset + self.visible_rows}] "
                             f"exceeds image height {image_height}")

    def texture_to_image_pixels(self, texture_coords: np.ndarray) -> np.ndarray:
        coords = np.asarray(texture_coords, dtype=np.float32).reshape(-1, 2)
        pixels = np.empty_like(coords)
        pixels[:, 0] = coords[:, 0] * self.image_width
        pixels[:, 1] = self.row_offset + coords[:, 1] * self.visible_rows
        return pixels


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def color_row_range(mapper: CoordinateMapper) -> Tuple[int, int]:
    """
    First and last color-image rows overlapping the depth image.

    Args:
        mapper: Texture-to-pixel coordinate facility

    Returns:
        Tuple of (color_min_y, color_max_y)

    Raises:
        ValueError: The mapped band is inverted (max_y < min_y)
    """
    image_coords = np.asarray(mapper.texture_to_image_pixels(FULL_TEXTURE_COORDS)).reshape(-1, 2)
    color_min_y = round_half_up(float(image_coords[0, 1]))
    color_max_y = round_half_up(float(image_coords[1, 1]))
    if color_max_y < color_min_y:
        raise ValueError(f"Color row range is inverted: min_y={color_min_y}, max_y={color_max_y}")
    return color_min_y, color_max_y
