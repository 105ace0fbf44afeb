"""
YUV to RGB Color Conversion

Analog YUV (BT.601 weights) to RGB, with inputs as unsigned bytes in [0, 255]
and outputs as floats in [0, 1]. See https://en.wikipedia.org/wiki/YUV.
"""

from typing import Union

import numpy as np

ArrayLike = Union[int, float, np.ndarray]


def clamp01(value: ArrayLike) -> np.ndarray:
    """Saturate to the [0, 1] range."""
    return np.clip(np.asarray(value, dtype=np.float32), np.float32(0.0), np.float32(1.0))


def yuv_to_rgb(y: ArrayLike, u: ArrayLike, v: ArrayLike) -> np.ndarray:
    """
    Convert YUV byte values to RGB floats.

    Args:
        y: Luma in [0, 255]
        u: Blue-difference chroma in [0, 255], 128 is neutral
        v: Red-difference chroma in [0, 255], 128 is neutral

    Returns:
        float32 array of shape (..., 3) with R, G, B in [0, 1]
    """
    y_f = np.asarray(y, dtype=np.float32) / np.float32(255.0)  # [0.0, 1.0]
    u_f = np.asarray(u, dtype=np.float32) * np.float32(0.872) / np.float32(255.0) - np.float32(0.436)
    v_f = np.asarray(v, dtype=np.float32) * np.float32(1.230) / np.float32(255.0) - np.float32(0.615)

    red = clamp01(y_f + np.float32(1.13983) * v_f)
    green = clamp01(y_f - np.float32(0.39465) * u_f - np.float32(0.58060) * v_f)
    blue = clamp01(y_f + np.float32(2.03211) * u_f)

    return np.stack([red, green, blue], axis=-1)


def float_to_unsigned_byte(value: ArrayLike) -> np.ndarray:
    """
    Quantize [0, 1] floats to [0, 255] integers.

    Truncates toward zero before clamping; values are not rounded.
    """
    scaled = np.asarray(value, dtype=np.float32) * np.float32(255.0)
    return np.clip(np.trunc(scaled), 0, 255).astype(np.uint8)
