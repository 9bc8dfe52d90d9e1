"""RGBA colour samples and the distance model every search is built on.

The distance between two colours is the Euclidean distance over the RGB
channels, raised to the absolute alpha difference when that is larger.
``distance_map`` applies the same model to whole numpy blocks.
"""

from __future__ import annotations

import math
from typing import NamedTuple

import numpy as np


class Color(NamedTuple):
    red: int
    green: int
    blue: int
    alpha: int = 255

    @classmethod
    def from_pixel(cls, pixel) -> "Color":
        """Build a colour from a length-4 sequence or numpy row."""
        r, g, b, a = (int(v) for v in pixel)
        return cls(r, g, b, a)

    def to_string(self) -> str:
        return f"{self.red:02x}{self.green:02x}{self.blue:02x}{self.alpha:02x}"


def distance(a: Color, b: Color) -> float:
    rgb = math.sqrt(
        (a.red - b.red) ** 2
        + (a.green - b.green) ** 2
        + (a.blue - b.blue) ** 2
    )
    return max(rgb, float(abs(a.alpha - b.alpha)))


def matches(a: Color, b: Color, threshold: float) -> bool:
    return distance(a, b) <= threshold


def distance_map(a_pixels: np.ndarray, b_pixels: np.ndarray) -> np.ndarray:
    """Per-pixel distance between two equally shaped ``(..., 4)`` blocks.

    Args:
        a_pixels: uint8 array whose last axis is (r, g, b, a).
        b_pixels: array of the same shape.

    Returns:
        float64 array with the leading shape of the inputs.
    """
    if a_pixels.shape != b_pixels.shape:
        raise ValueError(
            f"Pixel blocks differ in shape: {a_pixels.shape} vs {b_pixels.shape}"
        )
    diff = a_pixels.astype(np.int32) - b_pixels.astype(np.int32)
    rgb = np.sqrt(np.sum(diff[..., :3] ** 2, axis=-1, dtype=np.int64))
    alpha = np.abs(diff[..., 3]).astype(np.float64)
    return np.maximum(rgb, alpha)


def pixels_match(a_pixels: np.ndarray, b_pixels: np.ndarray, threshold: float) -> bool:
    """True when every pixel pair of two blocks lies within ``threshold``."""
    if a_pixels.size == 0:
        return True
    return bool(np.all(distance_map(a_pixels, b_pixels) <= threshold))
