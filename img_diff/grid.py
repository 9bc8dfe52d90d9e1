"""Pixel grids and the rectangular views the matchers compare.

A :class:`PixelGrid` owns a read-only ``(height, width, 4)`` uint8 array,
either decoded in memory or mapped from a cache file.  :class:`Region`
is a rectangle inside one grid and :class:`MatchPair` couples two
equally sized regions taken from the two images being compared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from .color import Color, pixels_match
from .errors import BadRectangle, OutOfBounds, SizeMismatch

logger = logging.getLogger(__name__)


def _transparent(pixels: np.ndarray) -> bool:
    return not bool(np.any(pixels[..., 3]))


class PixelGrid:
    """Immutable RGBA pixel storage with random access.

    Args:
        pixels: uint8 array of shape (height, width, 4).
        all_transparent: precomputed transparency flag; computed from the
            alpha channel when omitted.
        origin: offset of this grid inside the image it was cropped from.
        source: label of the file the pixels came from.
        mapping: memory mapping backing ``pixels``; released by ``close``.
    """

    def __init__(
        self,
        pixels: np.ndarray,
        all_transparent: Optional[bool] = None,
        origin: Optional[Tuple[int, int]] = None,
        source: str = "",
        mapping=None,
    ):
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"Expected an (H, W, 4) array, got shape {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise ValueError(f"Expected uint8 pixels, got {pixels.dtype}")
        if pixels.flags.writeable:
            pixels.flags.writeable = False
        self._pixels: Optional[np.ndarray] = pixels
        self._height, self._width = int(pixels.shape[0]), int(pixels.shape[1])
        if all_transparent is None:
            all_transparent = _transparent(pixels)
        self._all_transparent = bool(all_transparent)
        self.origin = origin
        self.source = source
        self._mapping = mapping

    @classmethod
    def from_array(
        cls,
        array: np.ndarray,
        origin: Optional[Tuple[int, int]] = None,
        source: str = "",
    ) -> "PixelGrid":
        """Copy an RGB or RGBA array into a new in-memory grid."""
        array = np.asarray(array)
        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise ValueError(f"Expected an (H, W, 3|4) array, got shape {array.shape}")
        if array.shape[2] == 3:
            alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
            array = np.concatenate([array.astype(np.uint8), alpha], axis=2)
        pixels = np.array(array, dtype=np.uint8, copy=True)
        return cls(pixels, origin=origin, source=source)

    # ---- accessors ----

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def all_transparent(self) -> bool:
        return self._all_transparent

    @property
    def closed(self) -> bool:
        return self._pixels is None

    @property
    def pixels(self) -> np.ndarray:
        if self._pixels is None:
            raise ValueError(f"Pixel grid {self.source or '<memory>'} is closed")
        return self._pixels

    def color(self, x: int, y: int) -> Color:
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise OutOfBounds(
                f"Pixel {x},{y} outside {self._width}x{self._height} grid"
            )
        return Color.from_pixel(self.pixels[y, x])

    def contains(self, x: int, y: int, width: int, height: int) -> bool:
        return (
            x >= 0 and y >= 0 and width >= 0 and height >= 0
            and x + width <= self._width
            and y + height <= self._height
        )

    # ---- derived grids and views ----

    def sub(self, x: int, y: int, width: int, height: int) -> "PixelGrid":
        """Copy a sub-rectangle into a new in-memory grid.

        Transparency is recomputed for the sub-rectangle alone.  A
        rectangle covering the whole grid returns the grid unchanged.
        """
        if not self.contains(x, y, width, height):
            raise BadRectangle(
                f"{x},{y}+{width}x{height} is not inside "
                f"{self._width}x{self._height} image {self.source}".rstrip()
            )
        if (x, y, width, height) == (0, 0, self._width, self._height):
            return self
        block = np.array(self.pixels[y:y + height, x:x + width], copy=True)
        return PixelGrid(block, origin=(x, y), source=self.source)

    def region(self, x: int, y: int, width: int, height: int) -> "Region":
        return Region(x, y, width, height, self)

    def full_region(self) -> "Region":
        if self._width == 0 or self._height == 0:
            return Region.empty()
        return Region(0, 0, self._width, self._height, self)

    def dump(self) -> str:
        """Hex rendering of every pixel, one grid row per line."""
        lines = []
        for row in self.pixels:
            lines.append(" ".join(Color.from_pixel(p).to_string() for p in row))
        return "\n".join(lines)

    # ---- lifetime ----

    def close(self) -> None:
        """Drop the pixel buffer and release a backing memory mapping."""
        self._pixels = None
        mapping, self._mapping = self._mapping, None
        if mapping is None:
            return
        try:
            mapping.close()
        except BufferError:
            # Views handed out earlier keep the mapping alive until collected.
            logger.debug("Mapping for %s still exported; left to the collector", self.source)
            return
        logger.debug("Released mapping for %s", self.source)

    def __enter__(self) -> "PixelGrid":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"PixelGrid({self._width}x{self._height}, "
            f"all_transparent={self._all_transparent}, source={self.source!r})"
        )


@dataclass(frozen=True)
class Region:
    """Rectangle inside a single grid.

    ``Region.empty()`` (no grid, null rectangle) is the canonical
    empty value; a region with a grid always has a non-empty rectangle
    lying inside that grid.
    """

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0
    grid: Optional[PixelGrid] = field(default=None, repr=False)

    def __post_init__(self):
        if self.grid is None:
            if self.rect != (0, 0, 0, 0):
                raise BadRectangle(f"Region {self} has no grid but a non-null rectangle")
            return
        if self.width <= 0 or self.height <= 0:
            raise BadRectangle(f"Region {self} on a grid must not be empty")
        if not self.grid.contains(self.x, self.y, self.width, self.height):
            raise BadRectangle(
                f"Region {self} is not inside {self.grid.width}x{self.grid.height} grid"
            )

    @classmethod
    def empty(cls) -> "Region":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.grid is None

    @property
    def rect(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.width, self.height)

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def pixels(self) -> np.ndarray:
        if self.grid is None:
            return np.zeros((0, 0, 4), dtype=np.uint8)
        return self.grid.pixels[self.y:self.bottom, self.x:self.right]

    def same_size(self, other: "Region") -> bool:
        return self.size == other.size

    def matches(self, other: "Region", threshold: float) -> bool:
        """Every pixel pair of the two regions lies within ``threshold``."""
        if not self.same_size(other):
            raise SizeMismatch(f"Cannot compare {self} with {other}")
        return pixels_match(self.pixels, other.pixels, threshold)

    def bounding(self, other: "Region") -> "Region":
        """Smallest region of the shared grid covering both regions."""
        if self.grid is not other.grid:
            raise ValueError("Regions refer to different grids")
        if self.is_empty:
            return other
        x = min(self.x, other.x)
        y = min(self.y, other.y)
        return Region(
            x, y,
            max(self.right, other.right) - x,
            max(self.bottom, other.bottom) - y,
            self.grid,
        )

    def __str__(self) -> str:
        return f"{self.x},{self.y}+{self.width}x{self.height}"


@dataclass(frozen=True)
class MatchPair:
    """Two equally sized regions found equivalent, one from each image."""

    first: Region
    second: Region

    def __post_init__(self):
        if not self.first.same_size(self.second):
            raise SizeMismatch(
                f"Match pair sides differ in size: {self.first} vs {self.second}"
            )

    def sort_key(self) -> Tuple[Tuple[int, int, int, int], Tuple[int, int, int, int]]:
        return (self.first.rect, self.second.rect)

    def __str__(self) -> str:
        return f"{self.first} {self.second}"
