"""Hierarchical chunk matching between two equally sized grids.

Both images are cut into a ``count x count`` grid of chunks, starting
with a single chunk and refining one step at a time.  Each chunk of the
first image with pixels not yet covered by an earlier match is compared with
the chunk at the same index in the second image and with its neighbours
up to ``range`` cells away.  Refinement stops globally as soon as the
chunk size would drop below ``min_size``.
"""

import logging
from typing import List, Set, Tuple

import numpy as np

from .config import DEFAULT_MIN_SIZE, DEFAULT_RANGE, DEFAULT_THRESHOLD, MatchConfig
from .errors import SizeMismatch
from .grid import MatchPair, PixelGrid, Region

logger = logging.getLogger(__name__)


def neighbour_offsets(radius: int) -> List[Tuple[int, int]]:
    """(dx, dy) offsets within ``radius``, nearest ring first."""
    offsets = [
        (dx, dy)
        for dy in range(-radius, radius + 1)
        for dx in range(-radius, radius + 1)
    ]
    offsets.sort(key=lambda o: (max(abs(o[0]), abs(o[1])), o[1], o[0]))
    return offsets


def partition(grid: PixelGrid, count: int) -> List[List[Region]]:
    """Split ``grid`` into ``count`` rows of ``count`` chunks.

    The last row and column absorb the remainder pixels.
    """
    cell_w = grid.width // count
    cell_h = grid.height // count
    rows = []
    for cy in range(count):
        y = cy * cell_h
        h = grid.height - y if cy == count - 1 else cell_h
        row = []
        for cx in range(count):
            x = cx * cell_w
            w = grid.width - x if cx == count - 1 else cell_w
            row.append(Region(x, y, w, h, grid))
        rows.append(row)
    return rows


class ChunkMatcher:
    """Finds equivalent chunks of two equally sized images.

    A chunk that overlaps an earlier match only in part is still compared,
    so pairs may overlap on the first image.  After :meth:`match`,
    ``mismatched`` holds the first-image chunks of the last level that were
    compared and found no partner, and ``levels`` the number of subdivision
    levels examined.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        min_size: int = DEFAULT_MIN_SIZE,
        range: int = DEFAULT_RANGE,
    ):
        self.threshold = threshold
        self.min_size = max(1, min_size)
        self.range = range
        self._offsets = neighbour_offsets(range)
        self.mismatched: List[Region] = []
        self.levels = 0

    @classmethod
    def from_config(cls, config: MatchConfig) -> "ChunkMatcher":
        return cls(config.threshold, config.min_size, config.range)

    def _partner(
        self,
        chunk: Region,
        cells: List[List[Region]],
        cx: int,
        cy: int,
    ) -> Region:
        count = len(cells)
        for dx, dy in self._offsets:
            nx, ny = cx + dx, cy + dy
            if not (0 <= nx < count and 0 <= ny < count):
                continue
            candidate = cells[ny][nx]
            if candidate.same_size(chunk) and chunk.matches(candidate, self.threshold):
                return candidate
        return Region.empty()

    def match(self, first: PixelGrid, second: PixelGrid) -> Set[MatchPair]:
        """Collect matching chunk pairs across every subdivision level.

        Raises:
            SizeMismatch: the two grids differ in width or height.
        """
        if (first.width, first.height) != (second.width, second.height):
            raise SizeMismatch(
                f"Cannot chunk-match {first.width}x{first.height} "
                f"against {second.width}x{second.height}"
            )

        self.mismatched = []
        self.levels = 0
        pairs: Set[MatchPair] = set()
        width, height = first.width, first.height
        if width == 0 or height == 0:
            return pairs

        used = np.zeros((height, width), dtype=bool)
        count = 1
        while width // count >= self.min_size and height // count >= self.min_size:
            self.levels += 1
            cells_a = partition(first, count)
            cells_b = partition(second, count)
            mismatched = []
            for cy, row in enumerate(cells_a):
                for cx, chunk in enumerate(row):
                    if used[chunk.y:chunk.bottom, chunk.x:chunk.right].all():
                        continue
                    partner = self._partner(chunk, cells_b, cx, cy)
                    if partner.is_empty:
                        mismatched.append(chunk)
                        continue
                    pairs.add(MatchPair(chunk, partner))
                    used[chunk.y:chunk.bottom, chunk.x:chunk.right] = True
            self.mismatched = mismatched

            logger.debug(
                "Level %d: %dx%d chunks, %d pairs, %d unmatched",
                self.levels, count, count, len(pairs), len(mismatched),
            )
            if used.all():
                break
            count += 1

        logger.info(
            "Chunk matching finished after %d levels with %d pairs",
            self.levels, len(pairs),
        )
        return pairs
