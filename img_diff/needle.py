"""Exhaustive sliding-window search for a needle grid inside a haystack."""

import logging
from typing import List, Optional, Tuple

import numpy as np

from .color import distance_map
from .config import DEFAULT_THRESHOLD
from .errors import BadRectangle
from .grid import PixelGrid, Region

logger = logging.getLogger(__name__)


def _window_matches(
    needle: np.ndarray,
    haystack: np.ndarray,
    x: int,
    y: int,
    threshold: float,
) -> bool:
    """Compare a window row by row, stopping at the first failing row."""
    nh, nw = needle.shape[:2]
    worst = 0.0
    for row in range(nh):
        distances = distance_map(needle[row], haystack[y + row, x:x + nw])
        if not np.all(distances <= threshold):
            return False
        worst = max(worst, float(distances.max()))
    logger.debug(
        "Allowed %f distance for threshold %f at %d,%d",
        worst, threshold, x, y,
    )
    return True


def _key_pixels(needle: np.ndarray) -> List[Tuple[int, int]]:
    """(x, y) of the corner pixels and of the pixels least like them."""
    nh, nw = needle.shape[:2]
    keys = [(0, 0), (nw - 1, nh - 1)]
    for kx, ky in list(keys):
        reference = np.broadcast_to(needle[ky, kx], needle.shape)
        y, x = np.unravel_index(np.argmax(distance_map(needle, reference)), (nh, nw))
        keys.append((int(x), int(y)))
    return list(dict.fromkeys(keys))


def candidate_origins(
    needle: np.ndarray,
    haystack: np.ndarray,
    threshold: float,
) -> np.ndarray:
    """Window origins, as (y, x) rows in scan order, passing the key pixels.

    Uniform backgrounds make any single needle pixel match nearly
    everywhere, so the corners and the pixels most unlike them are all
    checked across every origin at once.
    """
    nh, nw = needle.shape[:2]
    hh, hw = haystack.shape[:2]
    span_h, span_w = hh - nh + 1, hw - nw + 1
    passing = np.ones((span_h, span_w), dtype=bool)
    for kx, ky in _key_pixels(needle):
        block = haystack[ky:ky + span_h, kx:kx + span_w]
        reference = np.broadcast_to(needle[ky, kx], block.shape)
        passing &= distance_map(block, reference) <= threshold
        if not passing.any():
            break
    return np.argwhere(passing)


def find(
    needle: PixelGrid,
    haystack: PixelGrid,
    threshold: float = DEFAULT_THRESHOLD,
    probe_origin: bool = True,
) -> Optional[Region]:
    """Find the first haystack window matching ``needle``.

    Windows are scanned row by row, left to right.  A fully transparent
    needle matches trivially and yields ``Region.empty()``; a fully
    transparent haystack never matches.  When ``probe_origin`` is set and
    the needle was cropped from a source image, the window at the crop
    offset is tried before the scan.

    Returns:
        The matching region of ``haystack``, or None when nothing matches.

    Raises:
        BadRectangle: the needle is wider or taller than the haystack.
    """
    if needle.all_transparent:
        logger.info("Needle %s is fully transparent", needle.source or "<memory>")
        return Region.empty()
    if haystack.all_transparent:
        logger.info("Haystack %s is fully transparent", haystack.source or "<memory>")
        return None

    nw, nh = needle.width, needle.height
    hw, hh = haystack.width, haystack.height
    if nw > hw or nh > hh:
        raise BadRectangle(f"Bad rects: needle {nw}x{nh} does not fit haystack {hw}x{hh}")

    needle_px = needle.pixels
    haystack_px = haystack.pixels

    if probe_origin and needle.origin is not None:
        ox, oy = needle.origin
        if haystack.contains(ox, oy, nw, nh) and _window_matches(
            needle_px, haystack_px, ox, oy, threshold
        ):
            logger.info("Needle found at its crop origin %d,%d", ox, oy)
            return Region(ox, oy, nw, nh, haystack)

    candidates = candidate_origins(needle_px, haystack_px, threshold)
    logger.debug("%d candidate origins for %dx%d needle", len(candidates), nw, nh)

    for y, x in candidates:
        if _window_matches(needle_px, haystack_px, int(x), int(y), threshold):
            return Region(int(x), int(y), nw, nh, haystack)

    logger.info("Couldn't find area")
    return None
