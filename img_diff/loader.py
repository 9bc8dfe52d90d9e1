"""Turn command line image arguments into pixel grids.

An argument is a file path, optionally suffixed ``:<x>,<y>+<w>x<h>`` to
select a sub-rectangle.  Decoding goes through Pillow; when a cache
directory is configured the full decoded image is snapshotted there and
later loads map the snapshot instead of decoding again.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image

from . import cache
from .errors import BadRectangle, CacheWriteFailure, DecodeFailure
from .grid import PixelGrid

logger = logging.getLogger(__name__)

SUBRECT_RE = re.compile(r"(.*):([0-9]+),([0-9]+)\+([0-9]+)x([0-9]+)")


@dataclass(frozen=True)
class ImageArgument:
    """A source path plus the optional (x, y, width, height) crop."""
    path: str
    rect: Optional[Tuple[int, int, int, int]] = None


def parse_image_argument(arg: str) -> ImageArgument:
    match = SUBRECT_RE.fullmatch(arg)
    if match is None:
        return ImageArgument(arg)
    x, y, w, h = (int(v) for v in match.group(2, 3, 4, 5))
    return ImageArgument(match.group(1), (x, y, w, h))


def decode(path: Union[str, Path]) -> PixelGrid:
    """Decode an image file into an in-memory RGBA grid.

    Raises:
        DecodeFailure: the file is missing, unreadable or not an image.
    """
    try:
        with Image.open(path) as img:
            pixels = np.array(img.convert("RGBA"), dtype=np.uint8)
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeFailure(f"Couldn't decode {path}: {exc}") from exc
    if pixels.ndim != 3 or pixels.size == 0:
        raise DecodeFailure(f"Couldn't decode {path}: empty image")
    return PixelGrid(pixels, source=str(path))


def _load_full(path: str, cache_dir: Optional[Path]) -> PixelGrid:
    if cache_dir is None:
        return decode(path)

    cache_file = cache.cache_path(cache_dir, path)
    grid = cache.read(cache_file, source=path)
    if grid is not None:
        return grid

    grid = decode(path)
    try:
        cache.write(cache_file, grid)
    except CacheWriteFailure as exc:
        logger.warning("%s; continuing without cache", exc)
    return grid


def load(arg: str, cache_dir: Optional[Union[str, Path]] = None) -> PixelGrid:
    """Load the grid named by ``arg``, cropping when a suffix is present.

    Raises:
        DecodeFailure: the source cannot be decoded.
        BadRectangle: the requested crop is not inside the image.
    """
    image = parse_image_argument(arg)
    grid = _load_full(image.path, Path(cache_dir) if cache_dir is not None else None)
    if image.rect is None:
        return grid

    try:
        cropped = grid.sub(*image.rect)
    except BadRectangle:
        grid.close()
        raise
    if cropped is not grid:
        grid.close()
    logger.debug("Selected %d,%d+%dx%d of %s", *image.rect, image.path)
    return cropped
