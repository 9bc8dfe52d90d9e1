"""On-disk pixel cache: one binary snapshot per source file name.

Layout (little-endian, no version header)::

    int32 width | int32 height | uint8 all_transparent | width*height * (r, g, b, a)

Entries are written once and never invalidated.  Reads map the file and
build a :class:`PixelGrid` directly on top of the mapping; the grid owns
the mapping from then on.
"""

import contextlib
import logging
import mmap
import os
import struct
from pathlib import Path
from typing import Optional, Union

import numpy as np

from .config import CACHE_SUFFIX
from .errors import CacheWriteFailure
from .grid import PixelGrid

logger = logging.getLogger(__name__)

HEADER = struct.Struct("<iiB")


def cache_path(cache_dir: Union[str, Path], source: Union[str, Path]) -> Path:
    """Cache file for ``source``; keyed by file name only."""
    return Path(cache_dir) / (Path(source).name + CACHE_SUFFIX)


def encode(grid: PixelGrid) -> bytes:
    header = HEADER.pack(grid.width, grid.height, 1 if grid.all_transparent else 0)
    return header + grid.pixels.tobytes()


def write(cache_file: Union[str, Path], grid: PixelGrid) -> bool:
    """Store ``grid`` at ``cache_file`` unless an entry already exists.

    Returns True when this call wrote the entry.

    Raises:
        CacheWriteFailure: the directory or file is not writable.
    """
    cache_file = Path(cache_file)
    try:
        cache_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise CacheWriteFailure(f"Cannot create cache directory {cache_file.parent}: {exc}") from exc
    try:
        with cache_file.open("xb") as fh:
            fh.write(encode(grid))
    except FileExistsError:
        logger.debug("Cache entry %s already present", cache_file)
        return False
    except OSError as exc:
        raise CacheWriteFailure(f"Failed to open {cache_file} for writing: {exc}") from exc
    logger.info("Wrote to cache %s", cache_file)
    return True


def read(cache_file: Union[str, Path], source: str = "") -> Optional[PixelGrid]:
    """Map a cache entry into a read-only grid.

    Returns None when the entry is missing or its size disagrees with its
    header.  The mapping is released on every path that does not hand it
    to the returned grid.
    """
    cache_file = Path(cache_file)
    try:
        fh = cache_file.open("rb")
    except FileNotFoundError:
        return None

    with fh:
        size = os.fstat(fh.fileno()).st_size
        if size < HEADER.size:
            logger.warning("Ignoring truncated cache file %s", cache_file)
            return None
        mapping = mmap.mmap(fh.fileno(), 0, access=mmap.ACCESS_READ)

    with contextlib.ExitStack() as stack:
        stack.callback(mapping.close)
        width, height, transparent = HEADER.unpack_from(mapping, 0)
        count = width * height * 4
        if width <= 0 or height <= 0 or size != HEADER.size + count:
            logger.warning(
                "Ignoring cache file %s: header says %dx%d but file holds %d bytes",
                cache_file, width, height, size,
            )
            return None
        pixels = np.frombuffer(
            mapping, dtype=np.uint8, count=count, offset=HEADER.size
        ).reshape(height, width, 4)
        grid = PixelGrid(
            pixels,
            all_transparent=bool(transparent),
            source=source or str(cache_file),
            mapping=mapping,
        )
        stack.pop_all()
    logger.info("Read from cache %s", cache_file)
    return grid
