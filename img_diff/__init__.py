"""Public interface for the img-diff region matching engine."""

from __future__ import annotations

from .chunks import ChunkMatcher
from .color import Color, distance, distance_map, matches
from .config import MatchConfig, parse_threshold
from .errors import (
    BadRectangle,
    CacheWriteFailure,
    DecodeFailure,
    ImgDiffError,
    InvalidArgument,
    OutOfBounds,
    SizeMismatch,
)
from .grid import MatchPair, PixelGrid, Region
from .loader import load
from .merge import merge, merge_regions
from .needle import find

__all__ = [
    "BadRectangle",
    "CacheWriteFailure",
    "ChunkMatcher",
    "Color",
    "DecodeFailure",
    "ImgDiffError",
    "InvalidArgument",
    "MatchConfig",
    "MatchPair",
    "OutOfBounds",
    "PixelGrid",
    "Region",
    "SizeMismatch",
    "distance",
    "distance_map",
    "find",
    "load",
    "matches",
    "merge",
    "merge_regions",
    "parse_threshold",
]
