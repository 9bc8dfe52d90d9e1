"""Matching configuration: defaults and option parsing."""

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import InvalidArgument


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_THRESHOLD = 0.0
DEFAULT_MIN_SIZE = 8          # smallest chunk edge, in pixels
DEFAULT_RANGE = 1             # Chebyshev neighbourhood searched per chunk

# Percentages are taken of the 0..256 channel span.
PERCENT_SCALE = 256.0 / 100.0

CACHE_SUFFIX = ".cache"


@dataclass
class MatchConfig:
    """Options shared by the loader and both matchers."""
    threshold: float = DEFAULT_THRESHOLD
    min_size: int = DEFAULT_MIN_SIZE
    range: int = DEFAULT_RANGE
    cache_dir: Optional[Path] = None
    verbose: int = 0

    def __post_init__(self):
        if self.threshold < 0:
            raise InvalidArgument(f"Threshold must be non-negative, got {self.threshold}")
        if self.min_size < 0:
            raise InvalidArgument(f"Minimum size must be non-negative, got {self.min_size}")
        if self.range < 0:
            raise InvalidArgument(f"Range must be non-negative, got {self.range}")
        if self.cache_dir is not None:
            self.cache_dir = Path(self.cache_dir)


def parse_threshold(text: str) -> float:
    """Parse ``<float>`` or ``<float>%`` into a raw channel-distance threshold."""
    raw = text.strip()
    percent = raw.endswith("%")
    if percent:
        raw = raw[:-1]
    try:
        value = float(raw)
    except ValueError:
        raise InvalidArgument(
            f"Invalid threshold ({text}), must be positive float value"
        ) from None
    if value < 0 or math.isnan(value):
        raise InvalidArgument(f"Invalid threshold ({text}), must be positive float value")
    if percent:
        value *= PERCENT_SCALE
    return value


def parse_count(text: str, name: str) -> int:
    """Parse a non-negative integer option such as ``--min-size``."""
    try:
        value = int(text.strip())
    except ValueError:
        raise InvalidArgument(f"Invalid {name} ({text}), must be a non-negative integer") from None
    if value < 0:
        raise InvalidArgument(f"Invalid {name} ({text}), must be a non-negative integer")
    return value
