"""Fuse adjacent, identically offset match pairs into larger rectangles.

Two pairs are aligned when their first-image regions share a full edge
(same row span and touching horizontally, or same column span and
touching vertically) and their second-image regions touch along the
same side.  Aligned pairs are replaced by the pair of bounding
rectangles until no aligned pairs remain.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .grid import MatchPair, Region

logger = logging.getLogger(__name__)

RIGHT = "right"
LEFT = "left"
BELOW = "below"
ABOVE = "above"


def direction(a: Region, b: Region) -> Optional[str]:
    """Side of ``a`` that ``b`` continues across a full shared edge."""
    if a.is_empty or b.is_empty or a.grid is not b.grid:
        return None
    if a.y == b.y and a.height == b.height:
        if a.right == b.x:
            return RIGHT
        if b.right == a.x:
            return LEFT
    if a.x == b.x and a.width == b.width:
        if a.bottom == b.y:
            return BELOW
        if b.bottom == a.y:
            return ABOVE
    return None


def aligned(p: MatchPair, q: MatchPair) -> bool:
    side = direction(p.first, q.first)
    return side is not None and side == direction(p.second, q.second)


def fuse(p: MatchPair, q: MatchPair) -> MatchPair:
    return MatchPair(p.first.bounding(q.first), p.second.bounding(q.second))


def _index(pairs: List[MatchPair]) -> Dict[Tuple[int, int], List[MatchPair]]:
    by_origin: Dict[Tuple[int, int], List[MatchPair]] = {}
    for pair in pairs:
        by_origin.setdefault((pair.first.x, pair.first.y), []).append(pair)
    return by_origin


def _find_aligned(
    pairs: List[MatchPair],
) -> Optional[Tuple[MatchPair, MatchPair]]:
    by_origin = _index(pairs)
    for pair in pairs:
        a = pair.first
        # Looking right and down is enough: every alignment is seen from
        # its left or upper member.
        for key in ((a.right, a.y), (a.x, a.bottom)):
            for other in by_origin.get(key, ()):
                if other is not pair and aligned(pair, other):
                    return pair, other
    return None


def merge(pairs: Iterable[MatchPair]) -> Set[MatchPair]:
    """Fuse aligned pairs until a fixed point is reached."""
    pending = sorted(set(pairs), key=MatchPair.sort_key)
    start = len(pending)
    while True:
        found = _find_aligned(pending)
        if found is None:
            break
        p, q = found
        pending.remove(p)
        pending.remove(q)
        pending.append(fuse(p, q))
        pending.sort(key=MatchPair.sort_key)
    logger.debug("Merged %d pairs into %d", start, len(pending))
    return set(pending)


def merge_regions(regions: Iterable[Region]) -> Set[Region]:
    """Fuse adjacent regions of one grid the same way pairs are fused."""
    merged = merge(MatchPair(region, region) for region in regions if not region.is_empty)
    return {pair.first for pair in merged}
