"""
Command line interface for img-diff.

Find mode (default) looks for the first image inside the second one and
prints the matching rectangle::

    img-diff button.png screenshot.png --threshold=2%
    img-diff old.png:10,20+32x16 new.png --cache=.img-cache -v

Chunks mode compares two equally sized images and prints the matching
areas as ``first second`` rectangle pairs, followed by the areas of the
first image that found no counterpart (prefixed with ``!``)::

    img-diff expected.png actual.png --chunks --min-size=4 --range=1

Exit status is 0 when something matched and 1 on no match or any error.
"""

from __future__ import annotations

import argparse
import contextlib
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .chunks import ChunkMatcher
from .config import (
    DEFAULT_MIN_SIZE,
    DEFAULT_RANGE,
    DEFAULT_THRESHOLD,
    MatchConfig,
    parse_count,
    parse_threshold,
)
from .errors import ImgDiffError, InvalidArgument
from .grid import MatchPair, PixelGrid
from .loader import load
from .merge import merge, merge_regions
from .needle import find

logger = logging.getLogger("img_diff")


class _Parser(argparse.ArgumentParser):
    """Argument parser that reports bad options with exit status 1."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _threshold(text: str) -> float:
    try:
        return parse_threshold(text)
    except InvalidArgument as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _min_size(text: str) -> int:
    try:
        return parse_count(text, "min-size")
    except InvalidArgument as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _range(text: str) -> int:
    try:
        return parse_count(text, "range")
    except InvalidArgument as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _setup_logging(verbose: int = 0):
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("img_diff").setLevel(level)


def build_parser() -> argparse.ArgumentParser:
    parser = _Parser(
        prog="img-diff",
        description="Locate matching regions between two images.",
    )
    parser.add_argument(
        "first",
        metavar="imga",
        help="Needle image (or first image in --chunks mode). "
             "Append :X,Y+WxH to select a sub-rectangle.",
    )
    parser.add_argument(
        "second",
        metavar="imgb",
        help="Haystack image (or second image in --chunks mode).",
    )
    parser.add_argument(
        "--threshold",
        type=_threshold,
        default=DEFAULT_THRESHOLD,
        help="Maximum per-pixel colour distance, raw or as a percentage "
             "such as 5%% (default: 0).",
    )
    parser.add_argument(
        "--cache",
        type=Path,
        default=None,
        help="Directory for decoded pixel caches.",
    )
    parser.add_argument(
        "--min-size",
        type=_min_size,
        default=DEFAULT_MIN_SIZE,
        help=f"Smallest chunk edge in --chunks mode (default: {DEFAULT_MIN_SIZE}).",
    )
    parser.add_argument(
        "--range",
        type=_range,
        default=DEFAULT_RANGE,
        help=f"Neighbouring chunks searched in --chunks mode (default: {DEFAULT_RANGE}).",
    )
    parser.add_argument(
        "--chunks",
        action="store_true",
        help="Compare two equally sized images chunk by chunk.",
    )
    parser.add_argument(
        "--no-probe",
        action="store_true",
        help="Do not try the needle's crop offset before scanning.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Be verbose; repeat for more detail.",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def _dump(label: str, grid: PixelGrid) -> None:
    logger.debug("%s %dx%d\n%s", label, grid.width, grid.height, grid.dump())


def _run_find(args: argparse.Namespace, config: MatchConfig) -> int:
    with contextlib.ExitStack() as stack:
        needle = stack.enter_context(load(args.first, config.cache_dir))
        if needle.all_transparent:
            print("0,0+0x0")
            return 0
        haystack = stack.enter_context(load(args.second, config.cache_dir))
        if config.verbose >= 3:
            _dump("NEEDLE", needle)
            _dump("HAYSTACK", haystack)

        result = find(
            needle,
            haystack,
            config.threshold,
            probe_origin=not args.no_probe,
        )
        if result is None:
            logger.error("Couldn't find area")
            return 1
        print(result)
        return 0


def _run_chunks(args: argparse.Namespace, config: MatchConfig) -> int:
    with contextlib.ExitStack() as stack:
        first = stack.enter_context(load(args.first, config.cache_dir))
        second = stack.enter_context(load(args.second, config.cache_dir))
        if config.verbose >= 3:
            _dump("FIRST", first)
            _dump("SECOND", second)

        matcher = ChunkMatcher.from_config(config)
        pairs: List[MatchPair] = sorted(
            merge(matcher.match(first, second)), key=MatchPair.sort_key
        )
        differing = sorted(merge_regions(matcher.mismatched), key=lambda r: r.rect)

        for pair in pairs:
            print(pair)
        for region in differing:
            print(f"! {region}")

        logger.info("%d matching areas, %d differing areas", len(pairs), len(differing))
        if not pairs:
            logger.error("Couldn't find any matching area")
            return 1
        return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = MatchConfig(
            threshold=args.threshold,
            min_size=args.min_size,
            range=args.range,
            cache_dir=args.cache,
            verbose=args.verbose,
        )
        if args.chunks:
            return _run_chunks(args, config)
        return _run_find(args, config)
    except ImgDiffError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
