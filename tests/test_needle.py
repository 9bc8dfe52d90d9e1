"""Tests for the sliding-window needle search."""

from __future__ import annotations

import numpy as np
import pytest

from img_diff.errors import BadRectangle
from img_diff.grid import PixelGrid, Region
from img_diff.needle import candidate_origins, find


# ---------------------------------------------------------------------------
# Synthetic image helpers
# ---------------------------------------------------------------------------


def _random_rgba(width: int, height: int, seed: int = 42) -> np.ndarray:
    rng = np.random.RandomState(seed)
    pixels = rng.randint(0, 256, (height, width, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return pixels


def _solid(width: int, height: int, color=(40, 80, 120, 255)) -> np.ndarray:
    return np.tile(np.array(color, dtype=np.uint8), (height, width, 1))


# ---------------------------------------------------------------------------
# Tests: basic search
# ---------------------------------------------------------------------------


class TestFind:
    def test_recoloured_block_scenario(self):
        hay = _solid(4, 4)
        hay[2:4, 1:3] = (250, 10, 10, 255)
        haystack = PixelGrid.from_array(hay)
        needle = PixelGrid.from_array(_solid(2, 2, (250, 10, 10, 255)))

        result = find(needle, haystack, 0)
        assert result == Region(1, 2, 2, 2, haystack)
        assert str(result) == "1,2+2x2"

    def test_crop_found_at_its_offset(self):
        hay = _random_rgba(20, 15)
        haystack = PixelGrid.from_array(hay)
        needle = PixelGrid.from_array(hay[4:7, 7:12])

        result = find(needle, haystack, 0)
        assert result is not None
        assert result.rect == (7, 4, 5, 3)
        assert result.grid is haystack

    def test_identical_images_match_at_origin(self):
        hay = _random_rgba(8, 8)
        result = find(PixelGrid.from_array(hay), PixelGrid.from_array(hay), 0)
        assert result.rect == (0, 0, 8, 8)

    def test_not_found_returns_none(self):
        haystack = PixelGrid.from_array(_solid(6, 6))
        needle = PixelGrid.from_array(_solid(2, 2, (0, 0, 0, 255)))
        assert find(needle, haystack, 0) is None

    def test_needle_larger_than_haystack(self):
        haystack = PixelGrid.from_array(_solid(4, 4))
        with pytest.raises(BadRectangle):
            find(PixelGrid.from_array(_solid(5, 2)), haystack, 0)
        with pytest.raises(BadRectangle):
            find(PixelGrid.from_array(_solid(2, 5)), haystack, 0)

    def test_first_match_in_row_major_order(self):
        hay = _solid(6, 6)
        marker = (200, 200, 0, 255)
        hay[0, 3] = marker
        hay[2, 0] = marker
        needle = PixelGrid.from_array(np.array([[marker]], dtype=np.uint8))

        result = find(needle, PixelGrid.from_array(hay), 0)
        assert result.rect == (3, 0, 1, 1)


# ---------------------------------------------------------------------------
# Tests: transparency short-circuits
# ---------------------------------------------------------------------------


class TestTransparency:
    def test_transparent_needle_matches_trivially(self):
        needle = PixelGrid.from_array(np.zeros((9, 9, 4), dtype=np.uint8))
        haystack = PixelGrid.from_array(_solid(3, 3))
        result = find(needle, haystack, 0)
        assert result == Region.empty()
        assert str(result) == "0,0+0x0"

    def test_transparent_haystack_never_matches(self):
        needle = PixelGrid.from_array(_solid(2, 2))
        haystack = PixelGrid.from_array(np.zeros((5, 5, 4), dtype=np.uint8))
        assert find(needle, haystack, 1000) is None


# ---------------------------------------------------------------------------
# Tests: thresholds
# ---------------------------------------------------------------------------


class TestThreshold:
    def test_noisy_needle_needs_threshold(self):
        hay = _random_rgba(16, 16, seed=5)
        crop = hay[3:9, 6:12].astype(np.int16)
        crop[..., :3] = np.clip(crop[..., :3] + 3, 0, 255)
        needle = PixelGrid.from_array(crop.astype(np.uint8))
        haystack = PixelGrid.from_array(hay)

        assert find(needle, haystack, 0) is None
        result = find(needle, haystack, 6)
        assert result is not None and result.rect == (6, 3, 6, 6)

    def test_larger_threshold_never_loses_a_match(self):
        hay = _random_rgba(12, 12, seed=9)
        crop = hay[2:6, 5:9].astype(np.int16)
        crop[..., 0] = np.clip(crop[..., 0] + 10, 0, 255)
        needle = PixelGrid.from_array(crop.astype(np.uint8))
        haystack = PixelGrid.from_array(hay)

        found_at = None
        for threshold in [0, 2, 5, 9, 10, 20, 60, 200, 500]:
            result = find(needle, haystack, threshold)
            if found_at is not None:
                assert result is not None, f"threshold {threshold} lost the match"
                assert haystack.region(*found_at.rect).matches(
                    needle.full_region(), threshold
                )
            if result is not None and found_at is None:
                found_at = result
        assert found_at is not None

    def test_alpha_difference_counts(self):
        hay = _solid(3, 3, (10, 10, 10, 255))
        needle = PixelGrid.from_array(_solid(1, 1, (10, 10, 10, 155)))
        haystack = PixelGrid.from_array(hay)
        assert find(needle, haystack, 99) is None
        assert find(needle, haystack, 100).rect == (0, 0, 1, 1)


# ---------------------------------------------------------------------------
# Tests: crop-origin probe
# ---------------------------------------------------------------------------


class TestOriginProbe:
    def _setup(self):
        hay = _solid(10, 10)
        block = _random_rgba(3, 3, seed=11)
        hay[0:3, 0:3] = block
        hay[5:8, 5:8] = block
        haystack = PixelGrid.from_array(hay)
        needle = PixelGrid.from_array(hay).sub(5, 5, 3, 3)
        return needle, haystack

    def test_probe_prefers_crop_origin(self):
        needle, haystack = self._setup()
        assert needle.origin == (5, 5)
        assert find(needle, haystack, 0).rect == (5, 5, 3, 3)

    def test_scan_without_probe_finds_first(self):
        needle, haystack = self._setup()
        assert find(needle, haystack, 0, probe_origin=False).rect == (0, 0, 3, 3)

    def test_probe_outside_haystack_falls_back_to_scan(self):
        hay = _random_rgba(12, 12, seed=4)
        source = PixelGrid.from_array(hay)
        needle = source.sub(8, 8, 4, 4)
        haystack = PixelGrid.from_array(hay[4:12, 4:12])
        assert find(needle, haystack, 0).rect == (4, 4, 4, 4)


# ---------------------------------------------------------------------------
# Tests: candidate prefilter on uniform backgrounds
# ---------------------------------------------------------------------------

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)


class TestCandidateOrigins:
    def test_uniform_haystack_rejected_without_window_scan(self):
        hay = _solid(120, 90, WHITE)
        needle = _solid(40, 40, WHITE)
        needle[39, 39] = BLACK

        assert len(candidate_origins(needle, hay, 0)) == 0
        assert find(PixelGrid.from_array(needle), PixelGrid.from_array(hay), 0) is None

    def test_single_marker_pins_the_origin(self):
        hay = _solid(120, 90, WHITE)
        hay[60, 50] = BLACK
        needle = _solid(40, 40, WHITE)
        needle[39, 39] = BLACK

        assert candidate_origins(needle, hay, 0).tolist() == [[21, 11]]
        result = find(PixelGrid.from_array(needle), PixelGrid.from_array(hay), 0)
        assert result.rect == (11, 21, 40, 40)

    def test_interior_marker_is_used(self):
        hay = _solid(120, 90, WHITE)
        hay[50, 70] = BLACK
        needle = _solid(40, 30, WHITE)
        needle[13, 20] = BLACK

        assert candidate_origins(needle, hay, 0).tolist() == [[37, 50]]
        result = find(PixelGrid.from_array(needle), PixelGrid.from_array(hay), 0)
        assert result.rect == (50, 37, 40, 30)

    def test_never_drops_a_matching_window(self):
        hay = _random_rgba(14, 11, seed=17)
        needle = hay[2:6, 3:8].copy()
        haystack = PixelGrid.from_array(hay)
        target = PixelGrid.from_array(needle).full_region()

        for threshold in [0, 40, 150, 450]:
            candidates = {tuple(c) for c in candidate_origins(needle, hay, threshold).tolist()}
            for y in range(11 - 4 + 1):
                for x in range(14 - 5 + 1):
                    if haystack.region(x, y, 5, 4).matches(target, threshold):
                        assert (y, x) in candidates
