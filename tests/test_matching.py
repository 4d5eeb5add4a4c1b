"""Tests for the endpoint-deviation line matcher."""

import pytest

from beamlabel.errors import SpatialMatchFailure
from beamlabel.matching import endpoint_deviation, find_matching_line, lines_in_floor
from beamlabel.models import DrawingLine, FloorScope, Point, Segment


def _line(handle, x1, y1, x2, y2):
    return DrawingLine(handle=handle, layer="S-BEAM", start=Point(x=x1, y=y1), end=Point(x=x2, y=y2))


def _seg(x1, y1, x2, y2):
    return Segment(start=Point(x=x1, y=y1), end=Point(x=x2, y=y2))


class TestDeviation:

    def test_identical_segment(self):
        assert endpoint_deviation(_seg(0, 0, 10, 0), _seg(0, 0, 10, 0)) == 0

    def test_direction_does_not_matter(self):
        assert endpoint_deviation(_seg(10, 0, 0, 0), _seg(0, 0, 10, 0)) == 0

    def test_sum_of_endpoint_distances(self):
        assert endpoint_deviation(_seg(0, 3, 10, 4), _seg(0, 0, 10, 0)) == pytest.approx(7.0)


class TestFindMatchingLine:

    def test_exact_line_found(self):
        target = _seg(1000, 5000, 1000, 9000)
        result = find_matching_line(
            "B1", target,
            [_line("a", 0, 0, 0, 4000), _line("b", 1000, 9000, 1000, 5000)],
            500,
        )
        assert result.line.handle == "b"
        assert result.distance == 0

    def test_result_independent_of_order_without_ties(self):
        target = _seg(0, 0, 1000, 0)
        lines = [_line("a", 0, 20, 1000, 20), _line("b", 0, 5, 1000, 5), _line("c", 0, 90, 1000, 0)]
        forward = find_matching_line("B1", target, lines, 100)
        backward = find_matching_line("B1", target, list(reversed(lines)), 100)
        assert forward.line.handle == backward.line.handle == "b"

    def test_tie_keeps_first_candidate(self):
        target = _seg(0, 0, 1000, 0)
        lines = [_line("up", 0, 10, 1000, 10), _line("down", 0, -10, 1000, -10)]
        assert find_matching_line("B1", target, lines, 100).line.handle == "up"

    def test_deviation_must_be_strictly_below_tolerance(self):
        target = _seg(0, 0, 1000, 0)
        with pytest.raises(SpatialMatchFailure):
            find_matching_line("B1", target, [_line("a", 0, 50, 1000, 50)], 100)

    def test_no_candidates(self):
        with pytest.raises(SpatialMatchFailure) as exc:
            find_matching_line("B9", _seg(0, 0, 1, 0), [], 100)
        assert exc.value.beam_id == "B9"

    def test_zero_tolerance_never_matches(self):
        target = _seg(0, 0, 1000, 0)
        with pytest.raises(SpatialMatchFailure):
            find_matching_line("B1", target, [_line("a", 0, 0, 1000, 0)], 0)

    def test_negative_tolerance_is_an_error(self):
        with pytest.raises(ValueError):
            find_matching_line("B1", _seg(0, 0, 1, 0), [], -1)


class TestFloorRestriction:

    def test_lines_outside_band_are_excluded(self):
        floor = FloorScope(name="2F", title_position=Point(x=1, y=1), origin_x=50000, frame_width=50000)
        lines = [
            _line("in", 60000, 0, 61000, 0),
            _line("left", 49999, 0, 51000, 0),
            _line("right", 100000, 0, 101000, 0),
        ]
        assert [ln.handle for ln in lines_in_floor(lines, floor)] == ["in"]
