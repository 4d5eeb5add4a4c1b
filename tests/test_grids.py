"""Tests for grid catalog construction: line classification, bubbles, floor bands."""

import pytest

from beamlabel.errors import ConfigurationError
from beamlabel.grids import build_grid_catalog, guess_axis, parse_floor_title
from beamlabel.models import DrawingLine, GridAxis, GridMarker, Point
from beamlabel.primitives import classify_line, frame_origin_x, point_to_segment_distance
from beamlabel.store import InMemoryEntityStore

from conftest import FRAME, add_floor


def _line(x1, y1, x2, y2):
    return DrawingLine(handle="L", layer="S-GRID", start=Point(x=x1, y=y1), end=Point(x=x2, y=y2))


class TestLineClassification:

    def test_vertical_line_is_x_grid(self):
        assert classify_line(_line(100, 0, 100.5, 9000)) == GridAxis.X

    def test_horizontal_line_is_y_grid(self):
        assert classify_line(_line(0, 300, 9000, 300.9)) == GridAxis.Y

    def test_sloped_line_is_not_a_grid(self):
        assert classify_line(_line(0, 0, 9000, 5)) == GridAxis.UNKNOWN

    def test_degenerate_line_is_not_a_grid(self):
        assert classify_line(_line(10, 10, 10.2, 10.1)) == GridAxis.UNKNOWN

    def test_grid_line_carries_only_its_axis(self, store, config):
        grid = build_grid_catalog(store, config).reference_floor().grid(GridAxis.X, "G2")
        assert grid.axis == GridAxis.X
        assert "orientation" not in grid.model_dump()


class TestPointToSegment:

    def test_perpendicular_projection(self):
        seg = _line(0, 1000, 20000, 1000).segment
        assert point_to_segment_distance(Point(x=10, y=505), seg) == pytest.approx(495.0)

    def test_projection_clamped_to_endpoint(self):
        seg = _line(0, 0, 0, 1000).segment
        assert point_to_segment_distance(Point(x=300, y=1400), seg) == pytest.approx(500.0)


class TestFloorTitles:

    def test_alias_in_parentheses(self):
        assert parse_floor_title("二層結構平面圖(2F)") == ("二層結構平面圖", "2F")

    def test_full_width_parentheses(self):
        assert parse_floor_title("RF結構平面圖（RF）") == ("RF結構平面圖", "RF")

    def test_plain_title(self):
        assert parse_floor_title("  ROOF PLAN ") == ("ROOF PLAN", "")

    def test_frame_origin(self):
        assert frame_origin_x(73000, 50000) == 50000
        assert frame_origin_x(-1000, 50000) == -50000


class TestCatalog:

    def test_two_floors_ordered_by_origin(self, store, config):
        catalog = build_grid_catalog(store, config)
        assert [f.name for f in catalog.floors] == ["二層結構平面圖", "三層結構平面圖"]
        assert [f.origin_x for f in catalog.floors] == [0.0, FRAME]

    def test_grid_coordinates(self, store, config):
        floor = build_grid_catalog(store, config).floors[1]
        assert floor.names(GridAxis.X) == ["G1", "G2", "G3"]
        assert floor.names(GridAxis.Y) == ["GA", "GB"]
        assert floor.grid(GridAxis.X, "G2").coordinate == pytest.approx(FRAME + 13000)
        assert floor.grid(GridAxis.Y, "GB").coordinate == pytest.approx(10000)

    def test_floor_lookup_by_alias_or_name(self, store, config):
        catalog = build_grid_catalog(store, config)
        assert catalog.floor("3F").origin_x == FRAME
        assert catalog.floor("二層結構平面圖").alias == "2F"
        assert catalog.floor("9F") is None

    def test_bubble_near_line_is_classified(self, config):
        # Bubble 495 units below a horizontal grid line
        s = InMemoryEntityStore()
        s.add_text("S-TITLE", "PLAN(1F)", (100, -500))
        s.add_line("S-GRID", (0, 1000), (20000, 1000))
        s.add_text("S-GRID-T", "A", (10, 505))
        floor = build_grid_catalog(s, config).floors[0]
        marker = floor.markers[0]
        assert marker.axis == GridAxis.Y
        assert marker.distance == pytest.approx(495.0)
        assert floor.grid(GridAxis.Y, "A").coordinate == pytest.approx(1000)

    def test_bubble_beyond_threshold_is_unclassified(self, config):
        s = InMemoryEntityStore()
        s.add_text("S-TITLE", "PLAN(1F)", (100, -500))
        s.add_line("S-GRID", (0, 1000), (20000, 1000))
        s.add_text("S-GRID-T", "A", (10, 1600))
        s.add_text("S-GRID-T", "B", (10, 1400))
        floor = build_grid_catalog(s, config).floors[0]
        assert [m.text for m in floor.unclassified_markers] == ["A"]
        assert list(floor.y_grids) == ["B"]

    def test_lines_of_other_frames_are_ignored(self, config):
        s = InMemoryEntityStore()
        add_floor(s, "PLAN(1F)", 0.0)
        s.add_line("S-GRID", (49000 + FRAME, 0), (49000 + FRAME, 9000))
        floor = build_grid_catalog(s, config).floors[0]
        assert len(floor.x_grids) == 3

    def test_duplicate_bubbles_on_same_line(self, config):
        s = InMemoryEntityStore()
        add_floor(s, "PLAN(1F)", 0.0)
        s.add_text("S-GRID-T", "G1", (5000, -400))  # bottom bubble of the same line
        floor = build_grid_catalog(s, config).floors[0]
        assert len(floor.x_grids) == 3
        assert all(m.classified for m in floor.markers)

    def test_floor_without_grids_is_dropped(self, store, config):
        store.add_text("S-TITLE", "EMPTY(9F)", (FRAME * 4 + 100, 0))
        catalog = build_grid_catalog(store, config)
        assert len(catalog.floors) == 2

    def test_catalog_is_frozen(self, store, config):
        catalog = build_grid_catalog(store, config)
        with pytest.raises(Exception):
            catalog.frame_width = 1.0


class TestFatalConfiguration:

    def test_no_titles(self, config):
        s = InMemoryEntityStore()
        s.add_line("S-GRID", (0, 0), (0, 100))
        s.add_text("S-GRID-T", "1", (0, 120))
        with pytest.raises(ConfigurationError, match="S-TITLE"):
            build_grid_catalog(s, config)

    def test_no_bubbles(self, config):
        s = InMemoryEntityStore()
        s.add_text("S-TITLE", "PLAN", (0, 0))
        s.add_line("S-GRID", (0, 0), (0, 100))
        with pytest.raises(ConfigurationError, match="S-GRID-T"):
            build_grid_catalog(s, config)

    def test_no_grid_lines(self, config):
        s = InMemoryEntityStore()
        s.add_text("S-TITLE", "PLAN", (0, 0))
        s.add_text("S-GRID-T", "1", (0, 120))
        with pytest.raises(ConfigurationError, match="S-GRID"):
            build_grid_catalog(s, config)

    def test_layer_names_are_case_insensitive(self, config):
        s = InMemoryEntityStore()
        add_floor(s, "PLAN(1F)", 0.0)
        lowered = InMemoryEntityStore(
            lines=[ln.model_copy(update={"layer": ln.layer.lower()}) for ln in s.lines()],
            texts=[t.model_copy(update={"layer": t.layer.lower()}) for t in s.texts("S-TITLE") + s.texts("S-GRID-T")],
        )
        assert len(build_grid_catalog(lowered, config).floors) == 1


class TestAxisFallback:

    def _marker(self, x, y):
        return GridMarker(text="?", position=Point(x=x, y=y))

    def test_same_row_means_x_grid(self):
        previous = [self._marker(0, 20000), self._marker(8000, 20100)]
        assert guess_axis(Point(x=16000, y=20050), previous, 1000) == GridAxis.X

    def test_same_column_means_y_grid(self):
        previous = [self._marker(-500, 0), self._marker(-400, 8000)]
        assert guess_axis(Point(x=-450, y=16000), previous, 1000) == GridAxis.Y

    def test_tie_is_unknown(self):
        assert guess_axis(Point(x=0, y=0), [], 1000) == GridAxis.UNKNOWN

    def test_floor_without_lines_uses_bubble_rows(self, config):
        s = InMemoryEntityStore()
        s.add_text("S-TITLE", "A(1F)", (1000, -5000))
        s.add_text("S-TITLE", "B(2F)", (FRAME + 1000, -5000))
        s.add_line("S-GRID", (FRAME + 100, 0), (FRAME + 100, 1000))
        for name, x in (("1", 0), ("2", 8000), ("3", 16000)):
            s.add_text("S-GRID-T", name, (x, 20000))
        floor = build_grid_catalog(s, config).floor("1F")
        # First bubble has nothing to compare with; the next two share its row
        assert floor.names(GridAxis.X) == ["2", "3"]
        assert floor.grid(GridAxis.X, "3").coordinate == 16000
        assert [m.text for m in floor.unclassified_markers] == ["1"]
