"""Geometry helpers shared by the catalog, matcher and placer."""

import math

from .models import DrawingLine, GridAxis, Point, Segment

# Lines whose endpoints differ by less than this on one axis are axis-aligned.
AXIS_TOLERANCE = 1.0


def dist(a: Point, b: Point) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def is_vertical(segment: Segment, tolerance: float = AXIS_TOLERANCE) -> bool:
    return abs(segment.dx) < tolerance


def is_horizontal(segment: Segment, tolerance: float = AXIS_TOLERANCE) -> bool:
    return abs(segment.dy) < tolerance


def classify_line(line: DrawingLine, tolerance: float = AXIS_TOLERANCE) -> GridAxis:
    """Vertical lines carry X grids, horizontal lines carry Y grids."""
    seg = line.segment
    if seg.length < tolerance:
        return GridAxis.UNKNOWN
    if is_vertical(seg, tolerance):
        return GridAxis.X
    if is_horizontal(seg, tolerance):
        return GridAxis.Y
    return GridAxis.UNKNOWN


def point_to_segment_distance(point: Point, segment: Segment) -> float:
    """Distance from point to its projection on the segment (parameter clamped to [0, 1])."""
    dx = segment.dx
    dy = segment.dy
    length_sq = dx * dx + dy * dy
    if length_sq < 1e-10:
        return dist(point, segment.start)
    t = ((point.x - segment.start.x) * dx + (point.y - segment.start.y) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    proj = Point(x=segment.start.x + t * dx, y=segment.start.y + t * dy)
    return dist(point, proj)


def frame_origin_x(x: float, frame_width: float) -> float:
    return math.floor(x / frame_width) * frame_width


def in_band(x: float, origin_x: float, frame_width: float) -> bool:
    return origin_x <= x < origin_x + frame_width
