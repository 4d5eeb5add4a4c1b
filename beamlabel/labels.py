"""Label position and rotation from beam orientation."""

import math

from .config import LabelingConfig
from .models import Anchor, BeamRecord, LabelResult, MatchResult, Orientation, Point, Segment
from .primitives import AXIS_TOLERANCE


def classify_orientation(dx: float, dy: float, tolerance: float = AXIS_TOLERANCE) -> Orientation:
    if abs(dy) < tolerance:
        return Orientation.HORIZONTAL
    if abs(dx) < tolerance:
        return Orientation.VERTICAL
    return Orientation.DIAGONAL


def normalize_angle(degrees: float) -> float:
    """Fold an angle into (-90, 90] so text never reads upside down."""
    while degrees > 90.0:
        degrees -= 180.0
    while degrees <= -90.0:
        degrees += 180.0
    return degrees


def label_placement(
    midpoint: Point,
    dx: float,
    dy: float,
    margin: float,
    tolerance: float = AXIS_TOLERANCE,
) -> tuple[Point, float, Orientation]:
    """Return (position, rotation in degrees, orientation)."""
    orientation = classify_orientation(dx, dy, tolerance)
    if orientation == Orientation.HORIZONTAL:
        return midpoint.offset(0.0, margin), 0.0, orientation
    if orientation == Orientation.VERTICAL:
        return midpoint.offset(-margin, 0.0), 90.0, orientation

    angle = normalize_angle(math.degrees(math.atan2(dy, dx)))
    offset = math.radians(angle + 90.0)
    position = midpoint.offset(margin * math.cos(offset), margin * math.sin(offset))
    return position, angle, orientation


def place_label(
    record: BeamRecord,
    anchor: Anchor,
    config: LabelingConfig,
    match: MatchResult | None = None,
) -> LabelResult:
    """Build the label for one beam.

    A matched line (or the theoretical segment) defines the beam direction.
    A single-point anchor takes its direction from its two grids: dx along the
    X grid line, dy along the Y grid line. Base-point anchors carry no grids
    and are labelled horizontally, centred on the point.
    """
    segment: Segment | None = match.line.segment if match else anchor.segment
    if segment is not None:
        position, rotation, orientation = label_placement(
            segment.midpoint, segment.dx, segment.dy, config.label_margin, config.axis_tolerance,
        )
    elif anchor.x_line is not None and anchor.y_line is not None:
        dx = anchor.x_line.end.x - anchor.x_line.start.x
        dy = anchor.y_line.end.y - anchor.y_line.start.y
        position, rotation, orientation = label_placement(
            anchor.points[0], dx, dy, config.label_margin, config.axis_tolerance,
        )
    else:
        position, rotation, orientation = anchor.points[0], 0.0, Orientation.HORIZONTAL

    return LabelResult(
        beam_id=record.beam_id,
        text=record.label,
        position=position,
        rotation=rotation,
        orientation=orientation,
        is_main=record.is_main,
        layer=config.label_layer(record.is_main),
        height=config.text_height,
        matched_handle=match.line.handle if match else None,
        match_distance=match.distance if match else None,
    )
