"""Turn a beam's grid reference into theoretical anchor point(s) in drawing units."""

import logging

from .errors import GridResolutionFailure
from .models import (
    AbsoluteGridRef,
    Anchor,
    BeamDirection,
    BeamRecord,
    CorrespondenceMap,
    FloorScope,
    GridAxis,
    GridCatalog,
    GridLine,
    Point,
    RelativeGridRef,
)

logger = logging.getLogger(__name__)


def resolve_anchor(
    record: BeamRecord,
    catalog: GridCatalog,
    correspondence: CorrespondenceMap,
    scale: float,
    base_point: Point | None = None,
) -> Anchor:
    """Resolve one beam. Raises GridResolutionFailure if any reference is missing.

    With a base point, beams carrying a model midpoint are placed at
    base + midpoint * scale and their grid reference is not used.
    """
    if base_point is not None and record.midpoint is not None:
        return _resolve_from_base_point(record, catalog, base_point, scale)

    if record.grid is None:
        raise GridResolutionFailure(record.beam_id, "beam has no grid reference")

    floor = catalog.floor(record.story)
    if floor is None:
        raise GridResolutionFailure(record.beam_id, f"floor '{record.story}' not found in the drawing")

    if isinstance(record.grid, RelativeGridRef):
        return _resolve_relative(record, record.grid, floor, correspondence, scale)
    return _resolve_absolute(record, record.grid, floor, correspondence)


def lookup_grid(
    beam_id: str,
    floor: FloorScope,
    correspondence: CorrespondenceMap,
    axis: GridAxis,
    model_name: str,
) -> GridLine:
    drawing_name = correspondence.drawing_name(axis, model_name)
    if drawing_name is None:
        raise GridResolutionFailure(beam_id, f"model {axis.value} grid '{model_name}' is not mapped")
    grid = floor.grid(axis, drawing_name)
    if grid is None:
        raise GridResolutionFailure(
            beam_id,
            f"{axis.value} grid '{drawing_name}' (model '{model_name}') not found on floor '{floor.name}'",
        )
    return grid


def _resolve_absolute(
    record: BeamRecord,
    ref: AbsoluteGridRef,
    floor: FloorScope,
    correspondence: CorrespondenceMap,
) -> Anchor:
    gx = lookup_grid(record.beam_id, floor, correspondence, GridAxis.X, ref.x_grid)
    gy = lookup_grid(record.beam_id, floor, correspondence, GridAxis.Y, ref.y_grid)
    return Anchor(
        beam_id=record.beam_id,
        floor=floor.name,
        points=[Point(x=gx.coordinate, y=gy.coordinate)],
        x_line=gx,
        y_line=gy,
    )


def _resolve_relative(
    record: BeamRecord,
    ref: RelativeGridRef,
    floor: FloorScope,
    correspondence: CorrespondenceMap,
    scale: float,
) -> Anchor:
    first, second = ref.between
    if ref.direction == BeamDirection.HORIZONTAL:
        # Along a Y grid, between two X grids
        gy = lookup_grid(record.beam_id, floor, correspondence, GridAxis.Y, ref.along_grid)
        gx1 = lookup_grid(record.beam_id, floor, correspondence, GridAxis.X, first)
        gx2 = lookup_grid(record.beam_id, floor, correspondence, GridAxis.X, second)
        points = [
            Point(x=gx1.coordinate, y=gy.coordinate),
            Point(x=gx2.coordinate, y=gy.coordinate),
        ]
        x_line, y_line = gx1, gy
    else:
        gx = lookup_grid(record.beam_id, floor, correspondence, GridAxis.X, ref.along_grid)
        gy1 = lookup_grid(record.beam_id, floor, correspondence, GridAxis.Y, first)
        gy2 = lookup_grid(record.beam_id, floor, correspondence, GridAxis.Y, second)
        points = [
            Point(x=gx.coordinate, y=gy1.coordinate),
            Point(x=gx.coordinate, y=gy2.coordinate),
        ]
        x_line, y_line = gx, gy1

    return Anchor(
        beam_id=record.beam_id,
        floor=floor.name,
        points=points,
        x_line=x_line,
        y_line=y_line,
        tolerance=ref.tolerance * scale,
    )


def _resolve_from_base_point(
    record: BeamRecord,
    catalog: GridCatalog,
    base_point: Point,
    scale: float,
) -> Anchor:
    floor = catalog.floor(record.story) if record.story else None
    mid = record.midpoint
    return Anchor(
        beam_id=record.beam_id,
        floor=floor.name if floor else None,
        points=[Point(x=base_point.x + mid.x * scale, y=base_point.y + mid.y * scale)],
    )


def detect_base_point(
    floor: FloorScope,
    correspondence: CorrespondenceMap,
    x_grid: str = "0",
    y_grid: str = "A",
) -> Point | None:
    """Model origin on one floor: the intersection of the two origin grids.

    The model names go through the correspondence; an unmapped name is looked
    up as a drawing name. Returns None if either grid is missing.
    """
    gx = floor.grid(GridAxis.X, correspondence.drawing_name(GridAxis.X, x_grid) or x_grid)
    gy = floor.grid(GridAxis.Y, correspondence.drawing_name(GridAxis.Y, y_grid) or y_grid)
    if gx is None or gy is None:
        logger.info("Origin grids %s/%s not found on floor '%s'", x_grid, y_grid, floor.name)
        return None
    return Point(x=gx.coordinate, y=gy.coordinate)
