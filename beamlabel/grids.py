"""Phase 1: Build the grid catalog (floor scopes, grid lines, bubbles) from the drawing."""

import logging

from .config import LabelingConfig
from .errors import ConfigurationError
from .models import (
    DrawingLine,
    DrawingText,
    FloorScope,
    GridAxis,
    GridCatalog,
    GridLine,
    GridMarker,
    Point,
)
from .primitives import classify_line, frame_origin_x, in_band, point_to_segment_distance
from .store import EntityStore

logger = logging.getLogger(__name__)


def build_grid_catalog(store: EntityStore, config: LabelingConfig) -> GridCatalog:
    """Scan the drawing once and return the frozen catalog.

    Raises ConfigurationError when the title, bubble or grid-line layer is
    empty, or when no floor ends up with any grid.
    """
    titles = store.texts(config.title_layer)
    if not titles:
        raise ConfigurationError(f"No floor titles found on layer '{config.title_layer}'")
    markers = [t for t in store.texts(config.marker_layer) if t.text.strip()]
    if not markers:
        raise ConfigurationError(f"No grid bubbles found on layer '{config.marker_layer}'")
    lines = store.lines(config.grid_layer)
    if not lines:
        raise ConfigurationError(f"No grid lines found on layer '{config.grid_layer}'")

    logger.info(
        "Scanning grids: %d floor titles, %d bubbles, %d grid lines",
        len(titles), len(markers), len(lines),
    )

    floors: list[FloorScope] = []
    for title in titles:
        name, alias = parse_floor_title(title.text)
        if not name:
            continue
        floor = _build_floor(name, alias, title, markers, lines, config)
        if not floor.x_grids and not floor.y_grids:
            logger.warning("Floor '%s' has no recognisable grids, ignoring it", name)
            continue
        logger.info(
            "  %s: %d X grids, %d Y grids, %d unclassified bubbles",
            floor.name, len(floor.x_grids), len(floor.y_grids),
            len(floor.unclassified_markers),
        )
        floors.append(floor)

    if not floors:
        raise ConfigurationError("No floor with grids found in the drawing")

    floors.sort(key=lambda f: f.origin_x)
    return GridCatalog(frame_width=config.frame_width, floors=floors)


def parse_floor_title(text: str) -> tuple[str, str]:
    """Split '二層結構平面圖(2F)' into ('二層結構平面圖', '2F')."""
    clean = text.strip()
    for open_ch, close_ch in (("(", ")"), ("（", "）")):
        idx = clean.find(open_ch)
        if idx > 0:
            alias = clean[idx + 1:]
            end = alias.find(close_ch)
            if end >= 0:
                alias = alias[:end]
            return clean[:idx].strip(), alias.strip()
    return clean, ""


def _build_floor(
    name: str,
    alias: str,
    title: DrawingText,
    markers: list[DrawingText],
    lines: list[DrawingLine],
    config: LabelingConfig,
) -> FloorScope:
    origin = frame_origin_x(title.position.x, config.frame_width)
    width = config.frame_width

    floor_markers = [m for m in markers if in_band(m.position.x, origin, width)]
    candidates: list[tuple[DrawingLine, GridAxis]] = []
    for ln in lines:
        if not in_band(ln.start.x, origin, width):
            continue
        axis = classify_line(ln, config.axis_tolerance)
        if axis != GridAxis.UNKNOWN:
            candidates.append((ln, axis))

    x_grids: dict[str, GridLine] = {}
    y_grids: dict[str, GridLine] = {}
    scanned: list[GridMarker] = []

    for marker in floor_markers:
        label = marker.text.strip()
        if candidates:
            result = associate_marker(marker.position, candidates, config.marker_threshold)
            if result is None:
                scanned.append(GridMarker(text=label, position=marker.position))
                logger.debug("Bubble '%s' at (%.1f, %.1f) has no grid line nearby",
                             label, marker.position.x, marker.position.y)
                continue
            line, axis, distance = result
            grid = _grid_from_line(label, axis, line)
        else:
            axis = guess_axis(marker.position, scanned, config.fallback_tolerance)
            distance = None
            if axis == GridAxis.UNKNOWN:
                scanned.append(GridMarker(text=label, position=marker.position))
                continue
            grid = _grid_from_marker(label, axis, marker.position)

        scanned.append(GridMarker(
            text=label,
            position=marker.position,
            axis=axis,
            line_handle=grid.handle,
            distance=distance,
        ))
        _register(x_grids if axis == GridAxis.X else y_grids, grid, name)

    return FloorScope(
        name=name,
        alias=alias,
        title_position=title.position,
        origin_x=origin,
        frame_width=width,
        x_grids=x_grids,
        y_grids=y_grids,
        markers=scanned,
    )


def associate_marker(
    position: Point,
    candidates: list[tuple[DrawingLine, GridAxis]],
    threshold: float,
) -> tuple[DrawingLine, GridAxis, float] | None:
    """Nearest candidate line by clamped perpendicular distance, if below threshold."""
    best: tuple[DrawingLine, GridAxis, float] | None = None
    for line, axis in candidates:
        d = point_to_segment_distance(position, line.segment)
        if best is None or d < best[2]:
            best = (line, axis, d)
    if best is None or best[2] >= threshold:
        return None
    return best


def guess_axis(position: Point, previous: list[GridMarker], tolerance: float) -> GridAxis:
    """Guess a bubble's axis from bubbles seen before it when no line is available.

    Bubbles sharing a row (near-equal Y) label X grids; bubbles sharing a
    column label Y grids. A tie gives UNKNOWN.
    """
    same_y = sum(1 for m in previous if abs(m.position.y - position.y) < tolerance)
    same_x = sum(1 for m in previous if abs(m.position.x - position.x) < tolerance)
    if same_y > same_x:
        return GridAxis.X
    if same_x > same_y:
        return GridAxis.Y
    return GridAxis.UNKNOWN


def _grid_from_line(name: str, axis: GridAxis, line: DrawingLine) -> GridLine:
    if axis == GridAxis.X:
        coordinate = (line.start.x + line.end.x) / 2
    else:
        coordinate = (line.start.y + line.end.y) / 2
    return GridLine(
        name=name,
        axis=axis,
        coordinate=coordinate,
        start=line.start,
        end=line.end,
        handle=line.handle,
    )


def _grid_from_marker(name: str, axis: GridAxis, position: Point) -> GridLine:
    coordinate = position.x if axis == GridAxis.X else position.y
    return GridLine(name=name, axis=axis, coordinate=coordinate, start=position, end=position)


def _register(table: dict[str, GridLine], grid: GridLine, floor_name: str) -> None:
    existing = table.get(grid.name)
    if existing is None:
        table[grid.name] = grid
        return
    # Bubbles at both ends of one grid line are expected; a different line is not.
    if existing.handle != grid.handle:
        logger.warning(
            "Floor '%s': grid name '%s' (%s) appears on two lines, keeping the first",
            floor_name, grid.name, grid.axis.value,
        )
