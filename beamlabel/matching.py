"""Match a theoretical beam segment against real line entities of the drawing."""

import logging

from .errors import SpatialMatchFailure
from .models import DrawingLine, FloorScope, MatchResult, Segment
from .primitives import dist

logger = logging.getLogger(__name__)


def endpoint_deviation(candidate: Segment, target: Segment) -> float:
    """Sum of endpoint distances under the better of the two endpoint pairings."""
    same = dist(candidate.start, target.start) + dist(candidate.end, target.end)
    swapped = dist(candidate.start, target.end) + dist(candidate.end, target.start)
    return min(same, swapped)


def lines_in_floor(lines: list[DrawingLine], floor: FloorScope) -> list[DrawingLine]:
    """Lines whose start point lies in the floor's band, in scan order."""
    return [ln for ln in lines if floor.contains(ln.start.x)]


def find_matching_line(
    beam_id: str,
    target: Segment,
    candidates: list[DrawingLine],
    tolerance: float,
) -> MatchResult:
    """Best candidate with total deviation below tolerance.

    Ties keep the first scanned candidate, so callers must pass lines in a
    stable order. Raises SpatialMatchFailure when nothing is close enough.
    """
    if tolerance < 0:
        raise ValueError(f"tolerance must be non-negative, got {tolerance}")

    best: MatchResult | None = None
    for line in candidates:
        d = endpoint_deviation(line.segment, target)
        if best is None or d < best.distance:
            best = MatchResult(line=line, distance=d)

    if best is None or not best.distance < tolerance:
        nearest = f"{best.distance:.1f}" if best else "n/a"
        raise SpatialMatchFailure(
            beam_id,
            f"no line within {tolerance:.1f} of the theoretical beam (nearest {nearest})",
        )

    logger.debug("Beam %s matched line %s (deviation %.2f)", beam_id, best.line.handle, best.distance)
    return best
