"""Main labeling pipeline. Runs the three phases: scan, correspond, place."""

import logging
from collections import Counter

from .anchors import detect_base_point, resolve_anchor
from .config import LabelingConfig
from .correspondence import build_correspondence
from .errors import (
    BeamSkipped,
    ConfigurationError,
    GridResolutionFailure,
    OperationCancelled,
)
from .grids import build_grid_catalog
from .labels import place_label
from .matching import find_matching_line, lines_in_floor
from .models import (
    BasePointMode,
    BeamRecord,
    BeamRecordSet,
    CorrespondenceMap,
    DrawingLine,
    FloorScope,
    GridCatalog,
    LabelResult,
    Point,
    RunSummary,
    SkipReason,
    SkipRecord,
)
from .prompts import Prompter
from .quality import run_quality_gates
from .store import EntityStore

logger = logging.getLogger(__name__)


def run_labeling(
    store: EntityStore,
    beams: BeamRecordSet,
    prompter: Prompter,
    config: LabelingConfig,
    base_point: Point | BasePointMode | None = None,
    floor: str | None = None,
) -> RunSummary:
    """
    Full labeling run.

    Args:
        store: Drawing to read grids from and append labels to.
        beams: Parsed model-side records.
        prompter: Asked to confirm the grid correspondence, and for the base
            point when one has to be picked.
        config: Layers, tolerances and label style.
        base_point: A drawing point for the model origin, or a BasePointMode
            saying how to obtain one. Beams with a model midpoint are then
            placed relative to it.
        floor: Only label beams on this story (model story or drawing floor
            name). None labels every floor.

    Returns:
        RunSummary with placed labels and skipped / dropped records.

    ConfigurationError, CorrespondenceRejected and OperationCancelled
    propagate before anything is written to the store.
    """
    summary = RunSummary(dropped=list(beams.dropped))

    # Phase 1: read the drawing (grids and beam line candidates)
    catalog = build_grid_catalog(store, config)
    beam_lines = beam_line_candidates(store, config)
    logger.info("Catalog: %d floor(s), %d beam line candidates", len(catalog.floors), len(beam_lines))

    records = beams.records
    scope = catalog.reference_floor()
    if floor is not None:
        records = records_on_floor(records, catalog, floor)
        scope = catalog.floor(floor) or scope
        logger.info("Floor %s: %d of %d beams", floor, len(records), len(beams.records))

    # Phase 2: grid correspondence over the whole model, confirmed by the user
    correspondence = build_correspondence(
        beams.records, catalog.reference_floor(), prompter, beams.grid_system,
    )
    summary.correspondence = correspondence
    summary.quality = run_quality_gates(catalog, correspondence)

    if isinstance(base_point, BasePointMode):
        base_point = choose_base_point(base_point, scope, correspondence, prompter, config)

    # Phase 3: place labels, one beam at a time
    store.ensure_layer(config.main_label_layer, config.label_color)
    store.ensure_layer(config.secondary_label_layer, config.label_color)
    style = config.text_style
    if not store.has_text_style(style):
        logger.info("Text style '%s' not in drawing, using '%s'", style, config.fallback_text_style)
        style = config.fallback_text_style
    summary.text_style = style

    for record in records:
        try:
            label = label_beam(record, catalog, correspondence, beam_lines, config, base_point)
            store.append_label(label, style, config.label_color)
        except BeamSkipped as e:
            reason = (
                SkipReason.GRID_RESOLUTION
                if isinstance(e, GridResolutionFailure)
                else SkipReason.SPATIAL_MATCH
            )
            logger.warning(
                "Skipping beam %s (%s): %s", record.beam_id, record.label, e.message,
                extra={"beam_id": record.beam_id},
            )
            summary.skipped.append(SkipRecord(
                beam_id=record.beam_id, label=record.label, reason=reason, message=e.message,
            ))
            continue
        except Exception as e:
            logger.exception(
                "Failed to place label %s for beam %s", record.label, record.beam_id,
                extra={"beam_id": record.beam_id},
            )
            summary.skipped.append(SkipRecord(
                beam_id=record.beam_id,
                label=record.label,
                reason=SkipReason.PLACEMENT_ERROR,
                message=str(e),
            ))
            continue
        summary.placed.append(label)

    logger.info(
        "Placed %d/%d labels, skipped %d %s",
        summary.placed_count, len(records), summary.skipped_count, summary.skip_counts,
    )
    return summary


def records_on_floor(records: list[BeamRecord], catalog: GridCatalog, floor: str) -> list[BeamRecord]:
    """Records whose story is `floor`, or the drawing floor `floor` names."""
    wanted = floor.strip()
    scope = catalog.floor(wanted)
    selected = [
        r for r in records
        if r.story.strip() == wanted or (scope is not None and scope.matches(r.story))
    ]
    if not selected:
        raise ConfigurationError(f"No beams on floor '{wanted}'")
    return selected


def story_names(records: list[BeamRecord]) -> list[str]:
    """Distinct stories in order of first appearance."""
    return list(dict.fromkeys(r.story.strip() for r in records if r.story.strip()))


def select_floor(records: list[BeamRecord], prompter: Prompter) -> str | None:
    """Ask which story to label. None means every story.

    A blank answer selects every story; anything that is not a listed
    number cancels the run.
    """
    stories = story_names(records)
    if not stories:
        return None
    counts = Counter(r.story.strip() for r in records)
    prompter.message("Floors in the beam data:")
    for i, story in enumerate(stories, start=1):
        prompter.message(f"  {i}. {story} ({counts[story]} beams)")

    answer = prompter.get_string(f"Floor number (1-{len(stories)}), blank for all", default="")
    if answer is None:
        raise OperationCancelled("Floor selection cancelled")
    if not answer.strip():
        return None
    try:
        index = int(answer)
    except ValueError:
        raise OperationCancelled(f"Invalid floor number: {answer!r}")
    if not 1 <= index <= len(stories):
        raise OperationCancelled(f"Invalid floor number: {index}")
    return stories[index - 1]


def choose_base_point(
    mode: BasePointMode,
    floor: FloorScope,
    correspondence: CorrespondenceMap,
    prompter: Prompter,
    config: LabelingConfig,
) -> Point:
    """Detect or ask for the drawing point of the model origin.

    Automatic detection falls back to a picked point. Raises
    OperationCancelled if the pick is cancelled.
    """
    if mode == BasePointMode.AUTO:
        point = detect_base_point(floor, correspondence, config.base_grid_x, config.base_grid_y)
        if point is not None:
            prompter.message(
                f"Base point at grids {config.base_grid_x}/{config.base_grid_y}: ({point.x:.1f}, {point.y:.1f})"
            )
            return point
        prompter.message(
            f"Grids {config.base_grid_x}/{config.base_grid_y} not found on {floor.name}, pick the base point"
        )

    point = prompter.get_point("Base point (model origin)")
    if point is None:
        raise OperationCancelled("No base point given")
    logger.info("Base point (%.1f, %.1f)", point.x, point.y)
    return point


def label_beam(
    record: BeamRecord,
    catalog: GridCatalog,
    correspondence: CorrespondenceMap,
    beam_lines: list[DrawingLine],
    config: LabelingConfig,
    base_point: Point | None = None,
) -> LabelResult:
    """Resolve, match and place one beam. Raises a BeamSkipped subclass on failure."""
    anchor = resolve_anchor(record, catalog, correspondence, config.scale, base_point)

    match = None
    segment = anchor.segment
    if segment is not None and config.match_lines:
        floor = catalog.floor(anchor.floor)
        candidates = lines_in_floor(beam_lines, floor)
        tolerance = config.match_tolerance if config.match_tolerance is not None else anchor.tolerance
        match = find_matching_line(record.beam_id, segment, candidates, tolerance)

    return place_label(record, anchor, config, match)


def beam_line_candidates(store: EntityStore, config: LabelingConfig) -> list[DrawingLine]:
    """Lines that may represent beams, in store order."""
    if config.beam_layers:
        lines: list[DrawingLine] = []
        for layer in config.beam_layers:
            lines.extend(store.lines(layer))
        return lines
    grid_layer = config.grid_layer.casefold()
    return [ln for ln in store.lines() if ln.layer.casefold() != grid_layer]
