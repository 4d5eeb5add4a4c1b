"""Phase 2: Reconcile model grid names with drawing grid names.

Names are paired by position in their naturally sorted lists, one axis at a
time, and the whole table is shown to the user before it is used. Nothing is
written to the drawing unless the user accepts it.
"""

import logging
import re

from .errors import CorrespondenceRejected
from .models import (
    BeamDirection,
    BeamRecord,
    CorrespondenceMap,
    FloorScope,
    GridAxis,
    ModelGridSystem,
    RelativeGridRef,
)
from .prompts import Prompter

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"(\d+)")


def natural_key(name: str) -> list[tuple[int, int, str]]:
    """Sort key comparing digit runs as numbers: '2' < '10', 'B2' < 'B10'."""
    key: list[tuple[int, int, str]] = []
    for part in _DIGITS.split(name):
        if not part:
            continue
        if part.isdigit():
            key.append((0, int(part), ""))
        else:
            key.append((1, 0, part.casefold()))
    return key


def ordered_names(names) -> list[str]:
    return sorted(set(names), key=lambda n: (natural_key(n), n))


def referenced_grid_names(records: list[BeamRecord]) -> tuple[set[str], set[str]]:
    """X and Y grid names the beam records refer to."""
    xs: set[str] = set()
    ys: set[str] = set()
    for record in records:
        ref = record.grid
        if ref is None:
            continue
        if isinstance(ref, RelativeGridRef):
            if ref.direction == BeamDirection.HORIZONTAL:
                ys.add(ref.along_grid)
                xs.update(ref.between)
            else:
                xs.add(ref.along_grid)
                ys.update(ref.between)
        else:
            xs.add(ref.x_grid)
            ys.add(ref.y_grid)
    return xs, ys


def model_grid_names(
    records: list[BeamRecord],
    grid_system: ModelGridSystem | None = None,
) -> tuple[list[str], list[str]]:
    """The model's grid lists per axis.

    A declared grid system is authoritative and kept in its own order.
    Without one, the names the records refer to are naturally ordered.
    """
    if grid_system is not None:
        return list(dict.fromkeys(grid_system.x_grids)), list(dict.fromkeys(grid_system.y_grids))
    xs, ys = referenced_grid_names(records)
    return ordered_names(xs), ordered_names(ys)


def undeclared_grid_names(
    records: list[BeamRecord],
    grid_system: ModelGridSystem | None,
) -> tuple[list[str], list[str]]:
    """Names referenced by records but missing from the declared grid system."""
    if grid_system is None:
        return [], []
    xs, ys = referenced_grid_names(records)
    return (
        ordered_names(xs - set(grid_system.x_grids)),
        ordered_names(ys - set(grid_system.y_grids)),
    )


def drawing_grid_names(floor: FloorScope) -> tuple[list[str], list[str]]:
    return ordered_names(floor.x_grids), ordered_names(floor.y_grids)


def propose_correspondence(
    model_x: list[str],
    model_y: list[str],
    drawing_x: list[str],
    drawing_y: list[str],
    undeclared: tuple[list[str], list[str]] = ([], []),
) -> CorrespondenceMap:
    """Pair names index for index up to the shorter list on each axis.

    `undeclared` names never take part in the pairing; they are reported
    as unmapped after the names left over from the shorter list.
    """
    x_map = dict(zip(model_x, drawing_x))
    y_map = dict(zip(model_y, drawing_y))
    return CorrespondenceMap(
        x=x_map,
        y=y_map,
        unmapped_x=model_x[len(drawing_x):] + [n for n in undeclared[0] if n not in x_map],
        unmapped_y=model_y[len(drawing_y):] + [n for n in undeclared[1] if n not in y_map],
    )


def propose_for_floor(
    records: list[BeamRecord],
    floor: FloorScope,
    grid_system: ModelGridSystem | None = None,
) -> tuple[CorrespondenceMap, tuple[list[str], list[str]], tuple[list[str], list[str]]]:
    """Proposal plus the model and drawing name lists it was built from."""
    model = model_grid_names(records, grid_system)
    drawing = drawing_grid_names(floor)
    undeclared = undeclared_grid_names(records, grid_system)
    if undeclared[0] or undeclared[1]:
        logger.warning(
            "Grids referenced by beams but not in the model grid system - X: %s, Y: %s",
            undeclared[0], undeclared[1],
        )
    proposal = propose_correspondence(model[0], model[1], drawing[0], drawing[1], undeclared)
    return proposal, model, drawing


def confirm_correspondence(
    proposal: CorrespondenceMap,
    prompter: Prompter,
    model_names: tuple[list[str], list[str]] | None = None,
    drawing_names: tuple[list[str], list[str]] | None = None,
) -> CorrespondenceMap:
    """Show the proposal and ask for a Y/N answer.

    Returns the confirmed (frozen) map, or raises CorrespondenceRejected.
    """
    for line in format_correspondence(proposal, model_names, drawing_names):
        prompter.message(line)

    answer = prompter.get_keyword("Is the correspondence correct? [Yes(Y)/No(N)]", ["Y", "N"], default="Y")
    if answer != "Y":
        raise CorrespondenceRejected("Grid correspondence rejected by user")

    logger.info(
        "Grid correspondence confirmed: %d X, %d Y pairs",
        len(proposal.x), len(proposal.y),
    )
    return proposal.model_copy(update={"confirmed": True})


def format_correspondence(
    proposal: CorrespondenceMap,
    model_names: tuple[list[str], list[str]] | None = None,
    drawing_names: tuple[list[str], list[str]] | None = None,
) -> list[str]:
    lines = ["Grid correspondence (ordinal):"]
    if model_names and drawing_names:
        lines += [
            f"  Model X:   {', '.join(model_names[0])}",
            f"  Drawing X: {', '.join(drawing_names[0])}",
            f"  Model Y:   {', '.join(model_names[1])}",
            f"  Drawing Y: {', '.join(drawing_names[1])}",
        ]
    for axis, model_name, drawing_name in proposal.pairs:
        lines.append(f"    {axis.value} {model_name} -> {drawing_name}")
    for axis, unmapped in ((GridAxis.X, proposal.unmapped_x), (GridAxis.Y, proposal.unmapped_y)):
        if unmapped:
            lines.append(f"  Unmapped model {axis.value} grids: {', '.join(unmapped)}")
    return lines


def build_correspondence(
    records: list[BeamRecord],
    floor: FloorScope,
    prompter: Prompter,
    grid_system: ModelGridSystem | None = None,
) -> CorrespondenceMap:
    """Propose from the model records and the reference floor, then confirm."""
    proposal, model, drawing = propose_for_floor(records, floor, grid_system)
    if proposal.unmapped_x or proposal.unmapped_y:
        logger.warning(
            "Unmapped model grids - X: %s, Y: %s",
            proposal.unmapped_x, proposal.unmapped_y,
        )
    return confirm_correspondence(proposal, prompter, model, drawing)
