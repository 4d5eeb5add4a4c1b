"""Command-line interface.

    beamlabel grids plan.dxf
    beamlabel label plan.dxf beams.csv --output plan_labeled.dxf

The label command asks for the frame width, the scale and the floor when they
are not given, shows the grid correspondence and waits for confirmation (skip
with --yes).
"""

import json
from pathlib import Path

import click

from .config import LabelingConfig, load_config
from .errors import BeamLabelError
from .grids import build_grid_catalog
from .logging_config import setup_logging
from .models import BasePointMode, GridAxis, RunSummary
from .pipeline import run_labeling, select_floor
from .prompts import ConsolePrompter
from .quality import run_quality_gates
from .records import load_beam_records
from .store import open_store


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.option("--json-logs", is_flag=True, help="Log as JSON lines")
@click.option("--env-file", type=click.Path(dir_okay=False), default=None, help="Read settings from this .env file")
@click.pass_context
def cli(ctx, verbose, json_logs, env_file):
    """Place beam labels on a structural grid drawing."""
    setup_logging("DEBUG" if verbose else "INFO", json_output=json_logs)
    ctx.obj = {"env_file": env_file}


def _config(ctx, **overrides) -> LabelingConfig:
    try:
        return load_config(ctx.obj.get("env_file"), **overrides)
    except BeamLabelError as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.argument("drawing", type=click.Path(exists=True, dir_okay=False))
@click.option("--frame-width", type=float, default=None, help="Width of one floor frame (drawing units)")
@click.option("--pdf-scale", type=float, default=1.0, show_default=True, help="Drawing units per PDF point")
@click.pass_context
def grids(ctx, drawing, frame_width, pdf_scale):
    """List floors and grids detected in DRAWING."""
    config = _config(ctx, frame_width=frame_width)
    try:
        store = _open(drawing, pdf_scale)
        catalog = build_grid_catalog(store, config)
    except BeamLabelError as e:
        raise click.ClickException(str(e)) from e

    for floor in catalog.floors:
        alias = f" ({floor.alias})" if floor.alias else ""
        click.echo(f"{floor.name}{alias}  frame x=[{floor.origin_x:.0f}, {floor.origin_x + floor.frame_width:.0f})")
        for axis in (GridAxis.X, GridAxis.Y):
            for name in floor.names(axis):
                grid = floor.grid(axis, name)
                click.echo(f"    {axis.value} {name:<6} @ {grid.coordinate:.2f}")
        for marker in floor.unclassified_markers:
            click.echo(f"    ? {marker.text:<6} @ ({marker.position.x:.1f}, {marker.position.y:.1f})")

    report = run_quality_gates(catalog)
    click.echo(f"\nQuality: {report.overall.value}")
    for check in report.checks:
        click.echo(f"  [{check.status.value}] {check.name}: {check.message}")


@cli.command()
@click.argument("drawing", type=click.Path(exists=True, dir_okay=False))
@click.argument("beams", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None, help="Where to save the labelled drawing")
@click.option("--frame-width", type=float, default=None, help="Width of one floor frame (drawing units)")
@click.option("--scale", type=float, default=None, help="Drawing units per model unit (1000 = m to mm)")
@click.option("--margin", type=float, default=None, help="Label offset from the beam")
@click.option("--text-height", type=float, default=None)
@click.option("--pdf-scale", type=float, default=1.0, show_default=True, help="Drawing units per PDF point")
@click.option(
    "--base-point",
    type=click.Choice([m.value for m in BasePointMode], case_sensitive=False),
    default=None,
    help="Place beams by midpoint from the model origin: pick it (manual) or find grids 0/A (auto)",
)
@click.option("--floor", default=None, help="Only label beams on this story")
@click.option("--no-match", is_flag=True, help="Place on the theoretical segment without matching lines")
@click.option("--yes", "-y", is_flag=True, help="Accept the grid correspondence and label every floor without asking")
@click.option("--summary-json", type=click.Path(dir_okay=False), default=None, help="Write the run summary as JSON")
@click.pass_context
def label(ctx, drawing, beams, output, frame_width, scale, margin, text_height, pdf_scale,
          base_point, floor, no_match, yes, summary_json):
    """Label the beams of BEAMS (JSON, CSV or Excel) in DRAWING (DXF or PDF)."""
    prompter = ConsolePrompter(assume_yes=yes)
    defaults = LabelingConfig()
    if not yes:
        if frame_width is None:
            frame_width = prompter.get_double("Frame width of one floor (drawing units)", default=defaults.frame_width)
        if scale is None:
            scale = prompter.get_double("Scale, model to drawing (1000 = 1 m to 1000 mm)", default=defaults.scale)

    config = _config(
        ctx,
        frame_width=frame_width,
        scale=scale,
        label_margin=margin,
        text_height=text_height,
        match_lines=False if no_match else None,
    )

    try:
        store = _open(drawing, pdf_scale)
        records = load_beam_records(beams)
        if floor is None and not yes:
            floor = select_floor(records.records, prompter)
        mode = BasePointMode(base_point.lower()) if base_point else None
        summary = run_labeling(store, records, prompter, config, base_point=mode, floor=floor)
    except BeamLabelError as e:
        raise click.ClickException(str(e)) from e

    target = Path(output) if output else _default_output(Path(drawing))
    store.save(target)
    _echo_summary(summary)
    click.echo(f"Saved {target}")

    if summary_json:
        Path(summary_json).write_text(
            json.dumps(summary.to_report(), ensure_ascii=False, indent=2), encoding="utf-8",
        )


def _open(drawing: str, pdf_scale: float):
    try:
        return open_store(drawing, unit_scale=pdf_scale) if drawing.lower().endswith(".pdf") else open_store(drawing)
    except ValueError as e:
        raise click.ClickException(str(e)) from e


def _default_output(drawing: Path) -> Path:
    return drawing.with_name(f"{drawing.stem}_labeled{drawing.suffix}")


def _echo_summary(summary: RunSummary) -> None:
    total = summary.placed_count + summary.skipped_count
    click.echo(f"\nPlaced {summary.placed_count}/{total} beam labels (text style '{summary.text_style}')")
    for reason, count in summary.skip_counts.items():
        click.echo(f"  skipped {count}: {reason}")
    for skip in summary.skipped:
        click.echo(f"    {skip.beam_id} {skip.label}: {skip.message}")
    if summary.dropped:
        click.echo(f"  {len(summary.dropped)} input record(s) could not be read")
        for d in summary.dropped:
            click.echo(f"    {d.source} #{d.index}: {d.message}")


if __name__ == "__main__":
    cli()
