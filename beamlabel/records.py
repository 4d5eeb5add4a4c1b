"""Read model-side beam records: hierarchical JSON exports and CSV / Excel tables.

A malformed record is dropped and listed in BeamRecordSet.dropped; the rest of
the file is still used. A file that cannot be read at all raises
RecordParseError.
"""

import io
import json
import logging
from pathlib import Path

import pandas as pd
from pydantic import ValidationError

from .errors import RecordParseError
from .models import (
    AbsoluteGridRef,
    BeamRecord,
    BeamRecordSet,
    DroppedRecord,
    ModelGridSystem,
    Point,
    RelativeGridRef,
)

logger = logging.getLogger(__name__)

TABLE_COLUMNS = [
    "story",
    "newLabel",
    "etabsLabel",
    "baseGridX",
    "baseGridY",
    "midpointX",
    "midpointY",
    "isMainBeam",
]

_TRUE = {"true", "1", "yes", "y", "t"}
_FALSE = {"false", "0", "no", "n", "f", ""}


def load_beam_records(path: str | Path) -> BeamRecordSet:
    """Dispatch on file suffix (.json, .csv, .xlsx, .xlsm)."""
    path = Path(path)
    if not path.exists():
        raise RecordParseError(f"File not found: {path}")
    return load_beam_records_bytes(path.read_bytes(), path.name)


def load_beam_records_bytes(data: bytes, filename: str) -> BeamRecordSet:
    suffix = Path(filename).suffix.lower()
    if suffix == ".json":
        try:
            payload = json.loads(data.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise RecordParseError(f"{filename}: invalid JSON ({e})") from e
        return parse_beam_json(payload, source=filename)
    if suffix == ".csv":
        try:
            df = pd.read_csv(io.BytesIO(data), dtype=str, keep_default_na=False, encoding="utf-8-sig")
        except (ValueError, UnicodeDecodeError, pd.errors.ParserError) as e:
            raise RecordParseError(f"{filename}: unreadable CSV ({e})") from e
        return parse_beam_table(df, source=filename)
    if suffix in (".xlsx", ".xlsm"):
        try:
            df = pd.read_excel(io.BytesIO(data), dtype=str).fillna("")
        except (ValueError, ImportError) as e:
            raise RecordParseError(f"{filename}: unreadable workbook ({e})") from e
        return parse_beam_table(df, source=filename)
    raise RecordParseError(f"Unsupported beam data format: {filename}")


# --- Hierarchical JSON ---


def parse_beam_json(payload: dict, source: str = "json") -> BeamRecordSet:
    if not isinstance(payload, dict) or not isinstance(payload.get("floors"), list):
        raise RecordParseError(f"{source}: expected an object with a 'floors' list")

    grid_system = None
    if isinstance(payload.get("gridSystem"), dict):
        gs = payload["gridSystem"]
        grid_system = ModelGridSystem(
            x_grids=[str(n) for n in gs.get("xGrids") or []],
            y_grids=[str(n) for n in gs.get("yGrids") or []],
        )

    records: list[BeamRecord] = []
    dropped: list[DroppedRecord] = []
    index = 0
    for floor in payload["floors"]:
        story = str(floor.get("floorName", "")).strip() if isinstance(floor, dict) else ""
        beams = floor.get("beams", []) if isinstance(floor, dict) else []
        for beam in beams:
            try:
                records.append(beam_from_json(beam, story))
            except RecordParseError as e:
                logger.warning("%s: dropping beam #%d: %s", source, index, e)
                dropped.append(DroppedRecord(source=source, index=index, message=str(e)))
            index += 1

    logger.info("%s: %d beams read, %d dropped", source, len(records), len(dropped))
    return BeamRecordSet(
        project=str(payload.get("project", "")),
        records=records,
        grid_system=grid_system,
        dropped=dropped,
    )


def beam_from_json(beam: dict, story: str) -> BeamRecord:
    """One beam object: gridInfo (along/between), grid (x/y pair) or midPoint."""
    if not isinstance(beam, dict):
        raise RecordParseError("beam entry is not an object")
    try:
        grid = None
        if beam.get("gridInfo"):
            info = beam["gridInfo"]
            grid = RelativeGridRef(
                along_grid=str(info["alongGrid"]),
                between=[str(n) for n in info["between"]],
                direction=str(info["direction"]).lower(),
                offset_from_start=info.get("offsetFromStart", 0.0),
                length=info.get("length", 0.0),
                tolerance=info.get("tolerance", 0.1),
            )
        elif beam.get("grid"):
            pair = beam["grid"]
            grid = AbsoluteGridRef(x_grid=str(pair["x"]), y_grid=str(pair["y"]))

        midpoint = None
        if beam.get("midPoint"):
            midpoint = Point(x=beam["midPoint"]["x"], y=beam["midPoint"]["y"])

        if grid is None and midpoint is None:
            raise RecordParseError("beam has neither gridInfo, grid nor midPoint")

        return BeamRecord(
            beam_id=str(beam.get("etabsId", "")),
            label=str(beam.get("newLabel", "")),
            story=story,
            section=str(beam.get("section", "")),
            is_main=json_bool(beam.get("isMainBeam")),
            grid=grid,
            midpoint=midpoint,
        )
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        raise RecordParseError(f"beam {beam.get('etabsId', '?')}: {_reason(e)}") from e


# --- Tabular ---


def parse_beam_table(df: pd.DataFrame, source: str = "table") -> BeamRecordSet:
    df = df.rename(columns=lambda c: str(c).strip())
    missing = [c for c in TABLE_COLUMNS if c not in df.columns]
    if missing:
        raise RecordParseError(f"{source}: missing columns {', '.join(missing)}")

    records: list[BeamRecord] = []
    dropped: list[DroppedRecord] = []
    for index, row in enumerate(df.to_dict(orient="records")):
        if all(not str(row.get(c, "")).strip() for c in TABLE_COLUMNS):
            continue
        try:
            records.append(beam_from_row(row))
        except RecordParseError as e:
            # +2: header line and 1-based numbering, matching what a spreadsheet shows
            logger.warning("%s: dropping row %d: %s", source, index + 2, e)
            dropped.append(DroppedRecord(source=source, index=index + 2, message=str(e)))

    logger.info("%s: %d beams read, %d dropped", source, len(records), len(dropped))
    return BeamRecordSet(records=records, dropped=dropped)


def beam_from_row(row: dict) -> BeamRecord:
    cell = {c: str(row.get(c, "")).strip() for c in TABLE_COLUMNS}
    try:
        return BeamRecord(
            beam_id=cell["etabsLabel"],
            label=cell["newLabel"],
            story=cell["story"],
            is_main=parse_bool(cell["isMainBeam"]),
            grid=AbsoluteGridRef(x_grid=cell["baseGridX"], y_grid=cell["baseGridY"]),
            midpoint=Point(x=float(cell["midpointX"]), y=float(cell["midpointY"])),
        )
    except (ValueError, ValidationError) as e:
        raise RecordParseError(f"beam {cell['etabsLabel'] or '?'}: {_reason(e)}") from e


def parse_bool(value: str) -> bool:
    v = value.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ValueError(f"not a boolean: {value!r}")


def json_bool(value) -> bool:
    """JSON flag: a real boolean, a missing value, or a boolean-like string or number."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return parse_bool(str(value))


def _reason(e: Exception) -> str:
    if isinstance(e, ValidationError):
        first = e.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        return f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))
    if isinstance(e, KeyError):
        return f"missing field {e.args[0]!r}"
    return str(e)
