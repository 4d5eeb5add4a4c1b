import base64
import logging
import traceback

from dotenv import load_dotenv
from fastapi import FastAPI, File, Form, UploadFile

from beamlabel.config import load_config
from beamlabel.correspondence import format_correspondence, propose_for_floor
from beamlabel.errors import BeamLabelError, ConfigurationError, CorrespondenceRejected
from beamlabel.grids import build_grid_catalog
from beamlabel.logging_config import setup_logging
from beamlabel.models import BasePointMode, Point
from beamlabel.pipeline import run_labeling
from beamlabel.prompts import ScriptedPrompter
from beamlabel.quality import run_quality_gates
from beamlabel.records import load_beam_records_bytes
from beamlabel.store import open_store

load_dotenv()
setup_logging()

logger = logging.getLogger("beamlabel.api")

app = FastAPI(title="Beam label placement")

DRAWING_TYPES = (".dxf", ".pdf")
BEAM_TYPES = (".json", ".csv", ".xlsx", ".xlsm")


def _check_upload(file: UploadFile, allowed: tuple[str, ...]) -> dict | None:
    if not file.filename or not file.filename.lower().endswith(allowed):
        return {
            "error": "Invalid file type",
            "detail": f"{file.filename or 'upload'}: expected one of {', '.join(allowed)}",
        }
    return None


def _open_drawing(file: UploadFile, pdf_scale: float):
    data = file.file.read()
    if file.filename.lower().endswith(".pdf"):
        return open_store(data, file.filename, unit_scale=pdf_scale)
    return open_store(data, file.filename)


def _base_point(raw: str | None) -> Point | BasePointMode | None:
    """'auto', or an explicit 'x,y' drawing point."""
    if raw is None or not raw.strip():
        return None
    if raw.strip().lower() == BasePointMode.AUTO.value:
        return BasePointMode.AUTO
    try:
        x, y = (float(part) for part in raw.replace(" ", "").split(","))
    except ValueError:
        raise ConfigurationError(f"base_point must be 'auto' or 'x,y', got {raw!r}")
    return Point(x=x, y=y)


@app.post("/api/grids")
def grids(
    drawing: UploadFile = File(...),
    frame_width: float | None = Form(None),
    pdf_scale: float = Form(1.0),
):
    """Scan the drawing and return its floors, grids and quality checks."""
    invalid = _check_upload(drawing, DRAWING_TYPES)
    if invalid:
        return invalid
    try:
        config = load_config(frame_width=frame_width)
        store = _open_drawing(drawing, pdf_scale)
        catalog = build_grid_catalog(store, config)
        return {
            "catalog": catalog.model_dump(mode="json"),
            "quality": run_quality_gates(catalog).model_dump(mode="json"),
        }
    except BeamLabelError as e:
        return {"error": type(e).__name__, "detail": str(e)}
    except Exception as e:
        logger.exception("Grid scan failed")
        return {
            "error": "Grid scan failed",
            "detail": str(e),
            "traceback": traceback.format_exc(),
        }


@app.post("/api/correspondence")
def correspondence(
    drawing: UploadFile = File(...),
    beams: UploadFile = File(...),
    frame_width: float | None = Form(None),
    pdf_scale: float = Form(1.0),
):
    """Propose the model → drawing grid correspondence for review."""
    invalid = _check_upload(drawing, DRAWING_TYPES) or _check_upload(beams, BEAM_TYPES)
    if invalid:
        return invalid
    try:
        config = load_config(frame_width=frame_width)
        store = _open_drawing(drawing, pdf_scale)
        records = load_beam_records_bytes(beams.file.read(), beams.filename)
        catalog = build_grid_catalog(store, config)
        floor = catalog.reference_floor()
        proposal, model, drawn = propose_for_floor(records.records, floor, records.grid_system)
        return {
            "reference_floor": floor.name,
            "model_grids": {"x": model[0], "y": model[1]},
            "drawing_grids": {"x": drawn[0], "y": drawn[1]},
            "correspondence": proposal.model_dump(mode="json"),
            "text": format_correspondence(proposal, model, drawn),
            "quality": run_quality_gates(catalog, proposal).model_dump(mode="json"),
            "dropped": [d.model_dump() for d in records.dropped],
        }
    except BeamLabelError as e:
        return {"error": type(e).__name__, "detail": str(e)}
    except Exception as e:
        logger.exception("Correspondence failed")
        return {
            "error": "Correspondence failed",
            "detail": str(e),
            "traceback": traceback.format_exc(),
        }


@app.post("/api/label")
def label(
    drawing: UploadFile = File(...),
    beams: UploadFile = File(...),
    confirm: bool = Form(False),
    scale: float | None = Form(None),
    frame_width: float | None = Form(None),
    label_margin: float | None = Form(None),
    text_height: float | None = Form(None),
    pdf_scale: float = Form(1.0),
    floor: str | None = Form(None),
    base_point: str | None = Form(None),
):
    """Run the full labeling pipeline and return the summary plus the labelled drawing.

    `confirm` answers the correspondence prompt; review it first with
    /api/correspondence. Without it nothing is written. `floor` limits the
    run to one story; `base_point` is "auto" (origin grids) or "x,y".
    """
    invalid = _check_upload(drawing, DRAWING_TYPES) or _check_upload(beams, BEAM_TYPES)
    if invalid:
        return invalid
    try:
        config = load_config(
            scale=scale,
            frame_width=frame_width,
            label_margin=label_margin,
            text_height=text_height,
        )
        store = _open_drawing(drawing, pdf_scale)
        records = load_beam_records_bytes(beams.file.read(), beams.filename)
        prompter = ScriptedPrompter(keywords=["Y" if confirm else "N"])
        summary = run_labeling(
            store, records, prompter, config, base_point=_base_point(base_point), floor=floor or None,
        )
        return {
            "summary": summary.to_report(),
            "messages": prompter.messages,
            "filename": drawing.filename,
            "drawing": base64.b64encode(store.to_bytes()).decode("ascii"),
        }
    except CorrespondenceRejected as e:
        return {
            "error": "CorrespondenceRejected",
            "detail": f"{e}; nothing was written. Resend with confirm=true to accept it.",
        }
    except BeamLabelError as e:
        return {"error": type(e).__name__, "detail": str(e)}
    except Exception as e:
        logger.exception("Labeling failed")
        return {
            "error": "Labeling failed",
            "detail": str(e),
            "traceback": traceback.format_exc(),
        }
