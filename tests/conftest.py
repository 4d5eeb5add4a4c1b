"""
Shared fixtures: a two-floor drawing in memory and matching model records.

Layout of each floor (floor 2 is floor 1 shifted by one 50 m frame):

    X grids G1 / G2 / G3  vertical at x = 5000 / 13000 / 21000, y 0..20000
    Y grids GA / GB       horizontal at y = 2000 / 10000, x 2000..26000
    bubbles 400 units beyond the line ends
    beams on S-BEAM:      GB between G1-G2, G2 between GA-GB
"""

import json

import ezdxf
import pytest
from ezdxf.enums import TextEntityAlignment

from beamlabel.config import LabelingConfig
from beamlabel.models import (
    AbsoluteGridRef,
    BeamRecord,
    BeamRecordSet,
    ModelGridSystem,
    RelativeGridRef,
)
from beamlabel.store import InMemoryEntityStore

FRAME = 50000.0
X_GRIDS = {"G1": 5000.0, "G2": 13000.0, "G3": 21000.0}
Y_GRIDS = {"GA": 2000.0, "GB": 10000.0}


def add_floor(store: InMemoryEntityStore, title: str, origin: float, with_beams: bool = True) -> None:
    store.add_text("S-TITLE", title, (origin + 20000, -3000))
    for name, x in X_GRIDS.items():
        store.add_line("S-GRID", (origin + x, 0), (origin + x, 20000))
        store.add_text("S-GRID-T", name, (origin + x, 20400))
    for name, y in Y_GRIDS.items():
        store.add_line("S-GRID", (origin + 2000, y), (origin + 26000, y))
        store.add_text("S-GRID-T", name, (origin + 1600, y))
    if with_beams:
        store.add_line("S-BEAM", (origin + 5000, 10000), (origin + 13000, 10000))
        store.add_line("S-BEAM", (origin + 13000, 2000), (origin + 13000, 10000))


def write_dxf(path, floors=(("二層結構平面圖(2F)", 0.0), ("三層結構平面圖(3F)", FRAME))):
    """Same layout as the in-memory store, saved as a real DXF."""
    doc = ezdxf.new("R2010")
    for layer in ("S-TITLE", "S-GRID-T", "S-GRID", "S-BEAM"):
        doc.layers.add(layer)
    msp = doc.modelspace()
    for title, origin in floors:
        msp.add_text(title, height=500, dxfattribs={"layer": "S-TITLE", "insert": (origin + 20000, -3000)})
        for name, x in X_GRIDS.items():
            msp.add_line((origin + x, 0), (origin + x, 20000), dxfattribs={"layer": "S-GRID"})
            bubble = msp.add_text(name, height=300, dxfattribs={"layer": "S-GRID-T"})
            bubble.set_placement((origin + x, 20400), align=TextEntityAlignment.MIDDLE_CENTER)
        for name, y in Y_GRIDS.items():
            msp.add_line((origin + 2000, y), (origin + 26000, y), dxfattribs={"layer": "S-GRID"})
            msp.add_text(name, height=300, dxfattribs={"layer": "S-GRID-T", "insert": (origin + 1600, y)})
        msp.add_line((origin + 5000, 10000), (origin + 13000, 10000), dxfattribs={"layer": "S-BEAM"})
        msp.add_line((origin + 13000, 2000), (origin + 13000, 10000), dxfattribs={"layer": "S-BEAM"})
    doc.saveas(str(path))
    return path


BEAMS_JSON = {
    "project": "demo",
    "gridSystem": {"xGrids": ["1", "2", "3"], "yGrids": ["A", "B"]},
    "floors": [
        {
            "floorName": "2F",
            "beams": [
                {
                    "etabsId": "B12", "newLabel": "G1", "isMainBeam": True,
                    "gridInfo": {"alongGrid": "B", "between": ["1", "2"], "direction": "horizontal"},
                },
                {
                    "etabsId": "B20", "newLabel": "b3", "isMainBeam": False,
                    "gridInfo": {"alongGrid": "2", "between": ["A", "B"], "direction": "vertical"},
                },
            ],
        },
        {
            "floorName": "3F",
            "beams": [{"etabsId": "B7", "newLabel": "G7", "isMainBeam": True, "grid": {"x": "3", "y": "A"}}],
        },
    ],
}


@pytest.fixture
def dxf_path(tmp_path):
    return write_dxf(tmp_path / "plan.dxf")


@pytest.fixture
def beams_json_path(tmp_path):
    path = tmp_path / "beams.json"
    path.write_text(json.dumps(BEAMS_JSON, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def config():
    return LabelingConfig()


@pytest.fixture
def store():
    s = InMemoryEntityStore()
    add_floor(s, "二層結構平面圖(2F)", 0.0)
    add_floor(s, "三層結構平面圖(3F)", FRAME)
    return s


@pytest.fixture
def grid_system():
    return ModelGridSystem(x_grids=["1", "2", "3"], y_grids=["A", "B"])


@pytest.fixture
def horizontal_beam():
    return BeamRecord(
        beam_id="B12",
        label="G1",
        story="2F",
        is_main=True,
        grid=RelativeGridRef(along_grid="B", between=("1", "2"), direction="horizontal"),
    )


@pytest.fixture
def vertical_beam():
    return BeamRecord(
        beam_id="B20",
        label="b3",
        story="2F",
        is_main=False,
        grid=RelativeGridRef(along_grid="2", between=("A", "B"), direction="vertical"),
    )


@pytest.fixture
def absolute_beam():
    return BeamRecord(
        beam_id="B7",
        label="G7",
        story="3F",
        is_main=True,
        grid=AbsoluteGridRef(x_grid="3", y_grid="A"),
    )


@pytest.fixture
def beam_set(horizontal_beam, vertical_beam, absolute_beam, grid_system):
    return BeamRecordSet(
        project="demo",
        records=[horizontal_beam, vertical_beam, absolute_beam],
        grid_system=grid_system,
    )
