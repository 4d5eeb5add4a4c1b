"""All Pydantic data models for the beam labeling pipeline."""

from __future__ import annotations

import math
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Geometry ---


class Point(BaseModel):
    model_config = ConfigDict(frozen=True)

    x: float
    y: float

    def offset(self, dx: float, dy: float) -> Point:
        return Point(x=self.x + dx, y=self.y + dy)


class Segment(BaseModel):
    """A straight segment between two points."""

    model_config = ConfigDict(frozen=True)

    start: Point
    end: Point

    @property
    def dx(self) -> float:
        return self.end.x - self.start.x

    @property
    def dy(self) -> float:
        return self.end.y - self.start.y

    @property
    def length(self) -> float:
        return math.hypot(self.dx, self.dy)

    @property
    def midpoint(self) -> Point:
        return Point(
            x=(self.start.x + self.end.x) / 2,
            y=(self.start.y + self.end.y) / 2,
        )

    def reversed(self) -> Segment:
        return Segment(start=self.end, end=self.start)


# --- Drawing entities (read from an EntityStore) ---


class DrawingLine(BaseModel):
    """A straight LINE entity as enumerated from the drawing."""

    model_config = ConfigDict(frozen=True)

    handle: str
    layer: str
    start: Point
    end: Point

    @property
    def segment(self) -> Segment:
        return Segment(start=self.start, end=self.end)


class DrawingText(BaseModel):
    """A single-line text entity positioned at a point."""

    model_config = ConfigDict(frozen=True)

    handle: str
    layer: str
    text: str
    position: Point


# --- Grid catalog ---


class GridAxis(str, Enum):
    X = "X"  # vertical line, positioned by its x coordinate
    Y = "Y"  # horizontal line, positioned by its y coordinate
    UNKNOWN = "unknown"


class GridLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    axis: GridAxis
    coordinate: float
    start: Point
    end: Point
    handle: str | None = None  # None for grids guessed from markers alone

    @property
    def segment(self) -> Segment:
        return Segment(start=self.start, end=self.end)


class GridMarker(BaseModel):
    """A grid bubble text and the grid line it was associated with, if any."""

    model_config = ConfigDict(frozen=True)

    text: str
    position: Point
    axis: GridAxis = GridAxis.UNKNOWN
    line_handle: str | None = None
    distance: float | None = None

    @property
    def classified(self) -> bool:
        return self.axis != GridAxis.UNKNOWN


class FloorScope(BaseModel):
    """One floor's layout frame: a horizontal band of the drawing."""

    model_config = ConfigDict(frozen=True)

    name: str
    alias: str = ""
    title_position: Point
    origin_x: float
    frame_width: float
    x_grids: dict[str, GridLine] = Field(default_factory=dict)
    y_grids: dict[str, GridLine] = Field(default_factory=dict)
    markers: list[GridMarker] = Field(default_factory=list)

    def contains(self, x: float) -> bool:
        return self.origin_x <= x < self.origin_x + self.frame_width

    def matches(self, story: str) -> bool:
        story = story.strip()
        return story == self.name or (bool(self.alias) and story == self.alias)

    def grids(self, axis: GridAxis) -> dict[str, GridLine]:
        if axis == GridAxis.X:
            return self.x_grids
        if axis == GridAxis.Y:
            return self.y_grids
        raise ValueError(f"No grid table for axis {axis.value}")

    def grid(self, axis: GridAxis, name: str) -> GridLine | None:
        return self.grids(axis).get(name)

    def names(self, axis: GridAxis) -> list[str]:
        """Grid names on one axis, ordered by coordinate."""
        table = self.grids(axis)
        return [g.name for g in sorted(table.values(), key=lambda g: g.coordinate)]

    @property
    def unclassified_markers(self) -> list[GridMarker]:
        return [m for m in self.markers if not m.classified]


class GridCatalog(BaseModel):
    """Immutable result of the drawing scan, shared by every beam of a run."""

    model_config = ConfigDict(frozen=True)

    frame_width: float
    floors: list[FloorScope]

    def floor(self, story: str) -> FloorScope | None:
        for floor in self.floors:
            if floor.matches(story):
                return floor
        return None

    def reference_floor(self) -> FloorScope:
        return self.floors[0]


# --- Model-side beam records ---


class BeamDirection(str, Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


class AbsoluteGridRef(BaseModel):
    """Beam anchored at the intersection of one X grid and one Y grid."""

    mode: Literal["absolute"] = "absolute"
    x_grid: str
    y_grid: str


class RelativeGridRef(BaseModel):
    """Beam running along one grid, between two grids of the opposite axis."""

    mode: Literal["relative"] = "relative"
    along_grid: str
    between: tuple[str, str]
    direction: BeamDirection
    offset_from_start: float = 0.0
    length: float = 0.0
    tolerance: float = Field(default=0.1, ge=0.0)  # model units

    @field_validator("along_grid")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("along_grid must not be empty")
        return v.strip()


GridRef = Annotated[Union[AbsoluteGridRef, RelativeGridRef], Field(discriminator="mode")]


class BeamRecord(BaseModel):
    beam_id: str
    label: str
    story: str = ""
    section: str = ""
    is_main: bool = False
    grid: GridRef | None = None
    midpoint: Point | None = None  # model units, relative to the model origin

    @field_validator("label")
    @classmethod
    def _label_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("label must not be empty")
        return v.strip()


class ModelGridSystem(BaseModel):
    """Grid names declared by the model export, in model order."""

    x_grids: list[str] = Field(default_factory=list)
    y_grids: list[str] = Field(default_factory=list)


class DroppedRecord(BaseModel):
    """An input record that could not be parsed and was left out of the run."""

    source: str
    index: int
    message: str


class BeamRecordSet(BaseModel):
    project: str = ""
    records: list[BeamRecord] = Field(default_factory=list)
    grid_system: ModelGridSystem | None = None
    dropped: list[DroppedRecord] = Field(default_factory=list)


# --- Correspondence ---


class CorrespondenceMap(BaseModel):
    """Model grid name → drawing grid name, per axis."""

    model_config = ConfigDict(frozen=True)

    x: dict[str, str] = Field(default_factory=dict)
    y: dict[str, str] = Field(default_factory=dict)
    unmapped_x: list[str] = Field(default_factory=list)
    unmapped_y: list[str] = Field(default_factory=list)
    confirmed: bool = False

    def drawing_name(self, axis: GridAxis, model_name: str) -> str | None:
        table = self.x if axis == GridAxis.X else self.y
        return table.get(model_name)

    @property
    def pairs(self) -> list[tuple[GridAxis, str, str]]:
        return [(GridAxis.X, k, v) for k, v in self.x.items()] + [
            (GridAxis.Y, k, v) for k, v in self.y.items()
        ]


# --- Per-beam results ---


class Anchor(BaseModel):
    """Theoretical location of a beam, in drawing units."""

    beam_id: str
    floor: str | None = None
    points: list[Point]
    x_line: GridLine | None = None
    y_line: GridLine | None = None
    tolerance: float | None = None  # drawing units, relative anchors only

    @property
    def segment(self) -> Segment | None:
        if len(self.points) != 2:
            return None
        return Segment(start=self.points[0], end=self.points[1])


class MatchResult(BaseModel):
    line: DrawingLine
    distance: float


class Orientation(str, Enum):
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    DIAGONAL = "diagonal"


class LabelResult(BaseModel):
    beam_id: str
    text: str
    position: Point
    rotation: float  # degrees, counter-clockwise
    orientation: Orientation
    is_main: bool
    layer: str
    height: float
    matched_handle: str | None = None
    match_distance: float | None = None


class BasePointMode(str, Enum):
    MANUAL = "manual"  # picked by the user
    AUTO = "auto"  # intersection of the origin grids, picked on failure


class SkipReason(str, Enum):
    GRID_RESOLUTION = "grid_resolution"
    SPATIAL_MATCH = "spatial_match"
    PLACEMENT_ERROR = "placement_error"


class SkipRecord(BaseModel):
    beam_id: str
    label: str
    reason: SkipReason
    message: str


# --- Quality gates ---


class GateStatus(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"


class QualityCheck(BaseModel):
    name: str
    status: GateStatus
    message: str
    detail: str | None = None


class QualityReport(BaseModel):
    overall: GateStatus
    checks: list[QualityCheck]


# --- Final output ---


class RunSummary(BaseModel):
    placed: list[LabelResult] = Field(default_factory=list)
    skipped: list[SkipRecord] = Field(default_factory=list)
    dropped: list[DroppedRecord] = Field(default_factory=list)
    correspondence: CorrespondenceMap | None = None
    quality: QualityReport | None = None
    text_style: str = ""

    @property
    def placed_count(self) -> int:
        return len(self.placed)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)

    @property
    def skip_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for skip in self.skipped:
            counts[skip.reason.value] = counts.get(skip.reason.value, 0) + 1
        return counts

    def to_report(self) -> dict:
        data = self.model_dump(mode="json")
        data["placed_count"] = self.placed_count
        data["skipped_count"] = self.skipped_count
        data["skip_counts"] = self.skip_counts
        return data
