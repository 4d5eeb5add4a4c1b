"""Run configuration: drawing conventions, tolerances and label styling.

Defaults follow the office drawing standard (S-TITLE / S-GRID-T / S-GRID layers,
50 m layout frames, millimetre drawings against metre models). Every field can
be overridden from the environment or a .env file as BEAMLABEL_<FIELD_NAME>.
"""

import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "BEAMLABEL_"


class LabelingConfig(BaseModel):
    # Layers read from the drawing
    title_layer: str = "S-TITLE"
    marker_layer: str = "S-GRID-T"
    grid_layer: str = "S-GRID"
    beam_layers: list[str] = Field(default_factory=list)  # empty = every non-grid line

    # Layers and style written to the drawing
    main_label_layer: str = "S-TEXTG"
    secondary_label_layer: str = "S-TEXTB"
    label_color: int = 2  # ACI yellow
    text_style: str = "中央"
    fallback_text_style: str = "Standard"
    text_height: float = Field(default=300.0, gt=0)
    label_margin: float = Field(default=400.0, ge=0)

    # Geometry
    frame_width: float = Field(default=50000.0, gt=0)
    scale: float = Field(default=1000.0, gt=0)  # drawing units per model unit
    axis_tolerance: float = Field(default=1.0, gt=0)
    marker_threshold: float = Field(default=500.0, ge=0)
    fallback_tolerance: float = Field(default=1000.0, ge=0)
    match_tolerance: float | None = Field(default=None, ge=0)  # None = record tolerance x scale
    match_lines: bool = True

    # Model grids whose intersection is the model origin (automatic base point)
    base_grid_x: str = "0"
    base_grid_y: str = "A"

    @field_validator("beam_layers", mode="before")
    @classmethod
    def _split_layers(cls, v):
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    def label_layer(self, is_main: bool) -> str:
        return self.main_label_layer if is_main else self.secondary_label_layer


def load_config(env_file: str | None = None, **overrides) -> LabelingConfig:
    """Build a config from defaults, .env / environment, then explicit overrides."""
    load_dotenv(env_file)
    values: dict = {}
    for name in LabelingConfig.model_fields:
        raw = os.getenv(ENV_PREFIX + name.upper())
        if raw is not None and raw != "":
            values[name] = raw
    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        config = LabelingConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
    logger.debug("Loaded config: %s", config.model_dump())
    return config
