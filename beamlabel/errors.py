"""Exception types raised by the labeling pipeline.

Fatal kinds (ConfigurationError, CorrespondenceRejected, OperationCancelled)
stop a run before anything is written. The per-beam kinds are caught by the
pipeline, counted and reported in the run summary.
"""


class BeamLabelError(Exception):
    """Base class for all labeling errors."""


class ConfigurationError(BeamLabelError):
    """The drawing or the run settings cannot support a run (missing layer content, empty floor)."""


class RecordParseError(BeamLabelError):
    """A beam record (or the whole input file) could not be parsed."""


class CorrespondenceRejected(BeamLabelError):
    """The user declined the proposed grid correspondence."""


class OperationCancelled(BeamLabelError):
    """The user cancelled a required prompt (floor choice, base point)."""


class BeamSkipped(BeamLabelError):
    """Base class for failures that skip a single beam."""

    def __init__(self, beam_id: str, message: str):
        super().__init__(message)
        self.beam_id = beam_id
        self.message = message


class GridResolutionFailure(BeamSkipped):
    """A referenced floor or grid name is absent from the catalog or unmapped."""


class SpatialMatchFailure(BeamSkipped):
    """No drawing line lies within tolerance of the theoretical beam segment."""
