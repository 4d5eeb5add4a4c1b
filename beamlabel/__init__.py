"""Beam label placement for structural grid drawings."""

from .models import LabelResult, RunSummary
from .pipeline import run_labeling

__all__ = ["run_labeling", "LabelResult", "RunSummary"]
