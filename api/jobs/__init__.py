"""
Jobs package for simulated training runs.

Provides the job controller, the progress simulator and the metric curves
they share.
"""

from .curves import CURVE_PROFILES, CurveProfile, ModelType, profile_for
from .manager import JobController
from .progress import JobProgress, TrainingConfig, TrainingStatus
from .simulator import ProgressSimulator

__all__ = [
    "CURVE_PROFILES",
    "CurveProfile",
    "JobController",
    "JobProgress",
    "ModelType",
    "ProgressSimulator",
    "TrainingConfig",
    "TrainingStatus",
    "profile_for",
]
