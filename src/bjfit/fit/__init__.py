"""
a1/a2 damping-parameter fits over psi4 result directories.
"""
from .aggregate import FitOptions, FitReport, run_fits
from .models import FitResult
from .octave import FitRequest, OctaveFitRoutine

__all__ = [
    "FitOptions",
    "FitReport",
    "run_fits",
    "FitResult",
    "FitRequest",
    "OctaveFitRoutine",
]
