"""Seismic sensor calibration: relative azimuth and step-response fits."""

from .config import CalibrationConfig, load_config
from .core import (
    AzimuthFitResult,
    CalibrationCancelled,
    CalibrationError,
    CalibrationInputSet,
    InstrumentResponse,
    StepFitResult,
    TimeSeries,
)
from .experiments import AzimuthExperiment, ExperimentKind, StepExperiment, create_experiment

__version__ = "0.1.0"

__all__ = [
    "AzimuthExperiment",
    "AzimuthFitResult",
    "CalibrationCancelled",
    "CalibrationConfig",
    "CalibrationError",
    "CalibrationInputSet",
    "ExperimentKind",
    "InstrumentResponse",
    "StepExperiment",
    "StepFitResult",
    "TimeSeries",
    "create_experiment",
    "load_config",
    "__version__",
]
