"""Configuration objects and helpers for the calibration estimators.

Every numeric constant the estimators use (filter bands, window lengths,
tolerances, regularization) lives in the typed dataclasses of :mod:`runtime`
so that a YAML file can tune a run without touching code. Missing files and
unknown keys fall back to the documented defaults.
"""

from .runtime import (
    AzimuthSettings,
    CalibrationConfig,
    SolverSettings,
    StepSettings,
    config_from_mapping,
    config_to_mapping,
    load_config,
    save_config,
)

__all__ = [
    "AzimuthSettings",
    "CalibrationConfig",
    "SolverSettings",
    "StepSettings",
    "config_from_mapping",
    "config_to_mapping",
    "load_config",
    "save_config",
]
