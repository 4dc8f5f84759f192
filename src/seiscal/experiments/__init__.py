"""Calibration experiments and the registry used to pick one by kind.

Each experiment implements the same small contract (see
:class:`~seiscal.experiments.base.Experiment`): how many input blocks it
needs, whether an input set satisfies it, and a ``run`` method returning an
immutable result. Callers that iterate over experiment kinds should go
through :func:`create_experiment`.
"""

from __future__ import annotations

from typing import Dict, Optional

from ..config.runtime import CalibrationConfig
from .azimuth import AzimuthExperiment
from .base import Experiment, ExperimentKind, FitResult, ProgressCallback
from .step import StepExperiment, StepModel


def create_experiment(
    kind: ExperimentKind | str,
    config: Optional[CalibrationConfig] = None,
    **options,
) -> Experiment:
    """
    Instantiate the experiment for ``kind`` using the matching config section.

    Extra keyword options (e.g. ``offset_deg`` or ``simple`` for azimuth) are
    passed to the experiment constructor.
    """
    cfg = (config or CalibrationConfig()).sanitized()
    kind = ExperimentKind(kind)
    if kind is ExperimentKind.AZIMUTH:
        return AzimuthExperiment(cfg.azimuth, **options)
    if kind is ExperimentKind.STEP:
        return StepExperiment(cfg.step, **options)
    raise ValueError(f"Unknown experiment kind {kind!r}")  # pragma: no cover - closed enum


def create_all(config: Optional[CalibrationConfig] = None) -> Dict[ExperimentKind, Experiment]:
    """One experiment instance per kind, keyed by kind."""
    return {kind: create_experiment(kind, config) for kind in ExperimentKind}


__all__ = [
    "AzimuthExperiment",
    "Experiment",
    "ExperimentKind",
    "FitResult",
    "ProgressCallback",
    "StepExperiment",
    "StepModel",
    "create_all",
    "create_experiment",
]
