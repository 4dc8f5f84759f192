"""Runtime configuration for the azimuth and step-response estimators."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Type, TypeVar

import yaml

from ..core.least_squares import UNBOUNDED_EVALUATIONS


@dataclass(slots=True)
class SolverSettings:
    """Levenberg-Marquardt tolerances shared by one estimator."""

    cost_tolerance: float = 1e-7
    param_tolerance: float = 1e-7
    gradient_tolerance: float = 1e-10
    max_evaluations: int = UNBOUNDED_EVALUATIONS

    def sanitized(self) -> SolverSettings:
        return SolverSettings(
            cost_tolerance=max(1e-15, float(self.cost_tolerance)),
            param_tolerance=max(1e-15, float(self.param_tolerance)),
            gradient_tolerance=max(1e-15, float(self.gradient_tolerance)),
            max_evaluations=max(1, min(UNBOUNDED_EVALUATIONS, int(self.max_evaluations))),
        )


@dataclass(slots=True)
class AzimuthSettings:
    """
    Tuning knobs for the relative-azimuth fit.

    The defaults assume long-period (~1 Hz) data spanning a few hours.
    """

    band_low_hz: float = 1.0 / 8.0
    band_high_hz: float = 1.0 / 4.0
    filter_order: int = 4
    jacobian_step_rad: float = 1e-7
    window_seconds: float = 2000.0
    stride_seconds: float = 500.0
    min_windows: int = 5
    keep_fraction: float = 3.0 / 20.0
    solver: SolverSettings = field(default_factory=SolverSettings)

    def sanitized(self) -> AzimuthSettings:
        low = max(1e-6, float(self.band_low_hz))
        high = max(low * 1.0001, float(self.band_high_hz))
        return AzimuthSettings(
            band_low_hz=low,
            band_high_hz=high,
            filter_order=max(1, int(self.filter_order)),
            jacobian_step_rad=max(1e-12, float(self.jacobian_step_rad)),
            window_seconds=max(1.0, float(self.window_seconds)),
            stride_seconds=max(1.0, float(self.stride_seconds)),
            min_windows=max(2, int(self.min_windows)),
            keep_fraction=max(0.0, min(1.0, float(self.keep_fraction))),
            solver=self.solver.sanitized(),
        )


@dataclass(slots=True)
class StepSettings:
    """Tuning knobs for the step-response (corner/damping) fit."""

    lowpass_hz: float = 0.1
    filter_order: int = 4
    trim_seconds: float = 10.0
    alignment_shift_seconds: float = 0.0
    regularization: float = 0.008
    jacobian_step: float = 1e-12
    solver: SolverSettings = field(
        default_factory=lambda: SolverSettings(cost_tolerance=1e-10, param_tolerance=1e-10)
    )

    def sanitized(self) -> StepSettings:
        trim = max(0.0, float(self.trim_seconds))
        return StepSettings(
            lowpass_hz=max(1e-6, float(self.lowpass_hz)),
            filter_order=max(1, int(self.filter_order)),
            trim_seconds=trim,
            alignment_shift_seconds=max(0.0, min(trim, float(self.alignment_shift_seconds))),
            regularization=max(1e-12, float(self.regularization)),
            jacobian_step=max(1e-15, float(self.jacobian_step)),
            solver=self.solver.sanitized(),
        )


@dataclass(slots=True)
class CalibrationConfig:
    """Top-level configuration snapshot handed to each experiment."""

    azimuth: AzimuthSettings = field(default_factory=AzimuthSettings)
    step: StepSettings = field(default_factory=StepSettings)

    def sanitized(self) -> CalibrationConfig:
        """Return a copy with derived limits applied."""
        return CalibrationConfig(
            azimuth=self.azimuth.sanitized(),
            step=self.step.sanitized(),
        )


_T = TypeVar("_T")


def _recognized_fields(cls: type) -> set[str]:
    """Return the dataclass field names accepted by ``cls``."""
    return {f.name for f in fields(cls)}


def _build(cls: Type[_T], data: Any, nested: Mapping[str, type] | None = None) -> _T:
    """Instantiate ``cls`` from the known keys of ``data`` (unknown keys are ignored)."""
    if not isinstance(data, Mapping):
        return cls()
    nested = nested or {}
    known = _recognized_fields(cls)
    payload: MutableMapping[str, Any] = {}
    for key in data.keys() & known:
        value = data[key]
        if key in nested:
            value = _build(nested[key], value)
        payload[key] = value
    return cls(**payload)


def _normalize_mapping(data: Mapping[str, Any]) -> Mapping[str, Any]:
    """Flatten known nesting patterns (e.g. top-level ``calibration`` key)."""
    if "calibration" in data and isinstance(data["calibration"], Mapping):
        merged: MutableMapping[str, Any] = {}
        for key, value in data.items():
            if key == "calibration":
                merged.update(value)
            else:
                merged[key] = value
        return merged
    return data


def config_from_mapping(data: Mapping[str, Any] | None) -> CalibrationConfig:
    """Build :class:`CalibrationConfig` from ``data`` (ignoring unknown keys)."""
    if not data:
        return CalibrationConfig()
    normalized = _normalize_mapping(data)
    config = CalibrationConfig(
        azimuth=_build(AzimuthSettings, normalized.get("azimuth"), {"solver": SolverSettings}),
        step=_build(StepSettings, normalized.get("step"), {"solver": SolverSettings}),
    )
    if isinstance(normalized.get("step"), Mapping) and "solver" in normalized["step"]:
        # partial step solver blocks keep the step-specific tolerances
        step_solver = dict(normalized["step"]["solver"] or {})
        step_solver.setdefault("cost_tolerance", 1e-10)
        step_solver.setdefault("param_tolerance", 1e-10)
        config.step.solver = _build(SolverSettings, step_solver)
    return config.sanitized()


def config_to_mapping(config: CalibrationConfig) -> dict:
    """Serialize ``config`` into plain types suitable for ``yaml.safe_dump``."""

    def _plain(obj: Any) -> Any:
        if hasattr(obj, "__dataclass_fields__"):
            return {f.name: _plain(getattr(obj, f.name)) for f in fields(obj)}
        return obj

    return _plain(config)


def load_config(path: str | Path | None) -> CalibrationConfig:
    """
    Load configuration from ``path``.

    Missing files fall back to default :class:`CalibrationConfig`.
    """
    if path is None:
        return CalibrationConfig()
    cfg_path = Path(path)
    if not cfg_path.exists():
        return CalibrationConfig()
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {cfg_path}, got {type(raw).__name__}")
    return config_from_mapping(raw)


def save_config(path: str | Path, config: CalibrationConfig) -> None:
    """Persist ``config`` as YAML, creating parent directories as needed."""
    cfg_path = Path(path)
    if cfg_path.parent and not cfg_path.parent.exists():
        cfg_path.parent.mkdir(parents=True, exist_ok=True)
    with cfg_path.open("w", encoding="utf-8") as fh:
        yaml.safe_dump(
            config_to_mapping(config),
            fh,
            default_flow_style=False,
            sort_keys=False,
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
