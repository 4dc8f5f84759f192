"""Relative azimuth of a horizontal sensor pair against a north reference.

The test pair is rotated clockwise by an angle ``theta`` and compared with
the reference using the Pearson correlation; a one-parameter
Levenberg-Marquardt fit drives that correlation towards 1. The fitted angle
is therefore the clockwise rotation of the test sensor from the reference.
If the reference itself points ``offset`` degrees clockwise from north, the
azimuth from north is the fitted angle plus that offset.

The approach follows Ringler, Edwards et al., "Relative azimuth inversion by
way of damped maximum correlation estimates", Computers and Geosciences 43
(2012).

In full mode the series is cut into overlapping windows that are re-fitted
separately; the best-correlated windows are averaged and their spread gives
a two-sigma uncertainty.
"""

from __future__ import annotations

import logging
import math
import threading
from typing import List, Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike

from ..analysis.features import aligned_antipolar, pearson_correlation
from ..analysis.filters import butter_bandpass, demean, detrend
from ..analysis.numeric import normalize_angle, rotate
from ..config.runtime import AzimuthSettings
from ..core.errors import InsufficientDataError, NumericalInstabilityError
from ..core.least_squares import LeastSquaresEngine, ModelFunction
from ..core.models import (
    AzimuthFitResult,
    CalibrationInputSet,
    Curve,
    CurveCollection,
    TimeSeries,
    WindowEstimate,
)
from .base import ExperimentKind, ProgressCallback, check_cancelled, notify, require_same_sampling

logger = logging.getLogger(__name__)

ANGLE_CURVE = "Best-fit angle per window"
COHERENCE_CURVE = "Coherence estimate per window"


def correlation_model(
    test_north: np.ndarray,
    test_east: np.ndarray,
    reference: np.ndarray,
    step_rad: float = 1e-7,
) -> ModelFunction:
    """
    Build ``theta -> (correlation, d correlation / d theta)`` for fixed inputs.

    The derivative is a forward difference over ``step_rad``.
    """
    north = np.array(test_north, dtype=float)
    east = np.array(test_east, dtype=float)
    ref = np.array(reference, dtype=float)
    for arr in (north, east, ref):
        arr.setflags(write=False)

    def model(params: np.ndarray):
        theta = float(params[0])
        value = pearson_correlation(ref, rotate(north, east, theta))
        shifted = pearson_correlation(ref, rotate(north, east, theta + step_rad))
        change = (shifted - value) / step_rad
        return np.array([value]), np.array([[change]])

    return model


class AzimuthExperiment:
    """
    Fit the azimuth of a test sensor pair (north, east) against a reference.

    Blocks are expected in the order test-north, test-east, reference-north.
    ``simple=True`` stops after the single global fit (no windowing), which
    is enough when only a coarse angle is needed.
    """

    kind = ExperimentKind.AZIMUTH

    def __init__(
        self,
        settings: Optional[AzimuthSettings] = None,
        *,
        offset_deg: float = 0.0,
        simple: bool = False,
    ) -> None:
        self.settings = (settings or AzimuthSettings()).sanitized()
        self.offset_deg = float(offset_deg)
        self.simple = bool(simple)

    def required_block_count(self) -> int:
        return 3

    def has_enough_data(self, input_set: CalibrationInputSet) -> bool:
        return all(input_set.block_is_set(i) for i in range(self.required_block_count()))

    def run(
        self,
        input_set: CalibrationInputSet,
        *,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> AzimuthFitResult:
        if not self.has_enough_data(input_set):
            raise InsufficientDataError(
                f"azimuth needs {self.required_block_count()} series "
                "(test north, test east, reference north)"
            )
        north, east, ref = input_set.blocks[: self.required_block_count()]
        interval_ns = require_same_sampling([north, east, ref])
        return self.estimate(
            north.data,
            east.data,
            ref.data,
            interval_ns,
            names=(north.name, east.name, ref.name),
            progress=progress,
            cancel_event=cancel_event,
        )

    def estimate(
        self,
        test_north: ArrayLike,
        test_east: ArrayLike,
        ref_north: ArrayLike,
        interval_ns: int,
        *,
        names: Sequence[str] = ("N", "E", "R"),
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> AzimuthFitResult:
        """Fit the angle for raw, aligned arrays sampled every ``interval_ns``."""
        cfg = self.settings
        series = [
            TimeSeries(name, data, interval_ns)
            for name, data in zip(names, (test_north, test_east, ref_north))
        ]
        require_same_sampling(series)
        north, east, ref = (s.data for s in series)
        sps = series[0].sample_rate_hz

        cond_north = self._condition(demean(north), sps)
        cond_east = self._condition(demean(east), sps)
        cond_ref = self._condition(demean(ref), sps)
        # theta = 0 is a stationary point when the pair is reversed, so start opposite
        start = math.pi if aligned_antipolar(cond_north, cond_ref) else 0.0
        global_model = correlation_model(cond_north, cond_east, cond_ref, cfg.jacobian_step_rad)
        # a degenerate global fit is fatal, so errors propagate from here
        initial_angle, initial_coherence = self._fit(global_model, start, cancel_event)
        notify(progress, "Found initial guess for angle")
        logger.info(
            "Initial azimuth %.3f deg (coherence %.4f)",
            math.degrees(normalize_angle(initial_angle)),
            initial_coherence,
        )

        if self.simple:
            return self._build_result(
                normalize_angle(initial_angle), 0.0, False, [], names
            )

        windows = self._fit_windows(north, east, ref, sps, initial_angle, progress, cancel_event)

        if len(windows) < cfg.min_windows:
            notify(progress, "Window size too small for good angle estimation...")
            result = self._build_result(
                normalize_angle(initial_angle), 0.0, False, windows, names
            )
        else:
            angle, uncertainty = aggregate_windows(windows, cfg.min_windows, cfg.keep_fraction)
            result = self._build_result(angle, uncertainty, True, windows, names)

        notify(progress, "Solver completed! Producing plots...")
        return result

    def _condition(self, data: np.ndarray, sps: float) -> np.ndarray:
        cfg = self.settings
        return butter_bandpass(
            detrend(data), cfg.band_low_hz, cfg.band_high_hz, sps, cfg.filter_order
        )

    def _fit(
        self,
        model: ModelFunction,
        start: float,
        cancel_event: Optional[threading.Event],
    ) -> tuple[float, float]:
        solver = self.settings.solver
        engine = LeastSquaresEngine(
            model,
            [1.0],
            cost_tolerance=solver.cost_tolerance,
            param_tolerance=solver.param_tolerance,
            gradient_tolerance=solver.gradient_tolerance,
            max_evaluations=solver.max_evaluations,
            cancel_event=cancel_event,
        )
        optimum = engine.solve([start])
        angle = float(optimum.params[0])
        coherence = float(engine.evaluate(optimum.params)[0][0])
        return angle, coherence

    def _fit_windows(
        self,
        north: np.ndarray,
        east: np.ndarray,
        ref: np.ndarray,
        sps: float,
        initial_angle: float,
        progress: Optional[ProgressCallback],
        cancel_event: Optional[threading.Event],
    ) -> List[WindowEstimate]:
        cfg = self.settings
        window_len = int(round(cfg.window_seconds * sps))
        stride = max(1, int(round(cfg.stride_seconds * sps)))
        starts = list(range(0, north.size - window_len + 1, stride)) if window_len > 0 else []

        windows: List[WindowEstimate] = []
        for i, start_idx in enumerate(starts):
            check_cancelled(cancel_event)
            notify(progress, f"Fitting angle over data in window {i + 1} of {len(starts)}")
            end_idx = start_idx + window_len
            try:
                model = correlation_model(
                    self._condition(north[start_idx:end_idx], sps),
                    self._condition(east[start_idx:end_idx], sps),
                    self._condition(ref[start_idx:end_idx], sps),
                    cfg.jacobian_step_rad,
                )
                angle, coherence = self._fit(model, initial_angle, cancel_event)
            except NumericalInstabilityError as exc:
                logger.warning("Skipping window %d at sample %d: %s", i + 1, start_idx, exc)
                continue
            windows.append(WindowEstimate(start_idx / sps, angle, coherence))
            logger.debug(
                "Window %d: start=%.1fs angle=%.3f deg coherence=%.4f",
                i + 1,
                start_idx / sps,
                math.degrees(angle),
                coherence,
            )
        logger.info("Fitted %d of %d azimuth windows", len(windows), len(starts))
        return windows

    def _build_result(
        self,
        angle: float,
        uncertainty: float,
        enough_windows: bool,
        windows: Sequence[WindowEstimate],
        names: Sequence[str],
    ) -> AzimuthFitResult:
        return AzimuthFitResult(
            angle_rad=angle,
            uncertainty_rad=uncertainty,
            enough_windows=enough_windows,
            windows=tuple(windows),
            offset_deg=self.offset_deg,
            curves=azimuth_curves(angle, self.offset_deg, windows, names),
        )


def aggregate_windows(
    windows: Sequence[WindowEstimate], min_windows: int = 5, keep_fraction: float = 3.0 / 20.0
) -> tuple[float, float]:
    """
    Average the angles of the best-correlated windows.

    Keeps ``max(min_windows, len(windows) * keep_fraction)`` windows with the
    highest coherence and returns ``(normalized mean angle, two-sigma)``,
    where sigma is the sample standard deviation of the kept angles.
    """
    if len(windows) < min_windows:
        raise ValueError(f"need at least {min_windows} windows, got {len(windows)}")
    keep = max(min_windows, math.floor(len(windows) * keep_fraction + 1e-9))
    ranked = sorted(windows, key=lambda w: w.coherence, reverse=True)[:keep]
    angles = np.array([w.angle_rad for w in ranked])
    mean_angle = float(angles.mean())
    uncertainty = 2.0 * float(np.std(angles, ddof=1)) if angles.size > 1 else 0.0
    return normalize_angle(mean_angle), uncertainty


def azimuth_curves(
    angle_rad: float,
    offset_deg: float,
    windows: Sequence[WindowEstimate],
    names: Sequence[str],
) -> tuple[CurveCollection, ...]:
    """Azimuth diagram endpoints plus per-window angle and coherence series."""
    north_name, east_name, ref_name = names
    angle_deg = math.degrees(angle_rad)
    diagram = CurveCollection(
        "Azimuth",
        (
            Curve(
                f"{north_name} rel. to reference",
                [offset_deg + angle_deg, offset_deg + angle_deg],
                [0.0, 1.0],
            ),
            Curve(
                f"{east_name} rel. to reference",
                [offset_deg + angle_deg + 90.0, offset_deg + angle_deg + 90.0],
                [1.0, 0.0],
            ),
            Curve(f"{ref_name} location", [offset_deg, offset_deg], [1.0, 0.0]),
        ),
    )
    times = [w.start_offset_s for w in windows]
    angle_series = CurveCollection(
        ANGLE_CURVE,
        (Curve(ANGLE_CURVE, times, [math.degrees(w.angle_rad) for w in windows]),),
    )
    coherence_series = CurveCollection(
        COHERENCE_CURVE,
        (Curve(COHERENCE_CURVE, times, [w.coherence for w in windows]),),
    )
    return diagram, angle_series, coherence_series


__all__ = [
    "AzimuthExperiment",
    "aggregate_windows",
    "azimuth_curves",
    "correlation_model",
    "ANGLE_CURVE",
    "COHERENCE_CURVE",
]
