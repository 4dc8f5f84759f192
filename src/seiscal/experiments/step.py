"""Corner frequency and damping from a step calibration.

The raw step signal fed into the sensor is the fit target. The sensor's
recorded output is deconvolved in the frequency domain by a two-pole
response built from a corner frequency ``f`` and damping ``h``; a
Levenberg-Marquardt fit over ``(f, h)`` makes the deconvolved trace match
the step. The seed values come from the dominant pole of the sensor's
nominal response.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ..analysis.fft import inverse_transform, single_sided_filtered_fft
from ..analysis.filters import butter_lowpass, demean, normalize_by_max
from ..analysis.numeric import TAU, atanc, unwrap_sequence
from ..config.runtime import StepSettings
from ..core.errors import InsufficientDataError, MalformedInputError
from ..core.least_squares import LeastSquaresEngine
from ..core.models import (
    CalibrationInputSet,
    Curve,
    CurveCollection,
    InstrumentResponse,
    StepFitResult,
    TimeSeries,
    second_order_poles,
)
from .base import ExperimentKind, ProgressCallback, check_cancelled, notify, require_same_sampling

logger = logging.getLogger(__name__)

DECONVOLVED_LABEL = "STEP *^(-1) RESP"
BEST_FIT_LABEL = "BEST FIT PLOT"


@dataclass(frozen=True, eq=False)
class StepModel:
    """
    Fixed inputs of one step fit: the target trace and the sensor spectrum.

    ``cut`` samples are dropped from each edge of the target; the
    deconvolved trace is taken from ``cut + shift`` onwards so both have
    ``len(target)`` samples.
    """

    target: np.ndarray
    freqs: np.ndarray
    spectrum: np.ndarray
    n_samples: int
    cut: int
    shift: int
    sample_rate_hz: float
    settings: StepSettings

    @classmethod
    def prepare(
        cls,
        step_input: TimeSeries,
        sensor_output: TimeSeries,
        settings: Optional[StepSettings] = None,
    ) -> "StepModel":
        cfg = (settings or StepSettings()).sanitized()
        require_same_sampling([step_input, sensor_output])
        sps = step_input.sample_rate_hz
        n = len(step_input)
        cut = int(sps * cfg.trim_seconds)
        shift = int(sps * cfg.alignment_shift_seconds)
        trimmed_len = n - 2 * cut
        if trimmed_len < 3:
            raise MalformedInputError(
                f"step series of {n} samples is too short to trim {cut} samples from each edge"
            )

        raw = butter_lowpass(step_input.values(), cfg.lowpass_hz, sps, cfg.filter_order)
        target = normalize_by_max(demean(raw[cut : n - cut]))
        target.setflags(write=False)

        spectrum = single_sided_filtered_fft(
            sensor_output.data,
            sps,
            apply_sign_flip=sensor_output.needs_sign_flip,
            cutoff_hz=cfg.lowpass_hz,
            order=cfg.filter_order,
        )
        return cls(
            target=target,
            freqs=spectrum.freqs,
            spectrum=spectrum.values,
            n_samples=spectrum.n_samples,
            cut=cut,
            shift=shift,
            sample_rate_hz=sps,
            settings=cfg,
        )

    def response(self, corner_hz: float, damping: float) -> np.ndarray:
        """Two-pole response ``s / ((s - p1)(s - p2))`` over the spectrum bins."""
        p1, p2 = second_order_poles(corner_hz, damping)
        resp = np.ones(self.freqs.size, dtype=complex)
        s = 1j * TAU * self.freqs[1:]
        resp[1:] = s / ((s - p1) * (s - p2))
        return resp

    def calculate(self, corner_hz: float, damping: float) -> np.ndarray:
        """Deconvolve the sensor output with the response for ``(f, h)``."""
        cfg = self.settings
        resp = self.response(corner_hz, damping)
        # the DC bin is a placeholder; it does not count towards the peak
        peak = float(np.max(np.abs(resp[1:]))) if resp.size > 1 else 1.0
        conj = np.conj(resp)
        deconvolved = self.spectrum * conj / (resp * conj + cfg.regularization * peak)

        trace = inverse_transform(deconvolved, self.n_samples)
        trace = normalize_by_max(demean(trace))
        trace = butter_lowpass(trace, cfg.lowpass_hz, self.sample_rate_hz, cfg.filter_order)
        start = self.cut + self.shift
        trace = trace[start : start + self.target.size]
        return normalize_by_max(demean(trace))

    def jacobian(self, params: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Trace at ``params`` plus its forward-difference Jacobian in ``f`` and ``h``."""
        step = self.settings.jacobian_step
        corner, damping = float(params[0]), float(params[1])
        base = self.calculate(corner, damping)
        on_corner = self.calculate(corner + step, damping)
        on_damping = self.calculate(corner, damping + step)
        jac = np.column_stack(((on_corner - base) / step, (on_damping - base) / step))
        return base, jac

    def time_axis_s(self) -> np.ndarray:
        return (self.cut + np.arange(self.target.size)) / self.sample_rate_hz


class StepExperiment:
    """
    Fit corner frequency and damping of a sensor from a step calibration.

    Block 0 holds the raw step signal (no response attached); the first
    later block that carries an :class:`InstrumentResponse` is the sensor
    output.
    """

    kind = ExperimentKind.STEP

    def __init__(self, settings: Optional[StepSettings] = None) -> None:
        self.settings = (settings or StepSettings()).sanitized()

    def required_block_count(self) -> int:
        return 2

    def has_enough_data(self, input_set: CalibrationInputSet) -> bool:
        return input_set.block_is_set(0) and self._sensor_output(input_set) is not None

    @staticmethod
    def _sensor_output(input_set: CalibrationInputSet) -> Optional[TimeSeries]:
        for block in input_set.blocks[1:]:
            if block is not None and block.response is not None:
                return block
        return None

    def run(
        self,
        input_set: CalibrationInputSet,
        *,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> StepFitResult:
        if not self.has_enough_data(input_set):
            raise InsufficientDataError(
                "step calibration needs the raw step signal and a sensor output "
                "with an associated response"
            )
        step_input = input_set.blocks[0]
        sensor_output = self._sensor_output(input_set)
        return self.estimate(
            step_input, sensor_output, progress=progress, cancel_event=cancel_event
        )

    def estimate(
        self,
        step_input: TimeSeries,
        sensor_output: TimeSeries,
        response: Optional[InstrumentResponse] = None,
        *,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> StepFitResult:
        response = response or sensor_output.response
        if response is None:
            raise InsufficientDataError(
                f"sensor output {sensor_output.name!r} has no response to seed the fit"
            )
        cfg = self.settings

        notify(progress, "Initial filtering of the raw step signal...")
        model = StepModel.prepare(step_input, sensor_output, cfg)
        check_cancelled(cancel_event)

        notify(progress, "Getting initial inverted step solution...")
        corner, damping = response.corner_and_damping()
        seed = np.array([corner, damping])
        deconvolved = model.calculate(corner, damping)

        engine = LeastSquaresEngine(
            model.jacobian,
            model.target,
            cost_tolerance=cfg.solver.cost_tolerance,
            param_tolerance=cfg.solver.param_tolerance,
            gradient_tolerance=cfg.solver.gradient_tolerance,
            max_evaluations=cfg.solver.max_evaluations,
            cancel_event=cancel_event,
        )
        initial_residual = engine.rms(seed) * 100.0

        notify(progress, "Solving for best-fit corner and damping...")
        optimum = engine.solve(seed)
        fit_corner, fit_damping = (float(v) for v in optimum.params)
        fit_residual = optimum.rms * 100.0
        fitted = model.calculate(fit_corner, fit_damping)
        logger.info(
            "Step fit: f %.6g -> %.6g Hz, h %.6g -> %.6g, residual %.4f%% -> %.4f%%",
            corner,
            fit_corner,
            damping,
            fit_damping,
            initial_residual,
            fit_residual,
        )

        notify(progress, "Fit gotten. Getting Bode plots...")
        time_s = model.time_axis_s()
        time_curves = CurveCollection(
            "Step response",
            (
                Curve(step_input.name, time_s, model.target),
                Curve(DECONVOLVED_LABEL, time_s, deconvolved),
                Curve(BEST_FIT_LABEL, time_s, fitted),
            ),
        )
        fit_response = response.with_corner_and_damping(fit_corner, fit_damping)
        magnitude, phase = bode_curves(model.freqs, (response, fit_response))

        return StepFitResult(
            initial_corner_hz=corner,
            initial_damping=damping,
            fit_corner_hz=fit_corner,
            fit_damping=fit_damping,
            initial_residual=initial_residual,
            fit_residual=fit_residual,
            time_s=time_s,
            target=model.target,
            deconvolved=deconvolved,
            fitted=fitted,
            curves=(time_curves, magnitude, phase),
        )


def bode_curves(
    freqs: np.ndarray, responses: Tuple[InstrumentResponse, ...]
) -> Tuple[CurveCollection, CurveCollection]:
    """
    Magnitude (dB) and unwrapped phase (degrees) of ``H(jw) / jw`` per response.

    The zero-frequency bin is skipped.
    """
    freqs = np.asarray(freqs, dtype=float)
    freqs = freqs[freqs > 0.0]
    s = 1j * TAU * freqs
    magnitude_curves = []
    phase_curves = []
    for resp in responses:
        accel = resp.evaluate(freqs) / s
        with np.errstate(divide="ignore"):
            magnitude = 20.0 * np.log10(np.abs(accel))
        phase = np.degrees(unwrap_sequence([atanc(c) for c in accel]))
        finite = np.isfinite(magnitude)
        magnitude_curves.append(Curve(f"{resp.name} magnitude", freqs[finite], magnitude[finite]))
        phase_curves.append(Curve(f"{resp.name} phase", freqs, phase))
    return (
        CurveCollection("Response magnitude", tuple(magnitude_curves)),
        CurveCollection("Response phase", tuple(phase_curves)),
    )


__all__ = [
    "StepExperiment",
    "StepModel",
    "bode_curves",
    "DECONVOLVED_LABEL",
    "BEST_FIT_LABEL",
]
