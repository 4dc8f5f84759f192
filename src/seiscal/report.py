"""Plain-text summaries of calibration results for report insets."""

from __future__ import annotations

import math
from typing import Iterable, List

from .analysis.numeric import TAU
from .core.models import AzimuthFitResult, StepFitResult

ENTRIES_PER_LINE = 2


def _fmt(value: float) -> str:
    """Up to five decimals without trailing zeros; infinities spelled out."""
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if math.isnan(value):
        return "NaN"
    text = f"{value:.5f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def format_complex(value: complex) -> str:
    c = complex(value)
    if c.imag == 0.0:
        return _fmt(c.real)
    sign = "-" if c.imag < 0 else "+"
    return f"{_fmt(c.real)} {sign} {_fmt(abs(c.imag))}i"


def complex_list_summary(values: Iterable[complex]) -> str:
    """
    Each value followed by its period ``2*pi/|c|`` in parentheses.

    Entries are paired two per line so conjugate poles share a line.
    """
    lines: List[str] = []
    current: List[str] = []
    for value in values:
        c = complex(value)
        period = TAU / abs(c) if abs(c) > 0.0 else math.inf
        current.append(f"{format_complex(c)} ({_fmt(period)})")
        if len(current) >= ENTRIES_PER_LINE:
            lines.append(", ".join(current))
            current = []
    if current:
        lines.append(", ".join(current))
    return "\n".join(lines)


def azimuth_summary(result: AzimuthFitResult) -> str:
    lines = [
        f"Offset: {_fmt(result.normalized_offset_deg)}",
        f"Angle (deg): {_fmt(result.reported_angle_deg)} "
        f"(+/- {_fmt(result.uncertainty_deg)})",
    ]
    if not result.enough_windows:
        lines.append("(Insufficient windows for uncertainty estimate)")
    return "\n".join(lines)


def step_summary(result: StepFitResult) -> str:
    """Initial and fitted corner, damping and residual with percent changes."""
    init_f, init_h, init_r = result.initial_params
    fit_f, fit_h, fit_r = result.fit_params
    init_period = 1.0 / init_f if init_f else math.inf
    fit_period = 1.0 / fit_f if fit_f else math.inf
    return "\n".join(
        [
            f"RESP parameters\ncorner frequency (Hz): {_fmt(init_f)} "
            f"({_fmt(init_period)} secs)\ndamping: {_fmt(init_h)}",
            f"Best-fit parameters\ncorner frequency (Hz): {_fmt(fit_f)} "
            f"({_fmt(fit_period)} secs)\ndamping: {_fmt(fit_h)}",
            f"Delta values\ncorner frequency: {_fmt(result.corner_change_percent)}%"
            f"\ndamping: {_fmt(result.damping_change_percent)}%",
            f"Residuals\nInitial (nom. resp curve): {_fmt(init_r)}\nBest fit: {_fmt(fit_r)}",
        ]
    )


__all__ = ["azimuth_summary", "complex_list_summary", "format_complex", "step_summary"]
