"""Exception types raised by the calibration core."""

from __future__ import annotations


class CalibrationError(ValueError):
    """Base class for all input and numeric failures of an estimation run."""


class InsufficientDataError(CalibrationError):
    """The input set lacks the series (or response) an experiment needs."""


class MalformedInputError(CalibrationError):
    """Empty, non-finite, or inconsistently sampled input series."""


class UnsupportedRatioError(CalibrationError):
    """Decimation was requested with a non-integer interval ratio."""


class NumericalInstabilityError(CalibrationError):
    """A correlation or fit is undefined for the given data (e.g. zero variance)."""


class CalibrationCancelled(RuntimeError):
    """Raised when the caller sets the cancellation event during a run."""


__all__ = [
    "CalibrationError",
    "InsufficientDataError",
    "MalformedInputError",
    "UnsupportedRatioError",
    "NumericalInstabilityError",
    "CalibrationCancelled",
]
