"""Data model, exceptions and the least-squares engine shared by experiments."""

from .errors import (
    CalibrationCancelled,
    CalibrationError,
    InsufficientDataError,
    MalformedInputError,
    NumericalInstabilityError,
    UnsupportedRatioError,
)
from .models import (
    AzimuthFitResult,
    CalibrationInputSet,
    Curve,
    CurveCollection,
    InstrumentResponse,
    ONE_HZ_INTERVAL_NS,
    StepFitResult,
    TimeSeries,
    WindowEstimate,
)

__all__ = [
    "CalibrationCancelled",
    "CalibrationError",
    "InsufficientDataError",
    "MalformedInputError",
    "NumericalInstabilityError",
    "UnsupportedRatioError",
    "AzimuthFitResult",
    "CalibrationInputSet",
    "Curve",
    "CurveCollection",
    "InstrumentResponse",
    "ONE_HZ_INTERVAL_NS",
    "StepFitResult",
    "TimeSeries",
    "WindowEstimate",
]
