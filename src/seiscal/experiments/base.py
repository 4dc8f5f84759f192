"""Capability contract shared by the calibration experiments."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Callable, Optional, Protocol, Sequence, Union

from ..core.errors import CalibrationCancelled, MalformedInputError
from ..core.models import AzimuthFitResult, CalibrationInputSet, StepFitResult, TimeSeries

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]
FitResult = Union[AzimuthFitResult, StepFitResult]


class ExperimentKind(str, Enum):
    AZIMUTH = "azimuth"
    STEP = "step"


class Experiment(Protocol):
    """Common interface implemented by every experiment kind."""

    kind: ExperimentKind

    def required_block_count(self) -> int:  # pragma: no cover - protocol
        ...

    def has_enough_data(self, input_set: CalibrationInputSet) -> bool:  # pragma: no cover - protocol
        ...

    def run(
        self,
        input_set: CalibrationInputSet,
        *,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> FitResult:  # pragma: no cover - protocol
        ...


def notify(progress: Optional[ProgressCallback], message: str) -> None:
    """Log a milestone and forward it to the caller's callback, if any."""
    logger.info(message)
    if progress is not None:
        progress(message)


def check_cancelled(cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise CalibrationCancelled("calibration run cancelled")


def require_same_sampling(series: Sequence[TimeSeries]) -> int:
    """
    Check that all series share one interval and length; return the interval.

    Series used together must be aligned by the caller beforehand.
    """
    first = series[0]
    for other in series[1:]:
        if other.interval_ns != first.interval_ns:
            raise MalformedInputError(
                f"series {first.name!r} and {other.name!r} have different sample "
                f"intervals ({first.interval_ns} ns vs {other.interval_ns} ns)"
            )
        if len(other) != len(first):
            raise MalformedInputError(
                f"series {first.name!r} and {other.name!r} are not aligned "
                f"({len(first)} vs {len(other)} samples)"
            )
    return first.interval_ns


__all__ = [
    "Experiment",
    "ExperimentKind",
    "FitResult",
    "ProgressCallback",
    "check_cancelled",
    "notify",
    "require_same_sampling",
]
