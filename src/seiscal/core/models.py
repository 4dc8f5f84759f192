"""Shared dataclasses for calibration inputs and results."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np
from numpy.typing import ArrayLike

from .errors import MalformedInputError
from ..analysis.numeric import TAU, magnitude_key, percent_difference


ONE_HZ_INTERVAL_NS = 1_000_000_000


@dataclass(frozen=True)
class InstrumentResponse:
    """
    Pole/zero description of a sensor response.

    Only the first (dominant) pole seeds the step fit; the full list is used
    when evaluating Bode curves.
    """

    poles: Tuple[complex, ...]
    zeros: Tuple[complex, ...] = ()
    gain: float = 1.0
    name: str = "response"

    def __post_init__(self) -> None:
        object.__setattr__(self, "poles", tuple(complex(p) for p in self.poles))
        object.__setattr__(self, "zeros", tuple(complex(z) for z in self.zeros))
        object.__setattr__(self, "gain", float(self.gain))
        if not self.poles:
            raise MalformedInputError(f"response {self.name!r} has no poles")

    @property
    def dominant_pole(self) -> complex:
        return self.poles[0]

    def corner_and_damping(self) -> Tuple[float, float]:
        """Return ``(f, h)`` implied by the dominant pole."""
        pole = self.dominant_pole
        magnitude = abs(pole)
        if magnitude == 0.0:
            raise MalformedInputError(
                f"dominant pole of {self.name!r} is zero; cannot derive corner/damping"
            )
        return magnitude / TAU, abs(pole.real) / magnitude

    def evaluate(self, freqs_hz: ArrayLike) -> np.ndarray:
        """Evaluate ``gain * prod(s - z) / prod(s - p)`` at ``s = j*2*pi*f``."""
        freqs = np.asarray(freqs_hz, dtype=float)
        s = 1j * TAU * freqs
        numerator = np.ones_like(s)
        for zero in self.zeros:
            numerator = numerator * (s - zero)
        denominator = np.ones_like(s)
        for pole in self.poles:
            denominator = denominator * (s - pole)
        return self.gain * numerator / denominator

    def with_corner_and_damping(
        self, corner_hz: float, damping: float, *, name: Optional[str] = None
    ) -> "InstrumentResponse":
        """
        Copy of this response with the dominant pole pair replaced.

        The dominant pole and its partner are removed: the complex conjugate
        for a complex pole, otherwise the next real pole in the list. The two
        poles of a second-order system with the given corner and damping take
        their place at the front of the list.
        """
        remaining = list(self.poles[1:])
        dominant = self.dominant_pole
        if dominant.imag != 0.0:
            partner = dominant.conjugate()
            if partner in remaining:
                remaining.remove(partner)
        else:
            for pole in remaining:
                if pole.imag == 0.0:
                    remaining.remove(pole)
                    break
        p1, p2 = second_order_poles(corner_hz, damping)
        return InstrumentResponse(
            poles=(p1, p2, *remaining),
            zeros=self.zeros,
            gain=self.gain,
            name=name or f"{self.name} [FIT]",
        )

    def sorted_poles(self) -> Tuple[complex, ...]:
        return tuple(sorted(self.poles, key=magnitude_key))


def second_order_poles(corner_hz: float, damping: float) -> Tuple[complex, complex]:
    """Poles ``-omega * (h +/- sqrt(h^2 - 1))`` for corner ``f`` and damping ``h``."""
    omega = TAU * float(corner_hz)
    root = np.sqrt(complex(damping * damping - 1.0))
    p1 = -(damping + root) * omega
    p2 = -(damping - root) * omega
    return complex(p1), complex(p2)


@dataclass(frozen=True)
class TimeSeries:
    """
    Evenly sampled series of float64 samples.

    ``interval_ns`` is the sample spacing in integer nanoseconds and
    ``start_ns`` the timestamp of the first sample. A series may carry the
    response of the sensor that recorded it.
    """

    name: str
    data: np.ndarray
    interval_ns: int
    start_ns: int = 0
    response: Optional[InstrumentResponse] = None
    needs_sign_flip: bool = False

    def __post_init__(self) -> None:
        arr = np.array(self.data, dtype=np.float64).reshape(-1)
        if arr.size == 0:
            raise MalformedInputError(f"series {self.name!r} is empty")
        if not np.all(np.isfinite(arr)):
            raise MalformedInputError(f"series {self.name!r} contains NaN or infinite samples")
        try:
            interval = int(self.interval_ns)
        except (TypeError, ValueError) as exc:
            raise MalformedInputError(
                f"series {self.name!r} has invalid interval {self.interval_ns!r}"
            ) from exc
        if interval <= 0:
            raise MalformedInputError(
                f"series {self.name!r} interval must be > 0, got {interval}"
            )
        arr.setflags(write=False)
        object.__setattr__(self, "data", arr)
        object.__setattr__(self, "interval_ns", interval)
        object.__setattr__(self, "start_ns", int(self.start_ns))

    def __len__(self) -> int:
        return int(self.data.size)

    @property
    def sample_rate_hz(self) -> float:
        return ONE_HZ_INTERVAL_NS / float(self.interval_ns)

    @property
    def end_ns(self) -> int:
        """Timestamp of the last sample."""
        return self.start_ns + (len(self) - 1) * self.interval_ns

    @property
    def span_ns(self) -> int:
        """Duration covered by the samples (``len * interval``)."""
        return len(self) * self.interval_ns

    def values(self) -> np.ndarray:
        """Writable copy of the samples."""
        return self.data.copy()

    def times_s(self) -> np.ndarray:
        """Sample times in seconds relative to ``start_ns``."""
        return np.arange(len(self), dtype=float) * (self.interval_ns / ONE_HZ_INTERVAL_NS)

    def trim(self, start_ns: int, end_ns: int) -> "TimeSeries":
        """Return the samples whose timestamps fall inside ``[start_ns, end_ns]``."""
        if end_ns < start_ns:
            raise MalformedInputError(f"trim range is reversed: {start_ns} > {end_ns}")
        first = max(0, math.ceil((start_ns - self.start_ns) / self.interval_ns))
        last = min(len(self) - 1, math.floor((end_ns - self.start_ns) / self.interval_ns))
        if last < first:
            raise MalformedInputError(
                f"series {self.name!r} has no samples between {start_ns} and {end_ns}"
            )
        return TimeSeries(
            name=self.name,
            data=self.data[first : last + 1],
            interval_ns=self.interval_ns,
            start_ns=self.start_ns + first * self.interval_ns,
            response=self.response,
            needs_sign_flip=self.needs_sign_flip,
        )


@dataclass(frozen=True)
class CalibrationInputSet:
    """
    Fixed-size ordered slots of series handed to one experiment.

    Empty slots are ``None``; experiments decide how many (and which kind)
    of blocks they need.
    """

    blocks: Tuple[Optional[TimeSeries], ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "blocks", tuple(self.blocks))

    @classmethod
    def of(cls, *blocks: Optional[TimeSeries]) -> "CalibrationInputSet":
        return cls(blocks=tuple(blocks))

    def block_is_set(self, index: int) -> bool:
        return 0 <= index < len(self.blocks) and self.blocks[index] is not None

    def loaded(self) -> Tuple[TimeSeries, ...]:
        """Set blocks in slot order."""
        return tuple(b for b in self.blocks if b is not None)

    def with_response(self) -> Tuple[TimeSeries, ...]:
        return tuple(b for b in self.loaded() if b.response is not None)

    def without_response(self) -> Tuple[TimeSeries, ...]:
        return tuple(b for b in self.loaded() if b.response is None)


@dataclass(frozen=True)
class Curve:
    """Labelled sequence of ``(x, y)`` points."""

    label: str
    x: np.ndarray
    y: np.ndarray

    def __post_init__(self) -> None:
        x = np.asarray(self.x, dtype=float).reshape(-1)
        y = np.asarray(self.y, dtype=float).reshape(-1)
        if x.size != y.size:
            raise ValueError(f"curve {self.label!r}: x has {x.size} points, y has {y.size}")
        object.__setattr__(self, "x", x)
        object.__setattr__(self, "y", y)

    def __len__(self) -> int:
        return int(self.x.size)

    def points(self) -> list[tuple[float, float]]:
        return list(zip(self.x.tolist(), self.y.tolist()))


@dataclass(frozen=True)
class CurveCollection:
    """Named group of curves drawn on the same chart."""

    name: str
    curves: Tuple[Curve, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "curves", tuple(self.curves))

    def get(self, label: str) -> Optional[Curve]:
        for curve in self.curves:
            if curve.label == label:
                return curve
        return None


@dataclass(frozen=True)
class WindowEstimate:
    """Angle fitted over one azimuth window."""

    start_offset_s: float
    angle_rad: float
    coherence: float


@dataclass(frozen=True)
class AzimuthFitResult:
    """Outcome of an azimuth run.

    ``angle_rad`` is normalized to ``[0, 2*pi)``; ``uncertainty_rad`` is a
    two-sigma bound and is zero when no windowed refinement happened.
    """

    angle_rad: float
    uncertainty_rad: float
    enough_windows: bool
    windows: Tuple[WindowEstimate, ...] = ()
    offset_deg: float = 0.0
    curves: Tuple[CurveCollection, ...] = ()

    @property
    def angle_deg(self) -> float:
        return math.degrees(self.angle_rad)

    @property
    def uncertainty_deg(self) -> float:
        return math.degrees(self.uncertainty_rad)

    @property
    def normalized_offset_deg(self) -> float:
        return self.offset_deg % 360.0

    @property
    def reported_angle_deg(self) -> float:
        """Fitted angle plus the reference sensor's own offset from north."""
        return (self.angle_deg + self.offset_deg) % 360.0


@dataclass(frozen=True)
class StepFitResult:
    """Outcome of a step-response run.

    Residuals are RMS values expressed in percent of the normalized target.
    """

    initial_corner_hz: float
    initial_damping: float
    fit_corner_hz: float
    fit_damping: float
    initial_residual: float
    fit_residual: float
    time_s: np.ndarray = field(repr=False)
    target: np.ndarray = field(repr=False)
    deconvolved: np.ndarray = field(repr=False)
    fitted: np.ndarray = field(repr=False)
    curves: Tuple[CurveCollection, ...] = ()

    @property
    def initial_params(self) -> Tuple[float, float, float]:
        return self.initial_corner_hz, self.initial_damping, self.initial_residual

    @property
    def fit_params(self) -> Tuple[float, float, float]:
        return self.fit_corner_hz, self.fit_damping, self.fit_residual

    @property
    def residuals(self) -> Tuple[float, float]:
        return self.initial_residual, self.fit_residual

    @property
    def corner_change_percent(self) -> float:
        return percent_difference(self.initial_corner_hz, self.fit_corner_hz)

    @property
    def damping_change_percent(self) -> float:
        return percent_difference(self.initial_damping, self.fit_damping)


def curve_from_pairs(label: str, pairs: Sequence[Tuple[float, float]]) -> Curve:
    if not pairs:
        return Curve(label, np.empty(0), np.empty(0))
    xs, ys = zip(*pairs)
    return Curve(label, np.asarray(xs, dtype=float), np.asarray(ys, dtype=float))


__all__ = [
    "ONE_HZ_INTERVAL_NS",
    "InstrumentResponse",
    "second_order_poles",
    "TimeSeries",
    "CalibrationInputSet",
    "Curve",
    "CurveCollection",
    "curve_from_pairs",
    "WindowEstimate",
    "AzimuthFitResult",
    "StepFitResult",
]
