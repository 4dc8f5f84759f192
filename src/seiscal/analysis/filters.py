"""Filtering and conditioning helpers.

Every function returns a new array unless its name ends in ``_inplace``.
Empty and single-sample inputs are returned unchanged.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike
from scipy import signal

from ..core.errors import UnsupportedRatioError


def _as_series(data: ArrayLike) -> np.ndarray:
    return np.array(data, dtype=float).reshape(-1)


def _check_rate(sample_rate_hz: float) -> float:
    if sample_rate_hz <= 0:
        raise ValueError(f"sample_rate_hz must be > 0, got {sample_rate_hz}")
    return 0.5 * float(sample_rate_hz)


def _zero_phase(sos: np.ndarray, data: np.ndarray) -> np.ndarray:
    # the default edge padding is longer than very short windows allow
    padlen = min(3 * (2 * len(sos) + 1), data.size - 1)
    return signal.sosfiltfilt(sos, data, padlen=padlen)


def demean(data: ArrayLike) -> np.ndarray:
    """Return ``data`` with its mean removed."""
    arr = _as_series(data)
    if arr.size < 2:
        return arr
    return arr - arr.mean()


def demean_inplace(data: np.ndarray) -> np.ndarray:
    """Subtract the mean from a float array in place and return it."""
    if data.size >= 2:
        data -= data.mean()
    return data


def detrend(data: ArrayLike, *, type: str = "linear") -> np.ndarray:
    """
    Remove a trend from data using scipy.signal.detrend.

    Parameters
    ----------
    data:
        1-D input samples.
    type:
        ``"linear"`` removes the least-squares line, ``"constant"`` only the mean.
    """
    arr = _as_series(data)
    if arr.size < 2:
        return arr
    return signal.detrend(arr, type=type)


def detrend_inplace(data: np.ndarray) -> np.ndarray:
    """Remove the least-squares line from a float array in place and return it."""
    if data.size >= 2:
        data[:] = signal.detrend(data, type="linear")
    return data


def butter_lowpass(
    data: ArrayLike,
    cutoff_hz: float,
    sample_rate_hz: float,
    order: int = 4,
) -> np.ndarray:
    """
    Apply a zero-phase Butterworth low-pass filter.

    Parameters
    ----------
    data:
        1-D input samples.
    cutoff_hz:
        Cutoff frequency in Hz (0 < cutoff_hz < sample_rate_hz / 2).
    sample_rate_hz:
        Sampling rate in Hz. Must be > 0.
    order:
        Filter order (default: 4).

    Returns
    -------
    np.ndarray
        Filtered samples, same length as the input.
    """
    nyquist = _check_rate(sample_rate_hz)
    if cutoff_hz <= 0:
        raise ValueError(f"cutoff_hz must be > 0, got {cutoff_hz}")
    if cutoff_hz >= nyquist:
        raise ValueError(
            f"cutoff_hz must be < Nyquist ({nyquist:.3f} Hz), got {cutoff_hz}"
        )

    arr = _as_series(data)
    if arr.size < 2:
        return arr
    sos = signal.butter(order, cutoff_hz / nyquist, btype="low", output="sos")
    return _zero_phase(sos, arr)


def butter_bandpass(
    data: ArrayLike,
    low_hz: float,
    high_hz: float,
    sample_rate_hz: float,
    order: int = 4,
) -> np.ndarray:
    """
    Apply a zero-phase Butterworth band-pass filter between ``low_hz`` and ``high_hz``.

    A ``low_hz`` of 0 degrades to :func:`butter_lowpass` at ``high_hz``.
    """
    if low_hz <= 0:
        return butter_lowpass(data, high_hz, sample_rate_hz, order)

    nyquist = _check_rate(sample_rate_hz)
    if high_hz <= low_hz:
        raise ValueError(f"high_hz ({high_hz}) must be greater than low_hz ({low_hz})")
    if high_hz >= nyquist:
        raise ValueError(
            f"high_hz must be < Nyquist ({nyquist:.3f} Hz), got {high_hz}"
        )

    arr = _as_series(data)
    if arr.size < 2:
        return arr
    sos = signal.butter(
        order, [low_hz / nyquist, high_hz / nyquist], btype="band", output="sos"
    )
    return _zero_phase(sos, arr)


def normalize_by_max(data: ArrayLike) -> np.ndarray:
    """Divide by the largest absolute sample; all-zero input is returned as is."""
    arr = _as_series(data)
    if arr.size == 0:
        return arr
    peak = float(np.max(np.abs(arr)))
    if peak == 0.0:
        return arr
    return arr / peak


def decimation_factor(from_interval_ns: int, to_interval_ns: int) -> int:
    """Integer ratio between two sample intervals."""
    if from_interval_ns <= 0 or to_interval_ns <= 0:
        raise UnsupportedRatioError(
            f"intervals must be positive, got {from_interval_ns} -> {to_interval_ns}"
        )
    if to_interval_ns % from_interval_ns != 0:
        raise UnsupportedRatioError(
            f"cannot decimate from {from_interval_ns} ns to {to_interval_ns} ns: "
            "ratio is not an integer"
        )
    return to_interval_ns // from_interval_ns


def decimate(data: ArrayLike, from_interval_ns: int, to_interval_ns: int) -> np.ndarray:
    """
    Downsample by an integer factor after low-passing at the new Nyquist rate.

    Raises
    ------
    UnsupportedRatioError
        When ``to_interval_ns`` is not a whole multiple of ``from_interval_ns``.
    """
    factor = decimation_factor(from_interval_ns, to_interval_ns)
    arr = _as_series(data)
    if factor == 1 or arr.size < 2:
        return arr
    source_rate_hz = 1e9 / from_interval_ns
    target_nyquist_hz = 0.5 * 1e9 / to_interval_ns
    filtered = butter_lowpass(arr, target_nyquist_hz, source_rate_hz)
    return filtered[::factor]


__all__ = [
    "demean",
    "demean_inplace",
    "detrend",
    "detrend_inplace",
    "butter_lowpass",
    "butter_bandpass",
    "normalize_by_max",
    "decimation_factor",
    "decimate",
]
