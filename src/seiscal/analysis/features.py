"""Feature extraction helpers."""

from __future__ import annotations

from typing import Optional, Union

import numpy as np
from numpy.typing import ArrayLike

from ..core.errors import NumericalInstabilityError


Number = Union[float, np.floating]

# RMS deviation below this fraction of the peak amplitude counts as constant
ZERO_VARIANCE_TOL = 1e-12


def _to_1d_array(signal: ArrayLike) -> np.ndarray:
    """Convert input to a 1D float64 numpy array."""
    arr = np.asarray(signal, dtype=float)
    if arr.size == 0:
        raise ValueError("signal must contain at least one sample")
    if arr.ndim != 1:
        raise ValueError(f"signal must be 1-D, got shape {arr.shape}")
    return arr


def rms(signal: ArrayLike) -> Number:
    """
    Compute root-mean-square (RMS) value of a 1-D signal.

    Parameters
    ----------
    signal:
        1-D array-like of samples.

    Returns
    -------
    float
        RMS value of the signal.
    """
    arr = _to_1d_array(signal)
    return float(np.sqrt(np.mean(np.square(arr))))


def _is_flat(deviation: np.ndarray, values: np.ndarray) -> bool:
    spread = float(np.sqrt(np.mean(np.square(deviation))))
    scale = float(np.max(np.abs(values)))
    if scale == 0.0:
        return True
    return not np.isfinite(spread) or spread <= ZERO_VARIANCE_TOL * scale


def pearson_correlation(x: ArrayLike, y: ArrayLike) -> float:
    """
    Pearson correlation coefficient of two equally long 1-D signals.

    Raises
    ------
    NumericalInstabilityError
        If either signal has (numerically) zero variance, where the
        coefficient is undefined.
    """
    a = _to_1d_array(x)
    b = _to_1d_array(y)
    if a.size != b.size:
        raise ValueError(f"signals differ in length: {a.size} != {b.size}")
    if a.size < 2:
        raise NumericalInstabilityError("correlation needs at least two samples")
    da = a - a.mean()
    db = b - b.mean()
    if _is_flat(da, a) or _is_flat(db, b):
        raise NumericalInstabilityError("correlation is undefined for zero-variance data")
    denom = np.sqrt(np.dot(da, da) * np.dot(db, db))
    return float(np.clip(np.dot(da, db) / denom, -1.0, 1.0))


def aligned_antipolar(
    rotated: ArrayLike, reference: ArrayLike, length: Optional[int] = None
) -> bool:
    """
    True when ``rotated`` looks sign-inverted against ``reference``.

    Only the first ``length`` samples are compared (all of them by default).
    """
    a = _to_1d_array(rotated)
    b = _to_1d_array(reference)
    n = min(a.size, b.size) if length is None else int(length)
    return pearson_correlation(a[:n], b[:n]) < 0.0
