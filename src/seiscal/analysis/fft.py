"""FFT helpers."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike

from .filters import butter_lowpass, demean


@dataclass(frozen=True)
class Spectrum:
    """Single-sided spectrum of a real series of ``n_samples`` points."""

    freqs: np.ndarray
    values: np.ndarray
    n_samples: int


def forward_transform(series: ArrayLike, sample_rate_hz: float) -> Spectrum:
    """Single-sided (non-negative frequency) transform of a real series."""
    if sample_rate_hz <= 0:
        raise ValueError(f"sample_rate_hz must be > 0, got {sample_rate_hz}")
    arr = np.asarray(series, dtype=float).reshape(-1)
    if arr.size == 0:
        raise ValueError("series must contain at least one sample")
    return Spectrum(
        freqs=np.fft.rfftfreq(arr.size, d=1.0 / float(sample_rate_hz)),
        values=np.fft.rfft(arr),
        n_samples=int(arr.size),
    )


def inverse_transform(spectrum: ArrayLike, length: int) -> np.ndarray:
    """
    Real series of exactly ``length`` samples from a single-sided spectrum.

    Missing bins are zero-padded and extra bins dropped, as ``numpy.fft.irfft``
    does for an explicit output size.
    """
    if length <= 0:
        raise ValueError(f"length must be > 0, got {length}")
    values = np.asarray(spectrum, dtype=complex).reshape(-1)
    if values.size == 0:
        return np.zeros(int(length))
    return np.fft.irfft(values, n=int(length))


def single_sided_filtered_fft(
    series: ArrayLike,
    sample_rate_hz: float,
    *,
    apply_sign_flip: bool = False,
    cutoff_hz: float = 0.1,
    order: int = 4,
) -> Spectrum:
    """
    Demean and low-pass ``series`` before taking its single-sided spectrum.

    ``apply_sign_flip`` multiplies the series by -1 first, for sensors whose
    output polarity is inverted.
    """
    arr = np.asarray(series, dtype=float).reshape(-1)
    if apply_sign_flip:
        arr = -arr
    arr = demean(arr)
    arr = butter_lowpass(arr, cutoff_hz, sample_rate_hz, order)
    arr = demean(arr)
    return forward_transform(arr, sample_rate_hz)


__all__ = [
    "Spectrum",
    "forward_transform",
    "inverse_transform",
    "single_sided_filtered_fft",
]
