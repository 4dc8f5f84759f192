"""Angle, rotation and complex-ordering helpers."""

from __future__ import annotations

import math
from typing import Iterable, List, Tuple

import numpy as np
from numpy.typing import ArrayLike


TAU = 2.0 * math.pi  # radians in a full circle

ATANC_CUTOFF = 1.0 / 1000.0


def atanc(value: complex) -> float:
    """
    Phase angle of a complex number in ``(-pi, pi]``.

    Values whose magnitude is below ``ATANC_CUTOFF`` return 0 so that phase
    curves do not fill with noise near the origin.
    """
    c = complex(value)
    if abs(c) < ATANC_CUTOFF:
        return 0.0
    return math.atan2(c.imag, c.real)


def normalize_angle(theta: float) -> float:
    """Map an angle in radians onto ``[0, 2*pi)``."""
    wrapped = math.fmod(float(theta), TAU)
    if wrapped < 0.0:
        wrapped += TAU
    # fmod of a tiny negative value can round up to exactly TAU
    if wrapped >= TAU:
        wrapped = 0.0
    return wrapped


def unwrap(phi: float, prev_phi: float) -> float:
    """
    Shift ``phi`` by whole turns so it lies within pi of ``prev_phi``.

    ``phi`` is first mapped onto ``[0, 2*pi)``; the result ``r`` always
    satisfies ``abs(r - prev_phi) <= pi``.
    """
    new_phi = normalize_angle(phi)
    turns = round((prev_phi - new_phi) / TAU)
    new_phi += turns * TAU
    # round() can land one turn off when the distance is exactly pi plus rounding noise
    while new_phi - prev_phi > math.pi:
        new_phi -= TAU
    while prev_phi - new_phi > math.pi:
        new_phi += TAU
    return new_phi


def unwrap_sequence(angles: ArrayLike) -> np.ndarray:
    """Apply :func:`unwrap` along ``angles``, seeding the previous value with 0."""
    arr = np.asarray(angles, dtype=float).reshape(-1)
    out = np.empty_like(arr)
    prev = 0.0
    for i, phi in enumerate(arr):
        prev = unwrap(float(phi), prev)
        out[i] = prev
    return out


def rotate(north: ArrayLike, east: ArrayLike, theta: float) -> np.ndarray:
    """
    North component of an orthogonal pair rotated clockwise by ``theta``.

    ``rotated = north * cos(theta) + east * sin(theta)``
    """
    n = np.asarray(north, dtype=float)
    e = np.asarray(east, dtype=float)
    return n * math.cos(theta) + e * math.sin(theta)


def rotate_pair(
    north: ArrayLike, east: ArrayLike, theta: float
) -> Tuple[np.ndarray, np.ndarray]:
    """Both components of the pair rotated clockwise by ``theta``."""
    n = np.asarray(north, dtype=float)
    e = np.asarray(east, dtype=float)
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)
    return n * cos_t + e * sin_t, -n * sin_t + e * cos_t


def magnitude_key(value: complex) -> Tuple[float, float, float]:
    """Sort key ordering by magnitude, then real part, then imaginary part."""
    c = complex(value)
    return abs(c), c.real, c.imag


def reals_first_key(value: complex) -> Tuple[int, float, float]:
    """Sort key placing pure reals before complex values, each by real then imaginary."""
    c = complex(value)
    return (0 if c.imag == 0.0 else 1), c.real, c.imag


def sort_by_magnitude(values: Iterable[complex]) -> List[complex]:
    return sorted((complex(v) for v in values), key=magnitude_key)


def sort_reals_first(values: Iterable[complex]) -> List[complex]:
    return sorted((complex(v) for v in values), key=reals_first_key)


def percent_difference(initial: float, fit: float) -> float:
    """Change from ``fit`` to ``initial`` in percent of ``fit``; 0 when ``fit`` is 0."""
    if fit == 0.0:
        return 0.0
    return (initial - fit) / fit * 100.0


__all__ = [
    "TAU",
    "ATANC_CUTOFF",
    "atanc",
    "normalize_angle",
    "unwrap",
    "unwrap_sequence",
    "rotate",
    "rotate_pair",
    "magnitude_key",
    "reals_first_key",
    "sort_by_magnitude",
    "sort_reals_first",
    "percent_difference",
]
