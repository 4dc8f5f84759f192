from __future__ import annotations

import math
import threading

import numpy as np
import pytest

from seiscal.config import AzimuthSettings
from seiscal.core.errors import (
    CalibrationCancelled,
    InsufficientDataError,
    MalformedInputError,
    NumericalInstabilityError,
)
from seiscal.core.models import CalibrationInputSet, TimeSeries, WindowEstimate
from seiscal.experiments.azimuth import (
    ANGLE_CURVE,
    COHERENCE_CURVE,
    AzimuthExperiment,
    aggregate_windows,
)

SECOND = 1_000_000_000
SHORT_WINDOWS = AzimuthSettings(window_seconds=200.0, stride_seconds=50.0)


def _sensor_pair(angle_deg: float, n_samples: int, seed: int = 7):
    """Test pair rotated ``angle_deg`` clockwise from the reference north."""
    rng = np.random.default_rng(seed)
    north = rng.standard_normal(n_samples)
    east = rng.standard_normal(n_samples)
    a = math.radians(angle_deg)
    test_north = north * math.cos(a) - east * math.sin(a)
    test_east = north * math.sin(a) + east * math.cos(a)
    return test_north, test_east, north


def _input_set(angle_deg: float, n_samples: int) -> CalibrationInputSet:
    test_north, test_east, ref = _sensor_pair(angle_deg, n_samples)
    return CalibrationInputSet.of(
        TimeSeries("00_BH1", test_north, SECOND),
        TimeSeries("00_BH2", test_east, SECOND),
        TimeSeries("10_BHN", ref, SECOND),
    )


def _angle_error_deg(found_deg: float, expected_deg: float) -> float:
    diff = (found_deg - expected_deg) % 360.0
    return min(diff, 360.0 - diff)


@pytest.mark.parametrize("angle_deg", [16.0, 75.0, 200.0, 310.0])
def test_simple_mode_recovers_rotation(angle_deg: float) -> None:
    experiment = AzimuthExperiment(simple=True)
    result = experiment.run(_input_set(angle_deg, 1500))
    assert _angle_error_deg(result.angle_deg, angle_deg) < 0.5
    assert 0.0 <= result.angle_rad < 2 * math.pi
    assert not result.enough_windows
    assert result.uncertainty_rad == 0.0


def test_windowed_run_aggregates_best_windows() -> None:
    experiment = AzimuthExperiment(SHORT_WINDOWS)
    result = experiment.run(_input_set(40.0, 1000))
    assert result.enough_windows
    assert len(result.windows) == 17
    assert _angle_error_deg(result.angle_deg, 40.0) < 0.5
    assert result.uncertainty_deg < 1.0

    names = [collection.name for collection in result.curves]
    assert names == ["Azimuth", ANGLE_CURVE, COHERENCE_CURVE]
    assert len(result.curves[1].curves[0]) == 17


def test_four_windows_fall_back_to_global_estimate() -> None:
    experiment = AzimuthExperiment(SHORT_WINDOWS)
    messages: list[str] = []
    result = experiment.run(_input_set(40.0, 399), progress=messages.append)
    assert len(result.windows) == 4
    assert not result.enough_windows
    assert result.uncertainty_rad == 0.0
    assert "Window size too small for good angle estimation..." in messages


def test_five_windows_are_enough() -> None:
    experiment = AzimuthExperiment(SHORT_WINDOWS)
    messages: list[str] = []
    result = experiment.run(_input_set(40.0, 400), progress=messages.append)
    assert len(result.windows) == 5
    assert result.enough_windows
    assert messages[0] == "Found initial guess for angle"
    assert "Fitting angle over data in window 1 of 5" in messages
    assert messages[-1] == "Solver completed! Producing plots..."


def test_reported_angle_includes_reference_offset() -> None:
    experiment = AzimuthExperiment(offset_deg=15.0, simple=True)
    result = experiment.run(_input_set(16.0, 1500))
    assert _angle_error_deg(result.reported_angle_deg, 31.0) < 0.5


def test_flat_reference_is_numerically_unstable() -> None:
    test_north, test_east, _ = _sensor_pair(30.0, 600)
    with pytest.raises(NumericalInstabilityError):
        AzimuthExperiment(simple=True).estimate(test_north, test_east, np.ones(600), SECOND)


def test_missing_block_is_insufficient() -> None:
    test_north, test_east, _ = _sensor_pair(30.0, 600)
    inputs = CalibrationInputSet.of(
        TimeSeries("n", test_north, SECOND), TimeSeries("e", test_east, SECOND), None
    )
    experiment = AzimuthExperiment()
    assert not experiment.has_enough_data(inputs)
    with pytest.raises(InsufficientDataError):
        experiment.run(inputs)


def test_mismatched_intervals_are_rejected() -> None:
    test_north, test_east, ref = _sensor_pair(30.0, 600)
    inputs = CalibrationInputSet.of(
        TimeSeries("n", test_north, SECOND),
        TimeSeries("e", test_east, SECOND),
        TimeSeries("r", ref, SECOND // 2),
    )
    with pytest.raises(MalformedInputError):
        AzimuthExperiment().run(inputs)


def test_cancel_event_stops_run() -> None:
    event = threading.Event()
    event.set()
    with pytest.raises(CalibrationCancelled):
        AzimuthExperiment().run(_input_set(30.0, 600), cancel_event=event)


def test_aggregate_keeps_highest_coherence_windows() -> None:
    good = [WindowEstimate(i * 10.0, 1.0 + 0.01 * i, 0.99) for i in range(5)]
    bad = [WindowEstimate(100.0 + i, 3.0, 0.2) for i in range(5)]
    angle, uncertainty = aggregate_windows(bad + good)
    assert angle == pytest.approx(1.02)
    expected_sigma = np.std([1.0, 1.01, 1.02, 1.03, 1.04], ddof=1)
    assert uncertainty == pytest.approx(2.0 * expected_sigma)


def test_aggregate_requires_minimum_windows() -> None:
    with pytest.raises(ValueError):
        aggregate_windows([WindowEstimate(0.0, 1.0, 0.9)] * 4)


@pytest.mark.parametrize("angle_deg", [179.0, 180.0, 181.0])
def test_simple_mode_recovers_reversed_pair(angle_deg: float) -> None:
    test_north, test_east, ref = _sensor_pair(angle_deg, 1500)
    result = AzimuthExperiment(simple=True).estimate(test_north, test_east, ref, SECOND)
    assert _angle_error_deg(result.angle_deg, angle_deg) < 0.5


def test_estimate_rejects_empty_arrays() -> None:
    with pytest.raises(MalformedInputError):
        AzimuthExperiment(simple=True).estimate([], [], [], SECOND)


def test_estimate_rejects_non_finite_samples() -> None:
    test_north, test_east, ref = _sensor_pair(30.0, 600)
    test_east = test_east.copy()
    test_east[10] = np.nan
    with pytest.raises(MalformedInputError):
        AzimuthExperiment(simple=True).estimate(test_north, test_east, ref, SECOND)


def test_estimate_rejects_unequal_lengths() -> None:
    test_north, test_east, ref = _sensor_pair(30.0, 600)
    with pytest.raises(MalformedInputError):
        AzimuthExperiment(simple=True).estimate(test_north, test_east, ref[:500], SECOND)


def test_flat_window_is_skipped_and_aggregation_continues() -> None:
    test_north, test_east, ref = _sensor_pair(40.0, 1000)
    for data in (test_north, test_east, ref):
        data[-200:] = 0.0
    result = AzimuthExperiment(SHORT_WINDOWS).estimate(test_north, test_east, ref, SECOND)
    assert len(result.windows) == 16
    assert result.enough_windows
    assert _angle_error_deg(result.angle_deg, 40.0) < 0.5
