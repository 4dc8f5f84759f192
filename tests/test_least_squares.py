from __future__ import annotations

import threading

import numpy as np
import pytest

from seiscal.core.errors import CalibrationCancelled, MalformedInputError
from seiscal.core.least_squares import LeastSquaresEngine

T = np.linspace(0.0, 4.0, 30)


def exponential(params: np.ndarray):
    a, b = params
    values = a * np.exp(b * T)
    jac = np.column_stack((np.exp(b * T), a * T * np.exp(b * T)))
    return values, jac


def test_solver_recovers_exponential_parameters() -> None:
    target, _ = exponential(np.array([2.0, -0.5]))
    engine = LeastSquaresEngine(exponential, target, cost_tolerance=1e-12, param_tolerance=1e-12)
    result = engine.solve([1.0, -0.1])
    np.testing.assert_allclose(result.params, [2.0, -0.5], rtol=1e-6)
    assert result.rms < 1e-8
    assert result.evaluations > 0


def test_rms_at_arbitrary_point() -> None:
    target = np.zeros(T.size)
    engine = LeastSquaresEngine(lambda p: (np.full(T.size, p[0]), np.ones((T.size, 1))), target)
    assert engine.rms([3.0]) == pytest.approx(3.0)


def test_cancelled_solve_raises() -> None:
    event = threading.Event()
    event.set()
    target, _ = exponential(np.array([2.0, -0.5]))
    engine = LeastSquaresEngine(exponential, target, cancel_event=event)
    with pytest.raises(CalibrationCancelled):
        engine.solve([1.0, -0.1])


def test_model_size_mismatch_is_rejected() -> None:
    engine = LeastSquaresEngine(lambda p: (np.zeros(3), np.zeros((3, 1))), np.zeros(4))
    with pytest.raises(MalformedInputError):
        engine.solve([0.0])


def test_empty_target_is_rejected() -> None:
    with pytest.raises(MalformedInputError):
        LeastSquaresEngine(exponential, [])
