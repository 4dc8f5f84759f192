import pathlib
import sys
import unittest

import numpy as np

# Ensure src/ is on path for direct test execution
ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from seiscal.core.errors import CalibrationError, MalformedInputError  # noqa: E402
from seiscal.core.models import (  # noqa: E402
    CalibrationInputSet,
    InstrumentResponse,
    TimeSeries,
    curve_from_pairs,
    second_order_poles,
)

SECOND = 1_000_000_000


class TimeSeriesTest(unittest.TestCase):
    def test_rejects_empty_and_non_finite_samples(self):
        with self.assertRaises(MalformedInputError):
            TimeSeries("empty", [], SECOND)
        with self.assertRaises(MalformedInputError):
            TimeSeries("nan", [1.0, float("nan")], SECOND)
        with self.assertRaises(MalformedInputError):
            TimeSeries("zero interval", [1.0, 2.0], 0)

    def test_errors_are_value_errors(self):
        self.assertTrue(issubclass(MalformedInputError, CalibrationError))
        self.assertTrue(issubclass(CalibrationError, ValueError))

    def test_samples_are_read_only(self):
        series = TimeSeries("x", [1.0, 2.0, 3.0], SECOND)
        with self.assertRaises(ValueError):
            series.data[0] = 5.0
        copy = series.values()
        copy[0] = 5.0
        self.assertEqual(series.data[0], 1.0)

    def test_rate_and_span(self):
        series = TimeSeries("x", np.zeros(40), 25_000_000, start_ns=SECOND)
        self.assertAlmostEqual(series.sample_rate_hz, 40.0)
        self.assertEqual(series.span_ns, SECOND)
        self.assertEqual(series.end_ns, SECOND + 39 * 25_000_000)

    def test_trim_keeps_samples_inside_range(self):
        series = TimeSeries("x", np.arange(10.0), SECOND)
        trimmed = series.trim(2 * SECOND, 5 * SECOND)
        np.testing.assert_array_equal(trimmed.data, [2.0, 3.0, 4.0, 5.0])
        self.assertEqual(trimmed.start_ns, 2 * SECOND)
        with self.assertRaises(MalformedInputError):
            series.trim(20 * SECOND, 30 * SECOND)


class InstrumentResponseTest(unittest.TestCase):
    def test_corner_and_damping_round_trip(self):
        p1, p2 = second_order_poles(0.05, 0.7)
        resp = InstrumentResponse(poles=(p1, p2))
        corner, damping = resp.corner_and_damping()
        self.assertAlmostEqual(corner, 0.05)
        self.assertAlmostEqual(damping, 0.7)

    def test_zero_dominant_pole_is_rejected(self):
        with self.assertRaises(MalformedInputError):
            InstrumentResponse(poles=(0j,)).corner_and_damping()

    def test_with_corner_and_damping_replaces_conjugate_pair(self):
        p1, p2 = second_order_poles(0.05, 0.7)
        resp = InstrumentResponse(poles=(p1, p2, -100.0), name="STS")
        fitted = resp.with_corner_and_damping(0.04, 0.6)
        self.assertEqual(len(fitted.poles), 3)
        self.assertEqual(fitted.poles[2], complex(-100.0))
        self.assertEqual(fitted.name, "STS [FIT]")
        corner, damping = fitted.corner_and_damping()
        self.assertAlmostEqual(corner, 0.04)
        self.assertAlmostEqual(damping, 0.6)

    def test_sorted_poles_by_magnitude(self):
        resp = InstrumentResponse(poles=(-10.0, -1 + 1j, -1 - 1j, -0.5))
        self.assertEqual(resp.sorted_poles(), (-0.5, -1 - 1j, -1 + 1j, -10.0))

    def test_with_corner_and_damping_replaces_real_pole_pair(self):
        resp = InstrumentResponse(poles=(-0.2, -0.3, -100.0), name="GS")
        fitted = resp.with_corner_and_damping(0.04, 0.6)
        self.assertEqual(len(fitted.poles), 3)
        self.assertEqual(fitted.poles[2], complex(-100.0))
        self.assertNotIn(complex(-0.3), fitted.poles)

    def test_evaluate_single_pole(self):
        resp = InstrumentResponse(poles=(-1.0,), gain=2.0)
        values = resp.evaluate([0.0, 1.0])
        self.assertAlmostEqual(values[0], 2.0)
        self.assertAlmostEqual(abs(values[1]), 2.0 / np.hypot(1.0, 2 * np.pi))


def test_input_set_slots() -> None:
    resp = InstrumentResponse(poles=(-1.0,))
    a = TimeSeries("a", [1.0, 2.0], SECOND)
    b = TimeSeries("b", [1.0, 2.0], SECOND, response=resp)
    inputs = CalibrationInputSet.of(a, None, b)
    assert inputs.block_is_set(0)
    assert not inputs.block_is_set(1)
    assert not inputs.block_is_set(5)
    assert inputs.loaded() == (a, b)
    assert inputs.with_response() == (b,)
    assert inputs.without_response() == (a,)


def test_curve_from_pairs() -> None:
    curve = curve_from_pairs("c", [(0.0, 1.0), (1.0, 3.0)])
    assert curve.points() == [(0.0, 1.0), (1.0, 3.0)]
    assert len(curve_from_pairs("empty", [])) == 0


if __name__ == "__main__":
    unittest.main()
