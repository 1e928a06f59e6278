"""
Tests for frequency response evaluation.
"""

import math
import unittest

import numpy as np
import pytest
from scipy import signal

from filterlib.butterworth import design_highpass, design_lowpass
from filterlib.exceptions import InvalidParameter
from filterlib.response import (
    FrequencyResponseSample,
    evaluate,
    frequency_response,
    iter_response,
    magnitude_to_db,
    phase_to_degrees,
    response_arrays,
    summarize_response,
)


FS = 22050.0


class TestEvaluate(unittest.TestCase):
    """Sampling a designed filter on the FFT grid."""

    def setUp(self):
        self.filt = design_lowpass(8, 4000.0, FS)

    def test_sample_count_even(self):
        samples = evaluate(self.filt, 1024)
        self.assertEqual(len(samples), 513)
        self.assertEqual(samples[0].frequency_hz, 0.0)
        self.assertAlmostEqual(samples[-1].frequency_hz, FS / 2, places=9)

    def test_sample_count_odd(self):
        samples = evaluate(self.filt, 1001)
        self.assertEqual(len(samples), 501)
        self.assertLess(samples[-1].frequency_hz, FS / 2)

    def test_strictly_increasing(self):
        freqs = [s.frequency_hz for s in evaluate(self.filt, 4096)]
        self.assertTrue(all(f2 > f1 for f1, f2 in zip(freqs, freqs[1:])))

    def test_dc_sample(self):
        first = evaluate(self.filt, 64)[0]
        self.assertIsInstance(first, FrequencyResponseSample)
        self.assertAlmostEqual(first.magnitude, 1.0, delta=1e-9)
        self.assertAlmostEqual(first.phase_rad, 0.0, delta=1e-9)
        self.assertAlmostEqual(first.magnitude_db, 0.0, delta=1e-7)

    def test_magnitude_matches_value(self):
        for s in evaluate(self.filt, 32):
            self.assertAlmostEqual(s.magnitude, abs(s.value), delta=1e-12)

    def test_single_point(self):
        samples = evaluate(self.filt, 1)
        self.assertEqual(len(samples), 1)
        self.assertEqual(samples[0].frequency_hz, 0.0)

    def test_invalid_point_count(self):
        for bad in (0, -5, 2.5):
            with self.assertRaises(InvalidParameter):
                evaluate(self.filt, bad)


class TestIterResponse(unittest.TestCase):

    def test_single_pass(self):
        it = iter_response(design_lowpass(4, 1000.0, FS), 16)
        first = next(it)
        self.assertEqual(first.frequency_hz, 0.0)
        rest = list(it)
        self.assertEqual(len(rest), 8)
        self.assertEqual(list(it), [])

    def test_validates_before_iteration(self):
        # The error surfaces on the call itself, not on the first next()
        with self.assertRaises(InvalidParameter):
            iter_response(design_lowpass(4, 1000.0, FS), 0)


def test_matches_scipy_freqz():
    filt = design_highpass(6, 3225.1032, FS)
    response = response_arrays(filt, 2048)
    _, h = signal.freqz(filt.b, filt.a, worN=response.frequencies, fs=FS)
    np.testing.assert_allclose(response.values, h, rtol=1e-9, atol=1e-12)


def test_lowpass_half_power_at_cutoff():
    filt = design_lowpass(8, 4000.0, FS)
    h = frequency_response(filt.b, filt.a, 2 * math.pi * 4000.0 / FS)
    assert abs(h) == pytest.approx(1 / math.sqrt(2), abs=1e-9)


def test_reflection_between_lowpass_and_highpass():
    order, cutoff = 6, 2500.0
    lp = design_lowpass(order, cutoff, FS)
    hp = design_highpass(order, FS / 2 - cutoff, FS)
    omega = np.linspace(0.0, math.pi, 257)
    hp_mag = np.abs(frequency_response(hp.b, hp.a, omega))
    lp_mag = np.abs(frequency_response(lp.b, lp.a, math.pi - omega))
    np.testing.assert_allclose(hp_mag, lp_mag, atol=1e-9)


def test_frequency_response_scalar_and_array():
    b, a = [1.0, 1.0], [1.0, 0.0]
    assert frequency_response(b, a, 0.0) == pytest.approx(2.0)
    values = frequency_response(b, a, np.array([0.0, math.pi]))
    np.testing.assert_allclose(np.abs(values), [2.0, 0.0], atol=1e-12)


def test_magnitude_to_db():
    assert magnitude_to_db(1.0) == 0.0
    assert magnitude_to_db(10.0) == pytest.approx(20.0)
    assert magnitude_to_db(1 / math.sqrt(2)) == pytest.approx(-3.0103, abs=1e-4)
    assert magnitude_to_db(0.0) == pytest.approx(-200.0)
    assert isinstance(magnitude_to_db(0.5), float)

    arr = magnitude_to_db(np.array([1.0, 0.1, 0.0]))
    assert isinstance(arr, np.ndarray)
    np.testing.assert_allclose(arr, [0.0, -20.0, -200.0])


def test_phase_to_degrees():
    assert phase_to_degrees(math.pi) == pytest.approx(180.0)
    assert phase_to_degrees(-math.pi / 2) == pytest.approx(-90.0)
    np.testing.assert_allclose(phase_to_degrees(np.array([0.0, math.pi / 4])), [0.0, 45.0])


def test_summarize_response():
    response = response_arrays(design_lowpass(8, 4000.0, FS), 22050)
    summary = summarize_response(response)
    assert summary["num_points"] == 11026
    assert summary["max_frequency_hz"] == pytest.approx(FS / 2)
    assert summary["max_magnitude"] == pytest.approx(1.0, abs=1e-9)
    assert summary["min_magnitude"] < 1e-6
