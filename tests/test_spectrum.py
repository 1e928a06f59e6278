"""
Tests for spectral analysis and frequency-offset estimation.

Synthetic signals use one-second durations so every tone lands exactly on
an FFT bin.
"""

import unittest

import numpy as np
import pytest

from filterlib.exceptions import InvalidParameter, OffsetEstimationError, SilentArtifact
from filterlib.spectrum import (
    SpectralPeak,
    apply_window,
    compute_spectrum,
    energy_distribution,
    estimate_frequency_offset,
    estimate_offset,
    estimate_snr,
    find_peaks,
    find_symmetric_offset,
    refine_peak_frequency,
)


def tone(freq, sr, duration=1.0, amplitude=1.0):
    t = np.arange(int(sr * duration)) / sr
    return amplitude * np.sin(2 * np.pi * freq * t)


def shifted_baseband(offset_hz, baseband_hz, sr, duration=1.0):
    """A baseband tone mis-demodulated by offset_hz: two lines around the offset."""
    t = np.arange(int(sr * duration)) / sr
    return 0.5 * (np.cos(2 * np.pi * (offset_hz - baseband_hz) * t)
                  + np.cos(2 * np.pi * (offset_hz + baseband_hz) * t))


class TestComputeSpectrum(unittest.TestCase):

    def test_tone_on_bin(self):
        spec = compute_spectrum(tone(100.0, 1000), 1000)
        self.assertEqual(len(spec.frequencies), 1000)
        self.assertAlmostEqual(spec.resolution_hz, 1.0)
        self.assertEqual(int(np.argmax(spec.magnitude[:500])), 100)
        # A unit sine splits its energy between the two sides
        self.assertAlmostEqual(spec.magnitude[100], 0.5, places=9)

    def test_single_sided_length(self):
        spec = compute_spectrum(tone(50.0, 1000, duration=0.5), 1000)
        freqs, mags = spec.single_sided()
        self.assertEqual(len(freqs), 251)
        self.assertEqual(len(mags), 251)
        self.assertAlmostEqual(freqs[-1], 500.0)

    def test_db_floor(self):
        spec = compute_spectrum(np.zeros(64), 1000)
        np.testing.assert_array_equal(spec.magnitude_db(), np.full(64, -200.0))

    def test_rejects_empty_signal(self):
        with self.assertRaises(InvalidParameter):
            compute_spectrum(np.array([]), 1000)

    def test_rejects_bad_rate(self):
        with self.assertRaises(InvalidParameter):
            compute_spectrum(np.ones(16), 0)

    def test_windows(self):
        x = np.ones(32)
        self.assertEqual(apply_window(x, "hann")[0], 0.0)
        self.assertAlmostEqual(apply_window(x, "hamming")[0], 0.08)
        np.testing.assert_array_equal(apply_window(x, None), x)
        with self.assertRaises(InvalidParameter):
            apply_window(x, "kaiser")


class TestPeakSearch(unittest.TestCase):

    def setUp(self):
        self.freqs = np.linspace(0, 1000, 1001)
        self.mags = np.exp(-((self.freqs - 100.0) ** 2) / 100.0) + 0.01

    def test_main_peak(self):
        peak = estimate_frequency_offset(self.freqs, self.mags, (10.0, 500.0))
        self.assertLess(abs(peak.frequency_hz - 100.0), 2.0)
        self.assertEqual(peak.index, 100)

    def test_dc_excluded(self):
        mags = np.array([5.0, 1.0, 2.0, 1.0])
        freqs = np.array([0.0, 1.0, 2.0, 3.0])
        self.assertEqual(estimate_frequency_offset(freqs, mags, (0.0, 3.0)).index, 2)
        self.assertEqual(estimate_frequency_offset(freqs, mags, (0.0, 3.0), exclude_dc=False).index, 0)

    def test_empty_range(self):
        with self.assertRaises(OffsetEstimationError):
            estimate_frequency_offset(self.freqs, self.mags, (2000.0, 3000.0))

    def test_parabolic_refinement(self):
        freqs = np.array([0.0, 1.0, 2.0])
        mags = np.array([1.0, 3.0, 2.0])
        self.assertAlmostEqual(refine_peak_frequency(freqs, mags, 1), 1.0 + 1.0 / 6.0)

    def test_refinement_at_edges_and_flat_tops(self):
        freqs = np.array([0.0, 1.0, 2.0])
        self.assertEqual(refine_peak_frequency(freqs, np.array([3.0, 2.0, 1.0]), 0), 0.0)
        self.assertEqual(refine_peak_frequency(freqs, np.array([1.0, 2.0, 3.0]), 2), 2.0)
        self.assertEqual(refine_peak_frequency(freqs, np.array([1.0, 1.0, 1.0]), 1), 1.0)


class TestMultiplePeaks(unittest.TestCase):

    def setUp(self):
        self.freqs = np.linspace(0, 1000, 1001)
        self.mags = (np.exp(-((self.freqs - 100.0) ** 2) / 100.0)
                     + 0.5 * np.exp(-((self.freqs - 300.0) ** 2) / 100.0)
                     + 0.01)

    def test_two_peaks_strongest_first(self):
        peaks = find_peaks(self.freqs, self.mags, num_peaks=5, min_distance=20, threshold=0.1)
        self.assertEqual(len(peaks), 2)
        self.assertAlmostEqual(peaks[0].frequency_hz, 100.0)
        self.assertAlmostEqual(peaks[1].frequency_hz, 300.0)

    def test_min_distance(self):
        peaks = find_peaks(self.freqs, self.mags, num_peaks=5, min_distance=250, threshold=0.1)
        self.assertEqual(len(peaks), 1)

    def test_short_input(self):
        self.assertEqual(find_peaks(np.array([0.0, 1.0]), np.array([1.0, 2.0]), 5, 1, 0.0), [])

    def test_taller_neighbour_wins_within_distance(self):
        mags = np.zeros(40)
        mags[10] = 0.5
        mags[15] = 1.0
        mags[30] = 0.8
        peaks = find_peaks(np.arange(40.0), mags, num_peaks=5, min_distance=10, threshold=0.1)
        self.assertEqual([p.index for p in peaks], [15, 30])

    def test_cut_to_strongest(self):
        mags = np.zeros(40)
        mags[5], mags[20], mags[35] = 0.3, 0.9, 0.6
        peaks = find_peaks(np.arange(40.0), mags, num_peaks=2, min_distance=1, threshold=0.0)
        self.assertEqual([p.index for p in peaks], [20, 35])
        self.assertEqual(peaks[0].magnitude, 0.9)

    def test_threshold(self):
        mags = np.zeros(40)
        mags[5], mags[20] = 0.05, 0.9
        peaks = find_peaks(np.arange(40.0), mags, num_peaks=5, min_distance=1, threshold=0.1)
        self.assertEqual([p.index for p in peaks], [20])


def test_symmetric_pair():
    peaks = [
        SpectralPeak(2900.0, 1.0, 2900),
        SpectralPeak(3550.0, 0.95, 3550),
        SpectralPeak(1200.0, 0.3, 1200),
    ]
    pair = find_symmetric_offset(peaks)
    assert pair is not None
    assert pair.lower.frequency_hz == 2900.0
    assert pair.upper.frequency_hz == 3550.0
    assert pair.axis_hz == pytest.approx(3225.0)
    assert pair.baseband_hz == pytest.approx(325.0)


def test_symmetric_pair_requires_similar_heights():
    peaks = [SpectralPeak(1000.0, 1.0, 1000), SpectralPeak(2000.0, 0.5, 2000)]
    assert find_symmetric_offset(peaks) is None


def test_symmetric_pair_ignores_high_frequencies():
    peaks = [SpectralPeak(1000.0, 1.0, 1000), SpectralPeak(6000.0, 1.0, 6000)]
    assert find_symmetric_offset(peaks, max_freq_hz=5000.0) is None


def test_energy_distribution():
    freqs = np.arange(0, 1000, dtype=float)
    mags = np.zeros(1000)
    mags[100] = 1.0
    mags[600] = 1.0
    result = dict(energy_distribution(freqs, mags, [(0, 500), (500, 1000)]))
    assert result["0-500 Hz"] == pytest.approx(50.0)
    assert result["500-1000 Hz"] == pytest.approx(50.0)


def test_energy_distribution_silent():
    with pytest.raises(SilentArtifact):
        energy_distribution(np.arange(10.0), np.zeros(10), [(0, 5)])


def test_estimate_snr():
    mags = np.concatenate([np.full(10, 1.0), np.full(10, 0.1)])
    assert estimate_snr(mags, (0, 10), (10, 20)) == pytest.approx(20.0)
    assert estimate_snr(np.array([1.0, 1.0, 0.0, 0.0]), (0, 2), (2, 4)) == float("inf")


class TestEstimateOffset(unittest.TestCase):

    def test_symmetric_axis(self):
        sr = 22050
        estimate = estimate_offset(shifted_baseband(3225.0, 325.0, sr), sr)
        self.assertIsNotNone(estimate.symmetric_pair)
        self.assertAlmostEqual(estimate.offset_hz, 3225.0, places=6)
        self.assertAlmostEqual(estimate.symmetric_pair.baseband_hz, 325.0, places=6)
        self.assertEqual(estimate.num_samples, sr)
        self.assertEqual(estimate.sample_rate, float(sr))

    def test_single_tone_falls_back_to_peak(self):
        sr = 8000
        estimate = estimate_offset(tone(440.0, sr), sr)
        self.assertIsNone(estimate.symmetric_pair)
        self.assertAlmostEqual(estimate.offset_hz, 440.0, places=6)
        self.assertEqual(estimate.peak.frequency_hz, 440.0)

    def test_silent_recording(self):
        with self.assertRaises(SilentArtifact):
            estimate_offset(np.zeros(1000), 8000)
