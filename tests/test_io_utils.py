"""
Tests for recording loading and report files.
"""

import csv
import os
import re
import tempfile
import unittest

import numpy as np
import pytest
import soundfile as sf

from filterlib import io_utils
from filterlib.butterworth import design_highpass, design_lowpass
from filterlib.demodulation import ComparisonResult
from filterlib.exceptions import AudioError, FilesystemError, InvalidParameter
from filterlib.io_utils import (
    audio_info,
    export_spectrum_csv,
    load_audio,
    read_offset_results,
    save_audio,
    write_comparison,
    write_filter_coefficients,
    write_offset_results,
    write_response_summary,
)
from filterlib.response import response_arrays
from filterlib.spectrum import OffsetEstimate, SpectralPeak, SymmetricPair


FS = 22050.0


def make_estimate(with_pair=True):
    pair = None
    if with_pair:
        pair = SymmetricPair(SpectralPeak(2900.0, 0.25, 2900), SpectralPeak(3550.0, 0.25, 3550))
    return OffsetEstimate(
        sample_rate=FS,
        num_samples=22050,
        peak=SpectralPeak(2900.0, 0.25, 2900),
        refined_hz=2900.0,
        symmetric_pair=pair,
    )


class TestOffsetResults(unittest.TestCase):

    def test_write_then_read(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "nested", "offset_results.txt")
            write_offset_results(path, make_estimate(), baseband_hz=4000)
            values = read_offset_results(path)

        self.assertEqual(values["sample_rate"], FS)
        self.assertEqual(values["num_samples"], 22050)
        self.assertAlmostEqual(values["frequency_offset"], 3225.0)
        self.assertAlmostEqual(values["symmetric_baseband"], 325.0)
        self.assertEqual(values["baseband"], 4000.0)

    def test_offset_without_pair_uses_refined_peak(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "offset_results.txt")
            write_offset_results(path, make_estimate(with_pair=False))
            values = read_offset_results(path)
        self.assertAlmostEqual(values["frequency_offset"], 2900.0)
        self.assertNotIn("symmetric_baseband", values)


def test_read_missing_file(tmp_path):
    with pytest.raises(FilesystemError):
        read_offset_results(str(tmp_path / "absent.txt"))


def test_read_incomplete_results(tmp_path):
    path = tmp_path / "offset_results.txt"
    path.write_text("sample_rate = 22050.00 Hz\n")
    with pytest.raises(InvalidParameter) as excinfo:
        read_offset_results(str(path))
    assert "frequency_offset" in str(excinfo.value)


def test_read_non_numeric_value(tmp_path):
    path = tmp_path / "offset_results.txt"
    path.write_text("sample_rate = fast Hz\nfrequency_offset = 10 Hz\n")
    with pytest.raises(InvalidParameter):
        read_offset_results(str(path))


def test_coefficient_file(tmp_path):
    hp = design_highpass(8, 3225.1032, FS)
    lp = design_lowpass(8, 4000.0, FS)
    path = tmp_path / "filter_coefficients.txt"
    write_filter_coefficients(str(path), [hp, lp])
    text = path.read_text()

    assert "High-pass Filter (order 8 Butterworth):" in text
    assert "Low-pass Filter (order 8 Butterworth):" in text
    assert "Cutoff Frequency: 3225.1032 Hz" in text

    b_values = [float(v) for v in re.findall(r"b\[\d+\] = (\S+)", text)]
    a_values = [float(v) for v in re.findall(r"a\[\d+\] = (\S+)", text)]
    assert len(b_values) == 18
    assert len(a_values) == 18
    np.testing.assert_allclose(b_values[:9], hp.b, rtol=1e-14)
    np.testing.assert_allclose(a_values[9:], lp.a, rtol=1e-14)
    assert re.search(r"a\[0\] = 1\.000000000000000e\+00", text)


def test_response_summary(tmp_path):
    lp = design_lowpass(8, 4000.0, FS)
    path = tmp_path / "frequency_response.txt"
    write_response_summary(str(path), [("Low-pass Filter", response_arrays(lp, 1024))])
    text = path.read_text()
    assert "Low-pass Filter:" in text
    assert "Number of frequency points: 513" in text
    assert "Frequency range: 0 - 11025.00 Hz" in text
    assert "Maximum magnitude: 1.000000" in text


def test_unwritable_report(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(FilesystemError):
        write_response_summary(str(blocker / "sub" / "out.txt"), [])


def test_export_spectrum_csv(tmp_path):
    path = tmp_path / "spectrum.csv"
    freqs = np.array([0.0, 1.0, 2.0])
    mags = np.array([0.0, 0.5, 0.25])
    export_spectrum_csv(str(path), freqs, mags, np.array([-200.0, -6.0206, -12.0412]))

    with open(path, newline="") as f:
        rows = list(csv.reader(f))
    assert rows[0] == ["frequency_hz", "magnitude", "magnitude_db"]
    assert len(rows) == 4
    assert float(rows[2][1]) == pytest.approx(0.5)
    assert list(tmp_path.iterdir()) == [path]


class TestLoadAudio:

    def test_native_rate(self, tmp_path):
        sr = 22050
        x = 0.5 * np.sin(2 * np.pi * 440 * np.arange(sr) / sr)
        path = tmp_path / "tone.wav"
        sf.write(str(path), x, sr)

        y, loaded_sr = load_audio(str(path))
        assert loaded_sr == sr
        assert len(y) == sr
        assert y.dtype == np.float64
        np.testing.assert_allclose(y, x, atol=1e-3)

    def test_stereo_downmix(self, tmp_path):
        sr = 8000
        x = np.zeros((sr, 2))
        x[:, 0] = 0.5
        path = tmp_path / "stereo.wav"
        sf.write(str(path), x, sr)

        y, _ = load_audio(str(path))
        assert y.ndim == 1
        assert np.allclose(y, 0.25, atol=1e-3)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_audio(str(tmp_path / "nope.wav"))

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "broken.wav"
        path.write_bytes(b"not a wav file at all")
        with pytest.raises(AudioError):
            load_audio(str(path))

    def test_audio_info(self, tmp_path):
        path = tmp_path / "short.wav"
        sf.write(str(path), np.zeros(4410), 44100)
        info = audio_info(str(path))
        assert info["sample_rate"] == 44100
        assert info["channels"] == 1
        assert info["frames"] == 4410
        assert info["duration_sec"] == pytest.approx(0.1)


def test_export_spectrum_csv_leaves_no_temp_file_on_failure(tmp_path, monkeypatch):
    def failing_move(src, dst):
        raise OSError("No space left on device")

    monkeypatch.setattr(io_utils.shutil, "move", failing_move)
    with pytest.raises(FilesystemError):
        export_spectrum_csv(str(tmp_path / "spectrum.csv"), np.array([0.0]), np.array([1.0]), np.array([0.0]))
    assert list(tmp_path.iterdir()) == []


class TestSaveAudio:

    def test_written_at_rate(self, tmp_path):
        path = tmp_path / "out" / "tone.wav"
        x = 0.5 * np.sin(2 * np.pi * 440 * np.arange(8000) / 8000)
        save_audio(str(path), x, 8000)

        data, sr = sf.read(str(path))
        assert sr == 8000
        assert sf.info(str(path)).subtype == "PCM_16"
        np.testing.assert_allclose(data, x, atol=1e-4)

    def test_over_full_scale_is_scaled(self, tmp_path):
        path = tmp_path / "loud.wav"
        save_audio(str(path), np.array([0.0, 2.0, -4.0, 1.0]), 8000)
        data, _ = sf.read(str(path))
        assert np.max(np.abs(data)) <= 1.0
        assert data[2] == pytest.approx(-1.0, abs=1e-4)
        assert data[1] == pytest.approx(0.5, abs=1e-4)

    def test_rejects_empty(self, tmp_path):
        with pytest.raises(AudioError):
            save_audio(str(tmp_path / "x.wav"), np.array([]), 8000)

    def test_rejects_nan(self, tmp_path):
        with pytest.raises(AudioError):
            save_audio(str(tmp_path / "x.wav"), np.array([0.0, np.nan]), 8000)


def test_comparison_report(tmp_path):
    path = tmp_path / "comparison.txt"
    result = ComparisonResult(mse=1e-6, max_diff=0.004, correlation=0.999, correlation_normalized=0.9991,
                              snr_db=45.0, num_samples=22050)
    write_comparison(str(path), result)

    text = path.read_text()
    assert text.startswith("=== ideal vs IIR demodulation ===")
    assert "Samples compared: 22050" in text
    assert "Mean Squared Error (MSE): 1.000000e-06" in text
    assert "Root Mean Squared Error (RMSE): 1.000000e-03" in text
    assert "Signal-to-Noise Ratio: 45.00 dB" in text
    assert "Excellent correlation" in text
    assert "Excellent SNR" in text


def test_comparison_report_verdicts(tmp_path):
    path = tmp_path / "comparison.txt"
    result = ComparisonResult(mse=0.01, max_diff=0.3, correlation=0.5, correlation_normalized=0.5,
                              snr_db=10.0, num_samples=100)
    write_comparison(str(path), result, labels=("first", "second"))

    text = path.read_text()
    assert "=== first vs second demodulation ===" in text
    assert "Low correlation" in text
    assert "Low SNR" in text
