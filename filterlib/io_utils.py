"""
File I/O: recording loading and saving, result files, filter and comparison reports.
"""

import csv
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple

import librosa
import numpy as np
import soundfile as sf

from filterlib.logger import get_logger
from filterlib.butterworth import DigitalFilter, FilterKind
from filterlib.demodulation import ComparisonResult
from filterlib.exceptions import AudioError, FilesystemError, InvalidParameter
from filterlib.response import FrequencyResponse, summarize_response
from filterlib.spectrum import OffsetEstimate

logger = get_logger(__name__)

SUPPORTED_AUDIO_FORMATS = {'.wav', '.aiff', '.aif', '.flac'}

REQUIRED_RESULT_KEYS = ("sample_rate", "frequency_offset")


def audio_info(filepath: str) -> Dict[str, object]:
    """Header information of an audio file (rate, channels, subtype, duration)."""
    info = sf.info(filepath)
    return {
        "sample_rate": info.samplerate,
        "channels": info.channels,
        "subtype": info.subtype,
        "frames": info.frames,
        "duration_sec": info.duration,
    }


def load_audio(filepath: str, sr: Optional[int] = None, mono: bool = True) -> Tuple[np.ndarray, int]:
    """
    Load a recording using librosa.

    Args:
        filepath: Path to audio file
        sr: Target sample rate (None keeps the file's native rate)
        mono: Downmix to mono if True

    Returns:
        (audio_data, sample_rate) tuple

    Raises:
        FileNotFoundError: If file does not exist
        AudioError: If the file cannot be decoded or contains invalid data
    """
    if not os.path.exists(filepath):
        logger.error(f"File not found: {filepath}")
        raise FileNotFoundError(f"Audio file not found: {filepath}")

    if Path(filepath).suffix.lower() not in SUPPORTED_AUDIO_FORMATS:
        logger.warning(f"Unrecognized audio extension: {filepath}")

    try:
        y, sr_loaded = librosa.load(filepath, sr=sr, mono=mono)
    except Exception as e:
        logger.warning(f"Failed to load {filepath}: {e}")
        raise AudioError(
            "Could not load audio file",
            context={"filepath": filepath, "error": str(e)}
        )

    if y is None or len(y) == 0:
        raise AudioError("Loaded audio is empty", context={"filepath": filepath})

    if not np.all(np.isfinite(y)):
        raise AudioError("Audio contains NaN or infinite values", context={"filepath": filepath})

    info = audio_info(filepath)
    logger.info(
        f"Loaded {Path(filepath).name}: {sr_loaded} Hz, {len(y)} samples, "
        f"{info['channels']} channel(s), {info['subtype']}, {len(y) / sr_loaded:.2f} s"
    )
    return y.astype(np.float64), int(sr_loaded)


def _write_text(path: str, content: str) -> None:
    """Write a text file, creating parent directories and mapping OS errors."""
    try:
        parent = os.path.dirname(os.path.abspath(path))
        os.makedirs(parent, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        logger.error(f"Failed to write {path}: {e}")
        raise FilesystemError(
            "Could not write report file",
            context={"filepath": path, "error": str(e)}
        )


def write_offset_results(path: str, estimate: OffsetEstimate, baseband_hz: Optional[float] = None) -> None:
    """
    Persist an offset estimate as ``key = value unit`` lines.

    The file is read back by read_offset_results when designing filters.
    """
    lines = [
        "# Frequency offset estimate",
        f"sample_rate = {estimate.sample_rate:.2f} Hz",
        f"num_samples = {estimate.num_samples}",
        f"peak_frequency = {estimate.peak.frequency_hz:.4f} Hz",
        f"refined_frequency = {estimate.refined_hz:.4f} Hz",
        f"frequency_offset = {estimate.offset_hz:.4f} Hz",
    ]
    if estimate.symmetric_pair is not None:
        lines.append(f"symmetric_baseband = {estimate.symmetric_pair.baseband_hz:.4f} Hz")
    if baseband_hz is not None:
        lines.append(f"baseband = {baseband_hz:g} Hz")

    _write_text(path, "\n".join(lines) + "\n")
    logger.info(f"Wrote offset results to {path}")


def read_offset_results(path: str) -> Dict[str, float]:
    """
    Parse a file written by write_offset_results.

    Returns:
        Mapping of key to float value (units dropped)

    Raises:
        FilesystemError: If the file cannot be read
        InvalidParameter: If a value is not numeric or a required key is missing
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        raise FilesystemError(
            "Could not read offset results",
            context={"filepath": path, "error": str(e)}
        )

    values: Dict[str, float] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, rest = line.partition("=")
        token = rest.split()[0] if rest.split() else ""
        try:
            values[key.strip()] = float(token)
        except ValueError:
            raise InvalidParameter(
                f"Non-numeric value for {key.strip()}",
                context={"filepath": path, "line": line}
            )

    missing = [k for k in REQUIRED_RESULT_KEYS if k not in values]
    if missing:
        raise InvalidParameter(
            "Offset results are incomplete",
            context={"filepath": path, "missing": missing}
        )
    return values


def _filter_title(filt: DigitalFilter) -> str:
    name = "High-pass" if filt.kind is FilterKind.HIGHPASS else "Low-pass"
    return f"{name} Filter (order {filt.order} Butterworth)"


def write_filter_coefficients(path: str, filters: Sequence[DigitalFilter]) -> None:
    """Write b and a of each filter, one coefficient per line in %.15e."""
    blocks = ["=== Filter Coefficients ==="]
    for filt in filters:
        lines = [
            "",
            f"{_filter_title(filt)}:",
            f"Cutoff Frequency: {filt.cutoff_hz:.4f} Hz",
            f"Sample Rate: {filt.sample_rate_hz:g} Hz",
            "",
            "Numerator Coefficients (b):",
        ]
        lines += [f"  b[{i}] = {c:.15e}" for i, c in enumerate(filt.b)]
        lines += ["", "Denominator Coefficients (a):"]
        lines += [f"  a[{i}] = {c:.15e}" for i, c in enumerate(filt.a)]
        blocks.append("\n".join(lines))

    _write_text(path, "\n".join(blocks) + "\n")
    logger.info(f"Wrote coefficients for {len(filters)} filter(s) to {path}")


def write_response_summary(path: str, responses: Sequence[Tuple[str, FrequencyResponse]]) -> None:
    """Write point count, frequency span and magnitude extremes per response."""
    blocks = ["=== Frequency Response Data ==="]
    for name, response in responses:
        summary = summarize_response(response)
        blocks.append("\n".join([
            "",
            f"{name}:",
            f"Number of frequency points: {summary['num_points']}",
            f"Frequency range: 0 - {summary['max_frequency_hz']:.2f} Hz",
            f"Maximum magnitude: {summary['max_magnitude']:.6f}",
            f"Minimum magnitude: {summary['min_magnitude']:.6f}",
        ]))

    _write_text(path, "\n".join(blocks) + "\n")


def export_spectrum_csv(path: str, frequencies: np.ndarray, magnitude: np.ndarray, magnitude_db: np.ndarray) -> None:
    """
    Export a spectrum as CSV (frequency_hz, magnitude, magnitude_db).

    Written to a temp file first, then moved into place.
    """
    out_dir = os.path.dirname(os.path.abspath(path))
    tmp_path = None
    try:
        os.makedirs(out_dir, exist_ok=True)
        with tempfile.NamedTemporaryFile(mode='w', dir=out_dir, delete=False, newline="") as tmp:
            tmp_path = tmp.name
            writer = csv.writer(tmp)
            writer.writerow(["frequency_hz", "magnitude", "magnitude_db"])
            for f, m, db in zip(frequencies, magnitude, magnitude_db):
                writer.writerow([f"{f:.6f}", f"{m:.10e}", f"{db:.4f}"])
        shutil.move(tmp_path, path)
    except OSError as e:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.remove(tmp_path)
        logger.error(f"Failed to export spectrum to {path}: {e}")
        raise FilesystemError(
            "Could not export spectrum CSV",
            context={"filepath": path, "error": str(e)}
        )
    logger.info(f"Exported {len(frequencies)} spectrum bins to {path}")


def save_audio(filepath: str, audio: np.ndarray, sr: int, subtype: str = 'PCM_16') -> None:
    """
    Save mono audio to a WAV file, peak-limited to full scale.

    Raises:
        AudioError: If the audio is empty or contains NaN/inf
        FilesystemError: If the file cannot be written
    """
    audio = np.asarray(audio, dtype=float)
    if audio.size == 0:
        raise AudioError("Cannot save empty audio array", context={"filepath": filepath})
    if not np.all(np.isfinite(audio)):
        raise AudioError("Audio contains NaN or infinite values", context={"filepath": filepath})

    peak = float(np.max(np.abs(audio)))
    if peak > 1.0:
        logger.warning(f"Peak {peak:.3f} exceeds full scale, scaling {Path(filepath).name} down")
        audio = audio / peak

    try:
        os.makedirs(os.path.dirname(os.path.abspath(filepath)), exist_ok=True)
        sf.write(filepath, audio, int(sr), subtype=subtype)
    except (OSError, RuntimeError) as e:
        logger.error(f"Failed to save {filepath}: {e}")
        raise FilesystemError(
            "Could not write audio file",
            context={"filepath": filepath, "error": str(e)}
        )
    logger.info(f"Saved {Path(filepath).name} ({len(audio)} samples, {subtype})")


def _correlation_verdict(correlation: float) -> str:
    if correlation > 0.99:
        return "Excellent correlation: waveforms are nearly identical"
    if correlation > 0.95:
        return "Good correlation: waveforms are very similar"
    if correlation > 0.8:
        return "Moderate correlation: some waveform differences"
    return "Low correlation: significant waveform differences"


def _snr_verdict(snr_db: float) -> str:
    if snr_db > 40.0:
        return "Excellent SNR: minimal difference"
    if snr_db > 20.0:
        return "Good SNR: acceptable difference"
    return "Low SNR: noticeable difference"


def write_comparison(path: str, result: ComparisonResult, labels: Tuple[str, str] = ("ideal", "IIR")) -> None:
    """Write comparison metrics and a short interpretation."""
    title = f"{labels[0]} vs {labels[1]} demodulation"
    lines = [
        f"=== {title} ===",
        "",
        f"Samples compared: {result.num_samples}",
        f"Mean Squared Error (MSE): {result.mse:.6e}",
        f"Root Mean Squared Error (RMSE): {result.rmse:.6e}",
        f"Maximum absolute difference: {result.max_diff:.6f}",
        f"Correlation coefficient (original): {result.correlation:.6f}",
        f"Correlation coefficient (normalized): {result.correlation_normalized:.6f}",
        f"Signal-to-Noise Ratio: {result.snr_db:.2f} dB",
        "",
        "Interpretation:",
        f"  {_correlation_verdict(result.correlation_normalized)}",
        f"  {_snr_verdict(result.snr_db)}",
    ]
    _write_text(path, "\n".join(lines) + "\n")
    logger.info(f"Wrote comparison to {path}")
