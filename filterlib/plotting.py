"""
PNG plots of spectra and filter responses (matplotlib, headless).
"""

from typing import Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from filterlib.logger import get_logger
from filterlib.response import FrequencyResponse, magnitude_to_db, phase_to_degrees

logger = get_logger(__name__)


def _limit(frequencies: np.ndarray, max_freq_hz: Optional[float]) -> np.ndarray:
    """Boolean mask of bins up to max_freq_hz."""
    if max_freq_hz is None:
        return np.ones(len(frequencies), dtype=bool)
    return frequencies <= max_freq_hz


def _save(fig, image_path: str) -> str:
    fig.tight_layout()
    fig.savefig(image_path, dpi=100)
    plt.close(fig)
    logger.debug(f"Saved plot {image_path}")
    return image_path


def plot_magnitude_response(
    response: FrequencyResponse,
    image_path: str,
    title: str,
    max_freq_hz: Optional[float] = None,
    in_db: bool = False,
) -> str:
    """Plot |H| (linear or dB) against frequency."""
    mask = _limit(response.frequencies, max_freq_hz)
    mag = response.magnitude[mask]
    fig, ax = plt.subplots(figsize=(10, 5))
    if in_db:
        ax.plot(response.frequencies[mask], magnitude_to_db(mag), color="tab:blue")
        ax.axhline(-3.0, color="tab:red", linestyle="--", linewidth=0.8)
        ax.set_ylabel("Magnitude (dB)")
    else:
        ax.plot(response.frequencies[mask], mag, color="tab:blue")
        ax.axhline(1.0 / np.sqrt(2.0), color="tab:red", linestyle="--", linewidth=0.8)
        ax.set_ylabel("Magnitude")
    ax.set_xlabel("Frequency (Hz)")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    return _save(fig, image_path)


def plot_phase_response(
    response: FrequencyResponse,
    image_path: str,
    title: str,
    max_freq_hz: Optional[float] = None,
) -> str:
    """Plot the wrapped phase in degrees."""
    mask = _limit(response.frequencies, max_freq_hz)
    fig, ax = plt.subplots(figsize=(10, 5))
    ax.plot(response.frequencies[mask], phase_to_degrees(response.phase[mask]), color="tab:green")
    ax.set_xlabel("Frequency (Hz)")
    ax.set_ylabel("Phase (degrees)")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    return _save(fig, image_path)


def plot_combined_magnitude(
    highpass: FrequencyResponse,
    lowpass: FrequencyResponse,
    image_path: str,
    title: str,
    max_freq_hz: Optional[float] = None,
) -> str:
    """Overlay high-pass and low-pass magnitudes on one axis."""
    fig, ax = plt.subplots(figsize=(10, 5))
    for response, label, color in ((highpass, "High-pass", "tab:blue"), (lowpass, "Low-pass", "tab:red")):
        mask = _limit(response.frequencies, max_freq_hz)
        ax.plot(response.frequencies[mask], response.magnitude[mask], label=label, color=color)
    ax.set_xlabel("Frequency (Hz)")
    ax.set_ylabel("Magnitude")
    ax.set_title(title)
    ax.legend()
    ax.grid(True, alpha=0.3)
    return _save(fig, image_path)


def plot_spectrum(
    frequencies: np.ndarray,
    values: np.ndarray,
    image_path: str,
    title: str,
    max_freq_hz: Optional[float] = None,
    in_db: bool = False,
) -> str:
    """Plot a magnitude spectrum (values already in dB when ``in_db``)."""
    mask = _limit(frequencies, max_freq_hz)
    fig, ax = plt.subplots(figsize=(12, 5))
    ax.plot(frequencies[mask], values[mask], linewidth=0.6)
    ax.set_xlabel("Frequency (Hz)")
    ax.set_ylabel("Magnitude (dB)" if in_db else "Magnitude")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    return _save(fig, image_path)


def plot_waveform(samples: np.ndarray, sample_rate: float, image_path: str, title: str) -> str:
    """Plot the time-domain signal."""
    t = np.arange(len(samples)) / sample_rate
    fig, ax = plt.subplots(figsize=(12, 4))
    ax.plot(t, samples, linewidth=0.5)
    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Amplitude")
    ax.set_title(title)
    ax.grid(True, alpha=0.3)
    return _save(fig, image_path)


def plot_signal_comparison(
    first: np.ndarray,
    second: np.ndarray,
    image_path: str,
    title: str,
    labels=("Ideal (frequency domain)", "IIR (time domain)"),
    max_samples: Optional[int] = None,
) -> str:
    """Overlay two signals sample by sample, optionally only the first ``max_samples``."""
    n = min(len(first), len(second))
    if max_samples is not None:
        n = min(n, max_samples)
    idx = np.arange(n)
    fig, ax = plt.subplots(figsize=(14, 5))
    ax.plot(idx, first[:n], color="tab:blue", linewidth=0.6, label=labels[0])
    ax.plot(idx, second[:n], color="tab:red", linewidth=0.6, label=labels[1])
    ax.set_xlabel("Sample")
    ax.set_ylabel("Amplitude")
    ax.set_title(title)
    ax.legend()
    ax.grid(True, alpha=0.3)
    return _save(fig, image_path)
