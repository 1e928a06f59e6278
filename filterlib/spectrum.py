"""
Spectral analysis of a recording and frequency-offset estimation.

A mis-demodulated recording shows its baseband content shifted by the carrier
offset f_d. The spectrum then carries pairs of peaks of similar height placed
symmetrically around f_d; the symmetry axis is the offset estimate. When no
such pair exists, the strongest peak in the search range (refined by
parabolic interpolation) is used instead.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy import signal

from filterlib.logger import get_logger
from filterlib.exceptions import InvalidParameter, OffsetEstimationError, SilentArtifact

logger = get_logger(__name__)

DB_FLOOR = -200.0


@dataclass
class Spectrum:
    """Two-sided FFT of a real signal, magnitude normalized by N."""

    frequencies: np.ndarray
    magnitude: np.ndarray
    phase: np.ndarray
    sample_rate: float

    @property
    def resolution_hz(self) -> float:
        return self.sample_rate / len(self.frequencies)

    def single_sided(self) -> Tuple[np.ndarray, np.ndarray]:
        """Frequencies and magnitudes from 0 Hz up to the Nyquist bin."""
        nyquist_index = len(self.frequencies) // 2
        return self.frequencies[:nyquist_index + 1], self.magnitude[:nyquist_index + 1]

    def magnitude_db(self) -> np.ndarray:
        """Magnitude in dB; bins at or below 1e-10 read as -200 dB."""
        mag = self.magnitude
        out = np.full(mag.shape, DB_FLOOR)
        audible = mag > 1e-10
        out[audible] = 20.0 * np.log10(mag[audible])
        return out


@dataclass
class SpectralPeak:
    frequency_hz: float
    magnitude: float
    index: int


@dataclass
class SymmetricPair:
    """Two peaks of similar height mirrored around the offset frequency."""

    lower: SpectralPeak
    upper: SpectralPeak

    @property
    def axis_hz(self) -> float:
        return (self.lower.frequency_hz + self.upper.frequency_hz) / 2.0

    @property
    def baseband_hz(self) -> float:
        return (self.upper.frequency_hz - self.lower.frequency_hz) / 2.0


@dataclass
class OffsetEstimate:
    sample_rate: float
    num_samples: int
    peak: SpectralPeak
    refined_hz: float
    peaks: List[SpectralPeak] = field(default_factory=list)
    symmetric_pair: Optional[SymmetricPair] = None

    @property
    def offset_hz(self) -> float:
        """Symmetry axis when a pair was found, else the refined peak."""
        if self.symmetric_pair is not None:
            return self.symmetric_pair.axis_hz
        return self.refined_hz


def apply_window(samples: np.ndarray, window: Optional[str]) -> np.ndarray:
    """Taper samples with a symmetric Hann or Hamming window (or none)."""
    if window is None:
        return samples
    if window == "hann":
        return samples * signal.windows.hann(len(samples))
    if window == "hamming":
        return samples * signal.windows.hamming(len(samples))
    raise InvalidParameter(f"Unknown window: {window}", context={"valid": ["hann", "hamming", None]})


def compute_spectrum(samples: np.ndarray, sample_rate: float, window: Optional[str] = None) -> Spectrum:
    """
    Compute the full FFT of a mono signal.

    Args:
        samples: Mono audio samples
        sample_rate: Sample rate in Hz
        window: Optional taper ("hann" or "hamming")

    Returns:
        Spectrum with N bins at k * sample_rate / N

    Raises:
        InvalidParameter: If the signal is empty or the sample rate is not positive
    """
    samples = np.asarray(samples, dtype=float)
    if samples.ndim != 1 or samples.size == 0:
        raise InvalidParameter(
            "Spectrum needs a non-empty mono signal",
            context={"shape": samples.shape}
        )
    if sample_rate <= 0:
        raise InvalidParameter(f"Sample rate must be positive, got {sample_rate}")

    n = len(samples)
    bins = np.fft.fft(apply_window(samples, window))
    frequencies = np.arange(n) * sample_rate / n

    logger.debug(f"FFT: {n} points, resolution {sample_rate / n:.4f} Hz")
    return Spectrum(
        frequencies=frequencies,
        magnitude=np.abs(bins) / n,
        phase=np.angle(bins),
        sample_rate=float(sample_rate),
    )


def estimate_frequency_offset(
    frequencies: np.ndarray,
    magnitude: np.ndarray,
    search_range: Tuple[float, float] = (10.0, 10000.0),
    exclude_dc: bool = True,
) -> SpectralPeak:
    """
    Find the strongest bin inside a frequency range.

    Args:
        frequencies: Frequency axis in Hz
        magnitude: Magnitude per bin
        search_range: (min_hz, max_hz), inclusive
        exclude_dc: Skip bin 0

    Returns:
        The peak bin

    Raises:
        OffsetEstimationError: If no bin with non-zero magnitude lies in range
    """
    min_freq, max_freq = search_range
    frequencies = np.asarray(frequencies, dtype=float)
    magnitude = np.asarray(magnitude, dtype=float)

    in_range = (frequencies >= min_freq) & (frequencies <= max_freq) & (magnitude > 0)
    if exclude_dc:
        in_range[:1] = False

    candidates = np.flatnonzero(in_range)
    if candidates.size == 0:
        raise OffsetEstimationError(
            "No spectral peak inside search range",
            context={"min_hz": min_freq, "max_hz": max_freq}
        )

    index = int(candidates[np.argmax(magnitude[candidates])])
    peak = SpectralPeak(float(frequencies[index]), float(magnitude[index]), index)
    logger.info(f"Peak at {peak.frequency_hz:.2f} Hz (magnitude {peak.magnitude:.6f}, bin {index})")
    return peak


def refine_peak_frequency(frequencies: np.ndarray, magnitude: np.ndarray, peak_index: int) -> float:
    """Three-point parabolic interpolation around a peak bin."""
    if peak_index <= 0 or peak_index >= len(magnitude) - 1:
        return float(frequencies[peak_index])

    y1, y2, y3 = magnitude[peak_index - 1], magnitude[peak_index], magnitude[peak_index + 1]
    curvature = y1 - 2.0 * y2 + y3
    if curvature == 0:
        return float(frequencies[peak_index])

    delta = 0.5 * (y1 - y3) / curvature
    resolution = frequencies[1] - frequencies[0] if len(frequencies) > 1 else 1.0
    return float(frequencies[peak_index] + delta * resolution)


def find_peaks(
    frequencies: np.ndarray,
    magnitude: np.ndarray,
    num_peaks: int,
    min_distance: int,
    threshold: float,
) -> List[SpectralPeak]:
    """
    Strongest local maxima at or above ``threshold``, at least ``min_distance``
    bins apart. Within that spacing the taller peak wins.

    Returns:
        Up to ``num_peaks`` peaks, strongest first
    """
    magnitude = np.asarray(magnitude, dtype=float)
    if len(magnitude) < 3 or num_peaks < 1:
        return []

    indices, _ = signal.find_peaks(magnitude, height=threshold, distance=max(min_distance, 1))
    strongest = indices[np.argsort(-magnitude[indices], kind="stable")][:num_peaks]
    return [SpectralPeak(float(frequencies[i]), float(magnitude[i]), int(i)) for i in strongest]


def find_symmetric_offset(
    peaks: Sequence[SpectralPeak],
    max_freq_hz: float = 5000.0,
    min_ratio: float = 0.9,
) -> Optional[SymmetricPair]:
    """
    Pick the strongest pair of similar-height peaks below ``max_freq_hz``.

    Returns:
        The pair, or None when no two peaks are within ``min_ratio`` of each other
    """
    best = None
    best_mag = -np.inf
    for i in range(len(peaks)):
        for j in range(i + 1, len(peaks)):
            p1, p2 = peaks[i], peaks[j]
            if p1.frequency_hz > max_freq_hz or p2.frequency_hz > max_freq_hz:
                continue
            ratio = min(p1.magnitude, p2.magnitude) / max(p1.magnitude, p2.magnitude)
            if ratio > min_ratio and p1.magnitude > best_mag:
                lower, upper = sorted((p1, p2), key=lambda p: p.frequency_hz)
                best = SymmetricPair(lower, upper)
                best_mag = p1.magnitude
    return best


def energy_distribution(
    frequencies: np.ndarray,
    magnitude: np.ndarray,
    bands: Sequence[Tuple[float, float]],
) -> List[Tuple[str, float]]:
    """
    Share of spectral energy per band, in percent.

    Raises:
        SilentArtifact: If the spectrum carries no energy at all
    """
    frequencies = np.asarray(frequencies, dtype=float)
    power = np.asarray(magnitude, dtype=float) ** 2
    total = float(np.sum(power))
    if total <= 0:
        raise SilentArtifact("Spectrum has no energy")

    result = []
    for low, high in bands:
        band = (frequencies >= low) & (frequencies <= high)
        result.append((f"{low:.0f}-{high:.0f} Hz", float(np.sum(power[band])) / total * 100.0))
    return result


def estimate_snr(magnitude: np.ndarray, signal_band: Tuple[int, int], noise_band: Tuple[int, int]) -> float:
    """SNR in dB from mean bin power in two index ranges (end exclusive)."""
    magnitude = np.asarray(magnitude, dtype=float)
    signal_power = float(np.mean(magnitude[signal_band[0]:signal_band[1]] ** 2))
    noise_power = float(np.mean(magnitude[noise_band[0]:noise_band[1]] ** 2))
    if noise_power <= 0:
        return float("inf")
    return 10.0 * np.log10(signal_power / noise_power)


def estimate_offset(
    samples: np.ndarray,
    sample_rate: float,
    search_range: Tuple[float, float] = (10.0, 10000.0),
    exclude_dc: bool = True,
    num_peaks: int = 5,
    min_distance: int = 20,
    threshold_ratio: float = 0.1,
    symmetric_max_hz: float = 5000.0,
    symmetric_min_ratio: float = 0.9,
) -> OffsetEstimate:
    """
    Estimate the carrier offset of a recording.

    Args:
        samples: Mono audio samples
        sample_rate: Sample rate in Hz
        search_range: Frequency range searched for the main peak
        exclude_dc: Skip the DC bin in the main peak search
        num_peaks: How many peaks to consider for symmetry analysis
        min_distance: Minimum spacing between peaks, in bins
        threshold_ratio: Peaks below this fraction of the main peak are ignored
        symmetric_max_hz: Only peaks below this frequency may form a pair
        symmetric_min_ratio: Minimum height ratio for two peaks to pair up

    Returns:
        OffsetEstimate; ``offset_hz`` is the best available estimate

    Raises:
        SilentArtifact: If the recording is silent
        OffsetEstimationError: If no peak lies in the search range
    """
    samples = np.asarray(samples, dtype=float)
    peak_level = float(np.max(np.abs(samples))) if samples.size else 0.0
    if peak_level < 1e-8:
        raise SilentArtifact(
            "Cannot estimate offset of a silent recording",
            context={"peak": peak_level, "num_samples": samples.size}
        )

    spectrum = compute_spectrum(samples, sample_rate)
    freqs, mags = spectrum.single_sided()

    peak = estimate_frequency_offset(freqs, mags, search_range, exclude_dc)
    refined = refine_peak_frequency(freqs, mags, peak.index)
    logger.info(f"Refined peak frequency: {refined:.4f} Hz")

    peaks = find_peaks(freqs, mags, num_peaks, min_distance, peak.magnitude * threshold_ratio)
    pair = find_symmetric_offset(peaks, symmetric_max_hz, symmetric_min_ratio)
    if pair is not None:
        logger.info(
            f"Symmetric peaks at {pair.lower.frequency_hz:.2f} / {pair.upper.frequency_hz:.2f} Hz, "
            f"axis {pair.axis_hz:.2f} Hz"
        )
    else:
        logger.warning("No symmetric peak pair found, using refined peak frequency")

    return OffsetEstimate(
        sample_rate=float(sample_rate),
        num_samples=int(samples.size),
        peak=peak,
        refined_hz=refined,
        peaks=peaks,
        symmetric_pair=pair,
    )
