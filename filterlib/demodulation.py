"""
Baseband recovery from a recording shifted by a carrier offset.

Both routes share one chain: high-pass at the offset f_d, mix with
2 cos(2 pi f_d t), low-pass at the baseband f_B.

- ``demodulate_iir`` runs the chain through the designed Butterworth filters.
- ``demodulate_ideal`` applies brick-wall masks to the FFT bins instead.

``compare_signals`` measures how far the two results are apart.
"""

import math
from dataclasses import dataclass

import numpy as np
from scipy import signal

from filterlib.logger import get_logger
from filterlib.butterworth import DigitalFilter, FilterKind
from filterlib.exceptions import InvalidParameter

logger = get_logger(__name__)

# Mixing with cos halves each shifted copy
CARRIER_GAIN = 2.0


@dataclass
class ComparisonResult:
    """Similarity of a signal to a reference, over their common length."""

    mse: float
    max_diff: float
    correlation: float
    correlation_normalized: float
    snr_db: float
    num_samples: int

    @property
    def rmse(self) -> float:
        return math.sqrt(self.mse)


def _check_band(offset_hz: float, baseband_hz: float, sample_rate: float) -> None:
    if sample_rate <= 0:
        raise InvalidParameter(f"Sample rate must be positive, got {sample_rate}")
    nyquist = sample_rate / 2.0
    if not (0.0 < offset_hz < nyquist):
        raise InvalidParameter(
            f"Offset must lie strictly between 0 and Nyquist ({nyquist} Hz), got {offset_hz}",
            context={"offset_hz": offset_hz, "sample_rate": sample_rate}
        )
    if not (0.0 < baseband_hz < nyquist):
        raise InvalidParameter(
            f"Baseband must lie strictly between 0 and Nyquist ({nyquist} Hz), got {baseband_hz}",
            context={"baseband_hz": baseband_hz, "sample_rate": sample_rate}
        )


def _as_signal(samples) -> np.ndarray:
    samples = np.asarray(samples, dtype=float)
    if samples.ndim != 1 or samples.size == 0:
        raise InvalidParameter("Expected a non-empty mono signal", context={"shape": samples.shape})
    return samples


def carrier(num_samples: int, frequency_hz: float, sample_rate: float) -> np.ndarray:
    """cos(2 pi f n / fs) for n = 0 .. num_samples - 1."""
    return np.cos(2.0 * np.pi * frequency_hz * np.arange(num_samples) / sample_rate)


def ideal_highpass(bins: np.ndarray, cutoff_hz: float, sample_rate: float) -> np.ndarray:
    """Zero every FFT bin with |f| below the cutoff."""
    freqs = np.fft.fftfreq(len(bins), d=1.0 / sample_rate)
    out = np.array(bins, dtype=complex)
    out[np.abs(freqs) < cutoff_hz] = 0.0
    return out


def ideal_lowpass(bins: np.ndarray, cutoff_hz: float, sample_rate: float) -> np.ndarray:
    """Zero every FFT bin with |f| above the cutoff."""
    freqs = np.fft.fftfreq(len(bins), d=1.0 / sample_rate)
    out = np.array(bins, dtype=complex)
    out[np.abs(freqs) > cutoff_hz] = 0.0
    return out


def frequency_shift(bins: np.ndarray, shift_hz: float, sample_rate: float) -> np.ndarray:
    """
    Shift a spectrum by +/- shift_hz: X(f) -> (X(f - s) + X(f + s)) / 2.

    Done as a cosine product in the time domain so that shifts need not be a
    whole number of bins.
    """
    x = np.fft.ifft(bins)
    return np.fft.fft(x * carrier(len(x), shift_hz, sample_rate))


def demodulate_ideal(samples, sample_rate: float, offset_hz: float, baseband_hz: float) -> np.ndarray:
    """
    Recover the baseband with brick-wall filters applied in the frequency domain.

    Args:
        samples: Mono recording
        sample_rate: Sample rate in Hz
        offset_hz: Carrier offset f_d (high-pass cutoff and shift)
        baseband_hz: Signal bandwidth f_B (low-pass cutoff)

    Returns:
        Demodulated signal, same length as the input

    Raises:
        InvalidParameter: If the signal is empty or a frequency is out of range
    """
    samples = _as_signal(samples)
    _check_band(offset_hz, baseband_hz, sample_rate)

    bins = np.fft.fft(samples)
    bins = ideal_highpass(bins, offset_hz, sample_rate)
    bins = frequency_shift(bins, offset_hz, sample_rate)
    bins = ideal_lowpass(bins, baseband_hz, sample_rate)
    out = CARRIER_GAIN * np.fft.ifft(bins).real

    logger.debug(f"Ideal demodulation: {len(out)} samples, peak {np.max(np.abs(out)):.6f}")
    return out


def demodulate_iir(samples, highpass: DigitalFilter, lowpass: DigitalFilter) -> np.ndarray:
    """
    Recover the baseband with the designed Butterworth filters.

    The high-pass cutoff is taken as the carrier offset. Filtering is causal
    (``scipy.signal.lfilter``), like a real-time receiver.

    Raises:
        InvalidParameter: If the filters are of the wrong kind or their sample
            rates differ
    """
    samples = _as_signal(samples)
    if highpass.kind is not FilterKind.HIGHPASS or lowpass.kind is not FilterKind.LOWPASS:
        raise InvalidParameter(
            "Expected a high-pass and a low-pass filter",
            context={"first": highpass.kind.value, "second": lowpass.kind.value}
        )
    if highpass.sample_rate_hz != lowpass.sample_rate_hz:
        raise InvalidParameter(
            "Filters were designed for different sample rates",
            context={"highpass": highpass.sample_rate_hz, "lowpass": lowpass.sample_rate_hz}
        )

    fs = highpass.sample_rate_hz
    shifted = signal.lfilter(highpass.b, highpass.a, samples)
    shifted = CARRIER_GAIN * shifted * carrier(len(shifted), highpass.cutoff_hz, fs)
    out = signal.lfilter(lowpass.b, lowpass.a, shifted)

    logger.debug(f"IIR demodulation: {len(out)} samples, peak {np.max(np.abs(out)):.6f}")
    return out


def _pearson(x: np.ndarray, y: np.ndarray) -> float:
    """Correlation coefficient; 0 when either signal is constant."""
    dx = x - np.mean(x)
    dy = y - np.mean(y)
    var_x = float(np.mean(dx * dx))
    var_y = float(np.mean(dy * dy))
    if var_x <= 0 or var_y <= 0:
        return 0.0
    return float(np.mean(dx * dy)) / math.sqrt(var_x * var_y)


def compare_signals(reference, other) -> ComparisonResult:
    """
    Compare two signals over their common length.

    The difference is treated as noise for the SNR, with ``reference`` as the
    signal. The normalized correlation scales both signals to a peak of 1
    first; the plain coefficient is already scale-invariant, so the two only
    differ by rounding.

    Raises:
        InvalidParameter: If either signal is empty
    """
    reference = _as_signal(reference)
    other = _as_signal(other)
    n = min(len(reference), len(other))
    if len(reference) != len(other):
        logger.warning(f"Comparing signals of different length; using first {n} samples")
    x, y = reference[:n], other[:n]

    diff = x - y
    mse = float(np.mean(diff * diff))
    max_diff = float(np.max(np.abs(diff)))

    peak_x = float(np.max(np.abs(x)))
    peak_y = float(np.max(np.abs(y)))
    if peak_x > 0 and peak_y > 0:
        correlation_normalized = _pearson(x / peak_x, y / peak_y)
    else:
        correlation_normalized = 0.0

    signal_power = float(np.mean(x * x))
    if mse == 0:
        snr_db = float("inf")
    elif signal_power == 0:
        snr_db = float("-inf")
    else:
        snr_db = 10.0 * math.log10(signal_power / mse)

    return ComparisonResult(
        mse=mse,
        max_diff=max_diff,
        correlation=_pearson(x, y),
        correlation_normalized=correlation_normalized,
        snr_db=snr_db,
        num_samples=n,
    )
