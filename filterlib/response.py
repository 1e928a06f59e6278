"""
Frequency response of a rational transfer function.

H(e^jw) = sum(b[k] e^-jwk) / sum(a[k] e^-jwk), evaluated on the grid
f_k = k * fs / num_points for k = 0 .. num_points // 2.
"""

import math
from typing import Dict, Iterator, List, NamedTuple, Sequence, Union

import numpy as np

from filterlib.butterworth import DigitalFilter
from filterlib.exceptions import InvalidParameter

# Floor applied before taking log10 so silence maps to -200 dB instead of -inf
MIN_MAGNITUDE = 1e-10

ArrayLike = Union[float, np.ndarray]


class FrequencyResponseSample(NamedTuple):
    """One point of a frequency response."""

    frequency_hz: float
    value: complex
    magnitude: float
    phase_rad: float

    @property
    def magnitude_db(self) -> float:
        return magnitude_to_db(self.magnitude)

    @property
    def phase_deg(self) -> float:
        return phase_to_degrees(self.phase_rad)


class FrequencyResponse(NamedTuple):
    """Array form of a response, convenient for plots and reports."""

    frequencies: np.ndarray
    values: np.ndarray
    magnitude: np.ndarray
    phase: np.ndarray


def magnitude_to_db(magnitude: ArrayLike) -> ArrayLike:
    """Convert linear magnitude to dB, floored at 1e-10 (-200 dB)."""
    result = 20.0 * np.log10(np.maximum(magnitude, MIN_MAGNITUDE))
    return float(result) if np.ndim(result) == 0 else result


def phase_to_degrees(phase_rad: ArrayLike) -> ArrayLike:
    """Convert radians to degrees."""
    result = np.asarray(phase_rad) * 180.0 / math.pi
    return float(result) if np.ndim(result) == 0 else result


def frequency_response(b: Sequence[float], a: Sequence[float], omega: ArrayLike) -> ArrayLike:
    """
    Evaluate B(e^-jw) / A(e^-jw) at normalized angular frequencies.

    Args:
        b: Numerator coefficients
        a: Denominator coefficients
        omega: Angular frequency in rad/sample (scalar or array)

    Returns:
        Complex response with the same shape as ``omega``
    """
    z_inv = np.exp(-1j * np.asarray(omega, dtype=float))
    # polyval wants the highest power first
    numerator = np.polyval(np.asarray(b, dtype=float)[::-1], z_inv)
    denominator = np.polyval(np.asarray(a, dtype=float)[::-1], z_inv)
    return numerator / denominator


def response_frequencies(sample_rate_hz: float, num_points: int) -> np.ndarray:
    """Frequency grid k * fs / num_points for k = 0 .. num_points // 2."""
    return np.arange(num_points // 2 + 1) * sample_rate_hz / num_points


def _validate_num_points(num_points: int) -> None:
    if isinstance(num_points, bool) or not isinstance(num_points, (int, np.integer)) or num_points < 1:
        raise InvalidParameter(
            f"num_points must be a positive integer, got {num_points}",
            context={"num_points": num_points}
        )


def response_arrays(filt: DigitalFilter, num_points: int) -> FrequencyResponse:
    """
    Evaluate a filter on the standard grid and return numpy arrays.

    Raises:
        InvalidParameter: If num_points < 1
    """
    _validate_num_points(num_points)
    freqs = response_frequencies(filt.sample_rate_hz, num_points)
    omega = 2.0 * math.pi * freqs / filt.sample_rate_hz
    values = frequency_response(filt.b, filt.a, omega)
    return FrequencyResponse(
        frequencies=freqs,
        values=values,
        magnitude=np.abs(values),
        phase=np.angle(values),
    )


def iter_response(filt: DigitalFilter, num_points: int) -> Iterator[FrequencyResponseSample]:
    """
    Single-pass iterator over response samples in ascending frequency.

    Parameters are checked immediately, before the iterator is returned.
    """
    response = response_arrays(filt, num_points)

    def _samples():
        for freq, value, mag, phase in zip(
            response.frequencies, response.values, response.magnitude, response.phase
        ):
            yield FrequencyResponseSample(float(freq), complex(value), float(mag), float(phase))

    return _samples()


def evaluate(filt: DigitalFilter, num_points: int) -> List[FrequencyResponseSample]:
    """
    Evaluate a filter's frequency response.

    Args:
        filt: Designed filter
        num_points: Grid size; ``num_points // 2 + 1`` samples are returned,
            from 0 Hz up to fs/2 (exactly fs/2 when num_points is even)

    Returns:
        Samples ordered by strictly increasing frequency

    Raises:
        InvalidParameter: If num_points < 1
    """
    return list(iter_response(filt, num_points))


def summarize_response(response: FrequencyResponse) -> Dict[str, float]:
    """Point count, frequency span and magnitude extremes of a response."""
    return {
        "num_points": int(len(response.frequencies)),
        "max_frequency_hz": float(response.frequencies[-1]),
        "max_magnitude": float(np.max(response.magnitude)),
        "min_magnitude": float(np.min(response.magnitude)),
    }
