"""
Design validation: -3 dB point search, pole locations, stability.

These helpers evaluate a designed filter numerically and are meant for
checking designs, not for use in a signal path.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from filterlib.logger import get_logger
from filterlib.butterworth import DigitalFilter, FilterKind
from filterlib.exceptions import InvalidParameter
from filterlib.response import frequency_response

logger = get_logger(__name__)

HALF_POWER_MAGNITUDE = 1.0 / math.sqrt(2.0)
COARSE_POINTS = 10000
FINE_POINTS = 1000


@dataclass
class CutoffReport:
    """Measured against designed cutoff for one filter."""

    kind: FilterKind
    designed_hz: float
    measured_hz: float
    stable: bool
    max_pole_radius: float
    anchor_gain: float

    @property
    def error_hz(self) -> float:
        return self.measured_hz - self.designed_hz

    @property
    def error_percent(self) -> float:
        return self.error_hz / self.designed_hz * 100.0


def gain_at(filt: DigitalFilter, frequency_hz: float) -> float:
    """Magnitude |H| at a frequency in Hz."""
    omega = 2.0 * math.pi * frequency_hz / filt.sample_rate_hz
    return float(np.abs(frequency_response(filt.b, filt.a, omega)))


def anchor_gain(filt: DigitalFilter) -> float:
    """Gain at the normalization point: DC for low-pass, Nyquist for high-pass."""
    if filt.kind is FilterKind.LOWPASS:
        return gain_at(filt, 0.0)
    return gain_at(filt, filt.nyquist_hz)


def filter_poles(filt: DigitalFilter) -> np.ndarray:
    """Roots of the denominator polynomial, found numerically."""
    return np.roots(np.asarray(filt.a, dtype=float))


def is_stable(filt: DigitalFilter) -> bool:
    """True when every denominator root lies strictly inside the unit circle."""
    return bool(np.all(np.abs(filter_poles(filt)) < 1.0))


def find_3db_cutoff(
    filt: DigitalFilter,
    sample_rate_hz: Optional[float] = None,
    coarse_points: int = COARSE_POINTS,
    fine_points: int = FINE_POINTS,
) -> float:
    """
    Locate the frequency where |H| is closest to 1/sqrt(2).

    A coarse scan over [0, fs/2) is refined by a fine scan one coarse step
    wide, centred on the coarse estimate. Resolution is about
    fs / 2 / (coarse_points * fine_points).

    Args:
        filt: Designed filter
        sample_rate_hz: Sample rate for the frequency axis (defaults to the
            filter's own)
        coarse_points: Number of points in the coarse scan
        fine_points: Number of points in the fine scan

    Returns:
        Best -3 dB frequency estimate in Hz

    Raises:
        InvalidParameter: If the sample rate or point counts are not positive
    """
    fs = filt.sample_rate_hz if sample_rate_hz is None else sample_rate_hz
    if fs <= 0:
        raise InvalidParameter(
            f"Sample rate must be positive, got {fs}",
            context={"sample_rate_hz": fs}
        )
    if coarse_points < 1 or fine_points < 1:
        raise InvalidParameter(
            "Scan point counts must be positive",
            context={"coarse_points": coarse_points, "fine_points": fine_points}
        )

    nyquist = fs / 2.0

    def _errors(freqs: np.ndarray) -> np.ndarray:
        omega = 2.0 * math.pi * freqs / fs
        return np.abs(np.abs(frequency_response(filt.b, filt.a, omega)) - HALF_POWER_MAGNITUDE)

    coarse = np.arange(coarse_points) * nyquist / coarse_points
    coarse_err = _errors(coarse)
    idx = int(np.argmin(coarse_err))
    best_freq = float(coarse[idx])
    best_err = float(coarse_err[idx])

    step = nyquist / coarse_points
    fine = best_freq - step / 2.0 + np.arange(fine_points) * step / fine_points
    fine = fine[(fine >= 0.0) & (fine <= nyquist)]
    if fine.size:
        fine_err = _errors(fine)
        j = int(np.argmin(fine_err))
        if fine_err[j] < best_err:
            best_freq = float(fine[j])

    return best_freq


def verify_design(filt: DigitalFilter) -> CutoffReport:
    """Measure cutoff, stability and anchor gain of a designed filter."""
    measured = find_3db_cutoff(filt)
    radii = np.abs(filter_poles(filt))
    report = CutoffReport(
        kind=filt.kind,
        designed_hz=filt.cutoff_hz,
        measured_hz=measured,
        stable=bool(np.all(radii < 1.0)),
        max_pole_radius=float(np.max(radii)),
        anchor_gain=anchor_gain(filt),
    )

    logger.info(
        f"{filt.kind.value} order {filt.order}: designed {report.designed_hz:.4f} Hz, "
        f"measured {report.measured_hz:.4f} Hz (error {report.error_hz:+.4f} Hz, "
        f"{report.error_percent:+.2f}%)"
    )
    if not report.stable:
        logger.warning(f"{filt.kind.value} filter has a pole at radius {report.max_pole_radius:.6f}")
    return report
