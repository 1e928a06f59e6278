"""
Digital Butterworth synthesis via the bilinear transform.

Low-pass design:
  1. Pre-warp the cutoff so the digital -3 dB point lands on it.
  2. Scale the analog prototype poles by the warped cutoff.
  3. Map each pole to the z-plane, one section per real pole or conjugate pair.
  4. Cascade the sections by convolving their coefficient vectors.
  5. Normalize so a[0] == 1 and the DC gain is exactly 1.

High-pass design mirrors the cutoff about fs/4, designs the low-pass there and
substitutes z -> -z (spectral inversion).
"""

import math
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Tuple, Union

import numpy as np

from filterlib.logger import get_logger
from filterlib.exceptions import InvalidParameter, NumericDegenerate
from filterlib.prototype import (
    ConjugatePole,
    Pole,
    RealPole,
    TaggedPole,
    compute_poles,
    pair_poles,
    validate_order,
)

logger = get_logger(__name__)

# Above this fraction of the sample rate the pre-warp tangent gets steep
NEAR_NYQUIST_RATIO = 0.49

DC_GAIN_TOLERANCE = 1e-9

Section = Tuple[np.ndarray, np.ndarray]


class FilterKind(Enum):
    LOWPASS = "lowpass"
    HIGHPASS = "highpass"


@dataclass(frozen=True)
class DigitalFilter:
    """
    Designed IIR filter: H(z) = B(z^-1) / A(z^-1).

    ``b`` and ``a`` are stored as tuples so the filter cannot be changed after
    construction; use ``as_arrays()`` for numpy work.
    """

    order: int
    cutoff_hz: float
    sample_rate_hz: float
    kind: FilterKind
    b: Tuple[float, ...]
    a: Tuple[float, ...]

    def __post_init__(self):
        object.__setattr__(self, "b", tuple(float(x) for x in self.b))
        object.__setattr__(self, "a", tuple(float(x) for x in self.a))

        if len(self.b) != self.order + 1 or len(self.a) != self.order + 1:
            raise InvalidParameter(
                "Coefficient vectors must have order + 1 entries",
                context={"order": self.order, "len_b": len(self.b), "len_a": len(self.a)}
            )
        if self.a[0] != 1.0:
            raise InvalidParameter(
                "Denominator must be normalized (a[0] == 1)",
                context={"a0": self.a[0]}
            )

    @property
    def nyquist_hz(self) -> float:
        return self.sample_rate_hz / 2.0

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return fresh (b, a) numpy arrays."""
        return np.array(self.b, dtype=float), np.array(self.a, dtype=float)


def validate_design_parameters(order: int, cutoff_hz: float, sample_rate_hz: float) -> int:
    """
    Check design inputs before any computation.

    Args:
        order: Filter order
        cutoff_hz: Cutoff frequency in Hz
        sample_rate_hz: Sample rate in Hz

    Returns:
        The validated order as an int

    Raises:
        InvalidParameter: If order < 1, sample rate <= 0, or the cutoff is not
            strictly inside (0, sample_rate_hz / 2)
    """
    order = validate_order(order)

    if not isinstance(sample_rate_hz, numbers.Real) or not math.isfinite(sample_rate_hz) or sample_rate_hz <= 0:
        raise InvalidParameter(
            f"Sample rate must be positive, got {sample_rate_hz}",
            context={"sample_rate_hz": sample_rate_hz}
        )

    nyquist = sample_rate_hz / 2.0
    if not isinstance(cutoff_hz, numbers.Real) or not (0.0 < cutoff_hz < nyquist):
        raise InvalidParameter(
            f"Cutoff must lie strictly between 0 and Nyquist ({nyquist} Hz), got {cutoff_hz}",
            context={"cutoff_hz": cutoff_hz, "sample_rate_hz": sample_rate_hz}
        )

    return order


def prewarp_cutoff(cutoff_hz: float, sample_rate_hz: float) -> float:
    """
    Pre-warp a cutoff for the bilinear transform.

    Returns:
        Analog cutoff in rad/s: 2 * fs * tan(pi * fc / fs)

    Raises:
        NumericDegenerate: If the tangent is not finite and positive
    """
    warped = 2.0 * sample_rate_hz * math.tan(math.pi * cutoff_hz / sample_rate_hz)
    if not math.isfinite(warped) or warped <= 0:
        raise NumericDegenerate(
            "Pre-warped cutoff is not finite",
            context={"cutoff_hz": cutoff_hz, "sample_rate_hz": sample_rate_hz, "warped": warped}
        )
    return warped


def bilinear_pole(pole: complex, sample_rate_hz: float) -> complex:
    """Map an analog pole (rad/s) to the z-plane: z = (2 + sT) / (2 - sT)."""
    t = 1.0 / sample_rate_hz
    return (2.0 + pole * t) / (2.0 - pole * t)


def scaled_prototype(order: int, warped_cutoff: float) -> List[TaggedPole]:
    """Prototype poles scaled to the warped cutoff, tagged real/conjugate."""
    scaled = [Pole(p.real * warped_cutoff, p.imag * warped_cutoff) for p in compute_poles(order)]
    return pair_poles(scaled)


def bilinear_sections(tagged_poles: Sequence[TaggedPole], sample_rate_hz: float) -> List[Section]:
    """
    Turn tagged analog poles into first- and second-order digital sections.

    Every prototype zero sits at infinity and maps to z = -1, hence the fixed
    numerators [1, 1] and [1, 2, 1].

    Args:
        tagged_poles: Output of pair_poles, in rad/s
        sample_rate_hz: Sample rate in Hz

    Returns:
        List of (b, a) coefficient arrays, one per section
    """
    sections = []
    for pole in tagged_poles:
        if isinstance(pole, RealPole):
            z = bilinear_pole(complex(pole.real, 0.0), sample_rate_hz).real
            sections.append((np.array([1.0, 1.0]), np.array([1.0, -z])))
        elif isinstance(pole, ConjugatePole):
            z1 = bilinear_pole(complex(pole.real, pole.imag), sample_rate_hz)
            a_section = np.array([1.0, -2.0 * z1.real, z1.real * z1.real + z1.imag * z1.imag])
            sections.append((np.array([1.0, 2.0, 1.0]), a_section))
        else:
            raise TypeError(f"Unknown pole type: {type(pole).__name__}")
    return sections


def convolve(x: Sequence[float], y: Sequence[float]) -> np.ndarray:
    """Polynomial product of two coefficient vectors."""
    return np.convolve(np.asarray(x, dtype=float), np.asarray(y, dtype=float))


def cascade_sections(sections: Sequence[Section]) -> Tuple[np.ndarray, np.ndarray]:
    """Combine sections into one (b, a) pair by repeated convolution."""
    b_total = np.array([1.0])
    a_total = np.array([1.0])
    for b_section, a_section in sections:
        b_total = convolve(b_total, b_section)
        a_total = convolve(a_total, a_section)
    return b_total, a_total


def normalize_dc_gain(b: np.ndarray, a: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Normalize a[0] to 1 and scale b so that |H(z=1)| == 1.

    Raises:
        NumericDegenerate: If the numerator sums to zero or anything is non-finite
    """
    a0 = a[0]
    a = a / a0
    b = b / a0

    b_sum = float(np.sum(b))
    if b_sum == 0.0 or not math.isfinite(b_sum):
        raise NumericDegenerate(
            "Cannot normalize gain: numerator sum is degenerate",
            context={"b_sum": b_sum}
        )
    gain = float(np.sum(a)) / b_sum
    b = b * gain

    if not (np.all(np.isfinite(b)) and np.all(np.isfinite(a))):
        raise NumericDegenerate(
            "Filter coefficients are not finite",
            context={"gain": gain}
        )
    return b, a


def spectral_invert(coefficients: Sequence[float]) -> np.ndarray:
    """Negate odd-indexed coefficients: the z -> -z substitution."""
    out = np.array(coefficients, dtype=float)
    out[1::2] *= -1.0
    return out


def _lowpass_coefficients(order: int, cutoff_hz: float, sample_rate_hz: float) -> Tuple[np.ndarray, np.ndarray]:
    warped = prewarp_cutoff(cutoff_hz, sample_rate_hz)
    sections = bilinear_sections(scaled_prototype(order, warped), sample_rate_hz)
    logger.debug(
        f"Low-pass order {order} at {cutoff_hz:.4f} Hz: warped cutoff {warped:.4f} rad/s, "
        f"{len(sections)} section(s)"
    )
    b, a = cascade_sections(sections)
    b, a = normalize_dc_gain(b, a)
    check_expanded_design(b, a, order, cutoff_hz, sample_rate_hz)
    return b, a


def check_expanded_design(
    b: np.ndarray, a: np.ndarray, order: int, cutoff_hz: float, sample_rate_hz: float
) -> None:
    """
    Check that the expanded low-pass (b, a) still behaves like its sections.

    High orders at low cutoffs put every pole close to z = 1. Rounding in the
    expanded denominator then moves its roots, possibly outside the unit
    circle, and the DC gain drifts away from 1.

    Raises:
        NumericDegenerate: If a root of ``a`` lies on or outside the unit circle
    """
    radius = float(np.max(np.abs(np.roots(a)))) if len(a) > 1 else 0.0
    if radius >= 1.0:
        logger.error(
            f"Order {order} low-pass at {cutoff_hz:.4f} Hz is unstable once expanded "
            f"(pole radius {radius:.6f})"
        )
        raise NumericDegenerate(
            "Expanded denominator is unstable; lower the order or raise the cutoff",
            context={
                "order": order,
                "cutoff_hz": cutoff_hz,
                "sample_rate_hz": sample_rate_hz,
                "max_pole_radius": radius,
            }
        )

    dc_gain = abs(np.polyval(b[::-1], 1.0) / np.polyval(a[::-1], 1.0))
    if abs(dc_gain - 1.0) > DC_GAIN_TOLERANCE:
        logger.warning(
            f"Order {order} low-pass at {cutoff_hz:.4f} Hz: expanded DC gain is {dc_gain:.12f}, "
            f"coefficients are ill-conditioned"
        )


def design_lowpass(order: int, cutoff_hz: float, sample_rate_hz: float) -> DigitalFilter:
    """
    Design a digital Butterworth low-pass filter.

    Args:
        order: Filter order (>= 1)
        cutoff_hz: -3 dB frequency in Hz, strictly inside (0, fs/2)
        sample_rate_hz: Sample rate in Hz

    Returns:
        DigitalFilter with unity gain at DC

    Raises:
        InvalidParameter: If any parameter is out of range
        NumericDegenerate: If the design produces non-finite coefficients or
            an expanded denominator with a root outside the unit circle
    """
    order = validate_design_parameters(order, cutoff_hz, sample_rate_hz)
    if cutoff_hz > NEAR_NYQUIST_RATIO * sample_rate_hz:
        logger.warning(
            f"Low-pass cutoff {cutoff_hz:.2f} Hz is above {NEAR_NYQUIST_RATIO} x sample rate; "
            f"coefficients may be inaccurate"
        )

    b, a = _lowpass_coefficients(order, cutoff_hz, sample_rate_hz)
    return DigitalFilter(
        order=order,
        cutoff_hz=float(cutoff_hz),
        sample_rate_hz=float(sample_rate_hz),
        kind=FilterKind.LOWPASS,
        b=b,
        a=a,
    )


def design_highpass(order: int, cutoff_hz: float, sample_rate_hz: float) -> DigitalFilter:
    """
    Design a digital Butterworth high-pass filter by spectral inversion.

    A low-pass is designed at fs/2 - cutoff_hz and its odd-indexed
    coefficients are negated, so H_HP(z) = H_LP(-z). The low-pass unity DC gain
    becomes unity gain at Nyquist.

    Args:
        order: Filter order (>= 1)
        cutoff_hz: -3 dB frequency in Hz, strictly inside (0, fs/2)
        sample_rate_hz: Sample rate in Hz

    Returns:
        DigitalFilter with unity gain at Nyquist

    Raises:
        InvalidParameter: If any parameter (or the mirrored cutoff) is out of range
        NumericDegenerate: If the design produces non-finite coefficients or
            an expanded denominator with a root outside the unit circle
    """
    order = validate_design_parameters(order, cutoff_hz, sample_rate_hz)
    mirrored = sample_rate_hz / 2.0 - cutoff_hz
    validate_design_parameters(order, mirrored, sample_rate_hz)
    if mirrored > NEAR_NYQUIST_RATIO * sample_rate_hz:
        logger.warning(
            f"High-pass cutoff {cutoff_hz:.2f} Hz mirrors to {mirrored:.2f} Hz, "
            f"above {NEAR_NYQUIST_RATIO} x sample rate; "
            f"coefficients may be inaccurate"
        )

    b_lp, a_lp = _lowpass_coefficients(order, mirrored, sample_rate_hz)
    return DigitalFilter(
        order=order,
        cutoff_hz=float(cutoff_hz),
        sample_rate_hz=float(sample_rate_hz),
        kind=FilterKind.HIGHPASS,
        b=spectral_invert(b_lp),
        a=spectral_invert(a_lp),
    )


def design_filter(
    kind: Union[FilterKind, str], order: int, cutoff_hz: float, sample_rate_hz: float
) -> DigitalFilter:
    """Design a low-pass or high-pass filter selected by ``kind``."""
    try:
        kind = FilterKind(kind)
    except ValueError:
        raise InvalidParameter(
            f"Unknown filter kind: {kind}",
            context={"valid": [k.value for k in FilterKind]}
        )

    if kind is FilterKind.LOWPASS:
        return design_lowpass(order, cutoff_hz, sample_rate_hz)
    return design_highpass(order, cutoff_hz, sample_rate_hz)


def digital_poles(filt: DigitalFilter) -> List[complex]:
    """
    Ideal z-plane poles of a design, taken from the section mapping.

    These are the poles of the cascaded sections before expansion, not the
    roots of the stored ``a``. The two agree while the expanded coefficients
    are well conditioned; ``verification.filter_poles`` gives the roots of
    the coefficients actually stored.
    """
    if filt.kind is FilterKind.LOWPASS:
        cutoff, sign = filt.cutoff_hz, 1.0
    else:
        cutoff, sign = filt.nyquist_hz - filt.cutoff_hz, -1.0

    warped = prewarp_cutoff(cutoff, filt.sample_rate_hz)
    poles = []
    for pole in scaled_prototype(filt.order, warped):
        if isinstance(pole, RealPole):
            poles.append(sign * bilinear_pole(complex(pole.real, 0.0), filt.sample_rate_hz))
        else:
            z1 = sign * bilinear_pole(complex(pole.real, pole.imag), filt.sample_rate_hz)
            poles.extend([z1, z1.conjugate()])
    return poles
