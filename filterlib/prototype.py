"""
Analog Butterworth prototype: normalized pole locations.

The prototype is the all-pole low-pass with a 1 rad/s cutoff. Its poles sit on
the left half of the unit circle in the s-plane. For order n the poles are

    theta_k = pi * (2k + n + 1) / (2n),   k = 0 .. n-1

so pole k and pole n-1-k are complex conjugates and, for odd n, the middle
pole lies on the negative real axis.
"""

import math
import numbers
from typing import List, NamedTuple, Union

from filterlib.exceptions import InvalidParameter


class Pole(NamedTuple):
    """A point in the s- or z-plane."""

    real: float
    imag: float


class RealPole(NamedTuple):
    """Single pole on the real axis; becomes a first-order section."""

    real: float


class ConjugatePole(NamedTuple):
    """Upper-half member of a conjugate pair; becomes a biquad."""

    real: float
    imag: float


TaggedPole = Union[RealPole, ConjugatePole]


def validate_order(order) -> int:
    """Return ``order`` as an int, or raise InvalidParameter."""
    if isinstance(order, bool) or not isinstance(order, numbers.Integral):
        raise InvalidParameter(
            "Filter order must be an integer",
            context={"order": order, "type": type(order).__name__}
        )
    if order < 1:
        raise InvalidParameter(
            f"Filter order must be >= 1, got {order}",
            context={"order": order}
        )
    return int(order)


def compute_poles(order: int) -> List[Pole]:
    """
    Compute the normalized Butterworth poles for a given order.

    Args:
        order: Filter order (>= 1)

    Returns:
        ``order`` poles, in generation order, all with negative real part

    Raises:
        InvalidParameter: If order is not a positive integer
    """
    order = validate_order(order)
    poles = []
    for k in range(order):
        theta = math.pi * (2 * k + order + 1) / (2 * order)
        poles.append(Pole(math.cos(theta), math.sin(theta)))
    return poles


def pair_poles(poles: List[Pole]) -> List[TaggedPole]:
    """
    Group prototype poles into real poles and conjugate pairs.

    Pairing follows the generation formula (k with n-1-k) instead of testing
    the imaginary part against a threshold. The conjugate member kept is the
    one with positive imaginary part.

    Args:
        poles: Poles as returned by compute_poles (optionally scaled)

    Returns:
        Tagged poles: ``n // 2`` ConjugatePole entries followed by one RealPole
        when n is odd
    """
    n = len(poles)
    tagged: List[TaggedPole] = []
    for k in range(n // 2):
        first, second = poles[k], poles[n - 1 - k]
        upper = first if first.imag > 0 else second
        tagged.append(ConjugatePole(upper.real, abs(upper.imag)))
    if n % 2 == 1:
        # sin(pi) is ~1e-16, not 0; the middle pole is real by construction
        tagged.append(RealPole(poles[n // 2].real))
    return tagged
