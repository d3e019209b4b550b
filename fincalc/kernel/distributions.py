"""
Standard Normal Distribution

PDF, CDF and inverse CDF built on the decimal transcendental functions and
the Abramowitz & Stegun rational approximations.
"""

import logging
from decimal import Decimal

from fincalc.kernel.context import HALF, ONE, TWO, TWO_PI, ZERO, kernel_context, to_decimal
from fincalc.kernel.errors import DomainError
from fincalc.kernel.transcendental import decimal_exp, decimal_ln, decimal_sqrt

logger = logging.getLogger(__name__)

# Abramowitz & Stegun 26.2.17
CDF_P = Decimal("0.2316419")
CDF_B = (
    Decimal("0.319381530"),
    Decimal("-0.356563782"),
    Decimal("1.781477937"),
    Decimal("-1.821255978"),
    Decimal("1.330274429"),
)

# Abramowitz & Stegun 26.2.23
INV_C = (Decimal("2.515517"), Decimal("0.802853"), Decimal("0.010328"))
INV_D = (Decimal("1.432788"), Decimal("0.189269"), Decimal("0.001308"))

PROBABILITY_FLOOR = Decimal("0.0000001")
PROBABILITY_CEILING = ONE - PROBABILITY_FLOOR


@kernel_context
def norm_pdf(value) -> Decimal:
    """Standard normal density exp(-x^2/2) / sqrt(2*pi)."""
    x = to_decimal(value)
    return decimal_exp(-(x * x) / TWO) / decimal_sqrt(TWO_PI)


@kernel_context
def norm_cdf(value) -> Decimal:
    """
    Standard normal cumulative distribution.

    Uses the A&S 26.2.17 polynomial in t = 1 / (1 + p|x|) for the upper
    tail and reflects for negative x. Absolute error is below 7.5e-8.
    """
    x = to_decimal(value)
    abs_x = abs(x)
    t = ONE / (ONE + CDF_P * abs_x)

    b1, b2, b3, b4, b5 = CDF_B
    poly = t * (b1 + t * (b2 + t * (b3 + t * (b4 + t * b5))))
    upper = ONE - norm_pdf(abs_x) * poly

    if x < ZERO:
        return ONE - upper
    return upper


@kernel_context
def norm_inverse_cdf(probability) -> Decimal:
    """
    Inverse of the standard normal CDF (A&S 26.2.23).

    The probability is clamped to [1e-7, 1 - 1e-7] instead of failing, so
    extreme inputs return roughly +/-5.2. The p <-> 1 - p symmetry is used
    so the rational approximation is always evaluated on the lower half.

    Args:
        probability: Target cumulative probability

    Returns:
        x such that norm_cdf(x) ~= probability (absolute error < 4.5e-4)

    Raises:
        DomainError: If probability is NaN or infinite
    """
    p = to_decimal(probability)
    if not p.is_finite():
        raise DomainError("norm_inverse_cdf", p)

    if p < PROBABILITY_FLOOR or p > PROBABILITY_CEILING:
        logger.debug(f"Clamping probability {p} into [{PROBABILITY_FLOOR}, {PROBABILITY_CEILING}]")
        p = min(max(p, PROBABILITY_FLOOR), PROBABILITY_CEILING)

    upper_half = p > HALF
    tail = ONE - p if upper_half else p

    t = decimal_sqrt(-TWO * decimal_ln(tail))

    c0, c1, c2 = INV_C
    d1, d2, d3 = INV_D
    numerator = c0 + c1 * t + c2 * t * t
    denominator = ONE + d1 * t + d2 * t * t + d3 * t * t * t
    z = t - numerator / denominator

    return z if upper_half else -z
