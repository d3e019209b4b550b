"""
Fractional Powers

base^fraction for bases near 1, used to discount a partial (stub) period.
"""

from decimal import Decimal

from fincalc.kernel.context import ONE, ZERO, kernel_context, to_decimal
from fincalc.kernel.errors import DomainError

BINOMIAL_TERMS = 15
BINOMIAL_CUTOFF = Decimal("0.00000000001")


@kernel_context
def decimal_pow_fraction(base, fraction) -> Decimal:
    """
    Compute base^fraction with the binomial series.

    (1 + x)^f = sum C(f, k) x^k with x = base - 1, summed for up to
    BINOMIAL_TERMS terms and stopped as soon as a term drops below 1e-11.
    Accurate when |base - 1| is small, which periodic yields always are.

    Args:
        base: Base close to 1 (e.g. 1 + periodic yield)
        fraction: Exponent in [0, 1]

    Returns:
        base raised to fraction

    Raises:
        DomainError: If fraction is outside [0, 1]
    """
    b = to_decimal(base)
    f = to_decimal(fraction)
    if not f.is_finite() or f < ZERO or f > ONE:
        raise DomainError("pow_fraction", f)

    if f == ZERO:
        return ONE
    if f == ONE:
        return b
    if b == ONE:
        return ONE

    x = b - ONE
    result = ONE
    term = ONE
    for k in range(1, BINOMIAL_TERMS + 1):
        term = term * (f - k + 1) * x / k
        result += term
        if abs(term) < BINOMIAL_CUTOFF:
            break

    return result
