"""
Transcendental Functions

Square root, exponential, natural log, cosine and the hyperbolic functions,
evaluated purely with Decimal arithmetic.

Every routine runs a fixed number of iterations or series terms. There is no
early exit, so cost and rounding are identical on every platform for a given
input.
"""

from decimal import Decimal, ROUND_HALF_EVEN

from fincalc.kernel.context import (
    E,
    HALF,
    ONE,
    PI,
    SMALLEST_POSITIVE,
    TWO,
    TWO_PI,
    ZERO,
    kernel_context,
    to_decimal,
)
from fincalc.kernel.errors import ComputationImpossibleError, DomainError


SQRT_ITERATIONS = 20
EXP_TERMS = 40
LN_ITERATIONS = 40
COS_TERMS = 20

# Arguments are halved until they fall inside this bound before the series
EXP_REDUCTION_BOUND = TWO

# Just under ln(10) * Emax; larger results do not fit the kernel context
EXP_ARGUMENT_LIMIT = Decimal(2302580)


def _require_finite(function: str, x: Decimal) -> None:
    if not x.is_finite():
        raise DomainError(function, x)


@kernel_context
def decimal_sqrt(value) -> Decimal:
    """
    Square root via Newton's method.

    Always performs exactly SQRT_ITERATIONS updates y <- (y + x/y) / 2.
    Arguments outside [0.01, 100] are seeded from their decimal exponent so
    that the fixed budget is enough for any magnitude.

    Args:
        value: Non-negative number

    Returns:
        Square root as Decimal (0 for 0)

    Raises:
        DomainError: If value is negative or not finite
    """
    x = to_decimal(value)
    _require_finite("sqrt", x)
    if x < ZERO:
        raise DomainError("sqrt", x)
    if x == ZERO:
        return ZERO
    if x == ONE:
        return ONE

    if x > 100 or x < Decimal("0.01"):
        guess = ONE.scaleb(x.adjusted() // 2)
    else:
        guess = x / TWO

    for _ in range(SQRT_ITERATIONS):
        guess = (guess + x / guess) / TWO

    return guess


@kernel_context
def decimal_exp(value) -> Decimal:
    """
    Exponential via Taylor series with range reduction.

    The argument is halved k times until |x| <= 2, the series is summed on
    the reduced argument, and the result is squared k times back using
    exp(x) = exp(x/2)^2.

    Below -EXP_ARGUMENT_LIMIT the result is the smallest positive value the
    kernel context can hold, so exp(x) stays strictly positive.

    Raises:
        DomainError: If value is not finite
        ComputationImpossibleError: If value exceeds EXP_ARGUMENT_LIMIT
    """
    x = to_decimal(value)
    _require_finite("exp", x)
    if x > EXP_ARGUMENT_LIMIT:
        raise ComputationImpossibleError(
            f"exp({x}) exceeds the decimal range (limit {EXP_ARGUMENT_LIMIT})"
        )
    if x < -EXP_ARGUMENT_LIMIT:
        return SMALLEST_POSITIVE

    reduced = x
    halvings = 0
    while abs(reduced) > EXP_REDUCTION_BOUND:
        reduced = reduced / TWO
        halvings += 1

    total = ONE
    term = ONE
    for n in range(1, EXP_TERMS + 1):
        term = term * reduced / n
        total += term

    for _ in range(halvings):
        total = total * total

    return total


@kernel_context
def decimal_ln(value) -> Decimal:
    """
    Natural logarithm via Newton's method on exp(y) = x.

    The starting point is x - 1 for x in (0.5, 2); otherwise x is divided
    (or multiplied) by e until it is near 1, counting the steps. Then
    LN_ITERATIONS updates y <- y - 1 + x / exp(y) are applied.

    Args:
        value: Strictly positive number

    Returns:
        ln(value) as Decimal

    Raises:
        DomainError: If value is zero, negative or not finite
    """
    x = to_decimal(value)
    _require_finite("ln", x)
    if x <= ZERO:
        raise DomainError("ln", x)
    if x == ONE:
        return ZERO

    if HALF < x < TWO:
        y = x - ONE
    else:
        whole = ZERO
        v = x
        if x > ONE:
            while v > E:
                v = v / E
                whole += ONE
        else:
            while v < ONE / E:
                v = v * E
                whole -= ONE
        y = whole + (v - ONE)

    for _ in range(LN_ITERATIONS):
        y = y - ONE + x / decimal_exp(y)

    return y


@kernel_context
def decimal_cos(value) -> Decimal:
    """Cosine via a COS_TERMS-term Taylor series after reducing modulo 2*pi."""
    x = to_decimal(value)
    _require_finite("cos", x)

    if abs(x) > PI:
        periods = (x / TWO_PI).to_integral_value(rounding=ROUND_HALF_EVEN)
        x = x - periods * TWO_PI

    square = x * x
    total = ONE
    term = ONE
    for n in range(1, COS_TERMS + 1):
        term = -term * square / ((2 * n - 1) * (2 * n))
        total += term

    return total


@kernel_context
def decimal_sinh(value) -> Decimal:
    """sinh(x) = (e^x - e^-x) / 2"""
    x = to_decimal(value)
    return (decimal_exp(x) - decimal_exp(-x)) / TWO


@kernel_context
def decimal_cosh(value) -> Decimal:
    """cosh(x) = (e^x + e^-x) / 2"""
    x = to_decimal(value)
    return (decimal_exp(x) + decimal_exp(-x)) / TWO


@kernel_context
def decimal_acosh(value) -> Decimal:
    """
    Inverse hyperbolic cosine, ln(x + sqrt(x^2 - 1)).

    Raises:
        DomainError: If value is below 1
    """
    x = to_decimal(value)
    _require_finite("acosh", x)
    if x < ONE:
        raise DomainError("acosh", x)
    return decimal_ln(x + decimal_sqrt(x * x - ONE))
