"""
Decimal Context

Every kernel routine runs inside one fixed decimal context so that results
never depend on the caller's thread-local context. Identical inputs always
produce identical outputs.
"""

from decimal import (
    Context,
    Decimal,
    DivisionByZero,
    InvalidOperation,
    Overflow,
    ROUND_HALF_EVEN,
    localcontext,
)
from functools import wraps

from fincalc.kernel.errors import ComputationImpossibleError, KernelError

# 28 significant digits, the same budget as a 96-bit decimal mantissa
KERNEL_PRECISION = 28

KERNEL_CONTEXT = Context(
    prec=KERNEL_PRECISION,
    rounding=ROUND_HALF_EVEN,
    Emin=-999999,
    Emax=999999,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)

ZERO = Decimal(0)
ONE = Decimal(1)
TWO = Decimal(2)
HALF = Decimal("0.5")
PI = Decimal("3.141592653589793238462643383")
TWO_PI = Decimal("6.283185307179586476925286767")
E = Decimal("2.718281828459045235360287471")

# Smallest positive normal value in the kernel context
SMALLEST_POSITIVE = ONE.scaleb(KERNEL_CONTEXT.Emin)


def kernel_context(func):
    """
    Run the wrapped function inside the kernel decimal context.

    A result too large for the context surfaces as ComputationImpossibleError.
    """

    @wraps(func)
    def wrapper(*args, **kwargs):
        with localcontext(KERNEL_CONTEXT):
            try:
                return func(*args, **kwargs)
            except Overflow as e:
                raise ComputationImpossibleError(
                    f"{func.__name__}: result exceeds the decimal range"
                ) from e

    return wrapper


def to_decimal(value) -> Decimal:
    """
    Convert ints, strings, floats and Decimals to Decimal.

    Floats go through str() first so 0.1 becomes Decimal("0.1") rather than
    its binary expansion.

    Raises:
        TypeError: If the value is not a supported numeric type
        KernelError: If a string is not a valid number
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError(f"Unsupported numeric type: {type(value)}")
    if isinstance(value, str):
        try:
            return Decimal(value)
        except InvalidOperation as e:
            raise KernelError(f"Invalid numeric string: {value!r}") from e
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    raise TypeError(f"Unsupported numeric type: {type(value)}")
