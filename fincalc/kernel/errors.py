"""
Kernel Errors

Typed failures raised by the numerical kernel. All of them derive from
ValueError so callers that already treat bad input as ValueError keep working.
"""

from decimal import Decimal


class KernelError(ValueError):
    """Base class for every failure raised by the kernel."""


class ConvergenceError(KernelError):
    """
    A Newton-type iteration exhausted its ceiling or hit a zero derivative.

    Non-fatal: callers usually substitute a default and surface a warning.
    """

    def __init__(self, function: str, iterations: int, residual: Decimal):
        self.function = function
        self.iterations = iterations
        self.residual = residual
        super().__init__(
            f"{function} did not converge after {iterations} iterations "
            f"(last residual {residual})"
        )


class DomainError(KernelError):
    """An argument lies outside the domain of a transcendental function."""

    def __init__(self, function: str, value: Decimal):
        self.function = function
        self.value = value
        super().__init__(f"{function} is undefined for {value}")


class ComputationImpossibleError(KernelError):
    """The requested computation has no solution. Not retryable."""


class SingularMatrixError(ComputationImpossibleError):
    """Matrix cannot be inverted."""


class DivisionByZeroError(ComputationImpossibleError):
    """A required divisor is exactly zero."""


class DimensionMismatchError(KernelError):
    """Operands are not conformable."""
