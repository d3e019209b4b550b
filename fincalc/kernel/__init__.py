"""
Decimal numerical kernel.

Deterministic transcendental functions, normal distribution functions, a
cash-flow root finder, fractional powers and dense linear algebra, all over
decimal.Decimal.
"""

from fincalc.kernel.context import KERNEL_CONTEXT, kernel_context, to_decimal
from fincalc.kernel.distributions import norm_cdf, norm_inverse_cdf, norm_pdf
from fincalc.kernel.errors import (
    ComputationImpossibleError,
    ConvergenceError,
    DimensionMismatchError,
    DivisionByZeroError,
    DomainError,
    KernelError,
    SingularMatrixError,
)
from fincalc.kernel.linalg import (
    dot,
    identity,
    inverse,
    inverse_diagonal,
    mat_add,
    mat_mul,
    mat_mul_transpose,
    mat_scale,
    mat_vec_mul,
    portfolio_std,
    quadratic_form,
    transpose,
)
from fincalc.kernel.powers import decimal_pow_fraction
from fincalc.kernel.root_finder import (
    CashFlow,
    SolverConfig,
    SolverState,
    npv,
    npv_derivative,
    periodic_cash_flows,
    solve_rate,
)
from fincalc.kernel.transcendental import (
    decimal_acosh,
    decimal_cos,
    decimal_cosh,
    decimal_exp,
    decimal_ln,
    decimal_sinh,
    decimal_sqrt,
)

__all__ = [
    "KERNEL_CONTEXT",
    "kernel_context",
    "to_decimal",
    "KernelError",
    "ConvergenceError",
    "DomainError",
    "ComputationImpossibleError",
    "SingularMatrixError",
    "DivisionByZeroError",
    "DimensionMismatchError",
    "decimal_sqrt",
    "decimal_exp",
    "decimal_ln",
    "decimal_cos",
    "decimal_sinh",
    "decimal_cosh",
    "decimal_acosh",
    "norm_pdf",
    "norm_cdf",
    "norm_inverse_cdf",
    "decimal_pow_fraction",
    "CashFlow",
    "SolverConfig",
    "SolverState",
    "npv",
    "npv_derivative",
    "periodic_cash_flows",
    "solve_rate",
    "identity",
    "dot",
    "mat_vec_mul",
    "mat_mul",
    "mat_mul_transpose",
    "transpose",
    "mat_add",
    "mat_scale",
    "inverse",
    "inverse_diagonal",
    "quadratic_form",
    "portfolio_std",
]
