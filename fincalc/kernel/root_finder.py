"""
Cash-Flow Root Finder

One Newton-Raphson solver for IRR-style problems: find r with NPV(r) = 0
where NPV(r) = sum CF_t / (1+r)^t. Bond yields, real-estate IRRs and
private-credit tranche yields all go through solve_rate with their own
SolverConfig.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from fincalc.kernel.context import HALF, ONE, ZERO, kernel_context, to_decimal
from fincalc.kernel.errors import ConvergenceError
from fincalc.kernel.powers import decimal_pow_fraction
from fincalc.kernel.transcendental import decimal_exp, decimal_ln

logger = logging.getLogger(__name__)

DEFAULT_GUESS = Decimal("0.10")


@dataclass(frozen=True)
class CashFlow:
    """A single amount at a non-negative period offset."""

    time: Decimal
    amount: Decimal


@dataclass(frozen=True)
class SolverConfig:
    """Guard rails for one solve: iteration ceiling, tolerance and rate band."""

    max_iterations: int = 50
    tolerance: Decimal = Decimal("0.0000001")
    rate_floor: Decimal = Decimal("-0.99")
    rate_ceiling: Decimal = Decimal("10.0")

    @classmethod
    def from_settings(cls, settings, prefix: str = "solver") -> "SolverConfig":
        """
        Build a config from an object carrying {prefix}_max_iterations,
        {prefix}_tolerance, {prefix}_rate_floor and {prefix}_rate_ceiling.
        """
        return cls(
            max_iterations=getattr(settings, f"{prefix}_max_iterations"),
            tolerance=to_decimal(getattr(settings, f"{prefix}_tolerance")),
            rate_floor=to_decimal(getattr(settings, f"{prefix}_rate_floor")),
            rate_ceiling=to_decimal(getattr(settings, f"{prefix}_rate_ceiling")),
        )


@dataclass
class SolverState:
    """Mutable per-call iteration state. Never outlives solve_rate."""

    rate: Decimal
    iteration: int = 0
    residual: Decimal = ZERO
    derivative: Decimal = ZERO


def periodic_cash_flows(amounts: Iterable) -> List[CashFlow]:
    """Place amounts at periods 0, 1, 2, ..."""
    return [
        CashFlow(time=Decimal(period), amount=to_decimal(amount))
        for period, amount in enumerate(amounts)
    ]


def _fractional_factor(one_plus_r: Decimal, fraction: Decimal) -> Decimal:
    # The binomial series only converges quickly for bases near 1
    if abs(one_plus_r - ONE) < HALF:
        return decimal_pow_fraction(one_plus_r, fraction)
    return decimal_exp(fraction * decimal_ln(one_plus_r))


def _compound_factors(one_plus_r: Decimal, cash_flows: Sequence[CashFlow]) -> List[Decimal]:
    """
    (1+r)^t for every flow.

    Whole periods are built by repeated multiplication rather than a power
    routine, so no transcendental error enters integer-period valuations.
    """
    max_whole = max(int(cf.time) for cf in cash_flows)
    powers = [ONE]
    for _ in range(max_whole):
        powers.append(powers[-1] * one_plus_r)

    fractional: Dict[Decimal, Decimal] = {}
    factors = []
    for cf in cash_flows:
        whole = int(cf.time)
        remainder = cf.time - whole
        factor = powers[whole]
        if remainder:
            if remainder not in fractional:
                fractional[remainder] = _fractional_factor(one_plus_r, remainder)
            factor = factor * fractional[remainder]
        factors.append(factor)
    return factors


def _npv_and_derivative(rate: Decimal, cash_flows: Sequence[CashFlow]) -> Tuple[Decimal, Decimal]:
    one_plus_r = ONE + rate
    value = ZERO
    derivative = ZERO
    for cf, factor in zip(cash_flows, _compound_factors(one_plus_r, cash_flows)):
        value += cf.amount / factor
        # d/dr CF / (1+r)^t = -t * CF / (1+r)^(t+1)
        derivative -= cf.time * cf.amount / (factor * one_plus_r)
    return value, derivative


def _validate_flows(cash_flows: Sequence[CashFlow]) -> None:
    if not cash_flows:
        raise ValueError("At least 1 cash flow required")
    for i, cf in enumerate(cash_flows):
        if cf.time < ZERO:
            raise ValueError(f"cash_flows[{i}] has negative time offset {cf.time}")


@kernel_context
def npv(rate, cash_flows: Sequence[CashFlow]) -> Decimal:
    """Net present value sum CF_t / (1+r)^t."""
    _validate_flows(cash_flows)
    return _npv_and_derivative(to_decimal(rate), cash_flows)[0]


@kernel_context
def npv_derivative(rate, cash_flows: Sequence[CashFlow]) -> Decimal:
    """dNPV/dr = sum -t * CF_t / (1+r)^(t+1)."""
    _validate_flows(cash_flows)
    return _npv_and_derivative(to_decimal(rate), cash_flows)[1]


def _clamp(rate: Decimal, config: SolverConfig) -> Decimal:
    if rate < config.rate_floor:
        return config.rate_floor
    if rate > config.rate_ceiling:
        return config.rate_ceiling
    return rate


@kernel_context
def solve_rate(
    cash_flows: Sequence[CashFlow],
    guess=DEFAULT_GUESS,
    config: Optional[SolverConfig] = None,
    label: str = "irr",
) -> Decimal:
    """
    Solve NPV(r) = 0 with Newton-Raphson.

    Each iteration evaluates NPV and its analytic derivative at the current
    rate, stops once |NPV| < tolerance, and otherwise steps
    r <- r - NPV/NPV' and clamps r into [rate_floor, rate_ceiling].

    Args:
        cash_flows: Flows with non-negative time offsets (first usually negative)
        guess: Initial rate
        config: Iteration ceiling, tolerance and clamp band
        label: Name reported in ConvergenceError

    Returns:
        Rate per period as Decimal

    Raises:
        ValueError: If fewer than 2 flows or a negative time offset is given
        ConvergenceError: If the ceiling is reached or the derivative is zero
    """
    if config is None:
        config = SolverConfig()

    flows = list(cash_flows)
    if len(flows) < 2:
        raise ValueError("At least 2 cash flows required")
    _validate_flows(flows)

    state = SolverState(rate=_clamp(to_decimal(guess), config))

    while state.iteration < config.max_iterations:
        state.residual, state.derivative = _npv_and_derivative(state.rate, flows)

        if abs(state.residual) < config.tolerance:
            return state.rate

        if state.derivative == ZERO:
            logger.debug(
                f"{label}: zero derivative at rate {state.rate} "
                f"after {state.iteration} iterations"
            )
            raise ConvergenceError(label, state.iteration, state.residual)

        state.rate = _clamp(state.rate - state.residual / state.derivative, config)
        state.iteration += 1

    state.residual, state.derivative = _npv_and_derivative(state.rate, flows)
    if abs(state.residual) < config.tolerance:
        return state.rate

    logger.debug(
        f"{label}: no convergence in {config.max_iterations} iterations, "
        f"rate {state.rate}, residual {state.residual}"
    )
    raise ConvergenceError(label, config.max_iterations, state.residual)
