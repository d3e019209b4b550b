"""
IRR and NPV Calculations

Periodic and dated IRR/NPV in Decimal, solved with the kernel's
Newton-Raphson root finder. Matches Excel's IRR/XIRR conventions (XIRR
uses ACT/365 year fractions from the first date).
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from fincalc.config import get_settings, get_solver_config
from fincalc.kernel import (
    CashFlow,
    SolverConfig,
    decimal_exp,
    decimal_ln,
    kernel_context,
    npv,
    periodic_cash_flows,
    solve_rate,
    to_decimal,
)

DAYS_PER_YEAR = Decimal(365)
MONTHS_PER_YEAR = 12


def _validate_irr_flows(cash_flows: Sequence[Decimal]) -> None:
    if len(cash_flows) < 2:
        raise ValueError("At least 2 cash flows required")

    has_positive = any(cf > 0 for cf in cash_flows)
    has_negative = any(cf < 0 for cf in cash_flows)

    if not has_positive or not has_negative:
        raise ValueError("Cash flows must contain both positive and negative values")


def calculate_npv(cash_flows: Sequence, discount_rate) -> Decimal:
    """
    Calculate NPV (Net Present Value) of periodic cash flows.

    The first flow is at period 0 and is not discounted.

    Args:
        cash_flows: Cash flows (negative = outflow, positive = inflow)
        discount_rate: Rate per period (e.g., 0.10 for 10%)

    Returns:
        NPV value
    """
    if not cash_flows:
        return Decimal(0)
    return npv(discount_rate, periodic_cash_flows(cash_flows))


def calculate_irr(
    cash_flows: Sequence,
    guess=None,
    config: Optional[SolverConfig] = None,
) -> Decimal:
    """
    Calculate IRR (Internal Rate of Return) using Newton-Raphson method.

    Matches Excel's IRR() function behavior for periodic cash flows.

    Args:
        cash_flows: Periodic cash flows
        guess: Initial guess for rate (default from settings, 0.10)
        config: Solver guard rails (default from settings)

    Returns:
        IRR per period as Decimal (e.g., 0.15 for 15%)

    Raises:
        ValueError: If fewer than 2 flows or no sign change
        ConvergenceError: If the solver does not converge
    """
    flows = [to_decimal(cf) for cf in cash_flows]
    _validate_irr_flows(flows)

    if guess is None:
        guess = get_settings().solver_default_guess
    if config is None:
        config = get_solver_config()

    return solve_rate(periodic_cash_flows(flows), guess=guess, config=config, label="irr")


@kernel_context
def _dated_cash_flows(cash_flows: Sequence, dates: Sequence[date]) -> List[CashFlow]:
    if len(cash_flows) != len(dates):
        raise ValueError("Cash flows and dates arrays must have same length")
    if not dates:
        return []

    base_date = dates[0]
    flows = []
    for i, (cf, d) in enumerate(zip(cash_flows, dates)):
        days = (d - base_date).days
        if days < 0:
            raise ValueError(f"dates[{i}] ({d}) is before the first date ({base_date})")
        flows.append(CashFlow(time=Decimal(days) / DAYS_PER_YEAR, amount=to_decimal(cf)))
    return flows


def calculate_xnpv(cash_flows: Sequence, dates: Sequence[date], discount_rate) -> Decimal:
    """Calculate XNPV (NPV with specific dates, ACT/365 from the first date)."""
    flows = _dated_cash_flows(cash_flows, dates)
    if not flows:
        return Decimal(0)
    return npv(discount_rate, flows)


def calculate_xirr(
    cash_flows: Sequence,
    dates: Sequence[date],
    guess=None,
    config: Optional[SolverConfig] = None,
) -> Decimal:
    """
    Calculate XIRR (IRR with specific dates).

    Matches Excel's XIRR() function behavior for irregular cash flows.

    Args:
        cash_flows: Cash flows
        dates: Dates corresponding to each cash flow, none before the first
        guess: Initial guess for rate (default from settings, 0.10)
        config: Solver guard rails (default from settings)

    Returns:
        Annual IRR as Decimal

    Raises:
        ValueError: If XIRR inputs are invalid
        ConvergenceError: If the solver does not converge
    """
    flows = _dated_cash_flows(cash_flows, dates)
    _validate_irr_flows([cf.amount for cf in flows])

    if guess is None:
        guess = get_settings().solver_default_guess
    if config is None:
        config = get_solver_config()

    return solve_rate(flows, guess=guess, config=config, label="xirr")


def calculate_multiple(cash_flows: Sequence) -> Decimal:
    """
    Calculate equity multiple.

    Args:
        cash_flows: Cash flows (investments are negative)

    Returns:
        Multiple (e.g., 2.0 = 2.0x return)
    """
    flows = [to_decimal(cf) for cf in cash_flows]
    total_inflows = sum((cf for cf in flows if cf > 0), Decimal(0))
    total_outflows = abs(sum((cf for cf in flows if cf < 0), Decimal(0)))

    if total_outflows == 0:
        raise ValueError("No investment (outflows) found")

    return total_inflows / total_outflows


def calculate_profit(cash_flows: Sequence) -> Decimal:
    """Calculate profit (total inflows minus total outflows)."""
    return sum((to_decimal(cf) for cf in cash_flows), Decimal(0))


@kernel_context
def monthly_to_annual_irr(monthly_irr) -> Decimal:
    """Convert monthly IRR to annual IRR."""
    return (1 + to_decimal(monthly_irr)) ** MONTHS_PER_YEAR - 1


@kernel_context
def annual_to_monthly_irr(annual_irr) -> Decimal:
    """Convert annual IRR to monthly IRR."""
    growth = 1 + to_decimal(annual_irr)
    if growth <= 0:
        raise ValueError("Annual IRR must be greater than -100%")
    return decimal_exp(decimal_ln(growth) / MONTHS_PER_YEAR) - 1
