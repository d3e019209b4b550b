"""
Real Estate Returns

Annual hold-period projection for a stabilized property: NOI growth, sale at
an exit cap rate, and an optional mortgage (interest-only then amortizing).
Produces unlevered and levered cash flows with their IRRs and multiples.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from fincalc.calculations.amortization import (
    calculate_debt_service,
    calculate_dscr,
    generate_amortization_schedule,
)
from fincalc.calculations.irr import (
    calculate_irr,
    calculate_multiple,
    calculate_npv,
    calculate_profit,
)
from fincalc.kernel import ConvergenceError, SolverConfig, kernel_context, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
ONE = Decimal(1)

MIN_DSCR_WARNING = Decimal("1.20")
MAX_LTV_WARNING = Decimal("0.80")
LOW_CAP_RATE = Decimal("0.03")
HIGH_CAP_RATE = Decimal("0.12")


@dataclass
class PropertyInputs:
    """Acquisition, operations, exit and financing assumptions."""

    purchase_price: Decimal
    year1_noi: Decimal
    hold_period_years: int
    exit_cap_rate: Decimal
    noi_growth: Decimal = ZERO
    closing_costs: Decimal = ZERO
    sales_cost_percent: Decimal = ZERO
    loan_amount: Decimal = ZERO
    interest_rate: Decimal = ZERO
    io_years: int = 0
    amortization_years: int = 30
    discount_rate: Optional[Decimal] = None
    acquisition_date: Optional[date] = None


@dataclass
class RealEstateReturns:
    annual_cash_flows: List[Dict]
    unlevered_cash_flows: List[Decimal]
    levered_cash_flows: List[Decimal]
    exit_value: Decimal
    net_sale_proceeds: Decimal
    loan_payoff: Decimal
    equity: Decimal
    unlevered_irr: Optional[Decimal]
    levered_irr: Optional[Decimal]
    unlevered_multiple: Decimal
    levered_multiple: Decimal
    unlevered_profit: Decimal
    levered_profit: Decimal
    going_in_cap_rate: Decimal
    ltv: Decimal
    min_dscr: Optional[Decimal] = None
    present_value: Optional[Decimal] = None
    warnings: List[str] = field(default_factory=list)


def _validate(inputs: PropertyInputs) -> None:
    if inputs.hold_period_years < 1:
        raise ValueError("hold_period_years must be at least 1")
    if to_decimal(inputs.purchase_price) <= 0:
        raise ValueError("purchase_price must be positive")
    if to_decimal(inputs.year1_noi) <= 0:
        raise ValueError("year1_noi must be positive")
    if to_decimal(inputs.exit_cap_rate) <= 0:
        raise ValueError("exit_cap_rate must be positive")
    if not ZERO <= to_decimal(inputs.sales_cost_percent) < ONE:
        raise ValueError("sales_cost_percent must be in [0, 1)")
    if to_decimal(inputs.loan_amount) < 0:
        raise ValueError("loan_amount must be non-negative")
    if inputs.io_years < 0 or inputs.amortization_years < 1:
        raise ValueError("io_years must be >= 0 and amortization_years >= 1")
    if inputs.discount_rate is not None and to_decimal(inputs.discount_rate) <= -1:
        raise ValueError("discount_rate must be greater than -100%")


def _solve_irr(
    label: str,
    cash_flows: List[Decimal],
    config: Optional[SolverConfig],
    warnings: List[str],
) -> Optional[Decimal]:
    try:
        return calculate_irr(cash_flows, config=config)
    except ConvergenceError as e:
        message = f"{label} IRR did not converge: {e}"
        logger.warning(message)
        warnings.append(message)
        return None
    except ValueError as e:
        message = f"{label} IRR undefined: {e}"
        logger.warning(message)
        warnings.append(message)
        return None


@kernel_context
def project_returns(
    inputs: PropertyInputs, config: Optional[SolverConfig] = None
) -> RealEstateReturns:
    """
    Project annual cash flows and returns over the hold period.

    NOI grows at noi_growth each year. The property is sold at the end of
    the hold on the following year's NOI capitalized at exit_cap_rate, less
    sales costs. Debt service comes from the monthly amortization schedule
    and the outstanding balance is repaid from sale proceeds.

    Args:
        inputs: Property assumptions
        config: Root-finder guard rails for the IRRs

    Returns:
        RealEstateReturns with yearly rows, IRRs and multiples

    Raises:
        ValueError: If inputs are invalid or equity is not positive
    """
    _validate(inputs)
    warnings: List[str] = []

    hold = inputs.hold_period_years
    purchase_price = to_decimal(inputs.purchase_price)
    closing_costs = to_decimal(inputs.closing_costs)
    year1_noi = to_decimal(inputs.year1_noi)
    growth = ONE + to_decimal(inputs.noi_growth)
    exit_cap_rate = to_decimal(inputs.exit_cap_rate)
    loan_amount = to_decimal(inputs.loan_amount)

    total_cost = purchase_price + closing_costs
    equity = total_cost - loan_amount
    if equity <= 0:
        raise ValueError("loan_amount must be less than purchase_price plus closing_costs")

    going_in_cap_rate = year1_noi / purchase_price
    if going_in_cap_rate < LOW_CAP_RATE or going_in_cap_rate > HIGH_CAP_RATE:
        warnings.append(
            f"Going-in cap rate {going_in_cap_rate:.4f} is outside the typical "
            f"{LOW_CAP_RATE}-{HIGH_CAP_RATE} range"
        )

    ltv = loan_amount / purchase_price
    if ltv > MAX_LTV_WARNING:
        warnings.append(f"LTV of {ltv:.4f} exceeds {MAX_LTV_WARNING}")

    schedule: List[Dict] = []
    if loan_amount > 0:
        schedule = generate_amortization_schedule(
            principal=loan_amount,
            annual_rate=inputs.interest_rate,
            amortization_months=inputs.amortization_years * 12,
            io_months=inputs.io_years * 12,
            total_months=hold * 12,
            start_date=inputs.acquisition_date,
        )
    loan_payoff = schedule[-1]["ending_balance"] if schedule else ZERO

    nois = [year1_noi]
    for _ in range(hold):
        nois.append(nois[-1] * growth)

    exit_value = nois[hold] / exit_cap_rate
    net_sale_proceeds = exit_value * (ONE - to_decimal(inputs.sales_cost_percent))

    unlevered = [-total_cost]
    levered = [-equity]
    rows = []
    dscrs = []
    for year in range(1, hold + 1):
        noi = nois[year - 1]
        debt_service = calculate_debt_service(schedule, (year - 1) * 12 + 1, year * 12)

        unlevered_cf = noi
        levered_cf = noi - debt_service
        if year == hold:
            unlevered_cf += net_sale_proceeds
            levered_cf += net_sale_proceeds - loan_payoff

        dscr = None
        if debt_service > 0:
            dscr = calculate_dscr(noi, debt_service)
            dscrs.append(dscr)

        rows.append(
            {
                "year": year,
                "noi": noi,
                "debt_service": debt_service,
                "dscr": dscr,
                "unlevered_cash_flow": unlevered_cf,
                "levered_cash_flow": levered_cf,
            }
        )
        unlevered.append(unlevered_cf)
        levered.append(levered_cf)

    min_dscr = min(dscrs) if dscrs else None
    if min_dscr is not None and min_dscr < MIN_DSCR_WARNING:
        warnings.append(f"Minimum DSCR of {min_dscr:.2f} is below {MIN_DSCR_WARNING}x")

    present_value = None
    if inputs.discount_rate is not None:
        present_value = calculate_npv([ZERO] + unlevered[1:], inputs.discount_rate)

    unlevered_irr = _solve_irr("Unlevered", unlevered, config, warnings)
    levered_irr = _solve_irr("Levered", levered, config, warnings)

    return RealEstateReturns(
        annual_cash_flows=rows,
        unlevered_cash_flows=unlevered,
        levered_cash_flows=levered,
        exit_value=exit_value,
        net_sale_proceeds=net_sale_proceeds,
        loan_payoff=loan_payoff,
        equity=equity,
        unlevered_irr=unlevered_irr,
        levered_irr=levered_irr,
        unlevered_multiple=calculate_multiple(unlevered),
        levered_multiple=calculate_multiple(levered),
        unlevered_profit=calculate_profit(unlevered),
        levered_profit=calculate_profit(levered),
        going_in_cap_rate=going_in_cap_rate,
        ltv=ltv,
        min_dscr=min_dscr,
        present_value=present_value,
        warnings=warnings,
    )
