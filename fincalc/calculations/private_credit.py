"""
Private Credit: Unitranche Structuring

Splits a unitranche commitment into first-out and last-out tranches and
computes blended pricing, borrower credit metrics, covenant headroom and
lender yields (to maturity and to the end of call protection).

Tranche yields are solved on annual cash flows per unit of principal:
the lender funds par less OID and upfront fee at t=0, receives the all-in
coupon each year, and par (or the call price) at the end.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_EVEN
from typing import List, Optional

from fincalc.config import get_solver_config
from fincalc.kernel import (
    ConvergenceError,
    SolverConfig,
    kernel_context,
    periodic_cash_flows,
    solve_rate,
    to_decimal,
)

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
ONE = Decimal(1)
BPS = Decimal(10000)
UNDEFINED_COVERAGE = Decimal(999)


@dataclass
class UnitrancheInputs:
    total_commitment: Decimal
    borrower_ebitda: Decimal
    borrower_revenue: Decimal
    first_out_pct: Decimal
    first_out_spread_bps: Decimal
    last_out_spread_bps: Decimal
    base_rate: Decimal
    maturity_years: Decimal
    oid_pct: Decimal = ZERO
    upfront_fee_pct: Decimal = ZERO
    commitment_fee_bps: Decimal = ZERO
    drawn_pct: Decimal = ONE
    amortization_pct: Decimal = ZERO
    call_protection_years: int = 3
    call_premium_pct: Decimal = ZERO
    leverage_covenant: Optional[Decimal] = None
    coverage_covenant: Optional[Decimal] = None


@dataclass
class TrancheDetail:
    name: str
    commitment: Decimal
    spread_bps: Decimal
    all_in_rate: Decimal
    drawn_amount: Decimal
    annual_interest: Decimal
    yield_to_maturity: Decimal


@dataclass
class UnitrancheResult:
    blended_spread_bps: Decimal
    blended_all_in_rate: Decimal
    first_out: TrancheDetail
    last_out: TrancheDetail
    total_leverage: Decimal
    first_out_leverage: Decimal
    last_out_leverage: Decimal
    interest_coverage: Decimal
    debt_to_revenue: Decimal
    annual_debt_service: Decimal
    cash_yield: Decimal
    oid_yield_pickup_bps: Decimal
    fee_yield_pickup_bps: Decimal
    undrawn_yield: Decimal
    gross_yield: Decimal
    yield_to_call: Decimal
    leverage_headroom: Optional[Decimal] = None
    coverage_headroom: Optional[Decimal] = None
    leverage_breach: Optional[bool] = None
    coverage_breach: Optional[bool] = None
    warnings: List[str] = field(default_factory=list)


def _validate(inputs: UnitrancheInputs) -> None:
    if to_decimal(inputs.total_commitment) <= 0:
        raise ValueError("total_commitment must be positive")
    if to_decimal(inputs.borrower_ebitda) < 0:
        raise ValueError("borrower_ebitda cannot be negative")
    if to_decimal(inputs.borrower_revenue) < 0:
        raise ValueError("borrower_revenue cannot be negative")
    if not ZERO <= to_decimal(inputs.first_out_pct) <= ONE:
        raise ValueError("first_out_pct must be between 0 and 1")
    if not ZERO <= to_decimal(inputs.drawn_pct) <= ONE:
        raise ValueError("drawn_pct must be between 0 and 1")
    if to_decimal(inputs.maturity_years) <= 0:
        raise ValueError("maturity_years must be positive")
    if to_decimal(inputs.base_rate) < 0:
        raise ValueError("base_rate cannot be negative")
    if to_decimal(inputs.first_out_spread_bps) < 0:
        raise ValueError("first_out_spread_bps cannot be negative")
    if to_decimal(inputs.last_out_spread_bps) < 0:
        raise ValueError("last_out_spread_bps cannot be negative")
    if not ZERO <= to_decimal(inputs.oid_pct) < ONE:
        raise ValueError("oid_pct must be >= 0 and < 1")
    if to_decimal(inputs.upfront_fee_pct) < 0:
        raise ValueError("upfront_fee_pct cannot be negative")
    if to_decimal(inputs.oid_pct) + to_decimal(inputs.upfront_fee_pct) >= ONE:
        raise ValueError("oid_pct plus upfront_fee_pct must be below 1")
    if to_decimal(inputs.amortization_pct) < 0:
        raise ValueError("amortization_pct cannot be negative")
    if inputs.call_protection_years < 0:
        raise ValueError("call_protection_years cannot be negative")


def _whole_years(years: Decimal) -> int:
    return int(years.to_integral_value(rounding=ROUND_HALF_EVEN))


@kernel_context
def tranche_yield(
    coupon_rate,
    oid_pct,
    upfront_fee_pct,
    years: int,
    redemption=ONE,
    config: Optional[SolverConfig] = None,
    label: str = "tranche_yield",
) -> Decimal:
    """
    Lender IRR per unit of principal.

    Flows: -(1 - OID - fee) at t=0, coupon_rate for t=1..years, plus
    redemption at t=years.

    Raises:
        ValueError: If years < 1
        ConvergenceError: If the root finder does not converge
    """
    if years < 1:
        raise ValueError("years must be at least 1")
    if config is None:
        config = get_solver_config()

    coupon = to_decimal(coupon_rate)
    funded = ONE - to_decimal(oid_pct) - to_decimal(upfront_fee_pct)
    amounts = [-funded] + [coupon] * years
    amounts[-1] = amounts[-1] + to_decimal(redemption)
    return solve_rate(periodic_cash_flows(amounts), guess=coupon, config=config, label=label)


def _yield_or_coupon(
    label: str,
    coupon_rate: Decimal,
    years: int,
    warnings: List[str],
    **kwargs,
) -> Decimal:
    if years < 1:
        message = f"{label}: term rounds to zero periods; using coupon rate {coupon_rate}"
        logger.warning(message)
        warnings.append(message)
        return coupon_rate
    try:
        return tranche_yield(coupon_rate, years=years, label=label, **kwargs)
    except ConvergenceError as e:
        message = f"{label}: {e}; using coupon rate {coupon_rate}"
        logger.warning(message)
        warnings.append(message)
        return coupon_rate


@kernel_context
def structure_unitranche(
    inputs: UnitrancheInputs, config: Optional[SolverConfig] = None
) -> UnitrancheResult:
    """
    Price a first-out / last-out unitranche.

    Args:
        inputs: Facility and borrower terms
        config: Root-finder guard rails for the tranche yields

    Returns:
        UnitrancheResult

    Raises:
        ValueError: If inputs are invalid
    """
    _validate(inputs)
    warnings: List[str] = []

    total = to_decimal(inputs.total_commitment)
    ebitda = to_decimal(inputs.borrower_ebitda)
    revenue = to_decimal(inputs.borrower_revenue)
    fo_pct = to_decimal(inputs.first_out_pct)
    drawn_pct = to_decimal(inputs.drawn_pct)
    base_rate = to_decimal(inputs.base_rate)
    fo_spread_bps = to_decimal(inputs.first_out_spread_bps)
    lo_spread_bps = to_decimal(inputs.last_out_spread_bps)
    oid = to_decimal(inputs.oid_pct)
    fee = to_decimal(inputs.upfront_fee_pct)
    maturity_years = to_decimal(inputs.maturity_years)

    fo_commitment = total * fo_pct
    lo_commitment = total * (ONE - fo_pct)
    total_drawn = total * drawn_pct

    blended_spread_bps = fo_pct * fo_spread_bps + (ONE - fo_pct) * lo_spread_bps
    fo_rate = base_rate + fo_spread_bps / BPS
    lo_rate = base_rate + lo_spread_bps / BPS
    blended_rate = base_rate + blended_spread_bps / BPS

    fo_interest = fo_commitment * drawn_pct * fo_rate
    lo_interest = lo_commitment * drawn_pct * lo_rate
    total_interest = fo_interest + lo_interest

    maturity_periods = _whole_years(maturity_years)
    yield_kwargs = dict(oid_pct=oid, upfront_fee_pct=fee, config=config)

    first_out = TrancheDetail(
        name="First Out",
        commitment=fo_commitment,
        spread_bps=fo_spread_bps,
        all_in_rate=fo_rate,
        drawn_amount=fo_commitment * drawn_pct,
        annual_interest=fo_interest,
        yield_to_maturity=_yield_or_coupon(
            "First Out YTM", fo_rate, maturity_periods, warnings, **yield_kwargs
        ),
    )
    last_out = TrancheDetail(
        name="Last Out",
        commitment=lo_commitment,
        spread_bps=lo_spread_bps,
        all_in_rate=lo_rate,
        drawn_amount=lo_commitment * drawn_pct,
        annual_interest=lo_interest,
        yield_to_maturity=_yield_or_coupon(
            "Last Out YTM", lo_rate, maturity_periods, warnings, **yield_kwargs
        ),
    )

    if ebitda == 0:
        warnings.append("Borrower EBITDA is zero; leverage ratios undefined")
        total_leverage = fo_leverage = lo_leverage = ZERO
    else:
        total_leverage = total / ebitda
        fo_leverage = fo_commitment / ebitda
        lo_leverage = lo_commitment / ebitda

    if total_interest == 0:
        warnings.append("Total annual interest is zero; coverage undefined")
        interest_coverage = UNDEFINED_COVERAGE
    else:
        interest_coverage = ebitda / total_interest

    if revenue == 0:
        warnings.append("Borrower revenue is zero; debt/revenue undefined")
        debt_to_revenue = ZERO
    else:
        debt_to_revenue = total / revenue

    annual_debt_service = total_interest + total_drawn * to_decimal(inputs.amortization_pct)

    # OID and fee are amortized straight-line over the stated maturity
    oid_pickup_bps = oid / maturity_years * BPS
    fee_pickup_bps = fee / maturity_years * BPS

    commitment_fee = to_decimal(inputs.commitment_fee_bps) / BPS
    if total_drawn == 0:
        undrawn_yield = commitment_fee
    else:
        undrawn_yield = total * (ONE - drawn_pct) * commitment_fee / total_drawn

    gross_yield = blended_rate + oid_pickup_bps / BPS + fee_pickup_bps / BPS + undrawn_yield

    yield_to_call = _yield_or_coupon(
        "Yield to call",
        blended_rate,
        inputs.call_protection_years,
        warnings,
        redemption=ONE + to_decimal(inputs.call_premium_pct),
        **yield_kwargs,
    )

    result = UnitrancheResult(
        blended_spread_bps=blended_spread_bps,
        blended_all_in_rate=blended_rate,
        first_out=first_out,
        last_out=last_out,
        total_leverage=total_leverage,
        first_out_leverage=fo_leverage,
        last_out_leverage=lo_leverage,
        interest_coverage=interest_coverage,
        debt_to_revenue=debt_to_revenue,
        annual_debt_service=annual_debt_service,
        cash_yield=blended_rate,
        oid_yield_pickup_bps=oid_pickup_bps,
        fee_yield_pickup_bps=fee_pickup_bps,
        undrawn_yield=undrawn_yield,
        gross_yield=gross_yield,
        yield_to_call=yield_to_call,
        warnings=warnings,
    )

    if inputs.leverage_covenant is not None:
        covenant = to_decimal(inputs.leverage_covenant)
        result.leverage_headroom = covenant - total_leverage
        result.leverage_breach = total_leverage > covenant
    if inputs.coverage_covenant is not None:
        covenant = to_decimal(inputs.coverage_covenant)
        result.coverage_headroom = interest_coverage - covenant
        result.coverage_breach = interest_coverage < covenant

    return result
