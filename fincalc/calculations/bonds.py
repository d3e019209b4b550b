"""
Bond Pricing

Fixed-coupon bond analytics: coupon schedule, accrued interest, clean and
dirty price from a yield, yield-to-maturity from a price, and yield-to-call /
yield-to-worst for callable bonds.

Coupon dates are generated backwards from maturity in whole months. When
settlement falls between coupon dates the first (stub) period is discounted
with a fractional exponent.
"""

import enum
import logging
from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from fincalc.config import get_bond_solver_config
from fincalc.kernel import (
    CashFlow,
    ConvergenceError,
    SolverConfig,
    kernel_context,
    npv,
    solve_rate,
    to_decimal,
)

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
ONE = Decimal(1)

VALID_FREQUENCIES = (1, 2, 4, 12)
DAYS_PER_YEAR = Decimal("365.25")
DEFAULT_YIELD_GUESS = Decimal("0.05")


class DayCount(str, enum.Enum):
    """Day count conventions for accrual and stub fractions."""

    thirty_360 = "30/360"
    actual_360 = "ACT/360"
    actual_365 = "ACT/365"
    actual_actual = "ACT/ACT"


@dataclass
class BondInputs:
    """
    Bond terms plus exactly one of ytm or clean_price.

    call_price and call_date must be given together.
    """

    face_value: Decimal
    coupon_rate: Decimal
    settlement_date: date
    maturity_date: date
    frequency: int = 2
    day_count: DayCount = DayCount.thirty_360
    ytm: Optional[Decimal] = None
    clean_price: Optional[Decimal] = None
    call_price: Optional[Decimal] = None
    call_date: Optional[date] = None


@dataclass
class BondResult:
    clean_price: Decimal
    dirty_price: Decimal
    accrued_interest: Decimal
    ytm: Decimal
    current_yield: Decimal
    coupon_amount: Decimal
    years_to_maturity: Decimal
    num_remaining_coupons: int
    cash_flows: List[Dict]
    ytc: Optional[Decimal] = None
    ytw: Optional[Decimal] = None
    warnings: List[str] = field(default_factory=list)


def _months_per_period(frequency: int) -> int:
    return 12 // frequency


def generate_coupon_dates(settlement: date, maturity: date, frequency: int) -> List[date]:
    """All coupon dates strictly after settlement up to and including maturity."""
    step = _months_per_period(frequency)
    dates = []
    k = 0
    while True:
        d = maturity - relativedelta(months=k * step)
        if d <= settlement:
            break
        dates.append(d)
        k += 1
    dates.reverse()
    return dates


def coupon_period(settlement: date, maturity: date, frequency: int) -> Tuple[date, date]:
    """
    The coupon period containing settlement, as (last coupon on or before
    settlement, next coupon after it). Both ends are counted back from
    maturity so they match generate_coupon_dates.
    """
    step = _months_per_period(frequency)
    k = 1
    while maturity - relativedelta(months=k * step) > settlement:
        k += 1
    last = maturity - relativedelta(months=k * step)
    nxt = maturity - relativedelta(months=(k - 1) * step)
    return last, nxt


def thirty_360_days(start: date, end: date) -> int:
    """US 30/360 day count between two dates."""
    d1 = start.day
    d2 = end.day
    if d1 == 31:
        d1 = 30
    if d2 == 31 and d1 >= 30:
        d2 = 30
    return (end.year - start.year) * 360 + (end.month - start.month) * 30 + (d2 - d1)


@kernel_context
def day_count_fraction(
    start: date,
    end: date,
    period_start: date,
    period_end: date,
    frequency: int,
    day_count: DayCount,
) -> Decimal:
    """
    Fraction of one coupon period between start and end.

    30/360 and ACT/ACT divide by the length of the enclosing period;
    ACT/360 and ACT/365 divide by a nominal 360/freq or 365/freq days.
    An empty enclosing period counts as one full period.
    """
    day_count = DayCount(day_count)
    if day_count == DayCount.thirty_360:
        num = thirty_360_days(start, end)
        den = thirty_360_days(period_start, period_end)
        return Decimal(num) / Decimal(den) if den else ONE
    if day_count == DayCount.actual_actual:
        num = (end - start).days
        den = (period_end - period_start).days
        return Decimal(num) / Decimal(den) if den else ONE

    year_basis = Decimal(360) if day_count == DayCount.actual_360 else Decimal(365)
    return Decimal((end - start).days) / (year_basis / frequency)


@kernel_context
def accrued_interest(
    settlement: date,
    maturity: date,
    coupon_amount,
    frequency: int,
    day_count: DayCount,
) -> Decimal:
    """Coupon accrued from the last coupon date to settlement."""
    last, nxt = coupon_period(settlement, maturity, frequency)
    elapsed = day_count_fraction(last, settlement, last, nxt, frequency, day_count)
    return to_decimal(coupon_amount) * elapsed


def _bond_cash_flows(
    settlement: date,
    end_date: date,
    coupon_amount: Decimal,
    redemption: Decimal,
    frequency: int,
    day_count: DayCount,
) -> List[CashFlow]:
    """Future flows to end_date placed at stub + i coupon periods."""
    coupon_dates = generate_coupon_dates(settlement, end_date, frequency)
    if not coupon_dates:
        raise ValueError("No coupon periods between settlement and end date")

    last, nxt = coupon_period(settlement, end_date, frequency)
    stub = day_count_fraction(settlement, nxt, last, nxt, frequency, day_count)

    flows = []
    for i, _ in enumerate(coupon_dates):
        amount = coupon_amount
        if i == len(coupon_dates) - 1:
            amount = amount + redemption
        flows.append(CashFlow(time=stub + i, amount=amount))
    return flows


@kernel_context
def dirty_price_from_yield(
    settlement: date,
    end_date: date,
    coupon_amount,
    redemption,
    annual_yield,
    frequency: int,
    day_count: DayCount,
) -> Decimal:
    """PV of remaining coupons and redemption at annual_yield / frequency per period."""
    flows = _bond_cash_flows(
        settlement,
        end_date,
        to_decimal(coupon_amount),
        to_decimal(redemption),
        frequency,
        day_count,
    )
    return npv(to_decimal(annual_yield) / frequency, flows)


def _periodic_config(config: SolverConfig, frequency: int) -> SolverConfig:
    # Clamp band is quoted on annual yields; the solver iterates on periodic ones
    return replace(
        config,
        rate_floor=config.rate_floor / frequency,
        rate_ceiling=config.rate_ceiling / frequency,
    )


@kernel_context
def yield_from_price(
    dirty_price,
    settlement: date,
    end_date: date,
    coupon_amount,
    redemption,
    frequency: int,
    day_count: DayCount,
    config: Optional[SolverConfig] = None,
    label: str = "ytm",
) -> Decimal:
    """
    Annual yield that reprices the remaining flows to dirty_price.

    Raises:
        ConvergenceError: If the root finder does not converge
    """
    if config is None:
        config = get_bond_solver_config()

    flows = [CashFlow(time=ZERO, amount=-to_decimal(dirty_price))]
    flows.extend(
        _bond_cash_flows(
            settlement,
            end_date,
            to_decimal(coupon_amount),
            to_decimal(redemption),
            frequency,
            day_count,
        )
    )
    periodic = solve_rate(
        flows,
        guess=DEFAULT_YIELD_GUESS / frequency,
        config=_periodic_config(config, frequency),
        label=label,
    )
    return periodic * frequency


def _validate(inputs: BondInputs) -> None:
    if to_decimal(inputs.face_value) <= 0:
        raise ValueError("face_value must be positive")
    if to_decimal(inputs.coupon_rate) < 0:
        raise ValueError("coupon_rate cannot be negative")
    if inputs.frequency not in VALID_FREQUENCIES:
        raise ValueError("frequency must be 1, 2, 4, or 12")
    if inputs.maturity_date <= inputs.settlement_date:
        raise ValueError("maturity_date must be after settlement_date")
    if (inputs.ytm is None) == (inputs.clean_price is None):
        raise ValueError("Provide exactly one of ytm or clean_price")
    if inputs.clean_price is not None and to_decimal(inputs.clean_price) <= 0:
        raise ValueError("clean_price must be positive")
    if (inputs.call_price is None) != (inputs.call_date is None):
        raise ValueError("call_price and call_date must be provided together")
    if inputs.call_date is not None:
        if inputs.call_date <= inputs.settlement_date:
            raise ValueError("call_date must be after settlement_date")
        if inputs.call_date >= inputs.maturity_date:
            raise ValueError("call_date must be before maturity_date")


@kernel_context
def price_bond(inputs: BondInputs, config: Optional[SolverConfig] = None) -> BondResult:
    """
    Price a fixed-coupon bond.

    With ytm given, the dirty price is the PV of remaining flows and the
    clean price is dirty less accrued. With clean_price given, the YTM is
    solved from the dirty price. Callable bonds also get YTC and YTW; a YTC
    that fails to converge falls back to the coupon rate with a warning.

    Args:
        inputs: Bond terms
        config: Root-finder guard rails (default: bond solver settings)

    Returns:
        BondResult

    Raises:
        ValueError: If inputs are invalid
        ConvergenceError: If YTM cannot be solved from clean_price
    """
    _validate(inputs)
    if config is None:
        config = get_bond_solver_config()

    warnings: List[str] = []
    face = to_decimal(inputs.face_value)
    coupon_rate = to_decimal(inputs.coupon_rate)
    freq = inputs.frequency
    day_count = DayCount(inputs.day_count)
    settlement = inputs.settlement_date
    maturity = inputs.maturity_date

    coupon_amount = face * coupon_rate / freq
    accrued = accrued_interest(settlement, maturity, coupon_amount, freq, day_count)

    if inputs.ytm is not None:
        ytm = to_decimal(inputs.ytm)
        dirty = dirty_price_from_yield(
            settlement, maturity, coupon_amount, face, ytm, freq, day_count
        )
        clean = dirty - accrued
    else:
        clean = to_decimal(inputs.clean_price)
        dirty = clean + accrued
        ytm = yield_from_price(
            dirty, settlement, maturity, coupon_amount, face, freq, day_count, config
        )

    if clean > 0:
        current_yield = face * coupon_rate / clean
    else:
        current_yield = ZERO
        warnings.append("Clean price is zero or negative; current yield undefined")

    coupon_dates = generate_coupon_dates(settlement, maturity, freq)
    cash_flows = [
        {
            "date": d.isoformat(),
            "amount": coupon_amount + (face if i == len(coupon_dates) - 1 else ZERO),
            "type": "coupon+principal" if i == len(coupon_dates) - 1 else "coupon",
        }
        for i, d in enumerate(coupon_dates)
    ]

    ytc = None
    ytw = None
    if inputs.call_date is not None:
        try:
            ytc = yield_from_price(
                dirty,
                settlement,
                inputs.call_date,
                coupon_amount,
                to_decimal(inputs.call_price),
                freq,
                day_count,
                config,
                label="ytc",
            )
        except ConvergenceError as e:
            message = f"YTC did not converge ({e}); using coupon rate {coupon_rate}"
            logger.warning(message)
            warnings.append(message)
            ytc = coupon_rate
        ytw = min(ytc, ytm)

    return BondResult(
        clean_price=clean,
        dirty_price=dirty,
        accrued_interest=accrued,
        ytm=ytm,
        current_yield=current_yield,
        coupon_amount=coupon_amount,
        years_to_maturity=Decimal((maturity - settlement).days) / DAYS_PER_YEAR,
        num_remaining_coupons=len(coupon_dates),
        cash_flows=cash_flows,
        ytc=ytc,
        ytw=ytw,
        warnings=warnings,
    )
