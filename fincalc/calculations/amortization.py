"""
Loan Amortization

Level-payment mortgage math on monthly periods. The schedule starts with an
optional interest-only window, then re-levels the payment each month over
the amortization months left, and pays any balance still outstanding once
amortization runs out.
"""

from typing import Dict, Iterator, List, Optional
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from dateutil.relativedelta import relativedelta

from fincalc.kernel import kernel_context, to_decimal

ZERO = Decimal(0)
ONE = Decimal(1)
MONTHS_PER_YEAR = 12
CENTS = Decimal("0.01")


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _annuity_factor(monthly_rate: Decimal, months: int) -> Decimal:
    """Present value of 1 paid at the end of each of `months` periods."""
    if monthly_rate == 0:
        return Decimal(months)
    return (ONE - (ONE + monthly_rate) ** -months) / monthly_rate


@kernel_context
def calculate_payment(principal, annual_rate, amortization_months: int) -> Decimal:
    """
    Level monthly payment that retires principal over amortization_months
    (Excel PMT with the sign flipped). Zero for a non-positive principal or
    term.
    """
    principal = to_decimal(principal)
    if principal <= 0 or amortization_months <= 0:
        return ZERO
    monthly_rate = to_decimal(annual_rate) / MONTHS_PER_YEAR
    return principal / _annuity_factor(monthly_rate, amortization_months)


@kernel_context
def calculate_remaining_balance(
    principal,
    annual_rate,
    amortization_months: int,
    payments_completed: int,
) -> Decimal:
    """Outstanding balance: the remaining level payments discounted at the loan rate."""
    remaining = amortization_months - payments_completed
    if remaining <= 0:
        return ZERO
    monthly_rate = to_decimal(annual_rate) / MONTHS_PER_YEAR
    payment = calculate_payment(principal, annual_rate, amortization_months)
    return payment * _annuity_factor(monthly_rate, remaining)


def _iter_periods(
    balance: Decimal,
    annual_rate: Decimal,
    amortization_months: int,
    io_months: int,
    total_months: int,
) -> Iterator[tuple]:
    """Yield (period, opening balance, interest, principal) at full precision."""
    monthly_rate = annual_rate / MONTHS_PER_YEAR
    for period in range(1, total_months + 1):
        interest = balance * monthly_rate
        amortizing_left = amortization_months - (period - 1 - io_months)

        if period <= io_months:
            principal_paid = ZERO
        elif amortizing_left > 0:
            level = calculate_payment(balance, annual_rate, amortizing_left)
            principal_paid = min(level - interest, balance)
        else:
            principal_paid = balance

        yield period, balance, interest, principal_paid

        balance = max(ZERO, balance - principal_paid)
        if balance == 0:
            return


@kernel_context
def generate_amortization_schedule(
    principal,
    annual_rate,
    amortization_months: int,
    io_months: int = 0,
    total_months: int = 120,
    start_date: Optional[date] = None,
) -> List[Dict]:
    """
    Monthly schedule rows (period, date, balances, payment split).

    Figures are rounded to cents for reporting only; the running balance
    keeps full precision. The schedule stops early once the loan is repaid.

    Raises:
        ValueError: If io_months or total_months is negative
    """
    if io_months < 0 or total_months < 0:
        raise ValueError("io_months and total_months must be non-negative")
    if start_date is None:
        start_date = date.today()

    periods = _iter_periods(
        to_decimal(principal),
        to_decimal(annual_rate),
        amortization_months,
        io_months,
        total_months,
    )
    return [
        {
            "period": period,
            "date": (start_date + relativedelta(months=period - 1)).isoformat(),
            "beginning_balance": _cents(opening),
            "payment": _cents(interest + principal_paid),
            "interest": _cents(interest),
            "principal": _cents(principal_paid),
            "ending_balance": _cents(max(ZERO, opening - principal_paid)),
        }
        for period, opening, interest, principal_paid in periods
    ]


def calculate_total_interest(schedule: List[Dict]) -> Decimal:
    return sum((row["interest"] for row in schedule), ZERO)


def calculate_debt_service(
    schedule: List[Dict], start_period: int, end_period: int
) -> Decimal:
    """Payments (interest plus principal) for periods start_period..end_period inclusive."""
    return sum(
        (row["payment"] for row in schedule if start_period <= row["period"] <= end_period),
        ZERO,
    )


@kernel_context
def calculate_dscr(noi, debt_service) -> Decimal:
    """NOI / debt service; Decimal("Infinity") when nothing is owed."""
    debt_service = to_decimal(debt_service)
    if debt_service == 0:
        return Decimal("Infinity")
    return to_decimal(noi) / debt_service


@kernel_context
def calculate_loan_constant(principal, annual_rate, amortization_years: int) -> Decimal:
    """Annual debt service per unit of principal."""
    principal = to_decimal(principal)
    if principal <= 0:
        return ZERO
    months = amortization_years * MONTHS_PER_YEAR
    return calculate_payment(principal, annual_rate, months) * MONTHS_PER_YEAR / principal
