"""
Tests for IRR and amortization calculations.
"""

import pytest
from datetime import date
from decimal import Decimal

from fincalc.calculations.irr import (
    annual_to_monthly_irr,
    calculate_irr,
    calculate_multiple,
    calculate_npv,
    calculate_profit,
    calculate_xirr,
    calculate_xnpv,
    monthly_to_annual_irr,
)
from fincalc.calculations.amortization import (
    calculate_debt_service,
    calculate_dscr,
    calculate_loan_constant,
    calculate_payment,
    calculate_remaining_balance,
    calculate_total_interest,
    generate_amortization_schedule,
)
from fincalc.kernel import ConvergenceError, SolverConfig


class TestIRRCalculations:
    """Test IRR calculation functions."""

    def test_calculate_irr_simple(self):
        """Investment of 100, returns of 110 after 1 year = 10% return."""
        irr = calculate_irr([-100, 110])
        assert isinstance(irr, Decimal)
        assert abs(irr - Decimal("0.10")) < Decimal("0.0000001")

    def test_calculate_irr_annuity(self):
        """1000 out, 300 a year for five years is roughly 15.2%."""
        irr = calculate_irr([-1000, 300, 300, 300, 300, 300])
        assert Decimal("0.14") < irr < Decimal("0.17")
        assert abs(calculate_npv([-1000, 300, 300, 300, 300, 300], irr)) < Decimal("0.0000001")

    def test_calculate_irr_multi_period(self):
        """Annual returns of 20 on 100 with par back at the end is exactly 20%."""
        irr = calculate_irr([-100, 20, 20, 20, 20, 120])
        assert abs(irr - Decimal("0.20")) < Decimal("0.000001")

    def test_irr_negative_returns(self):
        """Total return below investment gives a negative IRR."""
        irr = calculate_irr([-100, 40, 40, 10])
        assert irr < 0

    def test_irr_accepts_strings_and_floats(self):
        assert calculate_irr(["-100", 110.0]) == calculate_irr([Decimal(-100), Decimal(110)])

    def test_irr_requires_two_flows(self):
        with pytest.raises(ValueError, match="At least 2"):
            calculate_irr([-100])

    def test_irr_requires_sign_change(self):
        with pytest.raises(ValueError, match="both positive and negative"):
            calculate_irr([100, 100, 100])

    def test_irr_iteration_ceiling(self):
        """A single iteration is not enough to converge from the default guess."""
        with pytest.raises(ConvergenceError) as exc_info:
            calculate_irr([-1000, 300, 300, 300, 300, 300], config=SolverConfig(max_iterations=1))
        assert exc_info.value.function == "irr"
        assert exc_info.value.iterations == 1

    def test_calculate_npv(self):
        """Returns exceeding cost give a positive NPV."""
        npv = calculate_npv([-100, 50, 50, 50], 0.10)
        assert npv > 0

    def test_calculate_npv_exact(self):
        assert calculate_npv([-100, 110], Decimal("0.10")) == 0

    def test_npv_empty(self):
        assert calculate_npv([], 0.10) == 0

    def test_calculate_xirr(self):
        """Test XIRR calculation with actual dates."""
        dates = [
            date(2025, 1, 1),
            date(2026, 1, 1),
            date(2027, 1, 1),
        ]
        xirr = calculate_xirr([-100, 50, 60], dates)
        assert xirr > 0
        assert xirr < Decimal("0.20")

    def test_xirr_one_year(self):
        """365 days at 10% growth is exactly 10% under ACT/365."""
        xirr = calculate_xirr([-100, 110], [date(2025, 1, 1), date(2026, 1, 1)])
        assert abs(xirr - Decimal("0.10")) < Decimal("0.000001")

    def test_xirr_half_year(self):
        """Fractional year offsets go through the fractional power path."""
        dates = [date(2025, 1, 1), date(2025, 7, 2)]
        xirr = calculate_xirr([-100, 105], dates)
        assert abs(calculate_xnpv([-100, 105], dates, xirr)) < Decimal("0.0000001")
        assert Decimal("0.09") < xirr < Decimal("0.11")

    def test_xirr_mismatched_lengths(self):
        with pytest.raises(ValueError, match="same length"):
            calculate_xirr([-100, 110], [date(2025, 1, 1)])

    def test_xirr_date_before_start(self):
        with pytest.raises(ValueError, match="before the first date"):
            calculate_xirr([-100, 110], [date(2025, 1, 1), date(2024, 1, 1)])

    def test_multiple_and_profit(self):
        flows = [-100, 20, 20, 120]
        assert calculate_multiple(flows) == Decimal("1.6")
        assert calculate_profit(flows) == Decimal(60)

    def test_multiple_without_investment(self):
        with pytest.raises(ValueError):
            calculate_multiple([10, 20])

    def test_irr_conversions(self):
        annual = monthly_to_annual_irr(Decimal("0.01"))
        assert abs(annual - Decimal("0.1268250301319698")) < Decimal("0.0000000001")
        assert abs(annual_to_monthly_irr(annual) - Decimal("0.01")) < Decimal("0.0000000001")

    def test_annual_to_monthly_rejects_total_loss(self):
        with pytest.raises(ValueError):
            annual_to_monthly_irr(-1)


class TestAmortization:
    """Test loan amortization calculations."""

    def test_calculate_payment(self):
        """$1M loan at 5% for 30 years is about $5,368/month."""
        payment = calculate_payment(1000000, 0.05, 360)
        assert Decimal("5368.21") < payment < Decimal("5368.22")

    def test_payment_zero_rate(self):
        assert calculate_payment(12000, 0, 12) == Decimal(1000)

    def test_payment_no_principal(self):
        assert calculate_payment(0, 0.05, 360) == 0

    def test_amortization_schedule_length(self):
        schedule = generate_amortization_schedule(
            principal=100000,
            annual_rate=0.06,
            amortization_months=60,
            io_months=0,
            total_months=60,
            start_date=date(2025, 1, 1),
        )
        assert len(schedule) == 60
        assert schedule[1]["date"] == "2025-02-01"

    def test_amortization_io_periods(self):
        """First 12 periods are interest only."""
        schedule = generate_amortization_schedule(
            principal=100000,
            annual_rate=0.06,
            amortization_months=60,
            io_months=12,
            total_months=72,
        )
        for i in range(12):
            assert schedule[i]["principal"] == 0
            assert schedule[i]["interest"] == Decimal("500.00")
        assert schedule[12]["principal"] > 0

    def test_amortization_final_balance(self):
        schedule = generate_amortization_schedule(
            principal=100000,
            annual_rate=0.06,
            amortization_months=60,
            io_months=0,
            total_months=60,
        )
        assert schedule[-1]["ending_balance"] == 0

    def test_schedule_rows_are_cents(self):
        schedule = generate_amortization_schedule(
            principal=100000, annual_rate=0.06, amortization_months=60, total_months=3
        )
        for row in schedule:
            assert row["payment"] == row["payment"].quantize(Decimal("0.01"))

    def test_balloon_at_term(self):
        """Term shorter than amortization leaves a balance outstanding."""
        schedule = generate_amortization_schedule(
            principal=100000, annual_rate=0.06, amortization_months=360, total_months=120
        )
        remaining = calculate_remaining_balance(100000, 0.06, 360, 120)
        assert abs(schedule[-1]["ending_balance"] - remaining) < Decimal("0.01")

    def test_total_interest_and_debt_service(self):
        schedule = generate_amortization_schedule(
            principal=100000, annual_rate=0.06, amortization_months=60, io_months=12, total_months=24
        )
        assert calculate_debt_service(schedule, 1, 12) == Decimal("6000.00")
        assert calculate_total_interest(schedule[:12]) == Decimal("6000.00")

    def test_negative_months_rejected(self):
        with pytest.raises(ValueError):
            generate_amortization_schedule(100000, 0.06, 60, io_months=-1)

    def test_dscr(self):
        assert calculate_dscr(125, 100) == Decimal("1.25")
        assert calculate_dscr(125, 0) == Decimal("Infinity")

    def test_loan_constant(self):
        constant = calculate_loan_constant(1000000, 0.05, 30)
        assert Decimal("0.0644") < constant < Decimal("0.0645")

    def test_remaining_balance_paths(self):
        """Zero-rate loans pay down linearly; nothing is owed past the term."""
        assert calculate_remaining_balance(12000, 0, 12, 3) == Decimal(9000)
        assert calculate_remaining_balance(100000, 0.06, 360, 360) == 0
        assert calculate_remaining_balance(100000, 0.06, 360, 400) == 0
        assert abs(calculate_remaining_balance(100000, 0.06, 360, 0) - 100000) < Decimal("1e-18")
