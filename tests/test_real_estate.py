"""
Tests for the real estate hold-period projection.
"""

import pytest
from datetime import date
from decimal import Decimal

from fincalc.calculations.real_estate import PropertyInputs, project_returns
from fincalc.kernel import SolverConfig


def make_inputs(**overrides):
    params = dict(
        purchase_price=Decimal(10000000),
        year1_noi=Decimal(600000),
        hold_period_years=5,
        exit_cap_rate=Decimal("0.06"),
        noi_growth=Decimal("0.03"),
        sales_cost_percent=Decimal("0.02"),
        acquisition_date=date(2025, 1, 1),
    )
    params.update(overrides)
    return PropertyInputs(**params)


@pytest.fixture
def levered_inputs():
    return make_inputs(
        loan_amount=Decimal(6000000),
        interest_rate=Decimal("0.05"),
        io_years=5,
    )


class TestUnlevered:
    def test_cash_flow_shape(self):
        result = project_returns(make_inputs())
        assert len(result.unlevered_cash_flows) == 6
        assert result.unlevered_cash_flows[0] == Decimal(-10000000)
        assert result.unlevered_cash_flows[1] == Decimal(600000)
        assert result.unlevered_cash_flows[2] == Decimal(618000)

    def test_exit_uses_forward_noi(self):
        result = project_returns(make_inputs())
        forward_noi = Decimal(600000) * Decimal("1.03") ** 5
        assert result.exit_value == forward_noi / Decimal("0.06")
        assert result.net_sale_proceeds == result.exit_value * Decimal("0.98")

    def test_unlevered_irr(self):
        """6% going-in yield plus 3% growth, less sale costs."""
        result = project_returns(make_inputs())
        assert Decimal("0.08") < result.unlevered_irr < Decimal("0.095")
        assert result.going_in_cap_rate == Decimal("0.06")

    def test_no_loan_means_levered_equals_unlevered(self):
        result = project_returns(make_inputs())
        assert result.levered_cash_flows == result.unlevered_cash_flows
        assert result.min_dscr is None
        assert result.loan_payoff == 0
        assert result.warnings == []

    def test_present_value_at_irr_recovers_cost(self):
        irr = project_returns(make_inputs()).unlevered_irr
        result = project_returns(make_inputs(discount_rate=irr))
        assert abs(result.present_value - Decimal(10000000)) < Decimal("0.001")


class TestLevered:
    def test_interest_only_debt_service(self, levered_inputs):
        result = project_returns(levered_inputs)
        row = result.annual_cash_flows[0]
        assert row["debt_service"] == Decimal("300000.00")
        assert row["dscr"] == Decimal(2)
        assert result.loan_payoff == Decimal("6000000.00")
        assert result.equity == Decimal(4000000)
        assert result.ltv == Decimal("0.6")

    def test_positive_leverage(self, levered_inputs):
        result = project_returns(levered_inputs)
        assert result.levered_irr > result.unlevered_irr
        assert result.levered_multiple > result.unlevered_multiple

    def test_amortizing_loan_pays_down(self):
        result = project_returns(
            make_inputs(loan_amount=Decimal(6000000), interest_rate=Decimal("0.05"))
        )
        assert result.loan_payoff < Decimal(6000000)

    def test_high_leverage_warnings(self):
        result = project_returns(
            make_inputs(loan_amount=Decimal(8500000), interest_rate=Decimal("0.07"), io_years=5)
        )
        assert any("LTV" in w for w in result.warnings)
        assert any("DSCR" in w for w in result.warnings)

    def test_cap_rate_warning(self):
        result = project_returns(make_inputs(year1_noi=Decimal(200000)))
        assert any("cap rate" in w for w in result.warnings)


class TestFailures:
    def test_irr_failure_is_a_warning(self, caplog):
        result = project_returns(make_inputs(), config=SolverConfig(max_iterations=1))
        assert result.unlevered_irr is None
        assert result.levered_irr is None
        assert any("did not converge" in w for w in result.warnings)
        assert "did not converge" in caplog.text

    def test_loan_exceeds_cost(self):
        with pytest.raises(ValueError, match="loan_amount"):
            project_returns(make_inputs(loan_amount=Decimal(11000000)))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"hold_period_years": 0},
            {"purchase_price": Decimal(0)},
            {"exit_cap_rate": Decimal(0)},
            {"sales_cost_percent": Decimal(1)},
        ],
    )
    def test_invalid_inputs(self, overrides):
        with pytest.raises(ValueError):
            project_returns(make_inputs(**overrides))
