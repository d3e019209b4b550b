"""
Tests for the calculation API endpoints.
"""

import pytest

from fincalc.kernel import ConvergenceError
from fincalc.calculations import irr as irr_module


# ============================================================================
# IRR / AMORTIZATION TESTS
# ============================================================================

class TestCalculationsAPI:
    """Test IRR and amortization endpoints."""

    def test_calculate_irr(self, client):
        """Test IRR calculation endpoint."""
        response = client.post(
            "/api/calculate/irr",
            json={"cash_flows": [-100, 110]},
        )
        assert response.status_code == 200
        data = response.json()
        assert abs(float(data["irr"]) - 0.10) < 1e-7
        assert float(data["multiple"]) == 1.1
        assert float(data["profit"]) == 10

    def test_calculate_xirr(self, client):
        response = client.post(
            "/api/calculate/irr",
            json={
                "cash_flows": [-100, 20, 20, 20, 20, 80],
                "dates": [
                    "2025-01-01",
                    "2026-01-01",
                    "2027-01-01",
                    "2028-01-01",
                    "2029-01-01",
                    "2030-01-01",
                ],
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert float(data["irr"]) > 0

    def test_calculate_irr_invalid_cash_flows(self, client):
        """No negative values means no IRR."""
        response = client.post(
            "/api/calculate/irr",
            json={
                "cash_flows": [100, 100, 100],
                "dates": ["2025-01-01", "2026-01-01", "2027-01-01"],
            },
        )
        assert response.status_code == 400

    def test_calculate_irr_not_converged(self, client, monkeypatch):
        def fail(*args, **kwargs):
            raise ConvergenceError("irr", 50, 1)

        monkeypatch.setattr(irr_module, "calculate_irr", fail)
        response = client.post("/api/calculate/irr", json={"cash_flows": [-100, 110]})
        assert response.status_code == 422
        assert "did not converge" in response.json()["detail"]

    def test_calculate_irr_rejects_non_numeric(self, client):
        response = client.post("/api/calculate/irr", json={"cash_flows": ["abc", 10]})
        assert response.status_code == 422

    def test_calculate_amortization(self, client):
        """Test amortization schedule endpoint."""
        response = client.post(
            "/api/calculate/amortization",
            json={
                "principal": 1000000,
                "annual_rate": 0.06,
                "amortization_years": 30,  # API expects years, not months
                "io_months": 24,
                "total_months": 120,
                "start_date": "2025-01-01",
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["schedule"]) == 120
        assert data["schedule"][0]["date"] == "2025-01-01"

        # First 24 months should be IO
        for i in range(24):
            assert data["schedule"][i]["principal"] == 0
            assert data["schedule"][i]["interest"] == 5000


# ============================================================================
# CALCULATOR TESTS
# ============================================================================

class TestCalculatorEndpoints:
    """Test the structured calculators over HTTP."""

    def test_real_estate(self, client):
        response = client.post(
            "/api/calculate/real-estate",
            json={
                "purchase_price": 10000000,
                "year1_noi": 600000,
                "hold_period_years": 5,
                "exit_cap_rate": 0.06,
                "noi_growth": 0.03,
                "loan_amount": 6000000,
                "interest_rate": 0.05,
                "io_years": 5,
                "acquisition_date": "2025-01-01",
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["annual_cash_flows"]) == 5
        assert data["levered_irr"] > data["unlevered_irr"] > 0

    def test_real_estate_invalid(self, client):
        response = client.post(
            "/api/calculate/real-estate",
            json={"purchase_price": 100, "year1_noi": 6, "exit_cap_rate": 0.06, "loan_amount": 200},
        )
        assert response.status_code == 400

    def test_bond(self, client):
        response = client.post(
            "/api/calculate/bond",
            json={
                "coupon_rate": 0.05,
                "settlement_date": "2024-01-15",
                "maturity_date": "2034-01-15",
                "day_count": "30/360",
                "ytm": 0.05,
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert abs(data["clean_price"] - 1000) < 1e-9
        assert data["num_remaining_coupons"] == 20

    def test_bond_requires_yield_or_price(self, client):
        response = client.post(
            "/api/calculate/bond",
            json={
                "coupon_rate": 0.05,
                "settlement_date": "2024-01-15",
                "maturity_date": "2034-01-15",
            },
        )
        assert response.status_code == 400

    def test_bond_unknown_day_count(self, client):
        response = client.post(
            "/api/calculate/bond",
            json={
                "coupon_rate": 0.05,
                "settlement_date": "2024-01-15",
                "maturity_date": "2034-01-15",
                "day_count": "BUS/252",
                "ytm": 0.05,
            },
        )
        assert response.status_code == 422

    def test_private_credit(self, client):
        response = client.post(
            "/api/calculate/private-credit",
            json={
                "total_commitment": 100000000,
                "borrower_ebitda": 20000000,
                "borrower_revenue": 150000000,
                "first_out_pct": 0.4,
                "first_out_spread_bps": 400,
                "last_out_spread_bps": 800,
                "base_rate": 0.05,
                "maturity_years": 5,
                "leverage_covenant": 6,
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["blended_spread_bps"] == 640
        assert data["first_out"]["name"] == "First Out"
        assert data["leverage_breach"] is False

    def test_black_litterman(self, client):
        response = client.post(
            "/api/calculate/black-litterman",
            json={
                "asset_names": ["Equity", "Rates"],
                "market_weights": [0.6, 0.4],
                "covariance": [[0.04, 0.002], [0.002, 0.01]],
                "views": [{"asset_index": 0, "expected_return": 0.08, "confidence": 0.5}],
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["weights"]) == 2
        assert data["weights"][0]["weight"] > 0.6

    def test_black_litterman_singular(self, client):
        response = client.post(
            "/api/calculate/black-litterman",
            json={
                "asset_names": ["A", "B"],
                "market_weights": [0.5, 0.5],
                "covariance": [[0.04, 0.04], [0.04, 0.04]],
            },
        )
        assert response.status_code == 400

    def test_execution(self, client):
        response = client.post(
            "/api/calculate/execution",
            json={
                "order_size": 100000,
                "strategy": "IS",
                "side": "sell",
                "market": {
                    "current_price": 50,
                    "daily_volume": 1000000,
                    "daily_volatility": 0.02,
                    "bid_ask_spread": 0.02,
                    "temporary_impact": 0.000001,
                    "permanent_impact": 0.0000001,
                },
                "time_horizon": 1,
                "num_slices": 10,
                "constraints": {"no_trade_periods": [[4, 5]]},
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["strategy"] == "IS"
        assert len(data["schedule"]) == 10
        assert data["schedule"][4]["quantity"] == 0
        assert abs(sum(row["quantity"] for row in data["schedule"]) - 100000) < 1e-6

    def test_credit_risk(self, client):
        response = client.post(
            "/api/calculate/credit-risk",
            json={
                "exposures": [
                    {"name": "Alpha", "exposure": 60, "probability_of_default": 0.02, "loss_given_default": 0.45},
                    {"name": "Beta", "exposure": 40, "probability_of_default": 0.01, "loss_given_default": 0.4},
                ]
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert abs(data["expected_loss"] - 0.7) < 1e-12
        assert data["sector_weights"] == {"Unclassified": 1}

    def test_credit_risk_empty(self, client):
        response = client.post("/api/calculate/credit-risk", json={"exposures": []})
        assert response.status_code == 400


# ============================================================================
# HEALTH CHECK TESTS
# ============================================================================

class TestHealthCheck:
    """Test health check endpoint."""

    def test_health_check(self, client):
        """Test health check returns healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
