"""
Tests for Black-Litterman portfolio optimization.
"""

import pytest
from decimal import Decimal

from fincalc.calculations.portfolio import (
    BlackLittermanInputs,
    View,
    build_omega,
    build_pick_matrix,
    optimize_black_litterman,
)
from fincalc.kernel import SingularMatrixError

COVARIANCE = [
    [Decimal("0.0400"), Decimal("0.0060"), Decimal("0.0020")],
    [Decimal("0.0060"), Decimal("0.0225"), Decimal("0.0030")],
    [Decimal("0.0020"), Decimal("0.0030"), Decimal("0.0100")],
]


def make_inputs(views=None, **overrides):
    params = dict(
        asset_names=["Equity", "Credit", "Rates"],
        market_weights=[Decimal("0.5"), Decimal("0.3"), Decimal("0.2")],
        covariance=COVARIANCE,
        views=views or [],
        risk_free_rate=Decimal("0.02"),
    )
    params.update(overrides)
    return BlackLittermanInputs(**params)


class TestEquilibrium:
    def test_implied_returns(self):
        """pi = lambda * Sigma * w_mkt"""
        result = optimize_black_litterman(make_inputs())
        assert result.implied_returns[0] == Decimal("0.0555")

    def test_no_views_returns_market(self):
        result = optimize_black_litterman(make_inputs())
        for posterior, implied in zip(result.posterior_returns, result.implied_returns):
            assert abs(posterior - implied) < Decimal("1e-18")
        for weight in result.weights:
            assert abs(weight.weight - weight.market_weight) < Decimal("1e-15")
        assert result.view_contributions == []
        assert result.tracking_error < Decimal("1e-7")
        assert not any("tilt" in w for w in result.warnings)

    def test_sharpe_ratio(self):
        result = optimize_black_litterman(make_inputs())
        expected = (result.portfolio_return - Decimal("0.02")) / result.portfolio_risk
        assert result.sharpe_ratio == expected


class TestViews:
    def test_absolute_view_pulls_posterior(self):
        view = View(asset_index=0, expected_return=Decimal("0.10"), confidence=Decimal("0.5"))
        result = optimize_black_litterman(make_inputs([view]))
        assert result.implied_returns[0] < result.posterior_returns[0] < Decimal("0.10")
        assert result.weights[0].weight > Decimal("0.5")
        assert result.view_contributions[0].impact_on_return > 0
        assert "absolute return" in result.view_contributions[0].description

    def test_concentration_warning(self):
        view = View(asset_index=0, expected_return=Decimal("0.10"), confidence=Decimal("0.5"))
        result = optimize_black_litterman(make_inputs([view]))
        assert any("Concentrated position: Equity" in w for w in result.warnings)

    def test_full_confidence_matches_view(self):
        view = View(asset_index=2, expected_return=Decimal("0.04"), confidence=Decimal(1))
        result = optimize_black_litterman(make_inputs([view]))
        assert abs(result.posterior_returns[2] - Decimal("0.04")) < Decimal("1e-6")
        assert result.view_contributions[0].omega == Decimal("1e-10")

    def test_relative_view(self):
        view = View(
            asset_index=1,
            expected_return=Decimal("0.05"),
            confidence=Decimal("0.8"),
            short_index=2,
        )
        result = optimize_black_litterman(make_inputs([view]))
        implied_spread = result.implied_returns[1] - result.implied_returns[2]
        posterior_spread = result.posterior_returns[1] - result.posterior_returns[2]
        assert posterior_spread > implied_spread
        assert "Credit outperforms Rates" in result.view_contributions[0].description

    def test_pick_matrix(self):
        views = [
            View(asset_index=0, expected_return=Decimal("0.1"), confidence=Decimal("0.5")),
            View(asset_index=1, expected_return=Decimal("0.02"), confidence=Decimal("0.5"), short_index=2),
        ]
        p, q = build_pick_matrix(views, 3)
        assert p == [[1, 0, 0], [0, 1, -1]]
        assert q == [Decimal("0.1"), Decimal("0.02")]

    def test_omega_scales_with_confidence(self):
        views = [View(asset_index=0, expected_return=Decimal("0.1"), confidence=Decimal("0.25"))]
        omega = build_omega([[Decimal("0.002")]], views)
        assert omega == [[Decimal("0.006")]]


class TestValidation:
    def test_asymmetric_covariance(self):
        cov = [row[:] for row in COVARIANCE]
        cov[0][1] = Decimal("0.0070")
        with pytest.raises(ValueError, match="not symmetric"):
            optimize_black_litterman(make_inputs(covariance=cov))

    def test_weight_count(self):
        with pytest.raises(ValueError, match="market_weights"):
            optimize_black_litterman(make_inputs(market_weights=[Decimal(1)]))

    @pytest.mark.parametrize(
        "view",
        [
            View(asset_index=0, expected_return=Decimal("0.1"), confidence=Decimal(0)),
            View(asset_index=3, expected_return=Decimal("0.1"), confidence=Decimal("0.5")),
            View(asset_index=1, expected_return=Decimal("0.1"), confidence=Decimal("0.5"), short_index=1),
        ],
    )
    def test_invalid_views(self, view):
        with pytest.raises(ValueError):
            optimize_black_litterman(make_inputs([view]))

    def test_singular_covariance(self):
        with pytest.raises(SingularMatrixError):
            optimize_black_litterman(
                BlackLittermanInputs(
                    asset_names=["A", "B"],
                    market_weights=[Decimal("0.5"), Decimal("0.5")],
                    covariance=[[Decimal("0.04"), Decimal("0.04")], [Decimal("0.04"), Decimal("0.04")]],
                )
            )

    def test_no_assets(self):
        with pytest.raises(ValueError):
            optimize_black_litterman(make_inputs(asset_names=[], market_weights=[], covariance=[]))
