"""
Black-Litterman Portfolio Optimization

Blends market-implied equilibrium returns with investor views:

    pi    = lambda * Sigma * w_mkt
    Omega = diag((1/c_i - 1) * (P tau Sigma P^T)_ii)
    mu    = [(tau Sigma)^-1 + P^T Omega^-1 P]^-1 [(tau Sigma)^-1 pi + P^T Omega^-1 Q]
    w*    = (lambda Sigma)^-1 mu, normalized to sum to 1
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from fincalc.kernel import (
    dot,
    inverse,
    inverse_diagonal,
    kernel_context,
    mat_add,
    mat_mul,
    mat_mul_transpose,
    mat_scale,
    mat_vec_mul,
    portfolio_std,
    to_decimal,
    transpose,
)

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
ONE = Decimal(1)

SYMMETRY_TOLERANCE = Decimal("0.0000001")
OMEGA_FLOOR = Decimal("0.0000000001")
CONCENTRATION_LIMIT = Decimal("0.50")
TILT_LIMIT = Decimal("0.20")
TRACKING_ERROR_LIMIT = Decimal("0.10")


@dataclass
class View:
    """
    An investor view.

    Absolute: asset_index returns expected_return.
    Relative (short_index set): asset_index outperforms short_index by
    expected_return.
    """

    asset_index: int
    expected_return: Decimal
    confidence: Decimal
    short_index: Optional[int] = None

    @property
    def is_relative(self) -> bool:
        return self.short_index is not None


@dataclass
class BlackLittermanInputs:
    asset_names: List[str]
    market_weights: List[Decimal]
    covariance: List[List[Decimal]]
    views: List[View] = field(default_factory=list)
    risk_free_rate: Decimal = ZERO
    risk_aversion: Decimal = Decimal("2.5")
    tau: Decimal = Decimal("0.05")


@dataclass
class AssetWeight:
    name: str
    weight: Decimal
    market_weight: Decimal
    tilt: Decimal


@dataclass
class ViewContribution:
    description: str
    impact_on_return: Decimal
    omega: Decimal


@dataclass
class BlackLittermanResult:
    implied_returns: List[Decimal]
    posterior_returns: List[Decimal]
    posterior_covariance: List[List[Decimal]]
    weights: List[AssetWeight]
    portfolio_return: Decimal
    portfolio_risk: Decimal
    sharpe_ratio: Decimal
    tracking_error: Decimal
    information_ratio: Decimal
    view_contributions: List[ViewContribution]
    warnings: List[str] = field(default_factory=list)


def validate_covariance(covariance: List[List[Decimal]], n: int) -> None:
    """Square n x n and symmetric within 1e-7."""
    if len(covariance) != n:
        raise ValueError(f"covariance: expected {n}x{n} matrix but got {len(covariance)} rows")
    for i, row in enumerate(covariance):
        if len(row) != n:
            raise ValueError(f"covariance: row {i} has {len(row)} columns, expected {n}")
    for i in range(n):
        for j in range(i + 1, n):
            if abs(to_decimal(covariance[i][j]) - to_decimal(covariance[j][i])) > SYMMETRY_TOLERANCE:
                raise ValueError(
                    f"covariance: not symmetric at [{i},{j}]={covariance[i][j]} "
                    f"vs [{j},{i}]={covariance[j][i]}"
                )


def _validate(inputs: BlackLittermanInputs) -> None:
    n = len(inputs.asset_names)
    if n == 0:
        raise ValueError("At least one asset required")
    if len(inputs.market_weights) != n:
        raise ValueError(
            f"market_weights: expected {n} weights but got {len(inputs.market_weights)}"
        )
    validate_covariance(inputs.covariance, n)

    for i, view in enumerate(inputs.views):
        confidence = to_decimal(view.confidence)
        if confidence <= 0 or confidence > 1:
            raise ValueError(f"views[{i}]: confidence must be in (0, 1], got {confidence}")
        if not 0 <= view.asset_index < n:
            raise ValueError(f"views[{i}]: asset index {view.asset_index} out of range (n={n})")
        if view.is_relative:
            if not 0 <= view.short_index < n:
                raise ValueError(
                    f"views[{i}]: short index {view.short_index} out of range (n={n})"
                )
            if view.short_index == view.asset_index:
                raise ValueError(f"views[{i}]: relative view must reference two different assets")

    if to_decimal(inputs.risk_aversion) <= 0:
        raise ValueError(f"risk_aversion must be positive, got {inputs.risk_aversion}")
    if to_decimal(inputs.tau) <= 0:
        raise ValueError(f"tau must be positive, got {inputs.tau}")


def build_pick_matrix(views: List[View], n: int):
    """K x N pick matrix P and K-vector Q."""
    p = [[ZERO] * n for _ in views]
    q = []
    for row, view in enumerate(views):
        p[row][view.asset_index] = ONE
        if view.is_relative:
            p[row][view.short_index] = -ONE
        q.append(to_decimal(view.expected_return))
    return p, q


def build_omega(p_tau_sigma_pt: List[List[Decimal]], views: List[View]) -> List[List[Decimal]]:
    """Diagonal view uncertainty proportional to each view's variance."""
    k = len(views)
    omega = [[ZERO] * k for _ in range(k)]
    for i, view in enumerate(views):
        scale = ONE / to_decimal(view.confidence) - ONE
        omega_ii = scale * p_tau_sigma_pt[i][i]
        if omega_ii < 0:
            raise ValueError(f"Omega[{i},{i}] = {omega_ii} is negative; check covariance/confidence")
        # Full confidence would make Omega singular
        omega[i][i] = omega_ii if omega_ii > 0 else OMEGA_FLOOR
    return omega


def _view_contributions(
    inputs: BlackLittermanInputs,
    omega: List[List[Decimal]],
    pi: List[Decimal],
    mu: List[Decimal],
) -> List[ViewContribution]:
    names = inputs.asset_names
    contributions = []
    for i, view in enumerate(inputs.views):
        long_impact = mu[view.asset_index] - pi[view.asset_index]
        if view.is_relative:
            description = (
                f"{names[view.asset_index]} outperforms {names[view.short_index]} "
                f"by {view.expected_return}"
            )
            impact = long_impact - (mu[view.short_index] - pi[view.short_index])
        else:
            description = f"{names[view.asset_index]} absolute return = {view.expected_return}"
            impact = long_impact
        contributions.append(
            ViewContribution(description=description, impact_on_return=impact, omega=omega[i][i])
        )
    return contributions


@kernel_context
def optimize_black_litterman(inputs: BlackLittermanInputs) -> BlackLittermanResult:
    """
    Run the Black-Litterman model.

    With no views the posterior equals the equilibrium returns.

    Args:
        inputs: Assets, market weights, covariance, views and model parameters

    Returns:
        BlackLittermanResult

    Raises:
        ValueError: If inputs are invalid
        SingularMatrixError: If a covariance-derived matrix cannot be inverted
    """
    _validate(inputs)
    warnings: List[str] = []

    n = len(inputs.asset_names)
    sigma = [[to_decimal(x) for x in row] for row in inputs.covariance]
    w_mkt = [to_decimal(w) for w in inputs.market_weights]
    risk_aversion = to_decimal(inputs.risk_aversion)
    rf = to_decimal(inputs.risk_free_rate)

    pi = [risk_aversion * x for x in mat_vec_mul(sigma, w_mkt)]

    tau_sigma = mat_scale(sigma, inputs.tau)
    tau_sigma_inv = inverse(tau_sigma)

    if inputs.views:
        p, q = build_pick_matrix(inputs.views, n)
        p_tau_sigma_pt = mat_mul_transpose(mat_mul(p, tau_sigma), p)
        omega = build_omega(p_tau_sigma_pt, inputs.views)
        pt_omega_inv = mat_mul(transpose(p), inverse_diagonal(omega))

        a = mat_add(tau_sigma_inv, mat_mul(pt_omega_inv, p))
        b = [
            x + y
            for x, y in zip(mat_vec_mul(tau_sigma_inv, pi), mat_vec_mul(pt_omega_inv, q))
        ]
    else:
        omega = []
        a = tau_sigma_inv
        b = mat_vec_mul(tau_sigma_inv, pi)

    posterior_cov = inverse(a)
    mu = mat_vec_mul(posterior_cov, b)

    raw = mat_vec_mul(inverse(mat_scale(sigma, risk_aversion)), mu)
    total = sum(raw, ZERO)
    if total == 0:
        warnings.append("Optimal weights sum to zero; falling back to equal weights")
        weights = [ONE / n] * n
    else:
        weights = [w / total for w in raw]

    port_return = dot(weights, mu)
    port_risk = portfolio_std(weights, sigma)
    sharpe = (port_return - rf) / port_risk if port_risk else ZERO

    active = [w - m for w, m in zip(weights, w_mkt)]
    tracking_error = portfolio_std(active, sigma)
    benchmark_return = dot(w_mkt, mu)
    information_ratio = (
        (port_return - benchmark_return) / tracking_error if tracking_error else ZERO
    )

    asset_weights = []
    for name, w, m in zip(inputs.asset_names, weights, w_mkt):
        tilt = w - m
        asset_weights.append(AssetWeight(name=name, weight=w, market_weight=m, tilt=tilt))
        if w > CONCENTRATION_LIMIT:
            warnings.append(f"Concentrated position: {name} has weight {w:.4f}")
        if abs(tilt) > TILT_LIMIT:
            warnings.append(f"Large tilt from market: {name} tilt = {tilt:.4f}")
    if tracking_error > TRACKING_ERROR_LIMIT:
        warnings.append(f"High tracking error vs. market: {tracking_error:.4f}")

    for message in warnings:
        logger.info(message)

    return BlackLittermanResult(
        implied_returns=pi,
        posterior_returns=mu,
        posterior_covariance=posterior_cov,
        weights=asset_weights,
        portfolio_return=port_return,
        portfolio_risk=port_risk,
        sharpe_ratio=sharpe,
        tracking_error=tracking_error,
        information_ratio=information_ratio,
        view_contributions=_view_contributions(inputs, omega, pi, mu),
        warnings=warnings,
    )
