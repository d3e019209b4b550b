"""
Optimal Execution

Slices a large order over a horizon using TWAP, VWAP, Implementation
Shortfall (Almgren-Chriss) or Percentage of Volume, applies trading
constraints, and estimates spread, impact and timing-risk costs.
"""

import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from fincalc.kernel import (
    decimal_acosh,
    decimal_cos,
    decimal_sinh,
    decimal_sqrt,
    kernel_context,
    to_decimal,
)
from fincalc.kernel.context import PI

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
ONE = Decimal(1)
TWO = Decimal(2)
HALF = Decimal("0.5")
BPS = Decimal(10000)
Z_95 = Decimal("1.645")
RISK_AVERSION_SCALE = Decimal("0.000001")
MIN_POV_RATE = Decimal("0.01")
FRONTIER_POINTS = 10


class Strategy(str, enum.Enum):
    twap = "TWAP"
    vwap = "VWAP"
    implementation_shortfall = "IS"
    pov = "POV"


class Side(str, enum.Enum):
    buy = "buy"
    sell = "sell"


@dataclass
class MarketParameters:
    current_price: Decimal
    daily_volume: Decimal
    daily_volatility: Decimal
    bid_ask_spread: Decimal
    temporary_impact: Decimal
    permanent_impact: Decimal
    volume_profile: Optional[List[Decimal]] = None


@dataclass
class ExecutionConstraints:
    max_participation_rate: Decimal = Decimal("0.25")
    min_slice_size: Optional[Decimal] = None
    max_slice_size: Optional[Decimal] = None
    # Inclusive (start, end) slice index ranges
    no_trade_periods: List[Tuple[int, int]] = field(default_factory=list)


@dataclass
class ExecutionInputs:
    order_size: Decimal
    side: Side
    strategy: Strategy
    market: MarketParameters
    time_horizon: Decimal
    num_slices: int
    urgency: Decimal = HALF
    constraints: ExecutionConstraints = field(default_factory=ExecutionConstraints)


@dataclass
class ExecutionCost:
    spread_cost: Decimal
    temporary_impact: Decimal
    permanent_impact: Decimal
    timing_risk: Decimal
    total_expected_cost: Decimal
    total_cost_bps: Decimal
    opportunity_cost: Decimal
    std_dev_of_cost: Decimal
    var_95: Decimal
    best_case_cost: Decimal


@dataclass
class ExecutionResult:
    strategy: Strategy
    schedule: List[Dict]
    cost: ExecutionCost
    average_participation: Decimal
    efficient_frontier: List[Dict]
    benchmark_comparison: List[Dict]
    warnings: List[str] = field(default_factory=list)


@kernel_context
def default_volume_profile(n: int) -> List[Decimal]:
    """
    Default intraday profile v_j = 1 + 0.5 cos(pi (2j+1) / 2N), normalized.

    Weights fall from about 1.5 at the open to about 0.5 at the close.
    """
    profile = [
        ONE + HALF * decimal_cos(PI * (2 * j + 1) / (2 * n))
        for j in range(n)
    ]
    total = sum(profile, ZERO)
    return [v / total for v in profile]


def _volume_profile(market: MarketParameters, n: int, warnings: List[str]) -> List[Decimal]:
    if market.volume_profile is not None:
        if len(market.volume_profile) == n:
            return [to_decimal(v) for v in market.volume_profile]
        warnings.append(
            f"volume_profile has {len(market.volume_profile)} entries for {n} slices; "
            "using default profile"
        )
    return default_volume_profile(n)


@kernel_context
def almgren_chriss_quantities(
    order_size,
    n: int,
    tau,
    volatility,
    temporary_impact,
    urgency,
) -> List[Decimal]:
    """
    Per-slice trade sizes along the Almgren-Chriss optimal trajectory.

    Holdings follow Q * sinh(kappa (N - j)) / sinh(kappa N) with
    kappa = acosh(1 + kappa_tilde^2 / 2). Zero urgency degenerates to TWAP.
    """
    q = to_decimal(order_size)
    tau = to_decimal(tau)
    sigma = to_decimal(volatility)
    eta = to_decimal(temporary_impact)
    risk_aversion = to_decimal(urgency) * RISK_AVERSION_SCALE

    tau_over_t = ONE / n
    kappa_tilde_sq = ZERO
    if eta > 0:
        kappa_tilde_sq = risk_aversion * sigma * sigma / (eta * tau_over_t * tau_over_t)

    kappa = decimal_acosh(ONE + kappa_tilde_sq / TWO)
    sinh_kn = decimal_sinh(kappa * n)

    if sinh_kn == 0:
        holdings = [q * (n - j) / n for j in range(n + 1)]
    else:
        holdings = [q * decimal_sinh(kappa * (n - j)) / sinh_kn for j in range(n + 1)]

    return [max(holdings[j - 1] - holdings[j], ZERO) for j in range(1, n + 1)]


def _pov_quantities(order_size: Decimal, urgency: Decimal, volumes: List[Decimal]) -> List[Decimal]:
    # Urgency doubles as the target participation rate
    rate = max(urgency, MIN_POV_RATE)
    quantities = []
    remaining = order_size
    for volume in volumes:
        if remaining <= 0:
            quantities.append(ZERO)
            continue
        q = max(min(rate * volume, remaining), ZERO)
        quantities.append(q)
        remaining -= q
    if remaining > 0:
        quantities[-1] += remaining
    return quantities


def _raw_quantities(
    strategy: Strategy,
    inputs: ExecutionInputs,
    tau: Decimal,
    profile: List[Decimal],
    volumes: List[Decimal],
    urgency: Decimal,
) -> List[Decimal]:
    q = to_decimal(inputs.order_size)
    n = inputs.num_slices
    if strategy == Strategy.twap:
        return [q / n] * n
    if strategy == Strategy.vwap:
        return [q * v for v in profile]
    if strategy == Strategy.implementation_shortfall:
        return almgren_chriss_quantities(
            q, n, tau, inputs.market.daily_volatility, inputs.market.temporary_impact, urgency
        )
    return _pov_quantities(q, urgency, volumes)


def _in_no_trade(constraints: ExecutionConstraints, index: int) -> bool:
    return any(start <= index <= end for start, end in constraints.no_trade_periods)


@kernel_context
def apply_constraints(
    quantities: List[Decimal],
    order_size,
    constraints: ExecutionConstraints,
    expected_volumes: List[Decimal],
) -> List[Decimal]:
    """
    Zero no-trade slices, cap by participation, clamp slice sizes, then
    rescale so the schedule sums to order_size.
    """
    total = to_decimal(order_size)
    cap_rate = to_decimal(constraints.max_participation_rate)
    adjusted = []
    for i, q in enumerate(quantities):
        if _in_no_trade(constraints, i):
            q = ZERO
        cap = cap_rate * expected_volumes[i]
        if cap > 0 and q > cap:
            q = cap
        adjusted.append(q)

    if constraints.min_slice_size is not None:
        min_size = to_decimal(constraints.min_slice_size)
        adjusted = [min_size if 0 < q < min_size else q for q in adjusted]
    if constraints.max_slice_size is not None:
        max_size = to_decimal(constraints.max_slice_size)
        adjusted = [min(q, max_size) for q in adjusted]

    current = sum(adjusted, ZERO)
    if current > 0 and current != total:
        scale = total / current
        adjusted = [q * scale for q in adjusted]
    return adjusted


@kernel_context
def estimate_costs(
    quantities: List[Decimal],
    market: MarketParameters,
    order_size,
    tau,
) -> ExecutionCost:
    """Spread, temporary and permanent impact, timing risk and cost VaR."""
    total = to_decimal(order_size)
    tau = to_decimal(tau)
    sigma = to_decimal(market.daily_volatility)
    eta = to_decimal(market.temporary_impact)
    gamma = to_decimal(market.permanent_impact)

    spread_cost = HALF * to_decimal(market.bid_ask_spread) * total

    temporary = sum((eta * q * q / tau for q in quantities), ZERO)

    permanent = ZERO
    cumulative = ZERO
    for q in quantities:
        cumulative += q
        permanent += gamma * q * cumulative
    if total > 0:
        permanent = permanent / total

    expected = spread_cost + temporary + permanent
    notional = to_decimal(market.current_price) * total
    cost_bps = expected / notional * BPS if notional > 0 else ZERO

    remaining = total
    variance_sum = ZERO
    for q in quantities:
        variance_sum += remaining * remaining * tau
        remaining -= q
    timing_risk = sigma * decimal_sqrt(variance_sum)
    std_dev = decimal_sqrt(sigma * sigma * variance_sum)

    horizon = tau * len(quantities)
    opportunity_cost = sigma * decimal_sqrt(horizon) * total * HALF

    return ExecutionCost(
        spread_cost=spread_cost,
        temporary_impact=temporary,
        permanent_impact=permanent,
        timing_risk=timing_risk,
        total_expected_cost=expected,
        total_cost_bps=cost_bps,
        opportunity_cost=opportunity_cost,
        std_dev_of_cost=std_dev,
        var_95=expected + Z_95 * std_dev,
        best_case_cost=expected - Z_95 * std_dev,
    )


def _validate(inputs: ExecutionInputs) -> None:
    if to_decimal(inputs.order_size) <= 0:
        raise ValueError("order_size must be positive")
    if inputs.num_slices < 1:
        raise ValueError("num_slices must be at least 1")
    if to_decimal(inputs.time_horizon) <= 0:
        raise ValueError("time_horizon must be positive")
    if not ZERO <= to_decimal(inputs.urgency) <= ONE:
        raise ValueError("urgency must be between 0 and 1")
    if to_decimal(inputs.market.current_price) <= 0:
        raise ValueError("current_price must be positive")
    if to_decimal(inputs.market.daily_volume) <= 0:
        raise ValueError("daily_volume must be positive")
    if to_decimal(inputs.market.daily_volatility) < 0:
        raise ValueError("daily_volatility cannot be negative")
    rate = to_decimal(inputs.constraints.max_participation_rate)
    if rate <= 0 or rate > 1:
        raise ValueError("max_participation_rate must be in (0, 1]")


@kernel_context
def optimize_execution(inputs: ExecutionInputs) -> ExecutionResult:
    """
    Build an execution schedule and cost estimate.

    Also traces an efficient frontier (IS at urgency 0.1 .. 1.0) and
    compares all four strategies under the same constraints.

    Args:
        inputs: Order, market and constraint parameters

    Returns:
        ExecutionResult

    Raises:
        ValueError: If inputs are invalid
    """
    _validate(inputs)
    warnings: List[str] = []

    strategy = Strategy(inputs.strategy)
    n = inputs.num_slices
    total = to_decimal(inputs.order_size)
    urgency = to_decimal(inputs.urgency)
    tau = to_decimal(inputs.time_horizon) / n
    market = inputs.market
    price = to_decimal(market.current_price)
    gamma = to_decimal(market.permanent_impact)
    sign = ONE if Side(inputs.side) == Side.buy else -ONE

    profile = _volume_profile(market, n, warnings)
    volumes = [to_decimal(market.daily_volume) * v for v in profile]

    def constrained(strat: Strategy, u: Decimal) -> List[Decimal]:
        raw = _raw_quantities(strat, inputs, tau, profile, volumes, u)
        return apply_constraints(raw, total, inputs.constraints, volumes)

    quantities = constrained(strategy, urgency)

    schedule = []
    cumulative = ZERO
    participation_sum = ZERO
    active = 0
    for j, q in enumerate(quantities):
        cumulative += q
        participation = q / volumes[j] if volumes[j] > 0 else ZERO
        if q > 0:
            participation_sum += participation
            active += 1
        schedule.append(
            {
                "slice": j,
                "time_start": tau * j,
                "time_end": tau * (j + 1),
                "quantity": q,
                "pct_of_total": q / total * 100,
                "cumulative_pct": cumulative / total * 100,
                "expected_price": price + sign * gamma * cumulative,
                "expected_market_volume": volumes[j],
                "participation_rate": participation,
            }
        )
        if participation > to_decimal(inputs.constraints.max_participation_rate):
            warnings.append(
                f"Slice {j} participation {participation:.4f} exceeds the cap after rescaling"
            )

    cost = estimate_costs(quantities, market, total, tau)

    frontier = []
    for i in range(1, FRONTIER_POINTS + 1):
        u = Decimal(i) / FRONTIER_POINTS
        point = estimate_costs(
            constrained(Strategy.implementation_shortfall, u), market, total, tau
        )
        frontier.append(
            {"urgency": u, "expected_cost_bps": point.total_cost_bps, "risk": point.std_dev_of_cost}
        )

    notional = price * total
    comparison = []
    for strat in Strategy:
        c = estimate_costs(constrained(strat, urgency), market, total, tau)
        risk_bps = c.std_dev_of_cost / notional * BPS
        comparison.append(
            {
                "strategy": strat.value,
                "expected_cost_bps": c.total_cost_bps,
                "risk_bps": risk_bps,
                "cost_to_risk": c.total_cost_bps / risk_bps if risk_bps > 0 else ZERO,
            }
        )

    for message in warnings:
        logger.warning(message)

    return ExecutionResult(
        strategy=strategy,
        schedule=schedule,
        cost=cost,
        average_participation=participation_sum / active if active else ZERO,
        efficient_frontier=frontier,
        benchmark_comparison=comparison,
        warnings=warnings,
    )
