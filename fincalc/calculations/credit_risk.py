"""
Credit Portfolio Risk

Vasicek single-factor (Gaussian copula) portfolio analytics: expected and
unexpected loss, credit VaR, economic capital and concentration.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List

from fincalc.kernel import (
    decimal_sqrt,
    kernel_context,
    norm_cdf,
    norm_inverse_cdf,
    to_decimal,
)

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
ONE = Decimal(1)
HUNDRED = Decimal(100)
SINGLE_NAME_LIMIT = Decimal("0.10")
HHI_LIMIT = Decimal("0.25")
TOP_N = 10


@dataclass
class CreditExposure:
    name: str
    exposure: Decimal
    probability_of_default: Decimal
    loss_given_default: Decimal
    sector: str = "Unclassified"


@dataclass
class CreditPortfolioInputs:
    exposures: List[CreditExposure]
    default_correlation: Decimal = Decimal("0.20")
    confidence_level: Decimal = Decimal("0.999")


@dataclass
class ExposureRisk:
    name: str
    exposure: Decimal
    expected_loss: Decimal
    unexpected_loss: Decimal
    conditional_pd: Decimal
    marginal_risk: Decimal
    risk_contribution: Decimal
    pct_of_portfolio: Decimal


@dataclass
class CreditPortfolioResult:
    total_exposure: Decimal
    expected_loss: Decimal
    unexpected_loss: Decimal
    credit_var: Decimal
    economic_capital: Decimal
    diversification_benefit: Decimal
    portfolio_pd: Decimal
    portfolio_lgd: Decimal
    hhi_name: Decimal
    hhi_sector: Decimal
    top_10_pct: Decimal
    effective_number_names: Decimal
    granularity_adjustment: Decimal
    exposure_risks: List[ExposureRisk]
    sector_weights: Dict[str, Decimal]
    warnings: List[str] = field(default_factory=list)


def _validate(inputs: CreditPortfolioInputs) -> None:
    if not inputs.exposures:
        raise ValueError("At least one exposure is required")
    rho = to_decimal(inputs.default_correlation)
    if rho < 0 or rho >= 1:
        raise ValueError("default_correlation must be in [0, 1)")
    confidence = to_decimal(inputs.confidence_level)
    if confidence <= Decimal("0.5") or confidence >= 1:
        raise ValueError("confidence_level must be in (0.5, 1)")
    for i, exp in enumerate(inputs.exposures):
        if to_decimal(exp.exposure) <= 0:
            raise ValueError(f"exposures[{i}].exposure must be positive")
        if not ZERO <= to_decimal(exp.probability_of_default) <= ONE:
            raise ValueError(f"exposures[{i}].probability_of_default must be in [0, 1]")
        if not ZERO <= to_decimal(exp.loss_given_default) <= ONE:
            raise ValueError(f"exposures[{i}].loss_given_default must be in [0, 1]")


@kernel_context
def conditional_pd(pd, correlation, z_confidence) -> Decimal:
    """
    Vasicek default probability conditional on a stressed systematic factor:
    Phi((Phi^-1(PD) + sqrt(rho) Phi^-1(alpha)) / sqrt(1 - rho)).
    """
    pd = to_decimal(pd)
    rho = to_decimal(correlation)
    if rho == 0 or pd == 0 or pd == 1:
        return pd
    numerator = norm_inverse_cdf(pd) + decimal_sqrt(rho) * to_decimal(z_confidence)
    return norm_cdf(numerator / decimal_sqrt(ONE - rho))


@kernel_context
def calculate_portfolio_risk(inputs: CreditPortfolioInputs) -> CreditPortfolioResult:
    """
    Compute portfolio credit risk under a single-factor model.

    Args:
        inputs: Exposures, pairwise default correlation and VaR confidence

    Returns:
        CreditPortfolioResult

    Raises:
        ValueError: If inputs are invalid
    """
    _validate(inputs)
    warnings: List[str] = []

    rho = to_decimal(inputs.default_correlation)
    z_confidence = norm_inverse_cdf(inputs.confidence_level)

    eads = [to_decimal(e.exposure) for e in inputs.exposures]
    pds = [to_decimal(e.probability_of_default) for e in inputs.exposures]
    lgds = [to_decimal(e.loss_given_default) for e in inputs.exposures]

    total = sum(eads, ZERO)
    weights = [ead / total for ead in eads]

    els = [pd * lgd * ead for pd, lgd, ead in zip(pds, lgds, eads)]
    uls = [ead * lgd * decimal_sqrt(pd * (ONE - pd)) for pd, lgd, ead in zip(pds, lgds, eads)]

    ul_sq = ZERO
    for i, ul_i in enumerate(uls):
        for j, ul_j in enumerate(uls):
            ul_sq += (ONE if i == j else rho) * ul_i * ul_j
    portfolio_ul = decimal_sqrt(ul_sq)
    portfolio_el = sum(els, ZERO)

    standalone = sum(uls, ZERO)
    diversification = ONE - portfolio_ul / standalone if standalone > 0 else ZERO

    cond_pds = [conditional_pd(pd, rho, z_confidence) for pd in pds]
    credit_var = sum(
        (ead * lgd * cpd for ead, lgd, cpd in zip(eads, lgds, cond_pds)), ZERO
    )

    exposure_risks = []
    for i, exp in enumerate(inputs.exposures):
        if portfolio_ul > 0:
            marginal = (rho * uls[i] * portfolio_ul + (ONE - rho) * uls[i] * uls[i]) / portfolio_ul
        else:
            marginal = ZERO
        exposure_risks.append(
            ExposureRisk(
                name=exp.name,
                exposure=eads[i],
                expected_loss=els[i],
                unexpected_loss=uls[i],
                conditional_pd=cond_pds[i],
                marginal_risk=marginal,
                risk_contribution=weights[i] * marginal,
                pct_of_portfolio=weights[i] * HUNDRED,
            )
        )
        if weights[i] > SINGLE_NAME_LIMIT:
            warnings.append(
                f"Exposure '{exp.name}' is {weights[i] * HUNDRED:.1f}% of total portfolio (>10%)"
            )

    sector_weights: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    for exp, w in zip(inputs.exposures, weights):
        sector_weights[exp.sector] += w

    hhi_name = sum((w * w for w in weights), ZERO)
    hhi_sector = sum((w * w for w in sector_weights.values()), ZERO)
    effective_names = ONE / hhi_name
    if hhi_name > HHI_LIMIT:
        warnings.append(f"Portfolio is highly concentrated (HHI {hhi_name:.4f} > {HHI_LIMIT})")

    for message in warnings:
        logger.info(message)

    return CreditPortfolioResult(
        total_exposure=total,
        expected_loss=portfolio_el,
        unexpected_loss=portfolio_ul,
        credit_var=credit_var,
        economic_capital=credit_var - portfolio_el,
        diversification_benefit=diversification,
        portfolio_pd=sum((pd * w for pd, w in zip(pds, weights)), ZERO),
        portfolio_lgd=sum((lgd * w for lgd, w in zip(lgds, weights)), ZERO),
        hhi_name=hhi_name,
        hhi_sector=hhi_sector,
        top_10_pct=sum(sorted(weights, reverse=True)[:TOP_N], ZERO) * HUNDRED,
        effective_number_names=effective_names,
        granularity_adjustment=portfolio_ul * portfolio_ul / (2 * effective_names),
        exposure_risks=exposure_risks,
        sector_weights=dict(sector_weights),
        warnings=warnings,
    )
