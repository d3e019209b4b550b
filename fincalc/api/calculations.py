"""
Financial calculation API endpoints.

These endpoints accept inputs and return calculated results. Invalid input
maps to 400; a solver that fails to converge maps to 422.
"""

import logging
from dataclasses import asdict
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from fincalc.calculations import (
    amortization,
    bonds,
    credit_risk,
    execution,
    irr,
    portfolio,
    private_credit,
    real_estate,
)
from fincalc.kernel import ConvergenceError

logger = logging.getLogger(__name__)

router = APIRouter()


def _calculate(func, *args, **kwargs):
    """Run a calculator and translate its failures into HTTP errors."""
    try:
        return func(*args, **kwargs)
    except ConvergenceError as e:
        logger.info(f"{func.__name__}: {e}")
        raise HTTPException(status_code=422, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# --- IRR -------------------------------------------------------------------


class IRRInput(BaseModel):
    """Input for IRR calculation."""

    cash_flows: List[Decimal]
    dates: Optional[List[date]] = None
    discount_rate: Decimal = Decimal("0.10")


class IRRResponse(BaseModel):
    """Response with IRR calculation."""

    irr: Decimal
    multiple: Decimal
    profit: Decimal
    npv: Decimal


@router.post("/irr", response_model=IRRResponse)
async def calculate_irr_endpoint(inputs: IRRInput):
    """Calculate IRR (or XIRR when dates are given) for cash flows."""
    if inputs.dates:
        irr_val = _calculate(irr.calculate_xirr, inputs.cash_flows, inputs.dates)
        npv = _calculate(irr.calculate_xnpv, inputs.cash_flows, inputs.dates, inputs.discount_rate)
    else:
        irr_val = _calculate(irr.calculate_irr, inputs.cash_flows)
        npv = _calculate(irr.calculate_npv, inputs.cash_flows, inputs.discount_rate)

    return IRRResponse(
        irr=irr_val,
        multiple=_calculate(irr.calculate_multiple, inputs.cash_flows),
        profit=irr.calculate_profit(inputs.cash_flows),
        npv=npv,
    )


# --- Amortization ----------------------------------------------------------


class AmortizationInput(BaseModel):
    """Input for amortization calculation."""

    principal: Decimal
    annual_rate: Decimal
    amortization_years: int
    io_months: int = 0
    total_months: int = 120
    start_date: Optional[date] = None


@router.post("/amortization")
async def calculate_amortization(inputs: AmortizationInput):
    """Generate loan amortization schedule."""
    schedule = _calculate(
        amortization.generate_amortization_schedule,
        principal=inputs.principal,
        annual_rate=inputs.annual_rate,
        amortization_months=inputs.amortization_years * 12,
        io_months=inputs.io_months,
        total_months=inputs.total_months,
        start_date=inputs.start_date,
    )

    return {
        "monthly_payment": amortization.calculate_payment(
            inputs.principal, inputs.annual_rate, inputs.amortization_years * 12
        ),
        "schedule": schedule,
        "total_interest": amortization.calculate_total_interest(schedule),
        "total_principal": sum((row["principal"] for row in schedule), Decimal(0)),
    }


# --- Real estate -----------------------------------------------------------


class RealEstateInput(BaseModel):
    """Hold-period assumptions for a stabilized property."""

    purchase_price: Decimal
    year1_noi: Decimal
    hold_period_years: int = 10
    exit_cap_rate: Decimal
    noi_growth: Decimal = Decimal("0.025")
    closing_costs: Decimal = Decimal(0)
    sales_cost_percent: Decimal = Decimal("0.01")
    loan_amount: Decimal = Decimal(0)
    interest_rate: Decimal = Decimal("0.05")
    io_years: int = 0
    amortization_years: int = 30
    discount_rate: Optional[Decimal] = None
    acquisition_date: Optional[date] = None


@router.post("/real-estate")
async def calculate_real_estate(inputs: RealEstateInput):
    """Project annual cash flows and unlevered/levered returns."""
    result = _calculate(
        real_estate.project_returns,
        real_estate.PropertyInputs(**inputs.model_dump()),
    )
    return asdict(result)


# --- Bonds -----------------------------------------------------------------


class BondInput(BaseModel):
    """Bond terms with either a yield or a clean price."""

    face_value: Decimal = Decimal(1000)
    coupon_rate: Decimal
    settlement_date: date
    maturity_date: date
    frequency: int = 2
    day_count: bonds.DayCount = bonds.DayCount.thirty_360
    ytm: Optional[Decimal] = None
    clean_price: Optional[Decimal] = None
    call_price: Optional[Decimal] = None
    call_date: Optional[date] = None


@router.post("/bond")
async def calculate_bond(inputs: BondInput):
    """Price a bond or solve its yield."""
    result = _calculate(bonds.price_bond, bonds.BondInputs(**inputs.model_dump()))
    return asdict(result)


# --- Private credit --------------------------------------------------------


class UnitrancheInput(BaseModel):
    """Unitranche facility and borrower terms."""

    total_commitment: Decimal
    borrower_ebitda: Decimal
    borrower_revenue: Decimal
    first_out_pct: Decimal
    first_out_spread_bps: Decimal
    last_out_spread_bps: Decimal
    base_rate: Decimal
    maturity_years: Decimal
    oid_pct: Decimal = Decimal(0)
    upfront_fee_pct: Decimal = Decimal(0)
    commitment_fee_bps: Decimal = Decimal(0)
    drawn_pct: Decimal = Decimal(1)
    amortization_pct: Decimal = Decimal(0)
    call_protection_years: int = 3
    call_premium_pct: Decimal = Decimal(0)
    leverage_covenant: Optional[Decimal] = None
    coverage_covenant: Optional[Decimal] = None


@router.post("/private-credit")
async def calculate_private_credit(inputs: UnitrancheInput):
    """Structure a first-out / last-out unitranche."""
    result = _calculate(
        private_credit.structure_unitranche,
        private_credit.UnitrancheInputs(**inputs.model_dump()),
    )
    return asdict(result)


# --- Black-Litterman -------------------------------------------------------


class ViewInput(BaseModel):
    """Absolute view, or relative when short_index is set."""

    asset_index: int
    expected_return: Decimal
    confidence: Decimal
    short_index: Optional[int] = None


class BlackLittermanInput(BaseModel):
    asset_names: List[str]
    market_weights: List[Decimal]
    covariance: List[List[Decimal]]
    views: List[ViewInput] = Field(default_factory=list)
    risk_free_rate: Decimal = Decimal(0)
    risk_aversion: Decimal = Decimal("2.5")
    tau: Decimal = Decimal("0.05")


@router.post("/black-litterman")
async def calculate_black_litterman(inputs: BlackLittermanInput):
    """Blend equilibrium returns with views and compute optimal weights."""
    data = inputs.model_dump()
    data["views"] = [portfolio.View(**v) for v in data["views"]]
    result = _calculate(
        portfolio.optimize_black_litterman, portfolio.BlackLittermanInputs(**data)
    )
    return asdict(result)


# --- Optimal execution -----------------------------------------------------


class MarketInput(BaseModel):
    current_price: Decimal
    daily_volume: Decimal
    daily_volatility: Decimal
    bid_ask_spread: Decimal
    temporary_impact: Decimal
    permanent_impact: Decimal
    volume_profile: Optional[List[Decimal]] = None


class ConstraintsInput(BaseModel):
    max_participation_rate: Decimal = Decimal("0.25")
    min_slice_size: Optional[Decimal] = None
    max_slice_size: Optional[Decimal] = None
    no_trade_periods: List[Tuple[int, int]] = Field(default_factory=list)


class ExecutionInput(BaseModel):
    order_size: Decimal
    side: execution.Side = execution.Side.buy
    strategy: execution.Strategy = execution.Strategy.twap
    market: MarketInput
    time_horizon: Decimal
    num_slices: int
    urgency: Decimal = Decimal("0.5")
    constraints: ConstraintsInput = Field(default_factory=ConstraintsInput)


@router.post("/execution")
async def calculate_execution(inputs: ExecutionInput):
    """Build an execution schedule with cost and risk estimates."""
    data = inputs.model_dump()
    data["market"] = execution.MarketParameters(**data["market"])
    data["constraints"] = execution.ExecutionConstraints(**data["constraints"])
    result = _calculate(execution.optimize_execution, execution.ExecutionInputs(**data))
    return asdict(result)


# --- Credit portfolio risk -------------------------------------------------


class ExposureInput(BaseModel):
    name: str
    exposure: Decimal
    probability_of_default: Decimal
    loss_given_default: Decimal
    sector: str = "Unclassified"


class CreditRiskInput(BaseModel):
    exposures: List[ExposureInput]
    default_correlation: Decimal = Decimal("0.20")
    confidence_level: Decimal = Decimal("0.999")


@router.post("/credit-risk")
async def calculate_credit_risk(inputs: CreditRiskInput):
    """Vasicek portfolio credit risk."""
    data = inputs.model_dump()
    data["exposures"] = [credit_risk.CreditExposure(**e) for e in data["exposures"]]
    result = _calculate(
        credit_risk.calculate_portfolio_risk, credit_risk.CreditPortfolioInputs(**data)
    )
    return asdict(result)
