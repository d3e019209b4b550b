"""
Financial Calculation Engine

Calculators built on the decimal kernel: IRR/NPV, loan amortization,
real-estate returns, bond pricing, private-credit structuring,
Black-Litterman allocation, optimal execution and credit portfolio risk.
"""

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

__all__ = [
    "amortization",
    "bonds",
    "credit_risk",
    "execution",
    "irr",
    "portfolio",
    "private_credit",
    "real_estate",
]
