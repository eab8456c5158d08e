"""Purchase-price ceiling and SDE target range."""
from __future__ import annotations

import logging
from collections.abc import Sequence

from buybox.schemas import FinancialParameters, IndustryMatch

log = logging.getLogger(__name__)

EQUITY_INJECTION = 0.10      # SBA-style 10% down payment
CAPITAL_SDE_FACTOR = 2.0
DEBT_SERVICE_RATIO = 0.15    # annual debt service as a share of the loan
DEFAULT_MULTIPLE = 3.0
DEFAULT_INDUSTRY_CONFIDENCE = 0.6

# SDE multiple and how reliable that figure is, per industry
INDUSTRY_MULTIPLES: dict[str, tuple[float, float]] = {
    "technology": (4.5, 0.85),
    "saas": (5.0, 0.90),
    "healthcare": (3.2, 0.80),
    "finance": (3.8, 0.75),
    "education": (2.8, 0.70),
    "retail": (2.8, 0.85),
    "ecommerce": (3.5, 0.80),
    "service": (2.5, 0.90),
    "manufacturing": (2.0, 0.85),
    "real_estate": (2.3, 0.75),
}


def industry_multiple(industry: str) -> float:
    key = industry.lower().replace(" ", "_")
    return INDUSTRY_MULTIPLES.get(key, (DEFAULT_MULTIPLE, 0.0))[0]


def weighted_multiple(matches: Sequence[IndustryMatch]) -> float:
    total = sum(m.confidence for m in matches)
    if total <= 0:
        return DEFAULT_MULTIPLE
    return sum(industry_multiple(m.industry) * m.confidence for m in matches) / total


class FinancialModel:
    """Derive buying power and target earnings from capital, loan and income."""

    def compute(
        self,
        capital: float,
        loan_amount: float,
        min_income: float,
        industry_matches: Sequence[IndustryMatch],
    ) -> FinancialParameters:
        capital = float(capital)
        loan_amount = float(loan_amount)
        min_income = float(min_income)

        max_purchase_price = capital / EQUITY_INJECTION
        multiple = weighted_multiple(industry_matches)
        sde_max = max_purchase_price / multiple

        required_sde = min_income + loan_amount * DEBT_SERVICE_RATIO
        sde_min = max(capital * CAPITAL_SDE_FACTOR, required_sde)

        if industry_matches:
            industry_confidence = sum(m.confidence for m in industry_matches) / len(industry_matches)
        else:
            industry_confidence = DEFAULT_INDUSTRY_CONFIDENCE

        inverted = sde_min > sde_max
        if inverted:
            log.warning(
                "SDE range inverted: minimum %.0f exceeds maximum %.0f (capital=%.0f, loan=%.0f, income=%.0f)",
                sde_min, sde_max, capital, loan_amount, min_income,
            )

        return FinancialParameters(
            max_purchase_price=max_purchase_price,
            sde_min=sde_min,
            sde_max=sde_max,
            industry_multiple=multiple,
            industry_confidence=industry_confidence,
            total_liquid_capital=capital,
            potential_loan_amount=loan_amount,
            required_sde=required_sde,
            range_inverted=inverted,
        )
