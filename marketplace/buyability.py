"""
Buyability (home affordability) calculator for South African buyers.

All money values are integer cents of ZAR. Bond maths assumes a 20-year bond
at prime plus a risk margin that shrinks as the buyer provides more detail.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from config.settings import (
    BOND_REGISTRATION_COST,
    BOND_TERM_MONTHS,
    HOUSING_AFFORDABILITY_RATIO,
    INCOME_RANGE_MIDPOINTS,
    LEGAL_FEES_ESTIMATE,
    MONTHLY_LIVING_EXPENSES,
    PRIME_RATE,
    TRANSFER_DUTY_BRACKETS,
)
from marketplace.utils import clamp

logger = logging.getLogger(__name__)

AFFORDABILITY_RANGE_FLOOR = 0.8
RECOMMENDED_DEPOSIT_RATIO = 0.2
MIN_SAVINGS_FOR_DEPOSIT = 500_000  # R5,000
LOW_INCOME_THRESHOLD = 1_500_000  # R15,000 a month


@dataclass
class FinancialProfile:
    """A buyer's monthly finances. Amounts in cents."""

    income: Optional[int] = None
    income_range: Optional[str] = None
    combined_income: Optional[int] = None
    monthly_expenses: Optional[int] = None
    monthly_debts: Optional[int] = None
    dependents: int = 0
    savings_deposit: Optional[int] = None
    credit_score: Optional[int] = None

    def monthly_income(self) -> int:
        """Gross household income, using the income range midpoint when no amount is given."""
        income = self.income
        if not income and self.income_range:
            income = get_income_amount_from_range(self.income_range)
        return (income or 0) + (self.combined_income or 0)


@dataclass
class BuyabilityResult:
    score: str  # low, medium, high
    affordability_min: int
    affordability_max: int
    monthly_payment_capacity: int
    confidence: int
    factors: Dict[str, float] = field(default_factory=dict)
    recommendations: List[str] = field(default_factory=list)


def calculate_transfer_duty(property_value: float) -> float:
    """
    Progressive transfer duty on a property value.

    Each bracket's rate applies only to the part of the value inside it.

    Args:
        property_value: Purchase price in cents

    Returns:
        Duty in cents
    """
    if property_value < 0:
        raise ValueError("Property value cannot be negative")

    duty = 0.0
    lower = 0.0
    for upper, rate in TRANSFER_DUTY_BRACKETS:
        if property_value <= lower:
            break
        duty += (min(property_value, upper) - lower) * rate
        lower = upper
    return duty


def calculate_total_acquisition_costs(property_value: float) -> Dict[str, float]:
    """Transfer duty, bond registration and legal fees for a purchase (cents)."""
    transfer_duty = calculate_transfer_duty(property_value)
    bond_registration = property_value * BOND_REGISTRATION_COST
    legal_fees = property_value * LEGAL_FEES_ESTIMATE
    return {
        "transfer_duty": transfer_duty,
        "bond_registration": bond_registration,
        "legal_fees": legal_fees,
        "total": transfer_duty + bond_registration + legal_fees,
    }


def monthly_bond_repayment(principal: float, annual_rate_percent: float, years: int = 20) -> float:
    """
    Monthly repayment on an amortising bond.

    Args:
        principal: Loan amount
        annual_rate_percent: Nominal annual rate, e.g. 11.75
        years: Bond term

    Returns:
        Repayment in the same unit as principal
    """
    if principal < 0:
        raise ValueError("Principal cannot be negative")
    if years <= 0:
        raise ValueError("Bond term must be positive")
    months = years * 12
    monthly_rate = annual_rate_percent / 100 / 12
    if monthly_rate == 0:
        return principal / months
    growth = (1 + monthly_rate) ** months
    return principal * monthly_rate * growth / (growth - 1)


def max_loan_for_payment(monthly_payment: float, annual_rate_percent: float, months: int = BOND_TERM_MONTHS) -> float:
    """Largest bond a monthly payment can service (present value of an annuity)."""
    monthly_rate = annual_rate_percent / 100 / 12
    if monthly_rate == 0:
        return monthly_payment * months
    growth = (1 + monthly_rate) ** months
    return monthly_payment * (growth - 1) / (monthly_rate * growth)


def get_income_range_from_amount(amount: int) -> str:
    """Income band for a monthly income in cents."""
    if amount < 1_500_000:
        return "under_15k"
    if amount < 2_500_000:
        return "15k_25k"
    if amount < 5_000_000:
        return "25k_50k"
    if amount < 10_000_000:
        return "50k_100k"
    return "over_100k"


def get_income_amount_from_range(income_range: str) -> int:
    """Midpoint (cents) of an income band, 0 for unknown bands."""
    return INCOME_RANGE_MIDPOINTS.get(income_range, 0)


def household_size(profile: FinancialProfile) -> str:
    if profile.dependents > 0:
        return "family"
    if profile.combined_income:
        return "couple"
    return "single"


def calculate_monthly_payment_capacity(profile: FinancialProfile) -> float:
    """35% of disposable income after living costs, expenses and debts."""
    living = MONTHLY_LIVING_EXPENSES[household_size(profile)]
    disposable = (
        profile.monthly_income()
        - living
        - (profile.monthly_expenses or 0)
        - (profile.monthly_debts or 0)
    )
    return max(0.0, disposable * HOUSING_AFFORDABILITY_RATIO)


def calculate_confidence(profile: FinancialProfile) -> int:
    confidence = 0
    if profile.income or profile.income_range or profile.combined_income:
        confidence += 40
    if profile.monthly_expenses and profile.monthly_debts:
        confidence += 30
    elif profile.monthly_expenses or profile.monthly_debts:
        confidence += 15
    if profile.savings_deposit:
        confidence += 20
    if profile.credit_score:
        confidence += 10
    return min(confidence, 100)


def risk_margin(confidence: int) -> float:
    if confidence > 80:
        return 1.0
    if confidence > 60:
        return 1.5
    return 2.0


def calculate_affordability_range(
    monthly_capacity: float,
    deposit: float,
    confidence: int,
    prime_rate: float = PRIME_RATE,
) -> Dict[str, float]:
    """Price range (cents) the buyer can afford: 80% of the maximum up to the maximum."""
    rate = prime_rate + risk_margin(confidence)
    max_value = max_loan_for_payment(monthly_capacity, rate) + deposit
    return {"min": max(0.0, max_value * AFFORDABILITY_RANGE_FLOOR), "max": max_value, "interest_rate": rate}


def _credit_factor(credit_score: Optional[int]) -> int:
    if not credit_score:
        return 0
    if credit_score >= 750:
        return 10
    if credit_score >= 650:
        return 5
    if credit_score >= 550:
        return 0
    return -10


def calculate_score(profile: FinancialProfile, monthly_capacity: float, deposit: float) -> str:
    """Composite of debt-to-income, payment-to-income, deposit and credit score."""
    income = profile.monthly_income()
    debts = profile.monthly_debts or 0

    dti = debts / income * 100 if income > 0 else 100
    pti = monthly_capacity / income * 100 if income > 0 else 100
    estimated_value = monthly_capacity * 10
    deposit_ratio = deposit / estimated_value * 100 if estimated_value > 0 else 0

    dti_score = clamp(100 - (dti - 30) * 5, 0.0, 100.0)
    pti_score = clamp(100 - (pti - 30) * 5, 0.0, 100.0)
    deposit_score = min(100.0, deposit_ratio * 2)

    composite = dti_score * 0.3 + pti_score * 0.4 + deposit_score * 0.3 + _credit_factor(profile.credit_score)
    if composite >= 70:
        return "high"
    if composite >= 40:
        return "medium"
    return "low"


def generate_recommendations(profile: FinancialProfile, score: str, confidence: int) -> List[str]:
    recommendations = []
    if confidence < 50:
        recommendations.append("Complete more financial details for more accurate calculations")

    if score == "low":
        recommendations.append("Consider increasing your down payment or reducing existing debts")
        recommendations.append("Focus on improving your credit score before applying for a bond")
        if profile.income and profile.income < LOW_INCOME_THRESHOLD:
            recommendations.append("Consider increasing your income through additional work or side hustles")
    elif score == "medium":
        recommendations.append("You're in a good position - consider saving more for a larger down payment")
        recommendations.append("Shop around for the best interest rates from different banks")
    else:
        recommendations.append("Excellent financial position! You qualify for premium properties")
        recommendations.append("Consider pre-approval from multiple banks to compare offers")

    if not profile.credit_score:
        recommendations.append("Consider getting a credit score assessment for better rates")
    if (profile.savings_deposit or 0) < MIN_SAVINGS_FOR_DEPOSIT:
        recommendations.append("Aim to save at least 10% of the property value for down payment")
    return recommendations


def calculate_buyability(profile: FinancialProfile, prime_rate: float = PRIME_RATE) -> BuyabilityResult:
    """
    Estimate what a buyer can afford.

    Args:
        profile: Buyer finances in cents
        prime_rate: Prime lending rate in percent

    Returns:
        BuyabilityResult with amounts rounded to whole cents
    """
    for name in ("income", "combined_income", "monthly_expenses", "monthly_debts", "savings_deposit"):
        value = getattr(profile, name)
        if value is not None and value < 0:
            raise ValueError(f"{name} cannot be negative")
    if profile.dependents < 0:
        raise ValueError("dependents cannot be negative")
    if profile.income_range is not None and profile.income_range not in INCOME_RANGE_MIDPOINTS:
        raise ValueError(f"Unknown income range: {profile.income_range}")

    capacity = calculate_monthly_payment_capacity(profile)
    deposit = profile.savings_deposit or 0
    confidence = calculate_confidence(profile)
    affordability = calculate_affordability_range(capacity, deposit, confidence, prime_rate)
    score = calculate_score(profile, capacity, deposit)

    income = profile.monthly_income()
    debts = profile.monthly_debts or 0
    max_value = affordability["max"]
    loan = max_value - deposit

    factors = {
        "debt_to_income_ratio": round(debts / income * 100, 2) if income > 0 else 0.0,
        "loan_to_value_ratio": round(loan / max_value * 100, 2) if max_value > 0 else 0.0,
        "monthly_disposable_income": round(income - capacity),
        "recommended_down_payment": round(min(deposit, max_value * RECOMMENDED_DEPOSIT_RATIO)),
        "interest_rate": affordability["interest_rate"],
    }

    logger.debug(f"Buyability {score}: capacity {capacity:.0f}c, max {max_value:.0f}c, confidence {confidence}")
    return BuyabilityResult(
        score=score,
        affordability_min=round(affordability["min"]),
        affordability_max=round(max_value),
        monthly_payment_capacity=round(capacity),
        confidence=confidence,
        factors=factors,
        recommendations=generate_recommendations(profile, score, confidence),
    )
