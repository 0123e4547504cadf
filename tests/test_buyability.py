import pytest

from marketplace.buyability import (
    FinancialProfile,
    calculate_affordability_range,
    calculate_buyability,
    calculate_confidence,
    calculate_monthly_payment_capacity,
    calculate_total_acquisition_costs,
    calculate_transfer_duty,
    get_income_amount_from_range,
    get_income_range_from_amount,
    max_loan_for_payment,
    monthly_bond_repayment,
    risk_margin,
)

# Amounts are cents
R = 100


@pytest.mark.parametrize(
    "value, duty",
    [
        (0, 0),
        (1_000_000 * R, 0),
        (1_500_000 * R, 2_500 * R),
        (2_000_000 * R, 7_500 * R),
        (3_000_000 * R, 25_000 * R),
        (12_000_000 * R, 2_500 * R + 5_000 * R + 7_500 * R + 150_000 * R + 50_000 * R),
    ],
)
def test_transfer_duty_is_marginal(value, duty):
    assert calculate_transfer_duty(value) == pytest.approx(duty)


def test_transfer_duty_rejects_negative():
    with pytest.raises(ValueError):
        calculate_transfer_duty(-1)


def test_acquisition_costs():
    costs = calculate_total_acquisition_costs(2_000_000 * R)
    assert costs["transfer_duty"] == pytest.approx(7_500 * R)
    assert costs["bond_registration"] == pytest.approx(30_000 * R)
    assert costs["legal_fees"] == pytest.approx(20_000 * R)
    assert costs["total"] == pytest.approx(57_500 * R)


def test_bond_repayment():
    assert monthly_bond_repayment(1_000_000, 11.75) == pytest.approx(10_837, rel=1e-3)
    assert monthly_bond_repayment(240_000, 0) == 1_000
    with pytest.raises(ValueError):
        monthly_bond_repayment(-1, 11.75)
    with pytest.raises(ValueError):
        monthly_bond_repayment(1_000, 11.75, years=0)


def test_max_loan_services_the_payment():
    loan = max_loan_for_payment(10_837, 11.75)
    assert loan == pytest.approx(1_000_000, rel=1e-3)
    assert max_loan_for_payment(1_000, 0) == 240_000


def test_income_ranges():
    assert get_income_range_from_amount(1_499_999) == "under_15k"
    assert get_income_range_from_amount(2_000_000) == "15k_25k"
    assert get_income_range_from_amount(10_000_000) == "over_100k"
    assert get_income_amount_from_range("25k_50k") == 3_750_000
    assert get_income_amount_from_range("lots") == 0
    assert FinancialProfile(income_range="25k_50k").monthly_income() == 3_750_000
    assert FinancialProfile(income=2_000_000, combined_income=1_000_000).monthly_income() == 3_000_000


def test_payment_capacity_by_household():
    single = FinancialProfile(income=3_000_000, monthly_expenses=500_000, monthly_debts=200_000)
    assert calculate_monthly_payment_capacity(single) == pytest.approx(525_000)

    family = FinancialProfile(income=3_000_000, dependents=2)
    assert calculate_monthly_payment_capacity(family) == pytest.approx(525_000)

    stretched = FinancialProfile(income=1_000_000, monthly_debts=900_000)
    assert calculate_monthly_payment_capacity(stretched) == 0.0


def test_confidence_and_margin():
    complete = FinancialProfile(
        income=3_000_000, monthly_expenses=1, monthly_debts=1, savings_deposit=1, credit_score=700
    )
    assert calculate_confidence(complete) == 100
    assert calculate_confidence(FinancialProfile(income=3_000_000)) == 40
    assert calculate_confidence(FinancialProfile(income=3_000_000, monthly_debts=1)) == 55
    assert risk_margin(100) == 1.0
    assert risk_margin(70) == 1.5
    assert risk_margin(40) == 2.0


def test_affordability_range():
    result = calculate_affordability_range(10_837, 50_000, confidence=100, prime_rate=10.75)
    assert result["interest_rate"] == 11.75
    assert result["max"] == pytest.approx(1_050_000, rel=1e-3)
    assert result["min"] == pytest.approx(result["max"] * 0.8)


def test_strong_buyer():
    profile = FinancialProfile(
        income=8_000_000,
        monthly_expenses=1_000_000,
        monthly_debts=500_000,
        savings_deposit=50_000_000,
        credit_score=780,
    )

    result = calculate_buyability(profile, prime_rate=11.75)

    assert result.score == "high"
    assert result.confidence == 100
    assert result.monthly_payment_capacity == 1_995_000
    assert result.factors["interest_rate"] == 12.75
    assert result.factors["debt_to_income_ratio"] == 6.25
    assert result.factors["recommended_down_payment"] == pytest.approx(result.affordability_max * 0.2, abs=1)
    assert result.affordability_min == pytest.approx(result.affordability_max * 0.8, abs=1)
    assert result.recommendations == [
        "Excellent financial position! You qualify for premium properties",
        "Consider pre-approval from multiple banks to compare offers",
    ]


def test_medium_buyer():
    result = calculate_buyability(FinancialProfile(income=2_000_000, monthly_debts=800_000))

    assert result.score == "medium"
    assert result.confidence == 55
    assert "Shop around for the best interest rates from different banks" in result.recommendations
    assert "Consider getting a credit score assessment for better rates" in result.recommendations
    assert "Aim to save at least 10% of the property value for down payment" in result.recommendations


def test_empty_profile():
    result = calculate_buyability(FinancialProfile())

    assert result.score == "low"
    assert result.affordability_max == 0
    assert result.factors["loan_to_value_ratio"] == 0.0
    assert result.recommendations[0] == "Complete more financial details for more accurate calculations"


@pytest.mark.parametrize(
    "profile",
    [
        FinancialProfile(income=-1),
        FinancialProfile(income=1_000_000, monthly_debts=-5),
        FinancialProfile(income=1_000_000, dependents=-1),
        FinancialProfile(income_range="lots"),
    ],
)
def test_invalid_profiles(profile):
    with pytest.raises(ValueError):
        calculate_buyability(profile)
