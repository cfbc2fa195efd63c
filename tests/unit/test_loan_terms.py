"""Unit tests for quick-loan terms and repayment helpers"""

import re

import pytest

from harambee_sacco.domain.exceptions import ExceedsLimit, ValidationError
from harambee_sacco.domain.installments import (
    calculate_loan_terms,
    generate_loan_number,
    late_penalty_amount,
    max_loan_amount,
    restructured_installment,
    select_interest_rate,
)


def test_flat_interest_over_twelve_months():
    terms = calculate_loan_terms(10_000, 1.5)

    assert terms.interest_amount == pytest.approx(1_800)
    assert terms.total_amount == pytest.approx(11_800)
    assert terms.installment_amount == pytest.approx(983.333, rel=1e-4)
    assert terms.term_months == 12


def test_installments_sum_to_total():
    terms = calculate_loan_terms(25_000, 1.0)

    assert terms.installment_amount * terms.term_months == pytest.approx(terms.total_amount)


def test_preferred_rate_from_score_eighty():
    assert select_interest_rate(100) == 1.0
    assert select_interest_rate(80) == 1.0
    assert select_interest_rate(79) == 1.5


def test_max_loan_is_three_times_savings():
    assert max_loan_amount(10_000) == 30_000
    assert max_loan_amount(0) == 0


def test_late_penalty_is_two_percent_of_installment():
    assert late_penalty_amount(1_000) == pytest.approx(20)


def test_restructured_installment_spreads_balance():
    assert restructured_installment(12_000, 24) == 500


@pytest.mark.parametrize("new_term", [0, -3])
def test_restructured_installment_rejects_non_positive_term(new_term):
    with pytest.raises(ValidationError):
        restructured_installment(12_000, new_term)


def test_loan_number_format():
    loan_number = generate_loan_number()

    assert re.fullmatch(r"LN\d{13}[A-Z0-9]{4}", loan_number)


def test_exceeds_limit_message():
    error = ExceedsLimit(50_000, 30_000)

    assert str(error) == "Loan amount exceeds maximum allowed (30000)"
    assert error.max_allowed == 30_000


def test_exceeds_limit_message_large_limit_has_no_exponent():
    error = ExceedsLimit(2_000_000, 1_200_000)

    assert str(error) == "Loan amount exceeds maximum allowed (1200000)"
