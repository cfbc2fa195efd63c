"""Loan repayment terms: quick-loan pricing, limits and restructured installments"""

import random
import string
import time

from harambee_sacco.domain.exceptions import ValidationError
from harambee_sacco.domain.models import LoanTerms

QUICK_LOAN_TERM_MONTHS = 12
SAVINGS_MULTIPLIER = 3
PREFERRED_SCORE = 80
PREFERRED_RATE = 1.0  # percent per month
STANDARD_RATE = 1.5
LATE_PENALTY_RATE = 0.02
LOAN_TERM_DAYS = 365


def max_loan_amount(savings_balance: float) -> float:
    """Members may borrow up to three times their active savings"""
    return savings_balance * SAVINGS_MULTIPLIER


def select_interest_rate(credit_score: int) -> float:
    return PREFERRED_RATE if credit_score >= PREFERRED_SCORE else STANDARD_RATE


def calculate_loan_terms(
    amount: float,
    interest_rate: float,
    term_months: int = QUICK_LOAN_TERM_MONTHS,
) -> LoanTerms:
    """
    Flat (simple) interest over the whole term.

    Example:
        10,000 at 1.5%/month for 12 months
        interest = 10,000 * 0.015 * 12 = 1,800
        installment = (10,000 + 1,800) / 12 = 983.33
    """
    interest_amount = amount * (interest_rate / 100) * term_months
    total_amount = amount + interest_amount

    return LoanTerms(
        principal_amount=amount,
        interest_rate=interest_rate,
        interest_amount=interest_amount,
        total_amount=total_amount,
        term_months=term_months,
        installment_amount=total_amount / term_months,
    )


def late_penalty_amount(installment_amount: float) -> float:
    return installment_amount * LATE_PENALTY_RATE


def restructured_installment(balance: float, new_term: int) -> float:
    """Spread the outstanding balance evenly over the new term"""
    if new_term <= 0:
        raise ValidationError("newTerm must be a positive number of months")
    return balance / new_term


def generate_loan_number() -> str:
    """LN + epoch milliseconds + 4 random uppercase alphanumerics"""
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"LN{int(time.time() * 1000)}{suffix}"
