"""Credit scoring engine - local 0-100 heuristic used before loan approval"""

import math

from harambee_sacco.domain.models import CreditAssessment, CreditCheckStatus

PASS_THRESHOLD = 50
MAX_EXISTING_LOAN_DEDUCTION = 50
EXISTING_LOAN_DIVISOR = 10_000  # 1 point per KES 10,000 outstanding
MAX_REPAYMENT_DEDUCTION = 30
POINTS_PER_REPAYMENT = 5


def calculate_credit_score(
    existing_loan_balance: float,
    savings_balance: float,
    loan_amount: float,
    repayment_count: int,
) -> int:
    """
    Calculate a credit score from 0 (worst) to 100 (best).

    Deductions from a starting score of 100:
    - Outstanding disbursed loans: balance / 10,000, at most 50
    - Loan-to-savings ratio above 3x: 20, above 5x: a further 30
      (only when the member holds savings)
    - Past repayment transactions: 5 each, at most 30

    The repayment rule counts every repayment dated before now, not only late
    ones. It is kept this way so scores stay reproducible against existing
    credit check records.
    """
    score = 100.0

    if existing_loan_balance:
        score -= min(MAX_EXISTING_LOAN_DEDUCTION, existing_loan_balance / EXISTING_LOAN_DIVISOR)

    if savings_balance:
        ratio = loan_amount / savings_balance
        if ratio > 3:
            score -= 20
        if ratio > 5:
            score -= 30

    if repayment_count:
        score -= min(MAX_REPAYMENT_DEDUCTION, repayment_count * POINTS_PER_REPAYMENT)

    # Round half up, then clamp
    return max(0, min(100, math.floor(score + 0.5)))


def determine_status(score: int) -> CreditCheckStatus:
    return CreditCheckStatus.PASSED if score >= PASS_THRESHOLD else CreditCheckStatus.FAILED


def assess_credit(
    existing_loan_balance: float,
    savings_balance: float,
    loan_amount: float,
    repayment_count: int,
) -> CreditAssessment:
    """Main entry point: score the member and decide pass/fail"""
    score = calculate_credit_score(existing_loan_balance, savings_balance, loan_amount, repayment_count)

    return CreditAssessment(
        credit_score=score,
        status=determine_status(score),
        existing_loan_balance=existing_loan_balance,
        savings_balance=savings_balance,
        repayment_count=repayment_count,
    )
