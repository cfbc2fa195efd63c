"""
Lending services: credit checks, quick loan approval, guarantors, penalties,
payment reminders and loan restructuring.
"""

import json
import logging
from datetime import timedelta
from typing import Any, Dict, List

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from harambee_sacco.domain.exceptions import (
    CreditCheckFailed,
    ExceedsLimit,
    InvalidState,
    NotFound,
)
from harambee_sacco.domain.installments import (
    LOAN_TERM_DAYS,
    calculate_loan_terms,
    generate_loan_number,
    late_penalty_amount,
    max_loan_amount,
    restructured_installment,
    select_interest_rate,
)
from harambee_sacco.domain.models import LoanStatus
from harambee_sacco.domain.scoring import assess_credit
from harambee_sacco.infrastructure.database.models import (
    CreditCheck,
    Guarantor,
    Loan,
    LoanRestructuring,
    Penalty,
    Reminder,
)
from harambee_sacco.infrastructure.database.repositories import (
    AuditLogRepository,
    LoanRepository,
    MemberRepository,
    RecordRepository,
    SavingsRepository,
    TransactionRepository,
)
from harambee_sacco.infrastructure.observability.logging import log_loan_decision
from harambee_sacco.infrastructure.observability.metrics import credit_check_counter, record_loan_decision
from harambee_sacco.utils.date_utils import days_before, utcnow

logger = logging.getLogger(__name__)


async def perform_credit_check(db: AsyncSession, member_id: int, loan_amount: float) -> CreditCheck:
    """
    Score a member against a prospective loan amount and record the check.

    Raises:
        NotFound: member does not exist
    """
    member = await MemberRepository(db).get(member_id)
    if member is None:
        raise NotFound("Member not found")

    existing_balance = await LoanRepository(db).disbursed_balance(member_id)
    savings_balance = await SavingsRepository(db).active_balance(member_id)
    repayment_count = await TransactionRepository(db).count_repayments_before(member_id, utcnow())

    assessment = assess_credit(existing_balance, savings_balance, loan_amount, repayment_count)

    check = await RecordRepository(db, CreditCheck).create(
        member_id=member_id,
        credit_score=assessment.credit_score,
        income_level=0.0,  # no income verification source yet
        existing_loans=existing_balance,
        repayment_history=json.dumps({"latePayments": repayment_count}),
        status=assessment.status.value,
        checked_at=utcnow(),
    )
    await db.commit()

    credit_check_counter.labels(status=assessment.status.value).inc()
    logger.info(
        "Credit check completed",
        extra={"member_id": member_id, "credit_score": assessment.credit_score, "status": assessment.status.value},
    )
    return check


async def quick_loan_approval(db: AsyncSession, member_id: int, amount: float, purpose: str) -> Dict[str, Any]:
    """
    Approve a 12-month flat-rate loan in one step.

    Flow:
    1. Credit check (must pass)
    2. Limit check: at most 3x active savings
    3. Price the loan by credit score
    4. Persist the approved loan and its audit entry

    Raises:
        NotFound: member does not exist
        CreditCheckFailed: credit check did not pass
        ExceedsLimit: amount above the savings-based maximum
    """
    check = await perform_credit_check(db, member_id, amount)

    if check.status != "passed":
        record_loan_decision("credit_check_failed")
        log_loan_decision(member_id, False, amount, check.credit_score, reason="credit_check_failed")
        raise CreditCheckFailed("Credit check failed - loan cannot be approved")

    savings_balance = await SavingsRepository(db).active_balance(member_id)
    max_allowed = max_loan_amount(savings_balance)
    if amount > max_allowed:
        record_loan_decision("exceeds_limit")
        log_loan_decision(member_id, False, amount, check.credit_score, reason="exceeds_limit")
        raise ExceedsLimit(amount, max_allowed)

    interest_rate = select_interest_rate(check.credit_score)
    terms = calculate_loan_terms(amount, interest_rate)
    now = utcnow()

    loan = await LoanRepository(db).create(
        member_id=member_id,
        loan_number=generate_loan_number(),
        principal_amount=terms.principal_amount,
        interest_rate=terms.interest_rate,
        interest_amount=terms.interest_amount,
        total_amount=terms.total_amount,
        paid_amount=0.0,
        balance=terms.total_amount,
        term_months=terms.term_months,
        installment_amount=terms.installment_amount,
        status=LoanStatus.APPROVED.value,
        purpose=purpose,
        approved_at=now,
        due_date=now + timedelta(days=LOAN_TERM_DAYS),
    )
    await db.commit()

    await AuditLogRepository(db).create(
        member_id,
        "loan_approved",
        "loan",
        loan.id,
        new_value={"amount": amount, "interestRate": interest_rate},
    )
    await db.commit()

    record_loan_decision("approved", amount)
    log_loan_decision(member_id, True, amount, check.credit_score)
    return loan.to_dict()


async def request_guarantors(db: AsyncSession, loan_id: int, member_ids: List[int]) -> List[Guarantor]:
    """One pending guarantor request per member"""
    repo = RecordRepository(db, Guarantor)
    records = []
    for member_id in member_ids:
        records.append(await repo.create(loan_id=loan_id, member_id=member_id, status="pending"))
        await db.commit()
    return records


async def apply_late_penalty(db: AsyncSession, member_id: int, loan_id: int) -> Penalty:
    loan = await LoanRepository(db).get(loan_id)
    if loan is None:
        raise NotFound("Loan not found")

    penalty = await RecordRepository(db, Penalty).create(
        member_id=member_id,
        loan_id=loan_id,
        penalty_type="late_payment",
        amount=late_penalty_amount(loan.installment_amount),
        reason=f"Late payment penalty for loan {loan.loan_number}",
        status="pending",
        applied_at=utcnow(),
    )
    await db.commit()
    return penalty


async def schedule_payment_reminder(db: AsyncSession, member_id: int, loan_id: int, days_before_due: int) -> Reminder:
    """Queue an SMS reminder `days_before_due` days ahead of the loan's due date"""
    loan = await LoanRepository(db).get(loan_id)
    if loan is None or loan.due_date is None:
        raise NotFound("Loan or due date not found")

    reminder = await RecordRepository(db, Reminder).create(
        member_id=member_id,
        loan_id=loan_id,
        reminder_type="payment_due" if days_before_due == 0 else "payment_overdue",
        channel="sms",
        message=(
            f"Reminder: Your loan payment of KES {loan.installment_amount:.2f} "
            f"is due on {loan.due_date.strftime('%a %b %d %Y')}."
        ),
        scheduled_for=days_before(loan.due_date, days_before_due),
        status="pending",
    )
    await db.commit()
    return reminder


async def request_loan_restructuring(
    db: AsyncSession,
    loan_id: int,
    restructuring_type: str,
    new_term: int,
    reason: str,
) -> LoanRestructuring:
    """
    File a pending request to spread the loan's outstanding balance over a new term.

    Raises:
        NotFound: loan does not exist
        ValidationError: new_term is not a positive number of months
    """
    loan = await LoanRepository(db).get(loan_id)
    if loan is None:
        raise NotFound("Loan not found")

    new_installment = restructured_installment(loan.balance, new_term)

    restructure = await RecordRepository(db, LoanRestructuring).create(
        loan_id=loan_id,
        restructuring_type=restructuring_type,
        original_term=loan.term_months,
        new_term=new_term,
        original_installment=loan.installment_amount,
        new_installment=new_installment,
        reason=reason,
        status="pending",
    )
    await db.commit()
    return restructure


async def approve_loan_restructuring(db: AsyncSession, restructure_id: int, approved_by: str) -> Dict[str, bool]:
    """
    Apply a pending restructuring request to its loan.

    The loan update and the request update are committed separately.

    Raises:
        NotFound: request does not exist
        InvalidState: terms unset, or request already decided
    """
    restructure = await RecordRepository(db, LoanRestructuring).get(restructure_id)
    if restructure is None:
        raise NotFound("Restructuring request not found")
    if not restructure.new_term or not restructure.new_installment:
        raise InvalidState("Restructuring terms not set")
    if restructure.status != "pending":
        raise InvalidState(f"Restructuring request is already {restructure.status}")

    now = utcnow()

    await db.execute(
        update(Loan)
        .where(Loan.id == restructure.loan_id)
        .values(
            term_months=int(restructure.new_term),
            installment_amount=float(restructure.new_installment),
            updated_at=now,
        )
    )
    await db.commit()

    restructure.status = "approved"
    restructure.approved_at = now
    restructure.approved_by = approved_by
    await db.commit()

    await AuditLogRepository(db).create(None, "restructure_approved", "loan", restructure.loan_id)
    await db.commit()

    logger.info("Loan restructuring approved", extra={"restructure_id": restructure_id, "loan_id": restructure.loan_id})
    return {"success": True}
