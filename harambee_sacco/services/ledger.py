"""Ledger writers: savings accounts, deposits, loan disbursement and repayments"""

import logging
import random
import string
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from harambee_sacco.domain.exceptions import InvalidState, NotFound, ValidationError
from harambee_sacco.domain.models import LoanStatus, TransactionType
from harambee_sacco.infrastructure.database.models import Loan, SavingsAccount, Transaction
from harambee_sacco.infrastructure.database.repositories import (
    LoanRepository,
    MemberRepository,
    SavingsRepository,
    TransactionRepository,
)
from harambee_sacco.utils.date_utils import utcnow

logger = logging.getLogger(__name__)

SAVINGS_TYPES = ("ordinary", "fixed", "voluntary")


def _reference(prefix: str) -> str:
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=6))
    return f"{prefix}{int(utcnow().timestamp() * 1000)}{suffix}"


def _require_positive(amount: float) -> None:
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be greater than zero")


async def open_savings_account(db: AsyncSession, member_id: int, savings_type: str = "ordinary") -> SavingsAccount:
    if savings_type not in SAVINGS_TYPES:
        raise ValidationError(f"Invalid savings type. Available: {', '.join(SAVINGS_TYPES)}")

    member = await MemberRepository(db).get(member_id)
    if member is None:
        raise NotFound("Member not found")

    account = await SavingsRepository(db).create(
        member_id=member_id,
        account_number=f"SAV-{member.member_number}-{savings_type[:3].upper()}",
        savings_type=savings_type,
        balance=0.0,
        opened_at=utcnow(),
        is_active=True,
    )
    await db.commit()
    return account


async def record_deposit(db: AsyncSession, member_id: int, amount: float, reference: Optional[str] = None) -> Transaction:
    """Credit the member's active savings account and append a deposit entry"""
    _require_positive(amount)

    account = await SavingsRepository(db).get_active_account(member_id)
    if account is None:
        raise NotFound("Active savings account not found")

    account.balance = (account.balance or 0.0) + amount
    account.updated_at = utcnow()
    await db.commit()

    transaction = await TransactionRepository(db).create(
        member_id=member_id,
        savings_id=account.id,
        transaction_number=_reference("TXN"),
        transaction_type=TransactionType.DEPOSIT.value,
        amount=amount,
        balance_after=account.balance,
        reference=reference,
        description="Savings deposit",
    )
    await db.commit()
    return transaction


async def disburse_loan(db: AsyncSession, loan_id: int) -> Loan:
    """approved -> disbursed, with a loan_disbursement ledger entry"""
    loan = await LoanRepository(db).get(loan_id)
    if loan is None:
        raise NotFound("Loan not found")
    if loan.status != LoanStatus.APPROVED.value:
        raise InvalidState(f"Only approved loans can be disbursed (status: {loan.status})")

    loan.status = LoanStatus.DISBURSED.value
    loan.disbursed_at = utcnow()
    await db.commit()

    await TransactionRepository(db).create(
        member_id=loan.member_id,
        loan_id=loan.id,
        transaction_number=_reference("TXN"),
        transaction_type=TransactionType.LOAN_DISBURSEMENT.value,
        amount=loan.principal_amount,
        balance_after=loan.balance,
        reference=loan.loan_number,
        description=f"Disbursement of loan {loan.loan_number}",
    )
    await db.commit()

    logger.info("Loan disbursed", extra={"loan_id": loan.id, "amount": loan.principal_amount})
    return loan


async def record_loan_repayment(db: AsyncSession, loan_id: int, amount: float) -> Transaction:
    """
    Apply a repayment to a disbursed loan.

    balance = total_amount - paid_amount; the loan is fully_paid once the
    balance reaches zero.
    """
    _require_positive(amount)

    loan = await LoanRepository(db).get(loan_id)
    if loan is None:
        raise NotFound("Loan not found")
    if loan.status != LoanStatus.DISBURSED.value:
        raise InvalidState(f"Repayments require a disbursed loan (status: {loan.status})")

    loan.paid_amount = (loan.paid_amount or 0.0) + amount
    loan.balance = max(0.0, loan.total_amount - loan.paid_amount)
    if loan.balance == 0:
        loan.status = LoanStatus.FULLY_PAID.value
        loan.completed_at = utcnow()
    await db.commit()

    transaction = await TransactionRepository(db).create(
        member_id=loan.member_id,
        loan_id=loan.id,
        transaction_number=_reference("TXN"),
        transaction_type=TransactionType.LOAN_REPAYMENT.value,
        amount=amount,
        balance_after=loan.balance,
        reference=loan.loan_number,
        description=f"Repayment for loan {loan.loan_number}",
    )
    await db.commit()
    return transaction
