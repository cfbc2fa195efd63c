"""Report engine - read-only, point-in-time summaries over the SACCO ledger"""

import json
import logging
import time
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from harambee_sacco.domain.exceptions import NotFound
from harambee_sacco.domain.models import LoanStatus, TransactionType
from harambee_sacco.infrastructure.database.models import Loan, Member, SavingsAccount, Transaction
from harambee_sacco.infrastructure.database.repositories import ReportRepository
from harambee_sacco.infrastructure.database.session import gather_queries
from harambee_sacco.infrastructure.observability.metrics import report_duration_histogram
from harambee_sacco.utils.date_utils import month_bounds, utcnow

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]


def _elapsed(start: float) -> str:
    return f"{round((time.perf_counter() - start) * 1000)}ms"


def _first(rows, default=0):
    """Scalar from a one-row aggregate result; NULL sums collapse to default"""
    if not rows or rows[0][0] is None:
        return default
    return rows[0][0]


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


async def generate_monthly_summary(
    session_factory: SessionFactory,
    period_start: datetime,
    period_end: datetime,
) -> Dict[str, Any]:
    """
    Membership, savings, lending and transaction totals for a period.

    All eight aggregates are independent and run concurrently. Every count and
    sum is 0 when nothing matches.
    """
    start = time.perf_counter()

    (
        total_members,
        active_members,
        total_savings,
        loans_disbursed,
        loan_repayments,
        outstanding_portfolio,
        transactions_by_type,
        new_members,
    ) = await gather_queries(
        session_factory,
        select(func.count(Member.id)),
        select(func.count(Member.id)).where(Member.is_active.is_(True)),
        select(func.sum(SavingsAccount.balance)).where(SavingsAccount.is_active.is_(True)),
        select(func.sum(Loan.principal_amount)).where(Loan.disbursed_at.between(period_start, period_end)),
        select(func.sum(Transaction.amount)).where(
            Transaction.transaction_type == TransactionType.LOAN_REPAYMENT.value,
            Transaction.transaction_date.between(period_start, period_end),
        ),
        select(func.sum(Loan.balance)).where(Loan.status == LoanStatus.DISBURSED.value),
        select(Transaction.transaction_type, func.sum(Transaction.amount), func.count(Transaction.id))
        .where(Transaction.transaction_date.between(period_start, period_end))
        .group_by(Transaction.transaction_type),
        select(func.count(Member.id)).where(Member.joined_at.between(period_start, period_end)),
    )

    return {
        "period": {
            "start": period_start.isoformat(),
            "end": period_end.isoformat(),
        },
        "members": {
            "total": _first(total_members),
            "active": _first(active_members),
            "new": _first(new_members),
        },
        "savings": {
            "totalBalance": _first(total_savings),
        },
        "loans": {
            "disbursed": _first(loans_disbursed),
            "repayments": _first(loan_repayments),
            "outstandingPortfolio": _first(outstanding_portfolio),
        },
        "transactions": [
            {"type": txn_type, "amount": amount or 0, "count": count or 0}
            for txn_type, amount, count in transactions_by_type
        ],
        "generatedIn": _elapsed(start),
    }


async def generate_loan_portfolio(session_factory: SessionFactory) -> Dict[str, Any]:
    """Disbursed loans with member details, largest balance first, plus a per-status summary"""
    start = time.perf_counter()

    loan_rows, summary_rows = await gather_queries(
        session_factory,
        select(
            Loan.id,
            Loan.loan_number,
            Loan.member_id,
            Member.first_name,
            Member.last_name,
            Member.member_number,
            Loan.principal_amount,
            Loan.total_amount,
            Loan.paid_amount,
            Loan.balance,
            Loan.status,
            Loan.interest_rate,
            Loan.due_date,
            Loan.disbursed_at,
        )
        .outerjoin(Member, Loan.member_id == Member.id)
        .where(Loan.status == LoanStatus.DISBURSED.value)
        .order_by(Loan.balance.desc()),
        select(
            Loan.status,
            func.count(Loan.id),
            func.sum(Loan.principal_amount),
            func.sum(Loan.balance),
        ).group_by(Loan.status),
    )

    loans = [
        {
            "id": row.id,
            "loanNumber": row.loan_number,
            "memberId": row.member_id,
            "firstName": row.first_name,
            "lastName": row.last_name,
            "memberNumber": row.member_number,
            "principalAmount": row.principal_amount,
            "totalAmount": row.total_amount,
            "paidAmount": row.paid_amount,
            "balance": row.balance,
            "status": row.status,
            "interestRate": row.interest_rate,
            "dueDate": _iso(row.due_date),
            "disbursedAt": _iso(row.disbursed_at),
        }
        for row in loan_rows
    ]

    summary = [
        {
            "status": status,
            "count": count or 0,
            "totalPrincipal": principal or 0,
            "totalOutstanding": outstanding or 0,
        }
        for status, count, principal, outstanding in summary_rows
    ]

    return {"loans": loans, "summary": summary, "generatedIn": _elapsed(start)}


async def generate_member_statement(
    session_factory: SessionFactory,
    member_id: int,
    period_start: datetime,
    period_end: datetime,
) -> Dict[str, Any]:
    """
    Statement for one member: active savings account, all loans and the
    period's transactions, newest first.

    Raises:
        NotFound: member does not exist
    """
    start = time.perf_counter()

    member_rows, savings_rows = await gather_queries(
        session_factory,
        select(Member).where(Member.id == member_id),
        select(SavingsAccount)
        .where(SavingsAccount.member_id == member_id, SavingsAccount.is_active.is_(True))
        .order_by(SavingsAccount.id)
        .limit(1),
    )
    if not member_rows:
        raise NotFound("Member not found")
    member = member_rows[0][0]
    savings_account = savings_rows[0][0] if savings_rows else None

    transaction_rows, loan_rows = await gather_queries(
        session_factory,
        select(Transaction)
        .where(
            Transaction.member_id == member_id,
            Transaction.transaction_date.between(period_start, period_end),
        )
        .order_by(Transaction.transaction_date.desc()),
        select(Loan).where(Loan.member_id == member_id).order_by(Loan.id),
    )

    return {
        "member": {
            "id": member.id,
            "name": member.full_name,
            "memberNumber": member.member_number,
        },
        "savings": (
            {"accountNumber": savings_account.account_number, "balance": savings_account.balance}
            if savings_account
            else None
        ),
        "transactions": [row[0].to_dict() for row in transaction_rows],
        "loans": [row[0].to_dict() for row in loan_rows],
        "period": {
            "start": period_start.isoformat(),
            "end": period_end.isoformat(),
        },
        "generatedIn": _elapsed(start),
    }


async def generate_end_of_month(session_factory: SessionFactory, year: int, month: int) -> Dict[str, Any]:
    """Monthly summary for the calendar month plus the current loan portfolio"""
    period_start, period_end = month_bounds(year, month)

    summary = await generate_monthly_summary(session_factory, period_start, period_end)
    portfolio = await generate_loan_portfolio(session_factory)

    return {
        "reportDate": utcnow().isoformat(),
        "period": summary["period"],
        "summary": summary,
        "portfolio": portfolio,
    }


async def save_report(
    db: AsyncSession,
    report_type: str,
    period_start: datetime,
    period_end: datetime,
    data: Dict[str, Any],
) -> Dict[str, Any]:
    """Persist a generated report as a completed snapshot"""
    repo = ReportRepository(db)
    report = await repo.create(
        report_type=report_type,
        period_start=period_start,
        period_end=period_end,
        report_data=json.dumps(data, default=str),
        status="completed",
        generated_at=utcnow(),
    )
    await db.commit()

    logger.debug("Saved %s report %s", report_type, report.id)
    return {"id": report.id, "reportType": report_type, "status": report.status}


async def list_reports(
    db: AsyncSession,
    status: Optional[str] = None,
    report_type: Optional[str] = None,
    limit: int = 50,
) -> list:
    repo = ReportRepository(db)
    reports = await repo.list_recent(status=status, report_type=report_type, limit=limit)
    return [report.to_dict() for report in reports]


def observe_report(report_type: str, started: float) -> float:
    """Record report latency; returns duration in milliseconds"""
    duration = time.perf_counter() - started
    report_duration_histogram.labels(report_type=report_type).observe(duration)
    return duration * 1000
