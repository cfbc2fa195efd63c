"""Download row producers - one per export type, each yielding uniform display rows"""

import json
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from harambee_sacco.domain.exceptions import NotFound, ValidationError
from harambee_sacco.domain.export import build_export
from harambee_sacco.domain.models import DownloadFormat, DownloadOptions, DownloadType, ExportFile, LoanStatus
from harambee_sacco.infrastructure.database.models import (
    AuditLog,
    Campaign,
    ComplianceRecord,
    CreditCheck,
    Guarantor,
    Loan,
    Member,
    Partner,
    Penalty,
    Reminder,
    SavingsAccount,
    Transaction,
)
from harambee_sacco.infrastructure.database.session import gather_queries
from harambee_sacco.infrastructure.observability.metrics import download_counter
from harambee_sacco.services.reports import generate_monthly_summary
from harambee_sacco.utils.date_utils import days_between, format_date, today_iso, utcnow

logger = logging.getLogger(__name__)

SessionFactory = async_sessionmaker[AsyncSession]
Row = Dict[str, Any]

TRANSACTION_ROW_LIMIT = 10_000
REMINDER_ROW_LIMIT = 5_000
AUDIT_LOG_ROW_LIMIT = 5_000
MESSAGE_PREVIEW_LENGTH = 100

# Status filters are only applied when the value is one the table knows
LOAN_STATUSES = {status.value for status in LoanStatus}
PENALTY_STATUSES = {"pending", "waived", "paid"}
CREDIT_CHECK_STATUSES = {"pending", "passed", "failed"}
REMINDER_STATUSES = {"pending", "sent", "failed"}
COMPLIANCE_STATUSES = {"compliant", "non_compliant", "pending_review"}
CAMPAIGN_STATUSES = {"active", "completed", "planned"}
PARTNER_STATUSES = {"active", "inactive", "pending"}


def format_currency(amount: Optional[float]) -> str:
    if amount is None:
        return "0.00"
    return f"{amount:.2f}"


def _member_name(member: Optional[Member], default: str = "") -> str:
    return member.full_name if member is not None else default


def _member_number(member: Optional[Member], default: str = "") -> str:
    return member.member_number if member is not None else default


async def _select_all(session_factory: SessionFactory, statement) -> List[Any]:
    (rows,) = await gather_queries(session_factory, statement)
    return list(rows)


def _date_range(column, options: DownloadOptions):
    return and_(column >= options.start_date, column <= options.end_date)


async def fetch_members(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    stmt = select(Member)
    if options.status == "active":
        stmt = stmt.where(Member.is_active.is_(True))
    elif options.status == "inactive":
        stmt = stmt.where(Member.is_active.is_(False))
    if options.search:
        pattern = f"%{options.search}%"
        stmt = stmt.where(
            or_(
                Member.first_name.like(pattern),
                Member.last_name.like(pattern),
                Member.member_number.like(pattern),
                Member.phone.like(pattern),
            )
        )

    rows = await _select_all(session_factory, stmt.order_by(Member.joined_at.desc()))

    return [
        {
            "Member Number": m.member_number,
            "First Name": m.first_name,
            "Last Name": m.last_name,
            "Email": m.email or "",
            "Phone": m.phone or "",
            "ID Number": m.id_number or "",
            "Date of Birth": format_date(m.date_of_birth),
            "Address": m.address or "",
            "Joined Date": format_date(m.joined_at),
            "Status": "Active" if m.is_active else "Inactive",
            "2FA Enabled": "Yes" if m.two_factor_enabled else "No",
            "Last Login": format_date(m.last_login_at),
        }
        for (m,) in rows
    ]


async def fetch_savings(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    stmt = select(SavingsAccount, Member).outerjoin(Member, SavingsAccount.member_id == Member.id)
    if options.member_id:
        stmt = stmt.where(SavingsAccount.member_id == options.member_id)
    if options.status == "active":
        stmt = stmt.where(SavingsAccount.is_active.is_(True))
    elif options.status == "inactive":
        stmt = stmt.where(SavingsAccount.is_active.is_(False))

    rows = await _select_all(session_factory, stmt.order_by(SavingsAccount.opened_at.desc()))

    return [
        {
            "Account Number": s.account_number,
            "Member Number": _member_number(m),
            "Member Name": _member_name(m),
            "Savings Type": s.savings_type,
            "Balance": format_currency(s.balance),
            "Interest Rate": f"{s.interest_rate:g}%" if s.interest_rate else "0%",
            "Opened Date": format_date(s.opened_at),
            "Status": "Active" if s.is_active else "Closed",
        }
        for s, m in rows
    ]


async def fetch_loans(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    stmt = select(Loan, Member).outerjoin(Member, Loan.member_id == Member.id)
    if options.member_id:
        stmt = stmt.where(Loan.member_id == options.member_id)
    if options.status in LOAN_STATUSES:
        stmt = stmt.where(Loan.status == options.status)
    if options.has_date_range:
        stmt = stmt.where(_date_range(Loan.applied_at, options))

    rows = await _select_all(session_factory, stmt.order_by(Loan.applied_at.desc()))

    return [
        {
            "Loan Number": loan.loan_number,
            "Member Number": _member_number(m),
            "Member Name": _member_name(m),
            "Principal Amount": format_currency(loan.principal_amount),
            "Interest Rate": f"{loan.interest_rate:g}%",
            "Interest Amount": format_currency(loan.interest_amount),
            "Total Amount": format_currency(loan.total_amount),
            "Paid Amount": format_currency(loan.paid_amount),
            "Balance": format_currency(loan.balance),
            "Term (Months)": loan.term_months,
            "Installment Amount": format_currency(loan.installment_amount),
            "Purpose": loan.purpose or "",
            "Status": loan.status,
            "Applied Date": format_date(loan.applied_at),
            "Approved Date": format_date(loan.approved_at),
            "Disbursed Date": format_date(loan.disbursed_at),
            "Due Date": format_date(loan.due_date),
        }
        for loan, m in rows
    ]


async def fetch_transactions(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    stmt = select(Transaction, Member).outerjoin(Member, Transaction.member_id == Member.id)
    if options.member_id:
        stmt = stmt.where(Transaction.member_id == options.member_id)
    if options.has_date_range:
        stmt = stmt.where(_date_range(Transaction.transaction_date, options))
    if options.status:
        # For transactions the status filter selects the transaction type
        stmt = stmt.where(Transaction.transaction_type == options.status)

    rows = await _select_all(
        session_factory,
        stmt.order_by(Transaction.transaction_date.desc()).limit(TRANSACTION_ROW_LIMIT),
    )

    return [
        {
            "Transaction ID": t.id,
            "Member Number": _member_number(m),
            "Member Name": _member_name(m),
            "Transaction Type": t.transaction_type,
            "Amount": format_currency(t.amount),
            "Reference": t.reference or "",
            "Description": t.description or "",
            "Transaction Date": format_date(t.transaction_date),
            "Created Date": format_date(t.created_at),
        }
        for t, m in rows
    ]


async def fetch_penalties(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    stmt = select(Penalty, Member).outerjoin(Member, Penalty.member_id == Member.id)
    if options.member_id:
        stmt = stmt.where(Penalty.member_id == options.member_id)
    if options.status in PENALTY_STATUSES:
        stmt = stmt.where(Penalty.status == options.status)

    rows = await _select_all(session_factory, stmt.order_by(Penalty.applied_at.desc()))

    return [
        {
            "Penalty ID": p.id,
            "Member Number": _member_number(m),
            "Member Name": _member_name(m),
            "Penalty Type": p.penalty_type,
            "Amount": format_currency(p.amount),
            "Reason": p.reason or "",
            "Status": p.status,
            "Applied Date": format_date(p.applied_at),
            "Paid Date": format_date(p.paid_at),
            "Waived Date": format_date(p.waived_at),
        }
        for p, m in rows
    ]


async def fetch_credit_checks(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    stmt = select(CreditCheck, Member).outerjoin(Member, CreditCheck.member_id == Member.id)
    if options.member_id:
        stmt = stmt.where(CreditCheck.member_id == options.member_id)
    if options.status in CREDIT_CHECK_STATUSES:
        stmt = stmt.where(CreditCheck.status == options.status)

    rows = await _select_all(session_factory, stmt.order_by(CreditCheck.checked_at.desc()))

    return [
        {
            "Check ID": c.id,
            "Member Number": _member_number(m),
            "Member Name": _member_name(m),
            "Credit Score": c.credit_score if c.credit_score is not None else "N/A",
            "Income Level": format_currency(c.income_level) if c.income_level else "N/A",
            "Existing Loans": format_currency(c.existing_loans) if c.existing_loans else "N/A",
            "Status": c.status,
            "Checked By": c.checked_by or "",
            "Checked Date": format_date(c.checked_at),
            "Notes": c.notes or "",
        }
        for c, m in rows
    ]


async def fetch_guarantors(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    stmt = (
        select(Guarantor, Member, Loan.loan_number)
        .outerjoin(Member, Guarantor.member_id == Member.id)
        .outerjoin(Loan, Guarantor.loan_id == Loan.id)
        .order_by(Guarantor.created_at.desc())
    )
    rows = await _select_all(session_factory, stmt)

    return [
        {
            "Guarantor ID": g.id,
            "Loan Number": loan_number or "",
            "Guarantor Number": _member_number(m),
            "Guarantor Name": _member_name(m),
            "Guarantee Amount": format_currency(g.guarantee_amount),
            "Status": g.status,
            "Accepted Date": format_date(g.accepted_at),
            "Created Date": format_date(g.created_at),
        }
        for g, m, loan_number in rows
    ]


def _preview(message: str) -> str:
    if len(message) > MESSAGE_PREVIEW_LENGTH:
        return message[:MESSAGE_PREVIEW_LENGTH] + "..."
    return message


async def fetch_reminders(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    stmt = select(Reminder, Member).outerjoin(Member, Reminder.member_id == Member.id)
    if options.member_id:
        stmt = stmt.where(Reminder.member_id == options.member_id)
    if options.status in REMINDER_STATUSES:
        stmt = stmt.where(Reminder.status == options.status)

    rows = await _select_all(
        session_factory,
        stmt.order_by(Reminder.scheduled_for.desc()).limit(REMINDER_ROW_LIMIT),
    )

    return [
        {
            "Reminder ID": r.id,
            "Member Number": _member_number(m) if r.member_id else "N/A",
            "Member Name": _member_name(m, default="N/A"),
            "Reminder Type": r.reminder_type,
            "Channel": r.channel,
            "Message": _preview(r.message),
            "Scheduled For": format_date(r.scheduled_for),
            "Sent Date": format_date(r.sent_at),
            "Status": r.status,
            "Response": r.response or "",
        }
        for r, m in rows
    ]


def _compact_json(value: Optional[str]) -> str:
    if not value:
        return ""
    return json.dumps(json.loads(value), separators=(",", ":"))


async def fetch_audit_logs(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    actor = aliased(Member)
    stmt = select(AuditLog, actor).outerjoin(actor, AuditLog.user_id == actor.id)
    if options.has_date_range:
        stmt = stmt.where(_date_range(AuditLog.created_at, options))
    if options.search:
        pattern = f"%{options.search}%"
        stmt = stmt.where(or_(AuditLog.action.like(pattern), AuditLog.entity_type.like(pattern)))

    rows = await _select_all(
        session_factory,
        stmt.order_by(AuditLog.created_at.desc()).limit(AUDIT_LOG_ROW_LIMIT),
    )

    return [
        {
            "Log ID": a.id,
            "User Number": _member_number(m) if a.user_id else "System",
            "User Name": _member_name(m, default="System"),
            "Action": a.action,
            "Entity Type": a.entity_type,
            "Entity ID": a.entity_id or "",
            "Details": _compact_json(a.old_value),
            "IP Address": a.ip_address or "",
            "Created Date": format_date(a.created_at),
        }
        for a, m in rows
    ]


async def fetch_compliance(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    stmt = select(ComplianceRecord)
    if options.status in COMPLIANCE_STATUSES:
        stmt = stmt.where(ComplianceRecord.status == options.status)
    if options.has_date_range:
        stmt = stmt.where(_date_range(ComplianceRecord.created_at, options))

    rows = await _select_all(session_factory, stmt.order_by(ComplianceRecord.created_at.desc()))

    return [
        {
            "Record ID": c.id,
            "Regulation Type": c.category,
            "Requirement": c.requirement,
            "Status": c.status,
            "Due Date": format_date(c.due_date),
            "Completed Date": format_date(c.completed_at),
            "Notes": c.notes or "",
            "Created Date": format_date(c.created_at),
        }
        for (c,) in rows
    ]


async def fetch_campaigns(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    stmt = select(Campaign)
    if options.status in CAMPAIGN_STATUSES:
        stmt = stmt.where(Campaign.status == options.status)

    rows = await _select_all(session_factory, stmt.order_by(Campaign.start_date.desc()))

    return [
        {
            "Campaign ID": c.id,
            "Name": c.name,
            "Description": c.description or "",
            "Type": c.type,
            "Target Amount": format_currency(c.target_amount),
            "Raised Amount": format_currency(0) if c.target_amount else "N/A",
            "Start Date": format_date(c.start_date),
            "End Date": format_date(c.end_date),
            "Status": c.status,
        }
        for (c,) in rows
    ]


async def fetch_partners(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    stmt = select(Partner)
    if options.status in PARTNER_STATUSES:
        stmt = stmt.where(Partner.status == options.status)

    rows = await _select_all(session_factory, stmt.order_by(Partner.created_at.desc()))

    return [
        {
            "Partner ID": p.id,
            "Name": p.name,
            "Type": p.type,
            "Contact": p.contact_person or "",
            "Email": p.email or "",
            "Phone": p.phone or "",
            "Investment Amount": "N/A",
            "Return Rate": "N/A",
            "Start Date": format_date(p.agreement_start),
            "End Date": format_date(p.agreement_end),
            "Status": p.status,
            "Notes": "",
        }
        for (p,) in rows
    ]


async def fetch_monthly_summary(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    """Single-row summary; defaults to month-to-date when no range is given"""
    now = utcnow()
    start_date = options.start_date or datetime(now.year, now.month, 1)
    end_date = options.end_date or now

    summary = await generate_monthly_summary(session_factory, start_date, end_date)

    return [
        {
            "Report Type": "Monthly Summary",
            "Period Start": format_date(start_date),
            "Period End": format_date(end_date),
            "Total Members": summary["members"]["total"],
            "Active Members": summary["members"]["active"],
            "New Members": summary["members"]["new"],
            "Total Savings": format_currency(summary["savings"]["totalBalance"]),
            "Loans Disbursed": format_currency(summary["loans"]["disbursed"]),
            "Loan Repayments": format_currency(summary["loans"]["repayments"]),
            "Loan Portfolio": format_currency(summary["loans"]["outstandingPortfolio"]),
            "Generated Date": today_iso(),
        }
    ]


async def fetch_loan_portfolio(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    stmt = (
        select(Loan, Member)
        .outerjoin(Member, Loan.member_id == Member.id)
        .where(Loan.status == LoanStatus.DISBURSED.value)
    )
    if options.has_date_range:
        stmt = stmt.where(_date_range(Loan.disbursed_at, options))

    rows = await _select_all(session_factory, stmt.order_by(Loan.disbursed_at.desc()))
    now = utcnow()

    return [
        {
            "Loan Number": loan.loan_number,
            "Member Number": _member_number(m),
            "Member Name": _member_name(m),
            "Principal Amount": format_currency(loan.principal_amount),
            "Interest Amount": format_currency(loan.interest_amount),
            "Total Amount": format_currency(loan.total_amount),
            "Paid Amount": format_currency(loan.paid_amount),
            "Balance": format_currency(loan.balance),
            "Term (Months)": loan.term_months,
            "Installment": format_currency(loan.installment_amount),
            "Purpose": loan.purpose or "",
            "Disbursed Date": format_date(loan.disbursed_at),
            "Due Date": format_date(loan.due_date),
            # Negative while the loan is still within its term
            "Days Overdue": days_between(loan.due_date, now) if loan.due_date else 0,
        }
        for loan, m in rows
    ]


async def fetch_member_statement(session_factory: SessionFactory, options: DownloadOptions) -> List[Row]:
    """Header row, account summary row, then one row per transaction"""
    if not options.member_id:
        raise ValidationError("Member ID is required for member statement")

    (member_rows,) = await gather_queries(session_factory, select(Member).where(Member.id == options.member_id))
    if not member_rows:
        raise NotFound("Member not found")
    member = member_rows[0][0]

    start_date = options.start_date or member.joined_at or utcnow()
    end_date = options.end_date or utcnow()

    savings_rows, loan_rows, transaction_rows = await gather_queries(
        session_factory,
        select(SavingsAccount).where(SavingsAccount.member_id == member.id),
        select(Loan).where(Loan.member_id == member.id),
        select(Transaction)
        .where(
            Transaction.member_id == member.id,
            Transaction.transaction_date >= start_date,
            Transaction.transaction_date <= end_date,
        )
        .order_by(Transaction.transaction_date.desc()),
    )

    savings_balance = sum(s.balance or 0 for (s,) in savings_rows)
    loans_balance = sum(loan.balance or 0 for (loan,) in loan_rows)

    statement: List[Row] = [
        {
            "Statement Type": "Member Account Statement",
            "Member Number": member.member_number,
            "Name": member.full_name,
            "Email": member.email or "",
            "Phone": member.phone or "",
            "Statement Period": f"{format_date(start_date)} to {format_date(end_date)}",
            "Generated Date": today_iso(),
        },
        {
            "Statement Type": "Account Summary",
            "Total Savings": format_currency(savings_balance),
            "Total Loans Outstanding": format_currency(loans_balance),
            "Net Position": format_currency(savings_balance - loans_balance),
        },
    ]

    for (t,) in transaction_rows:
        is_debit = t.transaction_type.startswith("loan_disbursement")
        statement.append(
            {
                "Date": format_date(t.transaction_date),
                "Transaction Type": t.transaction_type,
                "Reference": t.reference or "",
                "Description": t.description or "",
                "Debit": format_currency(t.amount) if is_debit else "",
                "Credit": format_currency(t.amount) if not is_debit else "",
                "Balance": "",
            }
        )

    return statement


RowProducer = Callable[[SessionFactory, DownloadOptions], Awaitable[List[Row]]]

ROW_PRODUCERS: Dict[DownloadType, RowProducer] = {
    DownloadType.MEMBERS: fetch_members,
    DownloadType.SAVINGS: fetch_savings,
    DownloadType.LOANS: fetch_loans,
    DownloadType.TRANSACTIONS: fetch_transactions,
    DownloadType.PENALTIES: fetch_penalties,
    DownloadType.CREDIT_CHECKS: fetch_credit_checks,
    DownloadType.GUARANTORS: fetch_guarantors,
    DownloadType.REMINDERS: fetch_reminders,
    DownloadType.AUDIT_LOGS: fetch_audit_logs,
    DownloadType.COMPLIANCE: fetch_compliance,
    DownloadType.CAMPAIGNS: fetch_campaigns,
    DownloadType.PARTNERS: fetch_partners,
    DownloadType.MONTHLY_SUMMARY: fetch_monthly_summary,
    DownloadType.LOAN_PORTFOLIO: fetch_loan_portfolio,
    DownloadType.MEMBER_STATEMENT: fetch_member_statement,
}

_missing = set(DownloadType) - set(ROW_PRODUCERS)
if _missing:
    raise RuntimeError(f"Download types without a row producer: {sorted(t.value for t in _missing)}")


def parse_download_type(value: str) -> DownloadType:
    try:
        return DownloadType(value)
    except ValueError as e:
        raise ValidationError(
            f"Invalid download type. Available: {', '.join(t.value for t in DownloadType)}"
        ) from e


def parse_download_format(value: str) -> DownloadFormat:
    try:
        return DownloadFormat(value)
    except ValueError as e:
        raise ValidationError(
            f"Invalid format. Available: {', '.join(f.value for f in DownloadFormat)}"
        ) from e


async def generate_download(session_factory: SessionFactory, options: DownloadOptions) -> ExportFile:
    """Fetch rows for the requested type and render them in the requested format"""
    producer = ROW_PRODUCERS[options.type]
    rows = await producer(session_factory, options)

    export = build_export(options.type.value, options.format, rows)
    download_counter.labels(type=options.type.value, format=options.format.value).inc()
    logger.info(
        "Download generated",
        extra={"download_type": options.type.value, "format": options.format.value, "rows": len(rows)},
    )
    return export


DOWNLOAD_CATALOGUE = [
    {"id": "members", "name": "Members", "description": "Download all member records", "category": "Members"},
    {"id": "savings", "name": "Savings Accounts", "description": "Download savings account balances", "category": "Members"},
    {"id": "loans", "name": "Loans", "description": "Download loan applications and status", "category": "Loans"},
    {"id": "transactions", "name": "Transactions", "description": "Download all financial transactions", "category": "Finance"},
    {"id": "penalties", "name": "Penalties", "description": "Download penalty records", "category": "Loans"},
    {"id": "credit_checks", "name": "Credit Checks", "description": "Download credit assessment records", "category": "Loans"},
    {"id": "guarantors", "name": "Guarantors", "description": "Download guarantor information", "category": "Loans"},
    {"id": "reminders", "name": "Reminders", "description": "Download sent reminders and notifications", "category": "Communication"},
    {"id": "audit_logs", "name": "Audit Logs", "description": "Download system audit trail", "category": "Security"},
    {"id": "compliance", "name": "Compliance", "description": "Download regulatory compliance records", "category": "Compliance"},
    {"id": "campaigns", "name": "Campaigns", "description": "Download capital campaign records", "category": "Capital"},
    {"id": "partners", "name": "Partners", "description": "Download partner/investor information", "category": "Capital"},
    {"id": "monthly_summary", "name": "Monthly Summary", "description": "Download monthly summary report", "category": "Reports"},
    {"id": "loan_portfolio", "name": "Loan Portfolio", "description": "Download active loan portfolio", "category": "Reports"},
    {"id": "member_statement", "name": "Member Statement", "description": "Download individual member statement", "category": "Reports"},
]
