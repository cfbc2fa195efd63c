"""Back-office operations: audit, security, monitoring, compliance, capital, communications and settings"""

import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from harambee_sacco.config import settings
from harambee_sacco.domain.exceptions import NotFound
from harambee_sacco.infrastructure.database.models import (
    AuditLog,
    Backup,
    Campaign,
    ComplianceRecord,
    Partner,
    Reminder,
    Resource,
    Setting,
)
from harambee_sacco.infrastructure.database.repositories import (
    AuditLogRepository,
    LoanRepository,
    MemberRepository,
    RecordRepository,
    SavingsRepository,
    SettingRepository,
    TransactionRepository,
)
from harambee_sacco.infrastructure.observability.metrics import suspicious_transaction_counter
from harambee_sacco.utils.date_utils import start_of_year, utcnow

logger = logging.getLogger(__name__)

MEMBER_REPORT_TRANSACTION_LIMIT = 100
MONITORING_WINDOW = timedelta(hours=24)


# Transparency


async def log_audit_trail(
    db: AsyncSession,
    user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[int],
    old_value: Optional[Dict[str, Any]] = None,
    new_value: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    log = await AuditLogRepository(db).create(
        user_id, action, entity_type, entity_id, old_value=old_value, new_value=new_value, ip_address=ip_address
    )
    await db.commit()
    return log


async def get_member_accessible_report(db: AsyncSession, member_id: int) -> Dict[str, Any]:
    """Savings, loans and this year's transactions (latest 100) for one member"""
    member = await MemberRepository(db).get(member_id)
    if member is None:
        raise NotFound("Member not found")

    accounts = await SavingsRepository(db).list_active_accounts(member_id)
    loans = await LoanRepository(db).list_by_member(member_id)
    now = utcnow()
    transactions = await TransactionRepository(db).list_since(
        start_of_year(now), member_id=member_id, limit=MEMBER_REPORT_TRANSACTION_LIMIT
    )

    return {
        "member": {
            "id": member.id,
            "name": member.full_name,
            "memberNumber": member.member_number,
        },
        "savings": [
            {"accountNumber": a.account_number, "savingsType": a.savings_type, "balance": a.balance}
            for a in accounts
        ],
        "loans": [
            {
                "id": loan.id,
                "loanNumber": loan.loan_number,
                "principalAmount": loan.principal_amount,
                "balance": loan.balance,
                "status": loan.status,
                "dueDate": loan.due_date.isoformat() if loan.due_date else None,
            }
            for loan in loans
        ],
        "transactions": [t.to_dict() for t in transactions],
        "reportDate": now.isoformat(),
    }


# Security


async def enable_two_factor(db: AsyncSession, member_id: int, secret: str) -> None:
    member = await MemberRepository(db).get(member_id)
    if member is None:
        raise NotFound("Member not found")

    member.two_factor_enabled = True
    member.two_factor_secret = secret
    member.updated_at = utcnow()
    await db.commit()

    await log_audit_trail(db, member_id, "enable_2fa", "member", member_id)


async def monitor_transactions(db: AsyncSession) -> Dict[str, Any]:
    """
    Flag last-24h transactions above the large-transaction threshold.

    One suspicious_activity audit entry is written per run when anything is flagged.
    """
    now = utcnow()
    recent = await TransactionRepository(db).list_since(now - MONITORING_WINDOW)
    threshold = settings.large_transaction_threshold

    suspicious = [
        {
            "id": t.id,
            "memberId": t.member_id,
            "amount": t.amount,
            "transactionType": t.transaction_type,
            "transactionDate": t.transaction_date.isoformat(),
        }
        for t in recent
        if t.amount > threshold
    ]

    if suspicious:
        await log_audit_trail(
            db,
            None,
            "suspicious_activity",
            "transactions",
            None,
            new_value={"count": len(suspicious), "amounts": [t["amount"] for t in suspicious]},
        )
        suspicious_transaction_counter.inc(len(suspicious))
        logger.warning("Suspicious transactions flagged", extra={"count": len(suspicious), "threshold": threshold})

    return {
        "totalTransactions": len(recent),
        "suspiciousCount": len(suspicious),
        "suspiciousTransactions": suspicious,
        "monitoredAt": now.isoformat(),
    }


# Regulation


async def track_compliance(db: AsyncSession) -> Dict[str, Any]:
    records = await RecordRepository(db, ComplianceRecord).list(order_by=ComplianceRecord.due_date.desc())

    total = len(records)
    compliant = sum(1 for r in records if r.status == "compliant")
    in_progress = sum(1 for r in records if r.status == "in_progress")
    non_compliant = sum(1 for r in records if r.status == "non_compliant")

    return {
        "total": total,
        "compliant": compliant,
        "inProgress": in_progress,
        "nonCompliant": non_compliant,
        "complianceRate": math.floor(compliant / total * 100 + 0.5) if total else 0,
        "records": [r.to_dict() for r in records],
        "trackedAt": utcnow().isoformat(),
    }


async def add_compliance_requirement(
    db: AsyncSession, requirement: str, category: str, due_date: Optional[datetime]
) -> ComplianceRecord:
    record = await RecordRepository(db, ComplianceRecord).create(
        requirement=requirement,
        category=category,
        status="in_progress",
        due_date=due_date,
    )
    await db.commit()
    return record


# Capital


async def create_campaign(
    db: AsyncSession,
    name: str,
    campaign_type: str,
    target_amount: Optional[float],
    end_date: Optional[datetime],
    description: Optional[str] = None,
) -> Campaign:
    campaign = await RecordRepository(db, Campaign).create(
        name=name,
        type=campaign_type,
        description=description,
        target_amount=target_amount,
        end_date=end_date,
        status="active",
    )
    await db.commit()
    return campaign


async def get_active_campaigns(db: AsyncSession) -> List[Campaign]:
    """Active campaigns that have not ended yet"""
    return await RecordRepository(db, Campaign).list(
        Campaign.status == "active",
        Campaign.end_date >= utcnow(),
    )


async def add_partner(
    db: AsyncSession,
    name: str,
    partner_type: str,
    contact_person: Optional[str],
    email: Optional[str],
    phone: Optional[str],
    agreement_end: Optional[datetime],
) -> Partner:
    partner = await RecordRepository(db, Partner).create(
        name=name,
        type=partner_type,
        contact_person=contact_person,
        email=email,
        phone=phone,
        agreement_start=utcnow(),
        agreement_end=agreement_end,
        status="active",
    )
    await db.commit()
    return partner


# Technology


async def record_backup(db: AsyncSession, backup_type: str) -> Backup:
    now = utcnow()
    backup = await RecordRepository(db, Backup).create(
        backup_type=backup_type,
        file_name=f"backup_{backup_type}_{int(now.timestamp() * 1000)}.sql",
        status="completed",
        started_at=now,
        completed_at=now,
        storage_location="/backups",
    )
    await db.commit()
    return backup


# Participation


async def send_member_communication(db: AsyncSession, member_id: int, message: str, channel: str) -> Reminder:
    reminder = await RecordRepository(db, Reminder).create(
        member_id=member_id,
        reminder_type="general",
        channel=channel,
        message=message,
        scheduled_for=utcnow(),
        status="pending",
    )
    await db.commit()
    return reminder


async def broadcast_to_members(db: AsyncSession, message: str, channel: str) -> Dict[str, Any]:
    """Queue one general reminder per active member"""
    member_ids = await MemberRepository(db).list_active_ids()
    repo = RecordRepository(db, Reminder)
    now = utcnow()

    for member_id in member_ids:
        await repo.create(
            member_id=member_id,
            reminder_type="general",
            channel=channel,
            message=message,
            scheduled_for=now,
            status="pending",
        )
        await db.commit()

    logger.info("Broadcast queued", extra={"recipients": len(member_ids), "channel": channel})
    return {"sent": len(member_ids), "message": "Broadcast queued for all active members"}


async def add_resource(db: AsyncSession, title: str, resource_type: str, category: str, content: str) -> Resource:
    resource = await RecordRepository(db, Resource).create(
        title=title,
        type=resource_type,
        category=category,
        content=content,
        published_at=utcnow(),
        is_active=True,
    )
    await db.commit()
    return resource


# Settings


async def get_setting(db: AsyncSession, key: str) -> Optional[Setting]:
    return await SettingRepository(db).get(key)


async def set_setting(db: AsyncSession, key: str, value: str, description: Optional[str] = None) -> Setting:
    setting = await SettingRepository(db).upsert(key, value, description)
    await db.commit()
    return setting
