"""Data access layer for SACCO entities"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from harambee_sacco.domain.models import LoanStatus, TransactionType
from harambee_sacco.infrastructure.database.models import (
    AuditLog,
    Loan,
    Member,
    Report,
    SavingsAccount,
    Setting,
    Transaction,
)
from harambee_sacco.utils.date_utils import utcnow

ModelT = TypeVar("ModelT")


class MemberRepository:
    """Repository for members"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, member_id: int) -> Optional[Member]:
        return await self.db.get(Member, member_id)

    async def find_by_email(self, email: str) -> Optional[Member]:
        result = await self.db.execute(select(Member).where(Member.email == email).limit(1))
        return result.scalars().first()

    async def find_by_phone(self, phone: str) -> Optional[Member]:
        result = await self.db.execute(select(Member).where(Member.phone == phone).limit(1))
        return result.scalars().first()

    async def find_by_login(
        self,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        member_number: Optional[str] = None,
    ) -> Optional[Member]:
        """Look up by the first identifier given: email, then phone, then member number"""
        if email:
            return await self.find_by_email(email)
        if phone:
            return await self.find_by_phone(phone)
        if member_number:
            result = await self.db.execute(select(Member).where(Member.member_number == member_number).limit(1))
            return result.scalars().first()
        return None

    async def member_number_exists(self, member_number: str) -> bool:
        result = await self.db.execute(select(Member.id).where(Member.member_number == member_number))
        return result.first() is not None

    async def list_active_ids(self) -> List[int]:
        result = await self.db.execute(select(Member.id).where(Member.is_active.is_(True)))
        return list(result.scalars().all())

    async def create(self, **fields: Any) -> Member:
        member = Member(**fields)
        self.db.add(member)
        await self.db.flush()  # Get ID without committing
        return member


class SavingsRepository:
    """Repository for savings accounts"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_active_account(self, member_id: int) -> Optional[SavingsAccount]:
        result = await self.db.execute(
            select(SavingsAccount)
            .where(SavingsAccount.member_id == member_id, SavingsAccount.is_active.is_(True))
            .order_by(SavingsAccount.id)
            .limit(1)
        )
        return result.scalars().first()

    async def list_active_accounts(self, member_id: int) -> List[SavingsAccount]:
        result = await self.db.execute(
            select(SavingsAccount).where(
                SavingsAccount.member_id == member_id,
                SavingsAccount.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    async def active_balance(self, member_id: int) -> float:
        """Sum of the member's active savings balances, 0 when none"""
        result = await self.db.execute(
            select(func.coalesce(func.sum(SavingsAccount.balance), 0.0)).where(
                SavingsAccount.member_id == member_id,
                SavingsAccount.is_active.is_(True),
            )
        )
        return float(result.scalar_one())

    async def create(self, **fields: Any) -> SavingsAccount:
        account = SavingsAccount(**fields)
        self.db.add(account)
        await self.db.flush()
        return account


class LoanRepository:
    """Repository for loans"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, loan_id: int) -> Optional[Loan]:
        return await self.db.get(Loan, loan_id)

    async def list_by_member(self, member_id: int) -> List[Loan]:
        result = await self.db.execute(select(Loan).where(Loan.member_id == member_id).order_by(Loan.id))
        return list(result.scalars().all())

    async def disbursed_balance(self, member_id: int) -> float:
        """Outstanding balance across the member's disbursed loans"""
        result = await self.db.execute(
            select(func.coalesce(func.sum(Loan.balance), 0.0)).where(
                Loan.member_id == member_id,
                Loan.status == LoanStatus.DISBURSED.value,
            )
        )
        return float(result.scalar_one())

    async def create(self, **fields: Any) -> Loan:
        loan = Loan(**fields)
        self.db.add(loan)
        await self.db.flush()
        return loan


class TransactionRepository:
    """Repository for ledger transactions"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def count_repayments_before(self, member_id: int, before: datetime) -> int:
        result = await self.db.execute(
            select(func.count(Transaction.id)).where(
                Transaction.member_id == member_id,
                Transaction.transaction_type == TransactionType.LOAN_REPAYMENT.value,
                Transaction.transaction_date < before,
            )
        )
        return int(result.scalar_one())

    async def list_since(self, since: datetime, member_id: Optional[int] = None, limit: Optional[int] = None) -> List[Transaction]:
        stmt = select(Transaction).where(Transaction.transaction_date >= since)
        if member_id is not None:
            stmt = stmt.where(Transaction.member_id == member_id)
        stmt = stmt.order_by(Transaction.transaction_date.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create(self, **fields: Any) -> Transaction:
        transaction = Transaction(**fields)
        self.db.add(transaction)
        await self.db.flush()
        return transaction


class AuditLogRepository:
    """Repository for the audit trail"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id: Optional[int],
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
    ) -> AuditLog:
        log = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_value=json.dumps(old_value) if old_value else None,
            new_value=json.dumps(new_value) if new_value else None,
            ip_address=ip_address,
            status="success",
        )
        self.db.add(log)
        await self.db.flush()
        return log


class SettingRepository:
    """Repository for key-value system settings"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, key: str) -> Optional[Setting]:
        result = await self.db.execute(select(Setting).where(Setting.key == key))
        return result.scalars().first()

    async def upsert(self, key: str, value: str, description: Optional[str] = None) -> Setting:
        """Insert the key, or update value/description when it already exists"""
        setting = await self.get(key)
        if setting is None:
            setting = Setting(key=key, value=value, description=description, updated_at=utcnow())
            self.db.add(setting)
        else:
            setting.value = value
            setting.description = description
            setting.updated_at = utcnow()
        await self.db.flush()
        return setting


class ReportRepository:
    """Repository for saved reports"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, **fields: Any) -> Report:
        report = Report(**fields)
        self.db.add(report)
        await self.db.flush()
        return report

    async def list_recent(
        self,
        status: Optional[str] = None,
        report_type: Optional[str] = None,
        limit: int = 50,
    ) -> List[Report]:
        """Fetch most recent reports, optionally filtered"""
        stmt = select(Report)
        if status:
            stmt = stmt.where(Report.status == status)
        if report_type:
            stmt = stmt.where(Report.report_type == report_type)
        result = await self.db.execute(stmt.order_by(Report.created_at.desc(), Report.id.desc()).limit(limit))
        return list(result.scalars().all())


class RecordRepository:
    """
    Generic insert/get/list for the simple record tables (credit checks,
    guarantors, penalties, reminders, compliance, campaigns, partners,
    resources, restructuring requests, backups).
    """

    def __init__(self, db: AsyncSession, model: Type[ModelT]):
        self.db = db
        self.model = model

    async def get(self, record_id: int) -> Optional[ModelT]:
        return await self.db.get(self.model, record_id)

    async def create(self, **fields: Any) -> ModelT:
        record = self.model(**fields)
        self.db.add(record)
        await self.db.flush()
        return record

    async def list(self, *conditions: Any, order_by: Any = None) -> List[ModelT]:
        stmt = select(self.model).where(*conditions)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
