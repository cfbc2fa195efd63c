"""SQLAlchemy ORM models for the SACCO schema"""

from datetime import date, datetime
from typing import Any, Dict, Iterable

from pydantic.alias_generators import to_camel
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

from harambee_sacco.utils.date_utils import utcnow

Base = declarative_base()


class SerializableMixin:
    """Row -> camelCase dict with ISO timestamps, the shape the API returns"""

    def to_dict(self, exclude: Iterable[str] = ()) -> Dict[str, Any]:
        skipped = set(exclude)
        data: Dict[str, Any] = {}
        for column in self.__table__.columns:
            if column.key in skipped:
                continue
            value = getattr(self, column.key)
            if isinstance(value, (datetime, date)):
                value = value.isoformat()
            data[to_camel(column.key)] = value
        return data


class Member(SerializableMixin, Base):
    """SACCO member; member_number never changes after registration"""

    __tablename__ = "members"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_number = Column(String(32), nullable=False, unique=True)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True, index=True)
    id_number = Column(Text, nullable=True)
    date_of_birth = Column(DateTime, nullable=True)
    address = Column(Text, nullable=True)
    joined_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    two_factor_enabled = Column(Boolean, nullable=False, default=False)
    two_factor_secret = Column(Text, nullable=True)
    password_hash = Column(Text, nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class SavingsAccount(SerializableMixin, Base):
    """Savings account; balance moves only through recorded transactions"""

    __tablename__ = "savings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    account_number = Column(Text, nullable=False, index=True)
    savings_type = Column(Text, nullable=False, default="ordinary")  # ordinary | fixed | voluntary
    balance = Column(Float, nullable=False, default=0.0)
    interest_rate = Column(Float, nullable=True, default=0.0)
    opened_at = Column(DateTime, nullable=False, default=utcnow)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Loan(SerializableMixin, Base):
    """Member loan; balance = total_amount - paid_amount by convention"""

    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    loan_number = Column(String(64), nullable=False, unique=True)
    principal_amount = Column(Float, nullable=False)
    interest_rate = Column(Float, nullable=False)  # percent per month
    interest_amount = Column(Float, nullable=False, default=0.0)
    total_amount = Column(Float, nullable=False)
    paid_amount = Column(Float, nullable=False, default=0.0)
    balance = Column(Float, nullable=False)
    term_months = Column(Integer, nullable=False)
    installment_amount = Column(Float, nullable=False)
    status = Column(Text, nullable=False, default="pending", index=True)
    purpose = Column(Text, nullable=True)
    guarantor_1_id = Column(Integer, ForeignKey("members.id"), nullable=True)
    guarantor_2_id = Column(Integer, ForeignKey("members.id"), nullable=True)
    applied_at = Column(DateTime, nullable=False, default=utcnow)
    approved_at = Column(DateTime, nullable=True)
    disbursed_at = Column(DateTime, nullable=True, index=True)
    due_date = Column(DateTime, nullable=True, index=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Transaction(SerializableMixin, Base):
    """Append-only ledger entry"""

    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=True, index=True)
    savings_id = Column(Integer, ForeignKey("savings.id"), nullable=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=True, index=True)
    transaction_number = Column(String(64), nullable=False, unique=True)
    transaction_type = Column(Text, nullable=False, index=True)
    amount = Column(Float, nullable=False)
    balance_after = Column(Float, nullable=False)
    reference = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    transaction_date = Column(DateTime, nullable=False, default=utcnow, index=True)
    recorded_at = Column(DateTime, nullable=False, default=utcnow)
    recorded_by = Column(Text, nullable=True)
    is_reversed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class CreditCheck(SerializableMixin, Base):
    __tablename__ = "credit_checks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    credit_score = Column(Integer, nullable=True)
    income_level = Column(Float, nullable=True)
    existing_loans = Column(Float, nullable=True)
    repayment_history = Column(Text, nullable=True)  # JSON
    status = Column(Text, nullable=False, default="pending", index=True)  # pending | passed | failed
    checked_at = Column(DateTime, nullable=False, default=utcnow)
    checked_by = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Guarantor(SerializableMixin, Base):
    __tablename__ = "guarantors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    status = Column(Text, nullable=False, default="pending", index=True)  # pending | accepted | rejected
    guarantee_amount = Column(Float, nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Penalty(SerializableMixin, Base):
    __tablename__ = "penalties"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=False, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=True, index=True)
    penalty_type = Column(Text, nullable=False)  # late_payment | early_repayment | default
    amount = Column(Float, nullable=False)
    reason = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="pending", index=True)  # pending | waived | paid
    applied_at = Column(DateTime, nullable=False, default=utcnow)
    paid_at = Column(DateTime, nullable=True)
    waived_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Reminder(SerializableMixin, Base):
    __tablename__ = "reminders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    member_id = Column(Integer, ForeignKey("members.id"), nullable=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=True, index=True)
    reminder_type = Column(Text, nullable=False)  # payment_due | payment_overdue | meeting | general
    channel = Column(Text, nullable=False)  # sms | email | both
    message = Column(Text, nullable=False)
    scheduled_for = Column(DateTime, nullable=False, default=utcnow, index=True)
    sent_at = Column(DateTime, nullable=True)
    status = Column(Text, nullable=False, default="pending", index=True)  # pending | sent | failed
    response = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class AuditLog(SerializableMixin, Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=True, index=True)
    action = Column(Text, nullable=False, index=True)
    entity_type = Column(Text, nullable=False, index=True)
    entity_id = Column(Integer, nullable=True)
    old_value = Column(Text, nullable=True)  # JSON
    new_value = Column(Text, nullable=True)  # JSON
    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="success")
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class ComplianceRecord(SerializableMixin, Base):
    __tablename__ = "compliance_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    requirement = Column(Text, nullable=False)
    category = Column(Text, nullable=False, index=True)  # capital_adequacy | liquidity | governance | reporting
    status = Column(Text, nullable=False, default="compliant", index=True)  # compliant | non_compliant | in_progress
    due_date = Column(DateTime, nullable=True, index=True)
    completed_at = Column(DateTime, nullable=True)
    evidence = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    reviewed_by = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Campaign(SerializableMixin, Base):
    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    type = Column(Text, nullable=False, index=True)  # recruitment | savings | loan_promo
    description = Column(Text, nullable=True)
    target_amount = Column(Float, nullable=True)
    start_date = Column(DateTime, nullable=False, default=utcnow)
    end_date = Column(DateTime, nullable=True)
    status = Column(Text, nullable=False, default="active", index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Partner(SerializableMixin, Base):
    __tablename__ = "partners"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    type = Column(Text, nullable=False, index=True)  # bank | microfinance | corporate
    contact_person = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    phone = Column(Text, nullable=True)
    address = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="active", index=True)
    agreement_start = Column(DateTime, nullable=True)
    agreement_end = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Resource(SerializableMixin, Base):
    """Financial literacy material published to members"""

    __tablename__ = "resources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False)
    type = Column(Text, nullable=False, index=True)  # article | video | guide
    category = Column(Text, nullable=False, index=True)  # savings | loans | investment | general
    content = Column(Text, nullable=True)
    file_url = Column(Text, nullable=True)
    published_at = Column(DateTime, nullable=False, default=utcnow)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class LoanRestructuring(SerializableMixin, Base):
    __tablename__ = "loan_restructuring"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(Integer, ForeignKey("loans.id"), nullable=False, index=True)
    restructuring_type = Column(Text, nullable=False)  # extension | reduction | deferment | refinancing
    original_term = Column(Integer, nullable=True)
    new_term = Column(Integer, nullable=True)
    original_installment = Column(Float, nullable=True)
    new_installment = Column(Float, nullable=True)
    reason = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="pending", index=True)  # pending | approved | rejected
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Backup(SerializableMixin, Base):
    __tablename__ = "backups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    backup_type = Column(Text, nullable=False, index=True)  # full | incremental | manual
    file_name = Column(Text, nullable=False)
    file_size = Column(Integer, nullable=True)
    status = Column(Text, nullable=False, default="pending", index=True)
    started_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime, nullable=True)
    storage_location = Column(Text, nullable=True)
    verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class Setting(SerializableMixin, Base):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(100), nullable=False, unique=True)
    value = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class Report(SerializableMixin, Base):
    """Generated report snapshot, report_data holds the JSON payload"""

    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    report_type = Column(Text, nullable=False, index=True)
    period_start = Column(DateTime, nullable=False, index=True)
    period_end = Column(DateTime, nullable=False, index=True)
    report_data = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="pending", index=True)  # pending | processing | completed | failed
    generated_at = Column(DateTime, nullable=True)
    generated_by = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


Index("idx_transactions_member_date", Transaction.member_id, Transaction.transaction_date)
