"""Domain models - enums and dataclasses shared by services, exports and routes"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class LoanStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DISBURSED = "disbursed"
    FULLY_PAID = "fully_paid"
    DEFAULTED = "defaulted"
    WRITTEN_OFF = "written_off"


class TransactionType(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    LOAN_DISBURSEMENT = "loan_disbursement"
    LOAN_REPAYMENT = "loan_repayment"
    INTEREST = "interest"
    PENALTY = "penalty"
    FEE = "fee"


class CreditCheckStatus(str, Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


class ReportType(str, Enum):
    MONTHLY_SUMMARY = "monthly_summary"
    LOAN_PORTFOLIO = "loan_portfolio"
    MEMBER_STATEMENT = "member_statement"
    END_OF_MONTH = "end_of_month"


class DownloadType(str, Enum):
    MEMBERS = "members"
    SAVINGS = "savings"
    LOANS = "loans"
    TRANSACTIONS = "transactions"
    PENALTIES = "penalties"
    CREDIT_CHECKS = "credit_checks"
    GUARANTORS = "guarantors"
    REMINDERS = "reminders"
    AUDIT_LOGS = "audit_logs"
    COMPLIANCE = "compliance"
    CAMPAIGNS = "campaigns"
    PARTNERS = "partners"
    MONTHLY_SUMMARY = "monthly_summary"
    LOAN_PORTFOLIO = "loan_portfolio"
    MEMBER_STATEMENT = "member_statement"


class DownloadFormat(str, Enum):
    CSV = "csv"
    JSON = "json"
    EXCEL = "excel"


@dataclass
class DownloadOptions:
    """Caller-supplied filters for a download; unset filters are not applied"""

    type: DownloadType
    format: DownloadFormat = DownloadFormat.CSV
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    member_id: Optional[int] = None
    status: Optional[str] = None
    search: Optional[str] = None

    @property
    def has_date_range(self) -> bool:
        return self.start_date is not None and self.end_date is not None


@dataclass
class ExportFile:
    """Rendered download artifact"""

    data: str
    filename: str
    content_type: str


@dataclass
class CreditAssessment:
    """Inputs and outcome of a credit score computation"""

    credit_score: int
    status: CreditCheckStatus
    existing_loan_balance: float
    savings_balance: float
    repayment_count: int

    @property
    def passed(self) -> bool:
        return self.status == CreditCheckStatus.PASSED


@dataclass
class LoanTerms:
    """Flat-rate repayment terms for a quick loan"""

    principal_amount: float
    interest_rate: float  # percent per month
    interest_amount: float
    total_amount: float
    term_months: int
    installment_amount: float
