"""Pydantic schemas for API request validation (camelCase on the wire)"""

from datetime import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from harambee_sacco.utils.date_utils import to_naive_utc

# Timestamps are stored as naive UTC
UtcDatetime = Annotated[datetime, AfterValidator(to_naive_utc)]

Channel = Literal["sms", "email", "both"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Members


class RegisterRequest(CamelModel):
    """Request body for POST /api/register; required fields are checked by the service"""

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    id_number: Optional[str] = None
    date_of_birth: Optional[UtcDatetime] = None
    address: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    member_number: Optional[str] = None
    password: Optional[str] = None


# Reports and downloads


class ReportRequest(CamelModel):
    """Request body for POST /api/reports"""

    report_type: Optional[str] = None
    year: Optional[int] = None
    month: Optional[int] = Field(None, ge=1, le=12)
    member_id: Optional[int] = None
    period_start: Optional[UtcDatetime] = None
    period_end: Optional[UtcDatetime] = None


class DownloadRequest(CamelModel):
    """Request body for POST /api/downloads"""

    type: Optional[str] = None
    format: str = "csv"
    start_date: Optional[UtcDatetime] = None
    end_date: Optional[UtcDatetime] = None
    member_id: Optional[int] = None
    status: Optional[str] = None
    search: Optional[str] = None


# Action payloads for POST /api/sacco


class NoPayload(CamelModel):
    pass


class CreditCheckPayload(CamelModel):
    member_id: int
    loan_amount: float


class RequestGuarantorsPayload(CamelModel):
    loan_id: int
    member_ids: List[int] = Field(..., min_length=1)


class ScheduleReminderPayload(CamelModel):
    member_id: int
    loan_id: int
    days_before_due: int = 0


class LoanPenaltyPayload(CamelModel):
    member_id: int
    loan_id: int


class MemberPayload(CamelModel):
    member_id: int


class EnableTwoFactorPayload(CamelModel):
    member_id: int
    secret: str = Field(..., min_length=1)


class QuickLoanPayload(CamelModel):
    member_id: int
    amount: float = Field(..., gt=0)
    purpose: Optional[str] = None


class AddCompliancePayload(CamelModel):
    requirement: str
    category: Literal["capital_adequacy", "liquidity", "governance", "reporting"]
    due_date: Optional[UtcDatetime] = None


class CreateCampaignPayload(CamelModel):
    name: str
    type: Literal["recruitment", "savings", "loan_promo"]
    target_amount: Optional[float] = None
    end_date: Optional[UtcDatetime] = None
    description: Optional[str] = None


class AddPartnerPayload(CamelModel):
    name: str
    type: Literal["bank", "microfinance", "corporate"]
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    agreement_end: Optional[UtcDatetime] = None


class RecordBackupPayload(CamelModel):
    backup_type: Literal["full", "incremental", "manual"]


class SendCommunicationPayload(CamelModel):
    member_id: int
    message: str
    channel: Channel


class BroadcastPayload(CamelModel):
    message: str
    channel: Channel


class AddResourcePayload(CamelModel):
    title: str
    type: Literal["article", "video", "guide"]
    category: Literal["savings", "loans", "investment", "general"]
    content: str = ""


class RequestRestructuringPayload(CamelModel):
    loan_id: int
    restructuring_type: Literal["extension", "reduction", "deferment", "refinancing"]
    new_term: int
    reason: Optional[str] = None


class ApproveRestructuringPayload(CamelModel):
    restructure_id: int
    approved_by: str


class GetSettingPayload(CamelModel):
    key: str


class SetSettingPayload(CamelModel):
    key: str = Field(..., min_length=1, max_length=100)
    value: str
    description: Optional[str] = None


class OpenSavingsPayload(CamelModel):
    member_id: int
    savings_type: Literal["ordinary", "fixed", "voluntary"] = "ordinary"


class DepositPayload(CamelModel):
    member_id: int
    amount: float = Field(..., gt=0)
    reference: Optional[str] = None


class LoanPayload(CamelModel):
    loan_id: int


class LoanRepaymentPayload(CamelModel):
    loan_id: int
    amount: float = Field(..., gt=0)
