"""POST/GET /api/sacco - action-dispatched back-office operations"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

import pydantic
from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from harambee_sacco.api.dependencies import get_request_id
from harambee_sacco.api.v1 import schemas
from harambee_sacco.domain.exceptions import Conflict, ValidationError
from harambee_sacco.infrastructure.database.session import get_db
from harambee_sacco.services import credit, ledger, operations

router = APIRouter()


class SaccoAction(str, Enum):
    # Loan defaults
    CREDIT_CHECK = "credit_check"
    REQUEST_GUARANTORS = "request_guarantors"
    SCHEDULE_REMINDER = "schedule_reminder"
    APPLY_PENALTY = "apply_penalty"
    # Transparency
    GET_MEMBER_REPORT = "get_member_report"
    # Security
    ENABLE_2FA = "enable_2fa"
    MONITOR_TRANSACTIONS = "monitor_transactions"
    # Lending
    QUICK_LOAN_APPROVAL = "quick_loan_approval"
    # Regulation
    TRACK_COMPLIANCE = "track_compliance"
    ADD_COMPLIANCE = "add_compliance"
    # Capital
    CREATE_CAMPAIGN = "create_campaign"
    GET_CAMPAIGNS = "get_campaigns"
    ADD_PARTNER = "add_partner"
    # Technology
    RECORD_BACKUP = "record_backup"
    # Participation
    SEND_COMMUNICATION = "send_communication"
    BROADCAST = "broadcast"
    ADD_RESOURCE = "add_resource"
    # Flexible repayment
    REQUEST_RESTRUCTURING = "request_restructuring"
    APPROVE_RESTRUCTURING = "approve_restructuring"
    # Settings
    GET_SETTING = "get_setting"
    SET_SETTING = "set_setting"
    # Ledger
    OPEN_SAVINGS = "open_savings"
    DEPOSIT = "deposit"
    DISBURSE_LOAN = "disburse_loan"
    LOAN_REPAYMENT = "loan_repayment"


Handler = Callable[[AsyncSession, Any], Awaitable[Any]]

ACTIONS: Dict[SaccoAction, Tuple[Type[pydantic.BaseModel], Handler]] = {
    SaccoAction.CREDIT_CHECK: (
        schemas.CreditCheckPayload,
        lambda db, p: credit.perform_credit_check(db, p.member_id, p.loan_amount),
    ),
    SaccoAction.REQUEST_GUARANTORS: (
        schemas.RequestGuarantorsPayload,
        lambda db, p: credit.request_guarantors(db, p.loan_id, p.member_ids),
    ),
    SaccoAction.SCHEDULE_REMINDER: (
        schemas.ScheduleReminderPayload,
        lambda db, p: credit.schedule_payment_reminder(db, p.member_id, p.loan_id, p.days_before_due),
    ),
    SaccoAction.APPLY_PENALTY: (
        schemas.LoanPenaltyPayload,
        lambda db, p: credit.apply_late_penalty(db, p.member_id, p.loan_id),
    ),
    SaccoAction.GET_MEMBER_REPORT: (
        schemas.MemberPayload,
        lambda db, p: operations.get_member_accessible_report(db, p.member_id),
    ),
    SaccoAction.ENABLE_2FA: (
        schemas.EnableTwoFactorPayload,
        lambda db, p: operations.enable_two_factor(db, p.member_id, p.secret),
    ),
    SaccoAction.MONITOR_TRANSACTIONS: (
        schemas.NoPayload,
        lambda db, p: operations.monitor_transactions(db),
    ),
    SaccoAction.QUICK_LOAN_APPROVAL: (
        schemas.QuickLoanPayload,
        lambda db, p: credit.quick_loan_approval(db, p.member_id, p.amount, p.purpose),
    ),
    SaccoAction.TRACK_COMPLIANCE: (
        schemas.NoPayload,
        lambda db, p: operations.track_compliance(db),
    ),
    SaccoAction.ADD_COMPLIANCE: (
        schemas.AddCompliancePayload,
        lambda db, p: operations.add_compliance_requirement(db, p.requirement, p.category, p.due_date),
    ),
    SaccoAction.CREATE_CAMPAIGN: (
        schemas.CreateCampaignPayload,
        lambda db, p: operations.create_campaign(db, p.name, p.type, p.target_amount, p.end_date, p.description),
    ),
    SaccoAction.GET_CAMPAIGNS: (
        schemas.NoPayload,
        lambda db, p: operations.get_active_campaigns(db),
    ),
    SaccoAction.ADD_PARTNER: (
        schemas.AddPartnerPayload,
        lambda db, p: operations.add_partner(
            db, p.name, p.type, p.contact_person, p.email, p.phone, p.agreement_end
        ),
    ),
    SaccoAction.RECORD_BACKUP: (
        schemas.RecordBackupPayload,
        lambda db, p: operations.record_backup(db, p.backup_type),
    ),
    SaccoAction.SEND_COMMUNICATION: (
        schemas.SendCommunicationPayload,
        lambda db, p: operations.send_member_communication(db, p.member_id, p.message, p.channel),
    ),
    SaccoAction.BROADCAST: (
        schemas.BroadcastPayload,
        lambda db, p: operations.broadcast_to_members(db, p.message, p.channel),
    ),
    SaccoAction.ADD_RESOURCE: (
        schemas.AddResourcePayload,
        lambda db, p: operations.add_resource(db, p.title, p.type, p.category, p.content),
    ),
    SaccoAction.REQUEST_RESTRUCTURING: (
        schemas.RequestRestructuringPayload,
        lambda db, p: credit.request_loan_restructuring(db, p.loan_id, p.restructuring_type, p.new_term, p.reason),
    ),
    SaccoAction.APPROVE_RESTRUCTURING: (
        schemas.ApproveRestructuringPayload,
        lambda db, p: credit.approve_loan_restructuring(db, p.restructure_id, p.approved_by),
    ),
    SaccoAction.GET_SETTING: (
        schemas.GetSettingPayload,
        lambda db, p: operations.get_setting(db, p.key),
    ),
    SaccoAction.SET_SETTING: (
        schemas.SetSettingPayload,
        lambda db, p: operations.set_setting(db, p.key, p.value, p.description),
    ),
    SaccoAction.OPEN_SAVINGS: (
        schemas.OpenSavingsPayload,
        lambda db, p: ledger.open_savings_account(db, p.member_id, p.savings_type),
    ),
    SaccoAction.DEPOSIT: (
        schemas.DepositPayload,
        lambda db, p: ledger.record_deposit(db, p.member_id, p.amount, p.reference),
    ),
    SaccoAction.DISBURSE_LOAN: (
        schemas.LoanPayload,
        lambda db, p: ledger.disburse_loan(db, p.loan_id),
    ),
    SaccoAction.LOAN_REPAYMENT: (
        schemas.LoanRepaymentPayload,
        lambda db, p: ledger.record_loan_repayment(db, p.loan_id, p.amount),
    ),
}

_unbound = [action.value for action in SaccoAction if action not in ACTIONS]
if _unbound:
    raise RuntimeError(f"SACCO actions without a handler: {_unbound}")

VALID_ACTIONS = [action.value for action in SaccoAction]

RESOURCES = {
    "campaigns": operations.get_active_campaigns,
    "compliance": operations.track_compliance,
    "monitoring": operations.monitor_transactions,
}


def serialize(result: Any) -> Any:
    """ORM rows to camelCase dicts; lists and plain values pass through"""
    if isinstance(result, list):
        return [serialize(item) for item in result]
    if hasattr(result, "to_dict"):
        return result.to_dict()
    return result


def _validation_message(error: pydantic.ValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first["loc"])
    return f"Invalid {field}: {first['msg']}" if field else first["msg"]


@router.post("/sacco")
async def run_action(
    request: Request,
    body: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_db),
):
    """
    Run one back-office action.

    Body: {"action": "<name>", ...camelCase payload fields}
    """
    request_id = get_request_id(request)
    data = dict(body)
    action_name: Optional[str] = data.pop("action", None)

    try:
        action = SaccoAction(action_name)
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid action", "validActions": VALID_ACTIONS})

    payload_model, handler = ACTIONS[action]

    try:
        try:
            payload = payload_model.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(_validation_message(e)) from e

        result = await handler(db, payload)
        return {"success": True, "data": serialize(result)}

    except (ValidationError, Conflict) as e:
        await db.rollback()
        logging.warning(f"Rejected {action.value}: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=400, content={"error": str(e)})

    except Exception as e:
        await db.rollback()
        logging.error(f"SACCO action {action.value} failed: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=500, content={"error": "Operation failed", "details": str(e)})


@router.get("/sacco")
async def read_resource(
    request: Request,
    resource: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """campaigns | compliance | monitoring, or the endpoint index"""
    loader = RESOURCES.get(resource or "")
    if loader is None:
        return {
            "success": True,
            "data": {
                "message": "Harambee SACCO Management System API",
                "version": "1.0.0",
                "endpoints": {"POST": VALID_ACTIONS, "GET": list(RESOURCES)},
            },
        }

    try:
        result = await loader(db)
        return {"success": True, "data": serialize(result)}
    except Exception as e:
        await db.rollback()
        logging.error(f"Failed to fetch {resource}: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": "Failed to fetch data", "details": str(e)})
