"""POST /api/reports - generate and persist a report; GET /api/reports - recent reports"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from harambee_sacco.api.dependencies import get_request_id
from harambee_sacco.api.v1.schemas import ReportRequest
from harambee_sacco.config import settings
from harambee_sacco.domain.models import ReportType
from harambee_sacco.infrastructure.database.session import get_db, get_session_factory
from harambee_sacco.infrastructure.observability.logging import log_report_generated
from harambee_sacco.services import reports
from harambee_sacco.utils.date_utils import month_bounds, utcnow

router = APIRouter()


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


@router.post("/reports")
async def create_report(
    request_body: ReportRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Generate a report and save it as a completed snapshot.

    Flow:
    1. Validate the parameters the report type needs
    2. Run the report engine
    3. Persist the snapshot
    4. Return the report id and data
    """
    started = time.perf_counter()
    request_id = get_request_id(request)
    body = request_body

    try:
        if body.report_type == ReportType.MONTHLY_SUMMARY.value:
            if not body.period_start or not body.period_end:
                return _bad_request("periodStart and periodEnd are required")
            period_start, period_end = body.period_start, body.period_end
            data = await reports.generate_monthly_summary(session_factory, period_start, period_end)

        elif body.report_type == ReportType.LOAN_PORTFOLIO.value:
            now = utcnow()
            period_start, period_end = body.period_start or now, body.period_end or now
            data = await reports.generate_loan_portfolio(session_factory)

        elif body.report_type == ReportType.MEMBER_STATEMENT.value:
            if not body.member_id or not body.period_start or not body.period_end:
                return _bad_request("memberId, periodStart, and periodEnd are required")
            period_start, period_end = body.period_start, body.period_end
            data = await reports.generate_member_statement(session_factory, body.member_id, period_start, period_end)

        elif body.report_type == ReportType.END_OF_MONTH.value:
            if not body.year or not body.month:
                return _bad_request("year and month are required")
            # Saved under the month it covers
            period_start, period_end = month_bounds(body.year, body.month)
            data = await reports.generate_end_of_month(session_factory, body.year, body.month)

        else:
            return _bad_request("Invalid report type")

        saved = await reports.save_report(db, body.report_type, period_start, period_end, data)

        duration_ms = reports.observe_report(body.report_type, started)
        log_report_generated(body.report_type, duration_ms, saved["id"])

        return {
            "success": True,
            "reportId": saved["id"],
            "reportType": body.report_type,
            "data": data,
        }

    except Exception as e:
        await db.rollback()
        logging.error(f"Report generation error: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=500, content={"error": "Failed to generate report", "details": str(e)})


@router.get("/reports")
async def get_reports(
    request: Request,
    status: Optional[str] = None,
    type: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """Most recent reports first, optionally filtered by status and type"""
    try:
        report_list = await reports.list_reports(
            db, status=status, report_type=type, limit=settings.report_list_limit
        )
        return {"success": True, "reports": report_list}
    except Exception as e:
        logging.error(f"Error fetching reports: {e}", extra={"request_id": get_request_id(request)})
        return JSONResponse(status_code=500, content={"error": "Failed to fetch reports", "details": str(e)})
