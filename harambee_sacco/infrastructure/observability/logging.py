"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger.json import JsonFormatter

from harambee_sacco.config import settings


class CustomJsonFormatter(JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_report_generated(
    report_type: str,
    duration_ms: float,
    report_id: Optional[int] = None,
) -> None:
    """Log structured report generation outcome"""
    logging.info(
        "Report generated",
        extra={
            "step": "report_generated",
            "report_type": report_type,
            "report_id": report_id,
            "duration_ms": duration_ms,
        },
    )


def log_loan_decision(
    member_id: int,
    approved: bool,
    amount: float,
    credit_score: Optional[int] = None,
    reason: Optional[str] = None,
) -> None:
    """Log structured quick-loan outcome for analysis"""
    logging.info(
        "Loan decision completed",
        extra={
            "member_id": member_id,
            "step": "loan_decision",
            "approval_outcome": "approved" if approved else "declined",
            "amount": amount,
            "credit_score": credit_score,
            "reason": reason,
        },
    )
