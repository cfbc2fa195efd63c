"""Integration tests for download row producers and generate_download"""

import json
from datetime import timedelta

import pytest

from harambee_sacco.domain.exceptions import NotFound, ValidationError
from harambee_sacco.domain.export import from_csv
from harambee_sacco.domain.models import DownloadFormat, DownloadOptions, DownloadType
from harambee_sacco.infrastructure.database.models import AuditLog, Reminder
from harambee_sacco.services import downloads
from harambee_sacco.utils.date_utils import utcnow


async def test_every_download_type_renders_on_empty_database(session_factory):
    for download_type in DownloadType:
        if download_type == DownloadType.MEMBER_STATEMENT:
            continue
        export = await downloads.generate_download(session_factory, DownloadOptions(type=download_type))
        assert export.filename.startswith(f"{download_type.value}_")
        assert export.content_type == "text/csv"


async def test_members_search_and_status(session_factory, seed):
    await seed.member("HAR-000001", first_name="Amina", last_name="Hassan")
    await seed.member("HAR-000002", first_name="Brian", last_name="Mwangi", is_active=False)

    rows = await downloads.fetch_members(session_factory, DownloadOptions(type=DownloadType.MEMBERS, search="Mwan"))
    assert [r["Member Number"] for r in rows] == ["HAR-000002"]
    assert rows[0]["Status"] == "Inactive"

    active = await downloads.fetch_members(session_factory, DownloadOptions(type=DownloadType.MEMBERS, status="active"))
    assert [r["First Name"] for r in active] == ["Amina"]


async def test_loans_join_member_name_and_ignore_unknown_status(session_factory, seed):
    member = await seed.member()
    await seed.loan(member, 10_000)
    await seed.loan(member, 5_000, status="pending")

    pending = await downloads.fetch_loans(session_factory, DownloadOptions(type=DownloadType.LOANS, status="pending"))
    assert len(pending) == 1
    assert pending[0]["Member Name"] == "Wanjiku Kamau"
    assert pending[0]["Principal Amount"] == "5000.00"
    assert pending[0]["Interest Rate"] == "1.5%"

    unfiltered = await downloads.fetch_loans(session_factory, DownloadOptions(type=DownloadType.LOANS, status="bogus"))
    assert len(unfiltered) == 2


async def test_transactions_status_filters_type_and_date_range(session_factory, seed):
    member = await seed.member()
    now = utcnow()
    await seed.transaction(member, "deposit", 1_000, when=now - timedelta(days=1))
    await seed.transaction(member, "loan_repayment", 400, when=now - timedelta(days=1))
    await seed.transaction(member, "deposit", 2_000, when=now - timedelta(days=20))

    options = DownloadOptions(
        type=DownloadType.TRANSACTIONS,
        status="deposit",
        start_date=now - timedelta(days=7),
        end_date=now,
    )
    rows = await downloads.fetch_transactions(session_factory, options)

    assert [r["Amount"] for r in rows] == ["1000.00"]


async def test_reminder_message_truncated(session_factory, db, seed):
    member = await seed.member()
    db.add(Reminder(member_id=member.id, reminder_type="general", channel="sms", message="x" * 150))
    db.add(Reminder(member_id=None, reminder_type="general", channel="email", message="short"))
    await db.commit()

    rows = await downloads.fetch_reminders(session_factory, DownloadOptions(type=DownloadType.REMINDERS))

    by_channel = {r["Channel"]: r for r in rows}
    assert by_channel["sms"]["Message"] == "x" * 100 + "..."
    assert by_channel["email"]["Member Name"] == "N/A"
    assert by_channel["email"]["Member Number"] == "N/A"


async def test_audit_logs_system_actor_and_compact_details(session_factory, db):
    db.add(AuditLog(user_id=None, action="suspicious_activity", entity_type="transactions", old_value='{"a": 1, "b": [1, 2]}'))
    db.add(AuditLog(user_id=None, action="enable_2fa", entity_type="member"))
    await db.commit()

    rows = await downloads.fetch_audit_logs(
        session_factory, DownloadOptions(type=DownloadType.AUDIT_LOGS, search="suspicious")
    )

    assert len(rows) == 1
    assert rows[0]["User Name"] == "System"
    assert rows[0]["User Number"] == "System"
    assert rows[0]["Details"] == '{"a":1,"b":[1,2]}'


async def test_loan_portfolio_days_overdue(session_factory, seed):
    member = await seed.member()
    await seed.loan(member, due_date=utcnow() - timedelta(days=5, hours=1))

    rows = await downloads.fetch_loan_portfolio(session_factory, DownloadOptions(type=DownloadType.LOAN_PORTFOLIO))

    assert rows[0]["Days Overdue"] == 5


async def test_monthly_summary_single_row(session_factory, seed):
    member = await seed.member(joined_at=utcnow())
    await seed.savings(member, 1_500)

    rows = await downloads.fetch_monthly_summary(
        session_factory, DownloadOptions(type=DownloadType.MONTHLY_SUMMARY)
    )

    assert len(rows) == 1
    assert rows[0]["Total Members"] == 1
    assert rows[0]["Total Savings"] == "1500.00"
    assert rows[0]["Generated Date"]


async def test_member_statement_requires_member(session_factory):
    with pytest.raises(ValidationError):
        await downloads.fetch_member_statement(session_factory, DownloadOptions(type=DownloadType.MEMBER_STATEMENT))

    with pytest.raises(NotFound):
        await downloads.fetch_member_statement(
            session_factory, DownloadOptions(type=DownloadType.MEMBER_STATEMENT, member_id=41)
        )


async def test_member_statement_rows(session_factory, seed):
    member = await seed.member()
    await seed.savings(member, 8_000)
    loan = await seed.loan(member, 1_000)
    await seed.transaction(member, "loan_disbursement", 1_000, when=utcnow() - timedelta(days=2))
    await seed.transaction(member, "deposit", 300, when=utcnow() - timedelta(days=1))

    rows = await downloads.fetch_member_statement(
        session_factory, DownloadOptions(type=DownloadType.MEMBER_STATEMENT, member_id=member.id)
    )

    header, summary, deposit, disbursement = rows
    assert header["Member Number"] == member.member_number
    assert summary["Net Position"] == f"{8_000 - loan.balance:.2f}"
    assert deposit["Credit"] == "300.00" and deposit["Debit"] == ""
    assert disbursement["Debit"] == "1000.00" and disbursement["Credit"] == ""


async def test_generate_download_json(session_factory, seed):
    await seed.member()

    export = await downloads.generate_download(
        session_factory, DownloadOptions(type=DownloadType.MEMBERS, format=DownloadFormat.JSON)
    )

    assert export.content_type == "application/json"
    assert json.loads(export.data)[0]["Member Number"] == "HAR-000001"


async def test_generate_download_csv_parses_back(session_factory, seed):
    await seed.member(address="Plot 7, Kisumu")

    export = await downloads.generate_download(session_factory, DownloadOptions(type=DownloadType.MEMBERS))

    assert from_csv(export.data)[0]["Address"] == "Plot 7, Kisumu"


def test_parse_download_type_lists_valid_types():
    with pytest.raises(ValidationError) as exc_info:
        downloads.parse_download_type("loan Portfolio")

    assert "loan_portfolio" in str(exc_info.value)


def test_catalogue_covers_every_type():
    assert {entry["id"] for entry in downloads.DOWNLOAD_CATALOGUE} == {t.value for t in DownloadType}
