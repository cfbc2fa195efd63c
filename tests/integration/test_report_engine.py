"""Integration tests for the report engine against a real SQLite database"""

from datetime import datetime, timedelta

import pytest

from harambee_sacco.domain.exceptions import NotFound
from harambee_sacco.services import reports
from harambee_sacco.utils.date_utils import utcnow


@pytest.fixture
def period():
    now = utcnow()
    return now - timedelta(days=7), now + timedelta(days=1)


async def test_monthly_summary_on_empty_database_is_all_zero(session_factory, period):
    summary = await reports.generate_monthly_summary(session_factory, *period)

    assert summary["members"] == {"total": 0, "active": 0, "new": 0}
    assert summary["savings"] == {"totalBalance": 0}
    assert summary["loans"] == {"disbursed": 0, "repayments": 0, "outstandingPortfolio": 0}
    assert summary["transactions"] == []
    assert summary["generatedIn"].endswith("ms")


async def test_monthly_summary_aggregates(session_factory, seed, period):
    now = utcnow()
    old_member = await seed.member("HAR-000001")
    new_member = await seed.member("HAR-000002", joined_at=now - timedelta(days=1))
    await seed.member("HAR-000003", is_active=False)

    await seed.savings(old_member, 5_000)
    await seed.savings(new_member, 2_000, is_active=False)

    loan = await seed.loan(old_member, 10_000, disbursed_at=now - timedelta(days=2))
    await seed.loan(new_member, 4_000, status="pending", disbursed_at=None)

    await seed.transaction(old_member, "loan_repayment", 500, when=now - timedelta(days=1))
    await seed.transaction(old_member, "loan_repayment", 900, when=now - timedelta(days=40))
    await seed.transaction(old_member, "deposit", 5_000, when=now - timedelta(days=3))

    summary = await reports.generate_monthly_summary(session_factory, *period)

    assert summary["members"] == {"total": 3, "active": 2, "new": 1}
    assert summary["savings"]["totalBalance"] == 5_000
    assert summary["loans"]["disbursed"] == 10_000
    assert summary["loans"]["repayments"] == 500
    assert summary["loans"]["outstandingPortfolio"] == pytest.approx(loan.balance)

    by_type = {row["type"]: row for row in summary["transactions"]}
    assert by_type["loan_repayment"] == {"type": "loan_repayment", "amount": 500, "count": 1}
    assert by_type["deposit"]["count"] == 1


async def test_loan_portfolio_orders_by_balance_and_keeps_orphans(session_factory, seed):
    member = await seed.member()
    small = await seed.loan(member, 5_000)
    large = await seed.loan(member, 50_000)
    await seed.loan(member, 8_000, status="pending")
    # Loan whose member row is gone still shows up, with empty member fields
    orphan = await seed.loan(member, 1_000, member_id=9_999)

    portfolio = await reports.generate_loan_portfolio(session_factory)

    assert [row["id"] for row in portfolio["loans"]] == [large.id, small.id, orphan.id]
    assert portfolio["loans"][0]["memberNumber"] == member.member_number
    assert portfolio["loans"][2]["firstName"] is None

    summary = {row["status"]: row for row in portfolio["summary"]}
    assert summary["disbursed"]["count"] == 3
    assert summary["pending"]["totalPrincipal"] == 8_000


async def test_member_statement_unknown_member(session_factory, period):
    with pytest.raises(NotFound):
        await reports.generate_member_statement(session_factory, 404, *period)


async def test_member_statement_filters_transactions_by_period(session_factory, seed, period):
    now = utcnow()
    member = await seed.member()
    await seed.savings(member, 3_000)
    await seed.loan(member, 6_000)
    recent = await seed.transaction(member, "deposit", 1_000, when=now - timedelta(days=2))
    newer = await seed.transaction(member, "deposit", 2_000, when=now - timedelta(hours=3))
    await seed.transaction(member, "deposit", 700, when=now - timedelta(days=60))

    statement = await reports.generate_member_statement(session_factory, member.id, *period)

    assert statement["member"]["name"] == "Wanjiku Kamau"
    assert statement["savings"]["balance"] == 3_000
    assert [t["id"] for t in statement["transactions"]] == [newer.id, recent.id]
    assert statement["transactions"][0]["transactionType"] == "deposit"
    assert len(statement["loans"]) == 1


async def test_member_statement_without_savings(session_factory, seed, period):
    member = await seed.member()

    statement = await reports.generate_member_statement(session_factory, member.id, *period)

    assert statement["savings"] is None
    assert statement["transactions"] == []


async def test_end_of_month_covers_whole_calendar_month(session_factory):
    report = await reports.generate_end_of_month(session_factory, 2024, 2)

    assert report["period"] == {
        "start": datetime(2024, 2, 1).isoformat(),
        "end": datetime(2024, 2, 29, 23, 59, 59, 999999).isoformat(),
    }
    assert report["summary"]["members"]["total"] == 0
    assert report["portfolio"]["loans"] == []


async def test_saved_reports_listed_newest_first(db, period):
    first = await reports.save_report(db, "loan_portfolio", *period, {"loans": []})
    second = await reports.save_report(db, "monthly_summary", *period, {"members": {}})

    listed = await reports.list_reports(db)
    assert [r["id"] for r in listed] == [second["id"], first["id"]]
    assert listed[0]["status"] == "completed"

    filtered = await reports.list_reports(db, report_type="loan_portfolio")
    assert [r["id"] for r in filtered] == [first["id"]]
