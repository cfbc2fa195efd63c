"""Integration tests for API endpoints"""

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.integration


async def _register(client: AsyncClient, phone: str = "+254700000001", **extra) -> dict:
    body = {"firstName": "Jane", "lastName": "Wambui", "phone": phone, "password": "harambee1", **extra}
    response = await client.post("/api/register", json=body)
    assert response.status_code == 200, response.text
    return response.json()["member"]


async def _action(client: AsyncClient, action: str, **data):
    return await client.post("/api/sacco", json={"action": action, **data})


async def test_health_endpoint(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "harambee-sacco"}
    assert response.headers["X-Request-ID"]


async def test_metrics_endpoint(client: AsyncClient):
    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "sacco_credit_checks_total" in response.text


async def test_register_savings_and_quick_loan_end_to_end(client: AsyncClient):
    """Register -> open savings -> deposit -> quick loan approval"""
    member = await _register(client)
    assert member["memberNumber"].startswith("HAR-")

    response = await _action(client, "open_savings", memberId=member["id"])
    assert response.status_code == 200

    response = await _action(client, "deposit", memberId=member["id"], amount=10_000)
    assert response.status_code == 200

    response = await _action(client, "quick_loan_approval", memberId=member["id"], amount=20_000, purpose="Dairy cow")
    assert response.status_code == 200, response.text
    loan = response.json()["data"]

    assert loan["status"] == "approved"
    assert loan["termMonths"] == 12
    expected_total = 20_000 + 20_000 * loan["interestRate"] / 100 * 12
    assert loan["totalAmount"] == pytest.approx(expected_total)
    assert loan["installmentAmount"] == pytest.approx(expected_total / 12)


async def test_register_duplicate_phone_rejected(client: AsyncClient):
    await _register(client)

    response = await client.post(
        "/api/register",
        json={"firstName": "Other", "lastName": "Member", "phone": "+254700000001", "password": "harambee1"},
    )

    assert response.status_code == 400
    assert response.json() == {"error": "An account with this phone number already exists"}


async def test_register_requires_fields(client: AsyncClient):
    response = await client.post("/api/register", json={"firstName": "Jane"})

    assert response.status_code == 400
    assert "required" in response.json()["error"]


async def test_login_by_member_number(client: AsyncClient):
    member = await _register(client, email="jane@example.com")

    response = await client.post("/api/login", json={"memberNumber": member["memberNumber"], "password": "harambee1"})

    assert response.status_code == 200
    body = response.json()["member"]
    assert body["email"] == "jane@example.com"
    assert "passwordHash" not in body


async def test_login_failures_are_unauthorized(client: AsyncClient):
    await _register(client)

    wrong_password = await client.post("/api/login", json={"phone": "+254700000001", "password": "nope-nope"})
    unknown = await client.post("/api/login", json={"phone": "+254799999999", "password": "harambee1"})
    missing = await client.post("/api/login", json={"password": "harambee1"})

    assert wrong_password.status_code == 401
    assert unknown.status_code == 401
    assert missing.status_code == 400


async def test_unknown_action_lists_valid_actions(client: AsyncClient):
    response = await _action(client, "launch_rocket")

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Invalid action"
    assert "quick_loan_approval" in body["validActions"]
    assert "set_setting" in body["validActions"]


async def test_malformed_payload_is_bad_request(client: AsyncClient):
    response = await _action(client, "credit_check", memberId="not-a-number")

    assert response.status_code == 400
    assert "memberId" in response.json()["error"]


async def test_domain_failure_is_operation_failed(client: AsyncClient):
    response = await _action(client, "credit_check", memberId=12345, loanAmount=1_000)

    assert response.status_code == 500
    assert response.json() == {"error": "Operation failed", "details": "Member not found"}


async def test_settings_round_trip(client: AsyncClient):
    await _action(client, "set_setting", key="sms.sender", value="HARAMBEE")

    response = await _action(client, "get_setting", key="sms.sender")

    assert response.json()["data"]["value"] == "HARAMBEE"


async def test_sacco_get_resources(client: AsyncClient):
    index = await client.get("/api/sacco")
    compliance = await client.get("/api/sacco", params={"resource": "compliance"})

    assert index.json()["data"]["endpoints"]["GET"] == ["campaigns", "compliance", "monitoring"]
    assert compliance.json()["data"]["complianceRate"] == 0


async def test_reports_generate_and_list(client: AsyncClient):
    response = await client.post("/api/reports", json={"reportType": "end_of_month", "year": 2025, "month": 1})

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["reportType"] == "end_of_month"
    assert body["data"]["period"]["start"] == "2025-01-01T00:00:00"

    listed = await client.get("/api/reports", params={"type": "end_of_month"})
    reports = listed.json()["reports"]
    assert [r["id"] for r in reports] == [body["reportId"]]
    assert reports[0]["periodStart"] == "2025-01-01T00:00:00"


async def test_reports_parameter_validation(client: AsyncClient):
    missing_period = await client.post("/api/reports", json={"reportType": "monthly_summary"})
    unknown = await client.post("/api/reports", json={"reportType": "weekly"})

    assert missing_period.status_code == 400
    assert missing_period.json()["error"] == "periodStart and periodEnd are required"
    assert unknown.json() == {"error": "Invalid report type"}


async def test_member_statement_report_for_unknown_member(client: AsyncClient):
    response = await client.post(
        "/api/reports",
        json={
            "reportType": "member_statement",
            "memberId": 99,
            "periodStart": "2025-01-01T00:00:00Z",
            "periodEnd": "2025-01-31T23:59:59Z",
        },
    )

    assert response.status_code == 500
    assert response.json()["error"] == "Failed to generate report"


async def test_download_catalogue_without_type(client: AsyncClient):
    response = await client.get("/api/downloads")

    assert response.status_code == 200
    assert len(response.json()["availableTypes"]) == 15


async def test_download_members_csv_attachment(client: AsyncClient):
    await _register(client)

    response = await client.get("/api/downloads", params={"type": "members"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert response.headers["content-disposition"].startswith('attachment; filename="members_')
    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert response.text.splitlines()[0].startswith("Member Number,First Name")


async def test_download_rejects_invalid_type_and_format(client: AsyncClient):
    bad_type = await client.get("/api/downloads", params={"type": "loan Portfolio"})
    bad_format = await client.get("/api/downloads", params={"type": "members", "format": "pdf"})

    assert bad_type.status_code == 400
    assert bad_format.status_code == 400


async def test_download_post_member_statement_errors(client: AsyncClient):
    missing_type = await client.post("/api/downloads", json={})
    no_member = await client.post("/api/downloads", json={"type": "member_statement"})

    assert missing_type.status_code == 400
    assert no_member.status_code == 500
    assert no_member.json() == {"error": "Download failed: Member ID is required for member statement"}


async def test_download_post_invalid_type_is_download_failure(client: AsyncClient):
    response = await client.post("/api/downloads", json={"type": "loan Portfolio"})

    assert response.status_code == 500
    assert response.json()["error"].startswith("Download failed: Invalid download type")
