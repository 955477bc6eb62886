"""Dashboard and management reports."""

from datetime import datetime, timedelta, timezone

import pytest

from clinicroute.db.enums import CaseStatus
from clinicroute.db.models import Insurer
from clinicroute.services import case_service, report_service

API = "/api/v1"


def _walk(db, auth, case, *statuses):
    for status in statuses:
        case_service.change_status(db, auth.session, case.id, status)
    return case


APPROVED_PATH = (
    CaseStatus.SUBMITTED,
    CaseStatus.AWAITING_INSURER,
    CaseStatus.APPROVED,
    CaseStatus.TREATMENT_SCHEDULED,
    CaseStatus.CLOSED,
)
DENIED_PATH = (
    CaseStatus.SUBMITTED,
    CaseStatus.AWAITING_INSURER,
    CaseStatus.DENIED,
    CaseStatus.CLOSED,
)


def test_average_processing_days_of_nothing_is_zero():
    assert report_service.average_processing_days([]) == 0.0


def test_empty_clinic_reports_zeros(db, clinic):
    dashboard = report_service.get_dashboard(db, clinic.id)
    assert dashboard["summary"] == {
        "total_active": 0,
        "total_overdue": 0,
        "new_today": 0,
        "new_this_week": 0,
        "new_this_month": 0,
        "avg_processing_days": 0.0,
    }
    assert dashboard["by_status"] == []
    assert dashboard["by_insurer"] == []

    assert report_service.get_insurer_performance(db, clinic.id) == []

    compliance = report_service.get_sla_compliance(db, clinic.id)
    assert compliance["total_completed"] == 0
    assert compliance["compliance_rate"] == 0


def test_dashboard_counts_active_cases_by_insurer(db, clinician_auth, make_case):
    axa = Insurer(name="AXA Health", code="AXA")
    db.add(axa)
    db.commit()

    make_case(clinician_auth)
    make_case(clinician_auth)
    make_case(clinician_auth, insurer_id=axa.id)
    cancelled = make_case(clinician_auth, insurer_id=axa.id)
    _walk(db, clinician_auth, cancelled, CaseStatus.CANCELLED)

    dashboard = report_service.get_dashboard(db, clinician_auth.session.clinic_id)
    assert dashboard["summary"]["total_active"] == 3
    assert dashboard["summary"]["new_today"] == 4
    assert [(i["insurer_name"], i["count"]) for i in dashboard["by_insurer"]] == [
        ("Bupa", 2),
        ("AXA Health", 1),
    ]
    assert {s["status"]: s["count"] for s in dashboard["by_status"]} == {
        "RECEIVED": 3,
        "CANCELLED": 1,
    }


def test_insurer_approval_rate(db, clinician_auth, make_case):
    for _ in range(3):
        _walk(db, clinician_auth, make_case(clinician_auth), *APPROVED_PATH)
    _walk(db, clinician_auth, make_case(clinician_auth), *DENIED_PATH)

    [bupa] = report_service.get_insurer_performance(db, clinician_auth.session.clinic_id)
    assert bupa["insurer_name"] == "Bupa"
    assert bupa["total_cases"] == 4
    assert bupa["approval_rate"] == 75
    assert bupa["avg_processing_days"] == 0.0


def test_resubmitted_and_approved_counts_as_approved(db, clinician_auth, make_case):
    case = make_case(clinician_auth)
    _walk(
        db, clinician_auth, case,
        CaseStatus.SUBMITTED, CaseStatus.AWAITING_INSURER, CaseStatus.DENIED,
        *APPROVED_PATH,
    )

    [bupa] = report_service.get_insurer_performance(db, clinician_auth.session.clinic_id)
    assert bupa["approval_rate"] == 100


def test_processing_days_averages_closed_cases(db, clinician_auth, make_case):
    now = datetime.now(timezone.utc)
    for days in (2, 4):
        case = _walk(db, clinician_auth, make_case(clinician_auth), *APPROVED_PATH)
        case.created_at = now - timedelta(days=days)
        case.completed_at = now
    db.commit()

    dashboard = report_service.get_dashboard(db, clinician_auth.session.clinic_id)
    assert dashboard["summary"]["avg_processing_days"] == 3.0


def test_sla_compliance_this_month(db, clinician_auth, make_case):
    on_time = _walk(db, clinician_auth, make_case(clinician_auth), *APPROVED_PATH)
    late = _walk(db, clinician_auth, make_case(clinician_auth), *DENIED_PATH)
    late.sla_breached = True
    db.commit()

    compliance = report_service.get_sla_compliance(db, clinician_auth.session.clinic_id)
    assert compliance["period"] == "Current Month"
    assert compliance["total_completed"] == 2
    assert compliance["on_time"] == 1
    assert compliance["breached"] == 1
    assert compliance["compliance_rate"] == 50
    assert on_time.sla_breached is False


def test_weekly_trend_is_oldest_first_and_monday_aligned(db, clinician_auth, make_case):
    make_case(clinician_auth)
    now = datetime.now(timezone.utc)

    trend = report_service.get_weekly_trend(db, clinician_auth.session.clinic_id, weeks=3, now=now)
    assert len(trend) == 3
    assert all(point["week_start"].weekday() == 0 for point in trend)
    assert trend[0]["week_start"] < trend[1]["week_start"] < trend[2]["week_start"]
    assert [p["received"] for p in trend] == [0, 0, 1]


def test_user_productivity(db, clinician_auth, manager_auth, make_case):
    _walk(db, clinician_auth, make_case(clinician_auth), *APPROVED_PATH)
    make_case(clinician_auth)

    rows = report_service.get_user_productivity(db, clinician_auth.session.clinic_id)
    by_user = {r["user_id"]: r for r in rows}
    assert by_user[clinician_auth.user.id]["cases_assigned"] == 2
    assert by_user[clinician_auth.user.id]["cases_completed"] == 1
    assert by_user[manager_auth.user.id]["cases_assigned"] == 0
    assert rows[0]["user_id"] == clinician_auth.user.id


@pytest.mark.asyncio
async def test_management_reports_require_manager(client, clinician_auth, manager_auth):
    for path in ("insurer-performance", "sla-compliance", "user-productivity"):
        res = await client.get(f"{API}/reports/{path}", headers=clinician_auth.headers)
        assert res.status_code == 403
        res = await client.get(f"{API}/reports/{path}", headers=manager_auth.headers)
        assert res.status_code == 200


@pytest.mark.asyncio
async def test_dashboard_endpoint_uses_camel_case(client, clinician_auth, make_case):
    make_case(clinician_auth)
    res = await client.get(f"{API}/reports/dashboard", headers=clinician_auth.headers)
    assert res.status_code == 200
    body = res.json()
    assert body["summary"]["totalActive"] == 1
    assert body["byInsurer"][0]["insurerName"] == "Bupa"


@pytest.mark.asyncio
async def test_weekly_trend_rejects_out_of_range_weeks(client, clinician_auth):
    res = await client.get(
        f"{API}/reports/weekly-trend", params={"weeks": 0}, headers=clinician_auth.headers
    )
    assert res.status_code == 400
