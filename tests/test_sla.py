"""SLA deadline, breach flagging and the overdue list."""

from datetime import datetime, timedelta, timezone

import pytest

from clinicroute.db.enums import CaseStatus
from clinicroute.services import case_service

API = "/api/v1"


def _overdue(db, case, days=1):
    case.sla_deadline = datetime.now(timezone.utc) - timedelta(days=days)
    db.commit()
    return case


def test_deadline_uses_clinic_default_days(db, clinic, clinician_auth, make_case):
    clinic.sla_default_days = 10
    db.commit()
    before = datetime.now(timezone.utc)

    case = make_case(clinician_auth)

    delta = case.sla_deadline - before
    assert timedelta(days=10) - timedelta(minutes=1) < delta < timedelta(days=10, minutes=1)


def test_deadline_falls_back_when_clinic_has_no_default():
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert case_service.compute_sla_deadline(None, now) == now + timedelta(days=5)


def test_check_flags_overdue_cases_once(db, clinician_auth, make_case):
    overdue = _overdue(db, make_case(clinician_auth))
    on_time = make_case(clinician_auth)

    assert case_service.check_sla_breaches(db) == 1
    assert case_service.check_sla_breaches(db) == 0

    db.expire_all()
    assert overdue.sla_breached is True
    assert on_time.sla_breached is False


def test_check_skips_terminal_cases(db, clinician_auth, make_case):
    closed = _overdue(db, make_case(clinician_auth))
    closed.status = CaseStatus.CLOSED.value
    cancelled = _overdue(db, make_case(clinician_auth))
    cancelled.status = CaseStatus.CANCELLED.value
    db.commit()

    assert case_service.check_sla_breaches(db) == 0


def test_breach_flag_survives_later_operations(db, clinician_auth, manager_auth, make_case):
    case = _overdue(db, make_case(clinician_auth))
    case_service.check_sla_breaches(db)

    case_service.change_status(db, clinician_auth.session, case.id, CaseStatus.SUBMITTED)
    case_service.assign_case(db, manager_auth.session, case.id, manager_auth.user.id)
    case.sla_deadline = datetime.now(timezone.utc) + timedelta(days=30)
    db.commit()
    case_service.check_sla_breaches(db)

    db.expire_all()
    assert case.sla_breached is True


def test_overdue_list_is_nearest_deadline_first(db, clinician_auth, make_case):
    older = _overdue(db, make_case(clinician_auth), days=4)
    newer = _overdue(db, make_case(clinician_auth), days=1)
    make_case(clinician_auth)
    case_service.check_sla_breaches(db)

    overdue = case_service.list_overdue_cases(db, clinician_auth.session.clinic_id)
    assert [c.id for c in overdue] == [older.id, newer.id]


@pytest.mark.asyncio
async def test_sla_check_endpoint_is_admin_only(client, db, admin_auth, manager_auth, make_case):
    _overdue(db, make_case(admin_auth))

    res = await client.post(f"{API}/cases/sla/check", headers=manager_auth.headers)
    assert res.status_code == 403

    res = await client.post(f"{API}/cases/sla/check", headers=admin_auth.headers)
    assert res.status_code == 200
    assert res.json() == {"breachedCount": 1}

    res = await client.get(f"{API}/cases/overdue", headers=admin_auth.headers)
    assert len(res.json()) == 1

    res = await client.get(
        f"{API}/cases", params={"slaBreached": "true"}, headers=admin_auth.headers
    )
    assert res.json()["pagination"]["total"] == 1
