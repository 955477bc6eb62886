"""Case notes."""

from datetime import timedelta

import pytest

from clinicroute.db.models import AuditLog, CaseNote
from clinicroute.services import case_service

API = "/api/v1"


def test_notes_are_returned_most_recent_first(db, clinician_auth, make_case):
    case = make_case(clinician_auth)
    first = case_service.add_note(db, clinician_auth.session, case.id, "Called insurer")
    second = case_service.add_note(db, clinician_auth.session, case.id, "Awaiting callback")

    # Same-clock writes can tie; make the order explicit
    first.created_at = second.created_at - timedelta(minutes=5)
    db.commit()

    notes = case_service.list_notes(db, clinician_auth.session.clinic_id, case.id)
    assert [n.content for n in notes] == ["Awaiting callback", "Called insurer"]


@pytest.mark.asyncio
async def test_add_note_via_api(client, db, clinician_auth, make_case):
    case = make_case(clinician_auth)

    res = await client.post(
        f"{API}/cases/{case.id}/notes",
        json={"content": "Patient prefers morning appointments", "isInternal": False},
        headers=clinician_auth.headers,
    )
    assert res.status_code == 201
    note = res.json()
    assert note["isInternal"] is False
    assert note["authorId"] == str(clinician_auth.user.id)
    assert note["author"]["firstName"] == "Sophie"

    res = await client.get(f"{API}/cases/{case.id}/notes", headers=clinician_auth.headers)
    assert [n["id"] for n in res.json()] == [note["id"]]

    assert db.query(AuditLog).filter(
        AuditLog.action == "NOTE_ADDED", AuditLog.case_id == case.id
    ).count() == 1


@pytest.mark.asyncio
async def test_notes_default_to_internal(client, db, clinician_auth, make_case):
    case = make_case(clinician_auth)
    res = await client.post(
        f"{API}/cases/{case.id}/notes",
        json={"content": "Internal only"},
        headers=clinician_auth.headers,
    )
    assert res.json()["isInternal"] is True
    assert db.query(CaseNote).one().is_internal is True


@pytest.mark.asyncio
async def test_empty_or_oversized_note_is_rejected(client, clinician_auth, make_case):
    case = make_case(clinician_auth)
    for content in ("", "x" * 5001):
        res = await client.post(
            f"{API}/cases/{case.id}/notes",
            json={"content": content},
            headers=clinician_auth.headers,
        )
        assert res.status_code == 400
