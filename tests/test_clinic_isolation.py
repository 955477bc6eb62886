"""Cross-clinic access must look exactly like a missing record."""

import pytest

from clinicroute.core.exceptions import NotFoundException
from clinicroute.schemas.document import DocumentCreate
from clinicroute.services import case_service, document_service

API = "/api/v1"


@pytest.fixture
def foreign_case(clinician_auth, make_case):
    return make_case(clinician_auth)


@pytest.fixture
def foreign_document(db, clinician_auth, foreign_case):
    document, _ = document_service.create_document(
        db,
        clinician_auth.session,
        DocumentCreate(
            case_id=foreign_case.id,
            filename="referral.pdf",
            mime_type="application/pdf",
            size_bytes=2048,
        ),
    )
    return document


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "method,path",
    [
        ("GET", "/cases/{case}"),
        ("PUT", "/cases/{case}"),
        ("GET", "/cases/{case}/history"),
        ("GET", "/cases/{case}/notes"),
        ("POST", "/cases/{case}/notes"),
        ("PATCH", "/cases/{case}/status"),
        ("GET", "/documents/case/{case}"),
        ("GET", "/documents/{document}"),
        ("GET", "/documents/{document}/download"),
        ("DELETE", "/documents/{document}"),
        ("GET", "/audit/case/{case}"),
    ],
)
async def test_other_clinic_gets_404(
    client, outsider_auth, foreign_case, foreign_document, method, path
):
    url = API + path.format(case=foreign_case.id, document=foreign_document.id)
    body = None
    if method == "PUT":
        body = {"priority": "LOW"}
    elif method == "PATCH":
        body = {"status": "SUBMITTED"}
    elif method == "POST":
        body = {"content": "Sneaky"}

    res = await client.request(method, url, json=body, headers=outsider_auth.headers)
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_missing_and_foreign_case_are_indistinguishable(
    client, outsider_auth, foreign_case
):
    foreign = await client.get(f"{API}/cases/{foreign_case.id}", headers=outsider_auth.headers)
    missing = await client.get(
        f"{API}/cases/00000000-0000-0000-0000-000000000000", headers=outsider_auth.headers
    )
    assert foreign.status_code == missing.status_code == 404
    assert foreign.json() == missing.json()


@pytest.mark.asyncio
async def test_reference_lookup_is_clinic_scoped(client, outsider_auth, foreign_case):
    res = await client.get(
        f"{API}/cases/reference/{foreign_case.reference_number}", headers=outsider_auth.headers
    )
    assert res.status_code == 404


@pytest.mark.asyncio
async def test_case_list_only_shows_own_clinic(client, outsider_auth, clinician_auth, foreign_case):
    res = await client.get(f"{API}/cases", headers=outsider_auth.headers)
    assert res.json()["items"] == []
    assert res.json()["pagination"]["total"] == 0

    res = await client.get(f"{API}/cases", headers=clinician_auth.headers)
    assert res.json()["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_user_in_other_clinic_is_404(client, outsider_auth, clinician):
    res = await client.get(f"{API}/users/{clinician.id}", headers=outsider_auth.headers)
    assert res.status_code == 404

    res = await client.get(f"{API}/audit/user/{clinician.id}", headers=outsider_auth.headers)
    assert res.status_code == 404


def test_service_lookup_raises_not_found(db, outsider_auth, foreign_case):
    with pytest.raises(NotFoundException):
        case_service.get_case(db, outsider_auth.session.clinic_id, foreign_case.id)
