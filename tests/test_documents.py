"""Document metadata, presigned URLs and soft delete."""

import boto3
import pytest

from clinicroute.core.config import settings
from clinicroute.core.exceptions import NotFoundException, ValidationException
from clinicroute.db.models import AuditLog, Document
from clinicroute.schemas.document import DocumentCreate
from clinicroute.services import document_service

API = "/api/v1"


@pytest.fixture
def case(clinician_auth, make_case):
    return make_case(clinician_auth)


def _register(db, auth, case, filename="referral.pdf", mime_type="application/pdf", size=4096):
    document, _ = document_service.create_document(
        db,
        auth.session,
        DocumentCreate(case_id=case.id, filename=filename, mime_type=mime_type, size_bytes=size),
    )
    return document


# =============================================================================
# Validation helpers
# =============================================================================

def test_sanitize_filename_strips_paths_and_unsafe_characters():
    assert document_service.sanitize_filename("../../etc/passwd") == "passwd"
    assert document_service.sanitize_filename("C:\\scans\\MRI report (1).pdf") == "MRI_report_1_.pdf"
    assert document_service.sanitize_filename("...") == "file"


def test_validate_file_rejects_disallowed_type():
    with pytest.raises(ValidationException):
        document_service.validate_file("application/x-msdownload", 100)


def test_validate_file_rejects_oversized():
    with pytest.raises(ValidationException):
        document_service.validate_file("application/pdf", settings.MAX_DOCUMENT_SIZE_BYTES + 1)


def test_storage_key_is_namespaced_by_clinic_and_case(db, clinician_auth, case):
    document = _register(db, clinician_auth, case)
    assert document.storage_key.startswith(f"{case.clinic_id}/{case.id}/")
    assert document.storage_key.endswith("-referral.pdf")


# =============================================================================
# API
# =============================================================================

@pytest.mark.asyncio
async def test_register_document_returns_upload_url(client, db, clinician_auth, case):
    res = await client.post(
        f"{API}/documents",
        json={
            "caseId": str(case.id),
            "filename": "consent form.pdf",
            "mimeType": "application/pdf",
            "sizeBytes": 1024,
            "documentType": "CONSENT_FORM",
        },
        headers=clinician_auth.headers,
    )
    assert res.status_code == 201
    body = res.json()
    assert body["document"]["filename"] == "consent_form.pdf"
    assert body["document"]["originalName"] == "consent form.pdf"
    assert body["document"]["documentType"] == "CONSENT_FORM"
    assert body["uploadUrl"].endswith("-consent_form.pdf")
    assert body["expiresIn"] == settings.DOCUMENT_URL_EXPIRES_SECONDS

    assert db.query(AuditLog).filter(AuditLog.action == "DOCUMENT_UPLOAD").count() == 1


@pytest.mark.asyncio
async def test_register_rejects_executable(client, clinician_auth, case):
    res = await client.post(
        f"{API}/documents",
        json={
            "caseId": str(case.id),
            "filename": "invoice.exe",
            "mimeType": "application/x-msdownload",
            "sizeBytes": 1024,
        },
        headers=clinician_auth.headers,
    )
    assert res.status_code == 400
    assert "not allowed" in res.json()["detail"]


@pytest.mark.asyncio
async def test_download_is_audited(client, db, clinician_auth, case):
    document = _register(db, clinician_auth, case)

    res = await client.get(
        f"{API}/documents/{document.id}/download", headers=clinician_auth.headers
    )
    assert res.status_code == 200
    assert res.json()["url"].endswith(document.storage_key)

    entry = db.query(AuditLog).filter(AuditLog.action == "DOCUMENT_DOWNLOAD").one()
    assert entry.entity_id == document.id
    assert entry.case_id == case.id


@pytest.mark.asyncio
async def test_document_types_are_listed_with_labels(client, clinician_auth):
    res = await client.get(f"{API}/documents/types", headers=clinician_auth.headers)
    assert res.status_code == 200
    types = {t["value"]: t["label"] for t in res.json()}
    assert types["REFERRAL_LETTER"] == "Referral Letter"
    assert len(types) == 9


# =============================================================================
# Soft delete: a deleted document is NotFound everywhere
# =============================================================================

@pytest.mark.asyncio
async def test_soft_deleted_document_disappears(client, db, clinician_auth, case):
    kept = _register(db, clinician_auth, case, filename="kept.pdf")
    deleted = _register(db, clinician_auth, case, filename="deleted.pdf")

    res = await client.delete(f"{API}/documents/{deleted.id}", headers=clinician_auth.headers)
    assert res.status_code == 200
    assert res.json() == {"message": "Document deleted"}

    db.expire_all()
    row = db.get(Document, deleted.id)
    assert row is not None
    assert row.deleted_at is not None

    res = await client.get(f"{API}/documents/case/{case.id}", headers=clinician_auth.headers)
    assert [d["id"] for d in res.json()] == [str(kept.id)]

    for path in (f"/documents/{deleted.id}", f"/documents/{deleted.id}/download"):
        res = await client.get(API + path, headers=clinician_auth.headers)
        assert res.status_code == 404

    res = await client.delete(f"{API}/documents/{deleted.id}", headers=clinician_auth.headers)
    assert res.status_code == 404

    assert db.query(AuditLog).filter(AuditLog.action == "DOCUMENT_DELETE").count() == 1


def test_get_document_excludes_deleted(db, clinician_auth, case):
    document = _register(db, clinician_auth, case)
    document_service.soft_delete_document(db, clinician_auth.session, document.id)

    with pytest.raises(NotFoundException):
        document_service.get_document(db, clinician_auth.session.clinic_id, document.id)


# =============================================================================
# S3 backend
# =============================================================================

def test_s3_backend_presigns_against_bucket(db, clinician_auth, case, monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "s3")
    monkeypatch.setattr(
        document_service,
        "_get_s3_client",
        lambda: boto3.client(
            "s3",
            region_name="eu-west-2",
            aws_access_key_id="testing",
            aws_secret_access_key="testing",
        ),
    )

    _, upload_url = document_service.create_document(
        db,
        clinician_auth.session,
        DocumentCreate(
            case_id=case.id, filename="scan.png", mime_type="image/png", size_bytes=10
        ),
    )
    assert settings.S3_BUCKET_NAME in upload_url
    assert "scan.png" in upload_url
    assert "Signature" in upload_url or "X-Amz-Signature" in upload_url
