"""Document service - case file metadata and object-storage URLs.

File bytes never pass through the API: registering a document returns a
presigned upload URL, and downloads return a presigned GET URL.
"""

import logging
import re
import uuid
from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from fastapi import Request
from sqlalchemy.orm import Session

from clinicroute.core.config import settings
from clinicroute.core.exceptions import NotFoundException, ValidationException
from clinicroute.db.enums import AuditAction, DocumentType, EntityType
from clinicroute.db.models import Case, Document
from clinicroute.schemas.auth import UserSession
from clinicroute.schemas.document import DocumentCreate
from clinicroute.services import audit_service, case_service

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/gif",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

DOCUMENT_TYPE_LABELS = {
    DocumentType.REFERRAL_LETTER: "Referral Letter",
    DocumentType.CLINICAL_NOTES: "Clinical Notes",
    DocumentType.INSURANCE_FORM: "Insurance Form",
    DocumentType.AUTHORIZATION: "Authorization",
    DocumentType.LAB_RESULTS: "Lab Results",
    DocumentType.IMAGING: "Imaging",
    DocumentType.CONSENT_FORM: "Consent Form",
    DocumentType.CORRESPONDENCE: "Correspondence",
    DocumentType.OTHER: "Other",
}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


# =============================================================================
# Storage Backend
# =============================================================================

def _get_s3_client():
    """Get boto3 S3 client (credentials from the standard AWS chain)."""
    return boto3.client("s3", region_name=settings.S3_REGION)


def _presign(operation: str, storage_key: str, extra: dict | None = None) -> str:
    if settings.STORAGE_BACKEND == "s3":
        params = {"Bucket": settings.S3_BUCKET_NAME, "Key": storage_key}
        params.update(extra or {})
        try:
            return _get_s3_client().generate_presigned_url(
                operation,
                Params=params,
                ExpiresIn=settings.DOCUMENT_URL_EXPIRES_SECONDS,
            )
        except (BotoCoreError, ClientError):
            logger.exception("Failed to presign %s for %s", operation, storage_key)
            raise
    # Local: plain URL under the dev file server
    return f"{settings.LOCAL_STORAGE_URL.rstrip('/')}/{storage_key}"


def generate_upload_url(storage_key: str, mime_type: str) -> str:
    return _presign("put_object", storage_key, {"ContentType": mime_type})


def generate_download_url(storage_key: str) -> str:
    return _presign("get_object", storage_key)


# =============================================================================
# Validation helpers
# =============================================================================

def sanitize_filename(filename: str) -> str:
    """Drop any path components and replace characters unsafe in object keys."""
    base = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", base).strip("._")
    return cleaned or "file"


def validate_file(mime_type: str, size_bytes: int) -> None:
    """
    Check MIME allowlist and size limit.

    Raises:
        ValidationException: disallowed type or oversized file
    """
    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationException(f"File type '{mime_type}' not allowed")
    if size_bytes > settings.MAX_DOCUMENT_SIZE_BYTES:
        max_mb = settings.MAX_DOCUMENT_SIZE_BYTES / (1024 * 1024)
        raise ValidationException(f"File size exceeds {max_mb:.0f} MB limit")


def build_storage_key(clinic_id: uuid.UUID, case_id: uuid.UUID, filename: str) -> str:
    return f"{clinic_id}/{case_id}/{uuid.uuid4()}-{filename}"


# =============================================================================
# Operations
# =============================================================================

def create_document(
    db: Session,
    session: UserSession,
    data: DocumentCreate,
    request: Request | None = None,
) -> tuple[Document, str]:
    """
    Register a document on a case and return it with a presigned upload URL.
    """
    case = case_service.get_case(db, session.clinic_id, data.case_id)
    validate_file(data.mime_type, data.size_bytes)

    safe_name = sanitize_filename(data.filename)
    storage_key = build_storage_key(case.clinic_id, case.id, safe_name)

    document = Document(
        case_id=case.id,
        filename=safe_name,
        original_name=data.filename,
        mime_type=data.mime_type,
        size_bytes=data.size_bytes,
        document_type=data.document_type.value,
        storage_bucket=settings.S3_BUCKET_NAME,
        storage_key=storage_key,
        uploaded_by_id=session.user_id,
    )
    db.add(document)
    db.flush()

    audit_service.record(
        db,
        action=AuditAction.DOCUMENT_UPLOAD,
        entity_type=EntityType.DOCUMENT,
        entity_id=document.id,
        description=f"Uploaded {data.document_type.value} document {safe_name}",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        case_id=case.id,
        new_value={
            "filename": safe_name,
            "mimeType": data.mime_type,
            "sizeBytes": data.size_bytes,
        },
        request=request,
    )
    db.commit()
    db.refresh(document)
    return document, generate_upload_url(storage_key, data.mime_type)


def get_document(
    db: Session,
    clinic_id: uuid.UUID,
    document_id: uuid.UUID,
    include_deleted: bool = False,
) -> Document:
    """
    Fetch a document in the caller's clinic.

    Soft-deleted documents are NotFound here, exactly like missing ones,
    unless include_deleted is set (compliance export).
    """
    query = (
        db.query(Document)
        .join(Case, Case.id == Document.case_id)
        .filter(Document.id == document_id, Case.clinic_id == clinic_id)
    )
    if not include_deleted:
        query = query.filter(Document.deleted_at.is_(None))
    document = query.first()
    if not document:
        raise NotFoundException("Document not found")
    return document


def list_case_documents(db: Session, clinic_id: uuid.UUID, case_id: uuid.UUID) -> list[Document]:
    """Live documents on a case, newest first."""
    case_service.get_case(db, clinic_id, case_id)
    return (
        db.query(Document)
        .filter(Document.case_id == case_id, Document.deleted_at.is_(None))
        .order_by(Document.created_at.desc())
        .all()
    )


def get_download_url(
    db: Session,
    session: UserSession,
    document_id: uuid.UUID,
    request: Request | None = None,
) -> str:
    """Presigned download URL; records DOCUMENT_DOWNLOAD."""
    document = get_document(db, session.clinic_id, document_id)
    url = generate_download_url(document.storage_key)

    audit_service.record(
        db,
        action=AuditAction.DOCUMENT_DOWNLOAD,
        entity_type=EntityType.DOCUMENT,
        entity_id=document.id,
        description=f"Downloaded document {document.filename}",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        case_id=document.case_id,
        request=request,
    )
    db.commit()
    return url


def soft_delete_document(
    db: Session,
    session: UserSession,
    document_id: uuid.UUID,
    request: Request | None = None,
) -> Document:
    """Set deleted_at; the row and stored object are kept."""
    document = get_document(db, session.clinic_id, document_id)
    document.deleted_at = datetime.now(timezone.utc)

    audit_service.record(
        db,
        action=AuditAction.DOCUMENT_DELETE,
        entity_type=EntityType.DOCUMENT,
        entity_id=document.id,
        description=f"Deleted document {document.filename}",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        case_id=document.case_id,
        previous_value={"filename": document.filename},
        request=request,
    )
    db.commit()
    return document


def list_document_types() -> list[dict]:
    return [
        {"value": doc_type.value, "label": DOCUMENT_TYPE_LABELS[doc_type]}
        for doc_type in DocumentType
    ]
