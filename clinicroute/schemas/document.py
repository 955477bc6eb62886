"""Pydantic schemas for case documents."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from clinicroute.db.enums import DocumentType
from clinicroute.schemas.case import UserSummary
from clinicroute.schemas.common import CamelModel


class DocumentCreate(CamelModel):
    """Metadata for a file the client will upload to object storage."""
    case_id: UUID
    filename: str = Field(..., min_length=1, max_length=255)
    mime_type: str = Field(..., min_length=1, max_length=100)
    size_bytes: int = Field(..., ge=1)
    document_type: DocumentType = DocumentType.OTHER


class DocumentRead(CamelModel):
    id: UUID
    case_id: UUID
    filename: str
    original_name: str
    mime_type: str
    size_bytes: int
    document_type: DocumentType
    uploaded_by_id: UUID
    uploaded_by: UserSummary | None = None
    created_at: datetime


class DocumentUploadResponse(CamelModel):
    document: DocumentRead
    upload_url: str
    expires_in: int


class DocumentDownloadResponse(CamelModel):
    url: str
    expires_in: int


class DocumentTypeOption(CamelModel):
    value: DocumentType
    label: str
