"""Documents router - case file metadata, download links and soft delete."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from clinicroute.core.config import settings
from clinicroute.core.deps import get_current_session, get_db
from clinicroute.schemas.auth import UserSession
from clinicroute.schemas.common import MessageResponse
from clinicroute.schemas.document import (
    DocumentCreate,
    DocumentDownloadResponse,
    DocumentRead,
    DocumentTypeOption,
    DocumentUploadResponse,
)
from clinicroute.services import document_service

router = APIRouter()


@router.post("", response_model=DocumentUploadResponse, status_code=201)
def create_document(
    body: DocumentCreate,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """
    Register a document on a case.

    Returns the document plus a short-lived URL the client PUTs the file to.
    """
    document, upload_url = document_service.create_document(db, session, body, request=request)
    return {
        "document": document,
        "upload_url": upload_url,
        "expires_in": settings.DOCUMENT_URL_EXPIRES_SECONDS,
    }


@router.get("/types", response_model=list[DocumentTypeOption])
def list_document_types(session: UserSession = Depends(get_current_session)):
    return document_service.list_document_types()


@router.get("/case/{case_id}", response_model=list[DocumentRead])
def list_case_documents(
    case_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return document_service.list_case_documents(db, session.clinic_id, case_id)


@router.get("/{document_id}", response_model=DocumentRead)
def get_document(
    document_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return document_service.get_document(db, session.clinic_id, document_id)


@router.get("/{document_id}/download", response_model=DocumentDownloadResponse)
def download_document(
    document_id: UUID,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    url = document_service.get_download_url(db, session, document_id, request=request)
    return {"url": url, "expires_in": settings.DOCUMENT_URL_EXPIRES_SECONDS}


@router.delete("/{document_id}", response_model=MessageResponse)
def delete_document(
    document_id: UUID,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Soft delete: the document disappears from every endpoint but the row is kept."""
    document_service.soft_delete_document(db, session, document_id, request=request)
    return {"message": "Document deleted"}
