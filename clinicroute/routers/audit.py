"""Audit router - compliance log search and GDPR export."""

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from clinicroute.core.deps import get_current_session, get_db, require_roles
from clinicroute.core.exceptions import NotFoundException
from clinicroute.db.enums import (
    ROLES_CAN_EXPORT,
    ROLES_CAN_VIEW_AUDIT,
    AuditAction,
    EntityType,
)
from clinicroute.schemas.audit import AuditExport, AuditLogRead
from clinicroute.schemas.auth import UserSession
from clinicroute.schemas.common import Page
from clinicroute.services import audit_service, case_service, document_service, user_service
from clinicroute.utils.pagination import AUDIT_DEFAULT_LIMIT, MAX_LIMIT, PaginationParams, page_meta

router = APIRouter()


def get_audit_pagination(
    page: int = Query(1, ge=1),
    limit: int = Query(AUDIT_DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
) -> PaginationParams:
    return PaginationParams(page=page, limit=limit)


def _require_entity_in_clinic(
    db: Session, clinic_id: UUID, entity_type: EntityType, entity_id: UUID
) -> None:
    """NotFound unless the entity belongs to the caller's clinic."""
    if entity_type == EntityType.CASE:
        case_service.get_case(db, clinic_id, entity_id)
    elif entity_type == EntityType.USER:
        user_service.get_user(db, clinic_id, entity_id)
    elif entity_type == EntityType.DOCUMENT:
        # Deleted documents keep their trail
        document_service.get_document(db, clinic_id, entity_id, include_deleted=True)
    elif entity_type == EntityType.CLINIC and entity_id != clinic_id:
        raise NotFoundException("Clinic not found")


@router.get("", response_model=Page[AuditLogRead])
def query_audit_logs(
    entity_type: EntityType | None = Query(None, alias="entityType"),
    entity_id: UUID | None = Query(None, alias="entityId"),
    user_id: UUID | None = Query(None, alias="userId"),
    case_id: UUID | None = Query(None, alias="caseId"),
    action: AuditAction | None = None,
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    pagination: PaginationParams = Depends(get_audit_pagination),
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_AUDIT)),
    db: Session = Depends(get_db),
):
    """Search the clinic's audit log (newest first)."""
    items, total = audit_service.query_logs(
        db,
        session.clinic_id,
        pagination,
        entity_type=entity_type.value if entity_type else None,
        entity_id=entity_id,
        user_id=user_id,
        case_id=case_id,
        action=action,
        start_date=start_date,
        end_date=end_date,
    )
    return {"items": items, "pagination": page_meta(total, pagination)}


@router.get("/my-activity", response_model=Page[AuditLogRead])
def my_activity(
    pagination: PaginationParams = Depends(get_audit_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    items, total = audit_service.query_logs(
        db, session.clinic_id, pagination, user_id=session.user_id
    )
    return {"items": items, "pagination": page_meta(total, pagination)}


@router.get("/case/{case_id}", response_model=list[AuditLogRead])
def case_audit_trail(
    case_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    case_service.get_case(db, session.clinic_id, case_id)
    return audit_service.get_case_trail(db, session.clinic_id, case_id)


@router.get("/user/{user_id}", response_model=list[AuditLogRead])
def user_audit_trail(
    user_id: UUID,
    limit: int = Query(100, ge=1, le=500),
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_AUDIT)),
    db: Session = Depends(get_db),
):
    user_service.get_user(db, session.clinic_id, user_id)
    return audit_service.get_user_activity(db, session.clinic_id, user_id, limit=limit)


@router.get("/export/{entity_type}/{entity_id}", response_model=AuditExport)
def export_entity_audit(
    entity_type: EntityType,
    entity_id: UUID,
    request: Request,
    session: UserSession = Depends(require_roles(ROLES_CAN_EXPORT)),
    db: Session = Depends(get_db),
):
    """Full audit trail for one entity, oldest first (GDPR subject access request)."""
    _require_entity_in_clinic(db, session.clinic_id, entity_type, entity_id)
    entries = audit_service.export_entity_trail(db, session.clinic_id, entity_type.value, entity_id)
    audit_service.record(
        db,
        action=AuditAction.EXPORT,
        entity_type=entity_type,
        entity_id=entity_id,
        description=f"Exported audit trail for {entity_type.value} {entity_id}",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        new_value={"entries": len(entries)},
        request=request,
    )
    db.commit()
    return {
        "entity_type": entity_type.value,
        "entity_id": entity_id,
        "exported_at": datetime.now(timezone.utc),
        "total": len(entries),
        "entries": entries,
    }
