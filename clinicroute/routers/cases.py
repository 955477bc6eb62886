"""Cases router - API endpoints for referral case management."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from clinicroute.core.deps import get_current_session, get_db, require_roles
from clinicroute.db.enums import ROLES_CAN_ASSIGN, CasePriority, CaseStatus, Role
from clinicroute.schemas.auth import UserSession
from clinicroute.schemas.case import (
    CaseAssign,
    CaseCreate,
    CaseNoteCreate,
    CaseNoteRead,
    CaseRead,
    CaseStats,
    CaseStatusChange,
    CaseStatusHistoryRead,
    CaseUpdate,
    SlaCheckResult,
)
from clinicroute.schemas.common import Page
from clinicroute.services import case_service
from clinicroute.utils.pagination import PaginationParams, get_pagination, page_meta

router = APIRouter()


# =============================================================================
# Collection
# =============================================================================

@router.post("", response_model=CaseRead, status_code=201)
def create_case(
    body: CaseCreate,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return case_service.create_case(db, session, body, request=request)


@router.get("", response_model=Page[CaseRead])
def list_cases(
    status: CaseStatus | None = None,
    priority: CasePriority | None = None,
    assigned_to_id: UUID | None = Query(None, alias="assignedToId"),
    insurer_id: UUID | None = Query(None, alias="insurerId"),
    sla_breached: bool | None = Query(None, alias="slaBreached"),
    search: str | None = Query(None, max_length=100),
    sort_by: str = Query("updatedAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder", pattern="^(asc|desc)$"),
    pagination: PaginationParams = Depends(get_pagination),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """List cases in the caller's clinic with filters, search and sorting."""
    items, total = case_service.list_cases(
        db,
        session.clinic_id,
        pagination,
        status=status,
        priority=priority,
        assigned_to_id=assigned_to_id,
        insurer_id=insurer_id,
        sla_breached=sla_breached,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"items": items, "pagination": page_meta(total, pagination)}


@router.get("/stats", response_model=CaseStats)
def get_case_stats(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return case_service.get_case_stats(db, session.clinic_id)


@router.get("/overdue", response_model=list[CaseRead])
def list_overdue_cases(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Breached, still-open cases, nearest deadline first."""
    return case_service.list_overdue_cases(db, session.clinic_id)


@router.post("/sla/check", response_model=SlaCheckResult, status_code=200)
def check_sla_breaches(
    session: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    """Flag overdue cases as breached. Normally run by an external scheduler."""
    return {"breached_count": case_service.check_sla_breaches(db)}


@router.get("/reference/{reference_number}", response_model=CaseRead)
def get_case_by_reference(
    reference_number: str,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return case_service.get_case_by_reference(db, session.clinic_id, reference_number)


# =============================================================================
# Single case
# =============================================================================

@router.get("/{case_id}", response_model=CaseRead)
def get_case(
    case_id: UUID,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Get case by ID (audited as a view)."""
    return case_service.view_case(db, session, case_id, request=request)


@router.put("/{case_id}", response_model=CaseRead)
def update_case(
    case_id: UUID,
    body: CaseUpdate,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return case_service.update_case(db, session, case_id, body, request=request)


@router.patch("/{case_id}/status", response_model=CaseRead)
def change_status(
    case_id: UUID,
    body: CaseStatusChange,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Move the case to a new status (400 if the transition is not allowed)."""
    return case_service.change_status(
        db, session, case_id, body.status, reason=body.reason, request=request
    )


@router.get("/{case_id}/history", response_model=list[CaseStatusHistoryRead])
def get_status_history(
    case_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return case_service.get_status_history(db, session.clinic_id, case_id)


@router.patch("/{case_id}/assign", response_model=CaseRead)
def assign_case(
    case_id: UUID,
    body: CaseAssign,
    request: Request,
    session: UserSession = Depends(require_roles(ROLES_CAN_ASSIGN)),
    db: Session = Depends(get_db),
):
    return case_service.assign_case(db, session, case_id, body.assigned_to_id, request=request)


# =============================================================================
# Notes
# =============================================================================

@router.post("/{case_id}/notes", response_model=CaseNoteRead, status_code=201)
def add_note(
    case_id: UUID,
    body: CaseNoteCreate,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return case_service.add_note(
        db, session, case_id, body.content, is_internal=body.is_internal, request=request
    )


@router.get("/{case_id}/notes", response_model=list[CaseNoteRead])
def list_notes(
    case_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Notes on the case, most recent first."""
    return case_service.list_notes(db, session.clinic_id, case_id)
