"""Case service - referral lifecycle, status workflow, SLA tracking and notes.

Every lookup is scoped by clinic_id. A case outside the caller's clinic is
reported exactly like a missing one (NotFound).
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import UUID

from fastapi import Request
from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinicroute.core.config import settings
from clinicroute.core.exceptions import (
    ConflictException,
    InvalidAssigneeException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from clinicroute.core.status_rules import STATUS_TIMESTAMP_FIELDS, can_transition
from clinicroute.db.enums import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    AuditAction,
    CasePriority,
    CaseStatus,
    EntityType,
)
from clinicroute.db.models import Case, CaseNote, CaseStatusHistory, Clinic, Insurer, User
from clinicroute.schemas.auth import UserSession
from clinicroute.schemas.case import CaseCreate, CaseUpdate
from clinicroute.services import audit_service
from clinicroute.utils.normalization import escape_like
from clinicroute.utils.pagination import PaginationParams, paginate_query

logger = logging.getLogger(__name__)

REFERENCE_PREFIX = "REF"
REFERENCE_SEQUENCE_DIGITS = 4
CREATE_ATTEMPTS = 3

SORTABLE_COLUMNS = {
    "createdAt": Case.created_at,
    "updatedAt": Case.updated_at,
    "slaDeadline": Case.sla_deadline,
    "priority": Case.priority,
    "status": Case.status,
    "referenceNumber": Case.reference_number,
    "patientLastName": Case.patient_last_name,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Reference numbers
# =============================================================================

def generate_reference_number(db: Session, now: datetime | None = None) -> str:
    """
    Next reference number for the current year: REF-<year>-<NNNN>.

    Reads the lexically greatest existing number for the year and adds one.
    Two concurrent creates can compute the same value; the unique constraint
    rejects the loser (see create_case).
    """
    year = (now or _utcnow()).year
    prefix = f"{REFERENCE_PREFIX}-{year}-"

    latest = (
        db.query(Case.reference_number)
        .filter(Case.reference_number.like(f"{prefix}%"))
        .order_by(Case.reference_number.desc())
        .limit(1)
        .scalar()
    )

    sequence = 1
    if latest:
        sequence = int(latest.split("-")[2]) + 1

    return f"{prefix}{sequence:0{REFERENCE_SEQUENCE_DIGITS}d}"


def _is_reference_conflict(error: IntegrityError) -> bool:
    constraint_name = getattr(getattr(error.orig, "diag", None), "constraint_name", None)
    if constraint_name == "uq_cases_reference_number":
        return True
    message = str(error.orig) if error.orig else str(error)
    return "uq_cases_reference_number" in message or "cases.reference_number" in message


def compute_sla_deadline(clinic: Clinic | None, now: datetime | None = None) -> datetime:
    """Clinic's default SLA days (fallback DEFAULT_SLA_DAYS) from now."""
    days = (clinic.sla_default_days if clinic else None) or settings.DEFAULT_SLA_DAYS
    return (now or _utcnow()) + timedelta(days=days)


# =============================================================================
# Lookups
# =============================================================================

def get_case(db: Session, clinic_id: UUID, case_id: UUID) -> Case:
    """
    Fetch a case inside the caller's clinic.

    Raises:
        NotFoundException: absent or owned by another clinic
    """
    case = (
        db.query(Case)
        .filter(Case.id == case_id, Case.clinic_id == clinic_id)
        .first()
    )
    if not case:
        raise NotFoundException("Case not found")
    return case


def get_case_by_reference(db: Session, clinic_id: UUID, reference_number: str) -> Case:
    case = (
        db.query(Case)
        .filter(
            Case.reference_number == reference_number.strip().upper(),
            Case.clinic_id == clinic_id,
        )
        .first()
    )
    if not case:
        raise NotFoundException("Case not found")
    return case


def view_case(
    db: Session, session: UserSession, case_id: UUID, request: Request | None = None
) -> Case:
    """Case detail for display; records a VIEW audit entry."""
    case = get_case(db, session.clinic_id, case_id)
    audit_service.record(
        db,
        action=AuditAction.VIEW,
        entity_type=EntityType.CASE,
        entity_id=case.id,
        description=f"Viewed case {case.reference_number}",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        case_id=case.id,
        request=request,
    )
    db.commit()
    return case


def _validate_assignee(db: Session, clinic_id: UUID, user_id: UUID) -> User:
    """Assignee must exist, be active and belong to the case's clinic."""
    assignee = db.query(User).filter(User.id == user_id).first()
    if not assignee or not assignee.is_active or assignee.clinic_id != clinic_id:
        raise InvalidAssigneeException()
    return assignee


def _require_insurer(db: Session, insurer_id: UUID) -> Insurer:
    insurer = db.query(Insurer).filter(Insurer.id == insurer_id).first()
    if not insurer:
        raise ValidationException("Insurer not found")
    return insurer


# =============================================================================
# Create / Update
# =============================================================================

def create_case(
    db: Session,
    session: UserSession,
    data: CaseCreate,
    request: Request | None = None,
) -> Case:
    """
    Create a case in RECEIVED with a fresh reference number and SLA deadline.

    A reference-number collision (concurrent create) is retried with a
    recomputed number; after CREATE_ATTEMPTS collisions ConflictException
    is raised.
    """
    _require_insurer(db, data.insurer_id)
    assignee_id = data.assigned_to_id or session.user_id
    if data.assigned_to_id:
        _validate_assignee(db, session.clinic_id, data.assigned_to_id)

    clinic = db.query(Clinic).filter(Clinic.id == session.clinic_id).first()

    case = None
    for attempt in range(CREATE_ATTEMPTS):
        now = _utcnow()
        case = Case(
            reference_number=generate_reference_number(db, now),
            clinic_id=session.clinic_id,
            patient_first_name=data.patient_first_name,
            patient_last_name=data.patient_last_name,
            patient_dob=data.patient_dob,
            patient_nhs_number=data.patient_nhs_number,
            patient_email=data.patient_email,
            patient_phone=data.patient_phone,
            referral_type=data.referral_type,
            referring_clinician=data.referring_clinician,
            clinical_notes=data.clinical_notes,
            insurer_id=data.insurer_id,
            policy_number=data.policy_number,
            priority=data.priority.value,
            source=data.source.value,
            status=CaseStatus.RECEIVED.value,
            sla_deadline=compute_sla_deadline(clinic, now),
            sla_breached=False,
            created_by_id=session.user_id,
            assigned_to_id=assignee_id,
        )
        db.add(case)
        try:
            db.flush()
            break
        except IntegrityError as exc:
            db.rollback()
            if not _is_reference_conflict(exc):
                raise
            logger.warning(
                "Reference number collision on %s (attempt %d)",
                case.reference_number, attempt + 1,
            )
            if attempt == CREATE_ATTEMPTS - 1:
                raise ConflictException(
                    "Could not allocate a unique reference number, please retry"
                )

    db.add(
        CaseStatusHistory(
            case_id=case.id,
            from_status=None,
            to_status=CaseStatus.RECEIVED.value,
            reason="Case created",
            changed_by_id=session.user_id,
        )
    )
    audit_service.record(
        db,
        action=AuditAction.CREATE,
        entity_type=EntityType.CASE,
        entity_id=case.id,
        description=f"Created case {case.reference_number}",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        case_id=case.id,
        new_value={
            "referenceNumber": case.reference_number,
            "status": case.status,
            "priority": case.priority,
        },
        request=request,
    )
    db.commit()
    db.refresh(case)
    logger.info("Created case %s", case.reference_number, extra={"case_id": str(case.id)})
    return case


def _audited_snapshot(case: Case) -> dict:
    return {
        "patientFirstName": case.patient_first_name,
        "patientLastName": case.patient_last_name,
        "priority": case.priority,
        "assignedToId": str(case.assigned_to_id) if case.assigned_to_id else None,
    }


def update_case(
    db: Session,
    session: UserSession,
    case_id: UUID,
    data: CaseUpdate,
    request: Request | None = None,
) -> Case:
    """
    Partial update of descriptive fields.

    Only fields present (and non-null) in the payload are applied. Status and
    SLA columns are never touched here.
    """
    case = get_case(db, session.clinic_id, case_id)
    previous = _audited_snapshot(case)

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if "insurer_id" in changes:
        _require_insurer(db, changes["insurer_id"])
    if "assigned_to_id" in changes:
        _validate_assignee(db, case.clinic_id, changes["assigned_to_id"])
    if "priority" in changes:
        changes["priority"] = CasePriority(changes["priority"]).value

    for field, value in changes.items():
        setattr(case, field, value)

    audit_service.record(
        db,
        action=AuditAction.UPDATE,
        entity_type=EntityType.CASE,
        entity_id=case.id,
        description=f"Updated case {case.reference_number}",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        case_id=case.id,
        previous_value=previous,
        new_value=_audited_snapshot(case),
        request=request,
    )
    db.commit()
    db.refresh(case)
    return case


# =============================================================================
# Status workflow
# =============================================================================

def change_status(
    db: Session,
    session: UserSession,
    case_id: UUID,
    new_status: CaseStatus,
    reason: str | None = None,
    request: Request | None = None,
) -> Case:
    """
    Move a case along the transition table.

    Raises:
        InvalidTransitionException: the edge is not in ALLOWED_TRANSITIONS;
            nothing is written in that case
    """
    # TODO: compare-and-swap on a version column to close the lost-update
    # window between two simultaneous status changes on one case
    case = get_case(db, session.clinic_id, case_id)
    old_status = CaseStatus(case.status)
    new_status = CaseStatus(new_status)

    if not can_transition(old_status, new_status):
        raise InvalidTransitionException(old_status.value, new_status.value)

    now = _utcnow()
    case.status = new_status.value
    timestamp_field = STATUS_TIMESTAMP_FIELDS.get(new_status)
    if timestamp_field:
        setattr(case, timestamp_field, now)

    db.add(
        CaseStatusHistory(
            case_id=case.id,
            from_status=old_status.value,
            to_status=new_status.value,
            reason=reason,
            changed_by_id=session.user_id,
        )
    )
    audit_service.record(
        db,
        action=AuditAction.STATUS_CHANGE,
        entity_type=EntityType.CASE,
        entity_id=case.id,
        description=f"Changed status from {old_status.value} to {new_status.value}",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        case_id=case.id,
        previous_value={"status": old_status.value},
        new_value={"status": new_status.value, "reason": reason},
        request=request,
    )
    db.commit()
    db.refresh(case)
    return case


def get_status_history(db: Session, clinic_id: UUID, case_id: UUID) -> list[CaseStatusHistory]:
    """Transitions for a case, oldest first."""
    get_case(db, clinic_id, case_id)
    return (
        db.query(CaseStatusHistory)
        .filter(CaseStatusHistory.case_id == case_id)
        .order_by(CaseStatusHistory.created_at.asc())
        .all()
    )


# =============================================================================
# Assignment
# =============================================================================

def assign_case(
    db: Session,
    session: UserSession,
    case_id: UUID,
    assignee_id: UUID,
    request: Request | None = None,
) -> Case:
    case = get_case(db, session.clinic_id, case_id)
    assignee = _validate_assignee(db, case.clinic_id, assignee_id)

    previous_assignee_id = case.assigned_to_id
    case.assigned_to_id = assignee.id

    audit_service.record(
        db,
        action=AuditAction.ASSIGNMENT_CHANGE,
        entity_type=EntityType.CASE,
        entity_id=case.id,
        description=f"Assigned case to {assignee.full_name}",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        case_id=case.id,
        previous_value={
            "assignedToId": str(previous_assignee_id) if previous_assignee_id else None
        },
        new_value={"assignedToId": str(assignee.id)},
        request=request,
    )
    db.commit()
    db.refresh(case)
    return case


# =============================================================================
# Notes
# =============================================================================

def add_note(
    db: Session,
    session: UserSession,
    case_id: UUID,
    content: str,
    is_internal: bool = True,
    request: Request | None = None,
) -> CaseNote:
    case = get_case(db, session.clinic_id, case_id)
    note = CaseNote(
        case_id=case.id,
        author_id=session.user_id,
        content=content,
        is_internal=is_internal,
    )
    db.add(note)
    audit_service.record(
        db,
        action=AuditAction.NOTE_ADDED,
        entity_type=EntityType.CASE,
        entity_id=case.id,
        description=f"Added {'internal' if is_internal else 'external'} note",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        case_id=case.id,
        request=request,
    )
    db.commit()
    db.refresh(note)
    return note


def list_notes(db: Session, clinic_id: UUID, case_id: UUID) -> list[CaseNote]:
    """Notes for a case, most recent first."""
    get_case(db, clinic_id, case_id)
    return (
        db.query(CaseNote)
        .filter(CaseNote.case_id == case_id)
        .order_by(CaseNote.created_at.desc())
        .all()
    )


# =============================================================================
# Listing
# =============================================================================

def list_cases(
    db: Session,
    clinic_id: UUID,
    pagination: PaginationParams,
    status: CaseStatus | None = None,
    priority: CasePriority | None = None,
    assigned_to_id: UUID | None = None,
    insurer_id: UUID | None = None,
    sla_breached: bool | None = None,
    search: str | None = None,
    sort_by: str = "updatedAt",
    sort_order: str = "desc",
) -> tuple[list[Case], int]:
    """
    Filtered, paginated case list for one clinic.

    Search matches reference number, patient names and NHS number,
    case-insensitively. Unknown sort columns fall back to updatedAt.
    """
    query = db.query(Case).filter(Case.clinic_id == clinic_id)

    if status:
        query = query.filter(Case.status == CaseStatus(status).value)
    if priority:
        query = query.filter(Case.priority == CasePriority(priority).value)
    if assigned_to_id:
        query = query.filter(Case.assigned_to_id == assigned_to_id)
    if insurer_id:
        query = query.filter(Case.insurer_id == insurer_id)
    if sla_breached is not None:
        query = query.filter(Case.sla_breached.is_(sla_breached))

    if search and search.strip():
        pattern = f"%{escape_like(search.strip().lower())}%"
        query = query.filter(
            or_(
                func.lower(Case.reference_number).like(pattern, escape="\\"),
                func.lower(Case.patient_first_name).like(pattern, escape="\\"),
                func.lower(Case.patient_last_name).like(pattern, escape="\\"),
                func.lower(Case.patient_nhs_number).like(pattern, escape="\\"),
            )
        )

    column = SORTABLE_COLUMNS.get(sort_by, Case.updated_at)
    ordering = column.asc() if sort_order.lower() == "asc" else column.desc()
    query = query.order_by(ordering, Case.id)

    return paginate_query(query, pagination)


# =============================================================================
# SLA
# =============================================================================

def check_sla_breaches(db: Session, now: datetime | None = None) -> int:
    """
    Flag every overdue, non-terminal case that is not yet flagged.

    Runs across all clinics (scheduler/admin trigger). Idempotent: a second
    run without new overdue cases flags nothing. The flag is never cleared.
    """
    now = now or _utcnow()
    result = db.execute(
        update(Case)
        .where(
            Case.sla_deadline < now,
            Case.sla_breached.is_(False),
            Case.status.notin_([s.value for s in TERMINAL_STATUSES]),
        )
        .values(sla_breached=True)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    breached = result.rowcount or 0
    logger.info("SLA check flagged %d case(s)", breached)
    return breached


def list_overdue_cases(db: Session, clinic_id: UUID) -> list[Case]:
    """Breached, non-terminal cases, nearest deadline first."""
    return (
        db.query(Case)
        .filter(
            Case.clinic_id == clinic_id,
            Case.sla_breached.is_(True),
            Case.status.notin_([s.value for s in TERMINAL_STATUSES]),
        )
        .order_by(Case.sla_deadline.asc())
        .all()
    )


# =============================================================================
# Stats
# =============================================================================

def get_case_stats(db: Session, clinic_id: UUID, now: datetime | None = None) -> dict:
    """Counts for the case list header: totals, overdue, today, by status/priority."""
    now = now or _utcnow()
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    active_values = [s.value for s in ACTIVE_STATUSES]

    base = db.query(Case).filter(Case.clinic_id == clinic_id)
    total = base.count()
    active = base.filter(Case.status.in_(active_values)).count()
    overdue = base.filter(
        Case.status.in_(active_values), Case.sla_breached.is_(True)
    ).count()
    today = base.filter(Case.created_at >= start_of_day).count()

    status_rows = (
        db.query(Case.status, func.count(Case.id))
        .filter(Case.clinic_id == clinic_id)
        .group_by(Case.status)
        .all()
    )
    priority_rows = (
        db.query(Case.priority, func.count(Case.id))
        .filter(Case.clinic_id == clinic_id)
        .group_by(Case.priority)
        .all()
    )

    return {
        "total_cases": total,
        "active_cases": active,
        "overdue_cases": overdue,
        "today_cases": today,
        "by_status": {status: count for status, count in status_rows},
        "by_priority": {priority: count for priority, count in priority_rows},
    }
