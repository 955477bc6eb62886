"""Clinic and insurer reference-data service."""

from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from clinicroute.core.exceptions import NotFoundException
from clinicroute.db.enums import AuditAction, EntityType
from clinicroute.db.models import Clinic, Insurer
from clinicroute.schemas.auth import UserSession
from clinicroute.schemas.user import ClinicUpdate
from clinicroute.services import audit_service


def get_clinic(db: Session, clinic_id: UUID) -> Clinic:
    clinic = db.query(Clinic).filter(Clinic.id == clinic_id).first()
    if not clinic:
        raise NotFoundException("Clinic not found")
    return clinic


def update_clinic(
    db: Session,
    session: UserSession,
    data: ClinicUpdate,
    request: Request | None = None,
) -> Clinic:
    """Update the caller's own clinic settings (contact info, default SLA days)."""
    clinic = get_clinic(db, session.clinic_id)
    previous = {"name": clinic.name, "slaDefaultDays": clinic.sla_default_days}

    for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(clinic, field, value)

    audit_service.record(
        db,
        action=AuditAction.UPDATE,
        entity_type=EntityType.CLINIC,
        entity_id=clinic.id,
        description="Updated clinic settings",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        previous_value=previous,
        new_value={"name": clinic.name, "slaDefaultDays": clinic.sla_default_days},
        request=request,
    )
    db.commit()
    db.refresh(clinic)
    return clinic


def list_insurers(db: Session) -> list[Insurer]:
    return (
        db.query(Insurer)
        .filter(Insurer.is_active.is_(True))
        .order_by(Insurer.name.asc())
        .all()
    )


def get_insurer(db: Session, insurer_id: UUID) -> Insurer:
    insurer = db.query(Insurer).filter(Insurer.id == insurer_id).first()
    if not insurer:
        raise NotFoundException("Insurer not found")
    return insurer
