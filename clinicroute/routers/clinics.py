"""Clinic settings and insurer reference-data endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from clinicroute.core.deps import get_current_session, get_db, require_roles
from clinicroute.db.enums import Role
from clinicroute.schemas.auth import UserSession
from clinicroute.schemas.user import ClinicRead, ClinicUpdate, InsurerRead
from clinicroute.services import clinic_service

router = APIRouter()


@router.get("/clinics/current", response_model=ClinicRead)
def get_current_clinic(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return clinic_service.get_clinic(db, session.clinic_id)


@router.put("/clinics/current", response_model=ClinicRead)
def update_current_clinic(
    body: ClinicUpdate,
    request: Request,
    session: UserSession = Depends(require_roles([Role.ADMIN])),
    db: Session = Depends(get_db),
):
    return clinic_service.update_clinic(db, session, body, request=request)


@router.get("/insurers", response_model=list[InsurerRead])
def list_insurers(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return clinic_service.list_insurers(db)


@router.get("/insurers/{insurer_id}", response_model=InsurerRead)
def get_insurer(
    insurer_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return clinic_service.get_insurer(db, insurer_id)
