"""Users router - clinic user management."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from clinicroute.core.deps import get_current_session, get_db, require_roles
from clinicroute.db.enums import ROLES_CAN_MANAGE_USERS
from clinicroute.schemas.auth import UserSession
from clinicroute.schemas.common import MessageResponse
from clinicroute.schemas.user import PasswordChange, UserCreate, UserRead, UserUpdate
from clinicroute.services import user_service

router = APIRouter()


@router.get("", response_model=list[UserRead])
def list_users(
    include_inactive: bool = Query(False, alias="includeInactive"),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Users in the caller's clinic, ordered by last name."""
    return user_service.list_users(db, session.clinic_id, include_inactive=include_inactive)


@router.post("", response_model=UserRead, status_code=201)
def create_user(
    body: UserCreate,
    request: Request,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    return user_service.create_user(db, session, body, request=request)


@router.post("/me/password", response_model=MessageResponse)
def change_password(
    body: PasswordChange,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    user_service.change_password(db, session, body.current_password, body.new_password)
    return {"message": "Password updated"}


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: UUID,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return user_service.get_user(db, session.clinic_id, user_id)


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: UUID,
    body: UserUpdate,
    request: Request,
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return user_service.update_user(db, session, user_id, body, request=request)


@router.delete("/{user_id}", response_model=UserRead)
def deactivate_user(
    user_id: UUID,
    request: Request,
    session: UserSession = Depends(require_roles(ROLES_CAN_MANAGE_USERS)),
    db: Session = Depends(get_db),
):
    """Deactivate a user (rows are never deleted) and revoke their tokens."""
    return user_service.deactivate_user(db, session, user_id, request=request)
