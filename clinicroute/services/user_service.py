"""User service - clinic user management."""

import logging
from uuid import UUID

from fastapi import Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinicroute.core import security
from clinicroute.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from clinicroute.db.enums import AuditAction, EntityType, Role
from clinicroute.db.models import User
from clinicroute.schemas.auth import UserSession
from clinicroute.schemas.user import UserCreate, UserUpdate
from clinicroute.services import audit_service
from clinicroute.utils.normalization import normalize_email, normalize_name

logger = logging.getLogger(__name__)


def list_users(db: Session, clinic_id: UUID, include_inactive: bool = False) -> list[User]:
    query = db.query(User).filter(User.clinic_id == clinic_id)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.last_name.asc(), User.first_name.asc()).all()


def get_user(db: Session, clinic_id: UUID, user_id: UUID) -> User:
    """
    Raises:
        NotFoundException: absent or in another clinic
    """
    user = db.query(User).filter(User.id == user_id, User.clinic_id == clinic_id).first()
    if not user:
        raise NotFoundException("User not found")
    return user


def create_user(
    db: Session,
    session: UserSession,
    data: UserCreate,
    request: Request | None = None,
) -> User:
    email = normalize_email(data.email)
    if db.query(User).filter(User.email == email).first():
        raise ConflictException("Email already registered")

    user = User(
        clinic_id=session.clinic_id,
        email=email,
        password_hash=security.hash_password(data.password),
        first_name=normalize_name(data.first_name),
        last_name=normalize_name(data.last_name),
        role=data.role.value,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictException("Email already registered")

    audit_service.record(
        db,
        action=AuditAction.CREATE,
        entity_type=EntityType.USER,
        entity_id=user.id,
        description=f"Created user {user.full_name}",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        new_value={"role": user.role},
        request=request,
    )
    db.commit()
    db.refresh(user)
    return user


def update_user(
    db: Session,
    session: UserSession,
    user_id: UUID,
    data: UserUpdate,
    request: Request | None = None,
) -> User:
    """
    Admins may edit anyone in their clinic. Everyone else may edit only
    their own name, and never role or active flag.
    """
    is_admin = session.role == Role.ADMIN
    if not is_admin and user_id != session.user_id:
        raise ForbiddenException("You can only update your own profile")

    user = get_user(db, session.clinic_id, user_id)
    changes = data.model_dump(exclude_unset=True, exclude_none=True)

    if not is_admin and ({"role", "is_active"} & changes.keys()):
        raise ForbiddenException("Only administrators can change role or status")
    if user.id == session.user_id and changes.get("is_active") is False:
        raise ValidationException("You cannot deactivate your own account")

    previous = {"role": user.role, "isActive": user.is_active}
    for field in ("first_name", "last_name"):
        if field in changes:
            setattr(user, field, normalize_name(changes[field]))
    if "role" in changes:
        user.role = Role(changes["role"]).value
    if "is_active" in changes:
        if user.is_active and not changes["is_active"]:
            user.token_version += 1
        user.is_active = changes["is_active"]

    audit_service.record(
        db,
        action=AuditAction.UPDATE,
        entity_type=EntityType.USER,
        entity_id=user.id,
        description=f"Updated user {user.full_name}",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        previous_value=previous,
        new_value={"role": user.role, "isActive": user.is_active},
        request=request,
    )
    db.commit()
    db.refresh(user)
    return user


def deactivate_user(
    db: Session,
    session: UserSession,
    user_id: UUID,
    request: Request | None = None,
) -> User:
    """Deactivate and revoke outstanding tokens. Users cannot deactivate themselves."""
    if user_id == session.user_id:
        raise ValidationException("You cannot deactivate your own account")

    user = get_user(db, session.clinic_id, user_id)
    if user.is_active:
        user.is_active = False
        user.token_version += 1

    audit_service.record(
        db,
        action=AuditAction.DELETE,
        entity_type=EntityType.USER,
        entity_id=user.id,
        description=f"Deactivated user {user.full_name}",
        user_id=session.user_id,
        clinic_id=session.clinic_id,
        previous_value={"isActive": True},
        new_value={"isActive": False},
        request=request,
    )
    db.commit()
    db.refresh(user)
    logger.info("Deactivated user", extra={"user_id": str(user.id), "clinic_id": str(user.clinic_id)})
    return user


def change_password(
    db: Session,
    session: UserSession,
    current_password: str,
    new_password: str,
) -> None:
    user = get_user(db, session.clinic_id, session.user_id)
    if not security.verify_password(current_password, user.password_hash):
        raise UnauthorizedException("Current password is incorrect")
    user.password_hash = security.hash_password(new_password)
    db.commit()
