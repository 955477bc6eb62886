"""Auth service - password login, registration and bearer-token verification."""

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clinicroute.core import security
from clinicroute.core.exceptions import (
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)
from clinicroute.db.enums import AuditAction, EntityType, Role
from clinicroute.db.models import Clinic, User
from clinicroute.schemas.auth import RegisterRequest, UserSession
from clinicroute.services import audit_service
from clinicroute.utils.normalization import normalize_email, normalize_name

logger = logging.getLogger(__name__)


def _session_for(user: User) -> UserSession:
    return UserSession(
        user_id=user.id,
        clinic_id=user.clinic_id,
        role=Role(user.role),
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
    )


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


# =============================================================================
# Identity interface
# =============================================================================

def authenticate(db: Session, email: str, password: str) -> User:
    """
    Check credentials.

    Raises:
        UnauthorizedException: unknown email, wrong or missing password,
            or deactivated account
    """
    user = get_user_by_email(db, email)
    if not user or not security.verify_password(password, user.password_hash):
        raise UnauthorizedException("Invalid credentials")
    if not user.is_active:
        raise UnauthorizedException("Account is deactivated")
    return user


def verify_token(db: Session, token: str) -> UserSession:
    """
    Map a bearer token to the caller's identity.

    Accepts our own HS256 session tokens and, when configured, RS256 tokens
    from the external identity provider (matched by external_id, then email).

    Raises:
        jwt.PyJWTError: signature/expiry/claims failure
        UnauthorizedException: unknown, deactivated or revoked user
    """
    if security.is_external_token(token):
        claims = security.decode_external_token(token)
        user = _user_for_external_claims(db, claims)
    else:
        claims = security.decode_access_token(token)
        try:
            user_id = UUID(claims["sub"])
        except (KeyError, ValueError):
            raise UnauthorizedException("Invalid token subject")
        user = db.query(User).filter(User.id == user_id).first()
        if user and user.token_version != claims.get("token_version"):
            raise UnauthorizedException("Session revoked")

    if not user:
        raise UnauthorizedException("User not found")
    if not user.is_active:
        raise UnauthorizedException("Account is deactivated")
    return _session_for(user)


def _user_for_external_claims(db: Session, claims: dict) -> User | None:
    subject = claims.get("sub")
    user = None
    if subject:
        user = db.query(User).filter(User.external_id == subject).first()
    if not user and claims.get("email"):
        user = get_user_by_email(db, claims["email"])
        if user and subject and not user.external_id:
            # First sign-in through the identity provider links the account
            user.external_id = subject
            db.commit()
    return user


# =============================================================================
# Token responses
# =============================================================================

def build_token_response(db: Session, user: User) -> dict:
    clinic = db.query(Clinic).filter(Clinic.id == user.clinic_id).first()
    return {
        "access_token": security.create_access_token(
            user_id=user.id,
            clinic_id=user.clinic_id,
            role=user.role,
            email=user.email,
            token_version=user.token_version,
        ),
        "token_type": "Bearer",
        "expires_in": security.access_token_ttl_seconds(),
        "user": {
            "id": user.id,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "role": user.role,
            "clinic_id": user.clinic_id,
            "clinic_name": clinic.name if clinic else "",
        },
    }


def login(db: Session, email: str, password: str, request: Request | None = None) -> dict:
    user = authenticate(db, email, password)
    user.last_login_at = datetime.now(timezone.utc)

    audit_service.record(
        db,
        action=AuditAction.LOGIN,
        entity_type=EntityType.USER,
        entity_id=user.id,
        description="User logged in",
        user_id=user.id,
        clinic_id=user.clinic_id,
        request=request,
    )
    db.commit()
    logger.info("User logged in", extra={"user_id": str(user.id), "clinic_id": str(user.clinic_id)})
    return build_token_response(db, user)


def register(db: Session, data: RegisterRequest) -> dict:
    """
    Self-registration into an existing clinic.

    Raises:
        ConflictException: email already registered
        NotFoundException: clinic does not exist
    """
    email = normalize_email(data.email)
    if get_user_by_email(db, email):
        raise ConflictException("Email already registered")

    clinic = db.query(Clinic).filter(Clinic.id == data.clinic_id, Clinic.is_active.is_(True)).first()
    if not clinic:
        raise NotFoundException("Clinic not found")

    user = User(
        clinic_id=clinic.id,
        email=email,
        password_hash=security.hash_password(data.password),
        first_name=normalize_name(data.first_name),
        last_name=normalize_name(data.last_name),
        role=(data.role or Role.CLINICIAN).value,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictException("Email already registered")
    db.refresh(user)
    return build_token_response(db, user)


def refresh(db: Session, session: UserSession) -> dict:
    user = db.query(User).filter(User.id == session.user_id).first()
    if not user or not user.is_active:
        raise UnauthorizedException("User not found")
    return build_token_response(db, user)


def get_me(db: Session, session: UserSession) -> dict:
    user = db.query(User).filter(User.id == session.user_id).first()
    if not user:
        raise UnauthorizedException("User not found")
    return {
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "role": user.role,
        "clinic_id": user.clinic_id,
        "clinic_name": user.clinic.name,
        "is_active": user.is_active,
        "last_login_at": user.last_login_at,
    }
