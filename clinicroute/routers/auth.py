"""Auth router - login, registration, token refresh and current user."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from clinicroute.core.deps import get_current_session, get_db
from clinicroute.schemas.auth import (
    LoginRequest,
    MeResponse,
    RegisterRequest,
    TokenResponse,
    UserSession,
)
from clinicroute.services import auth_service

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
def login(
    body: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Exchange email + password for a bearer token."""
    return auth_service.login(db, body.email, body.password, request=request)


@router.post("/register", response_model=TokenResponse, status_code=201)
def register(body: RegisterRequest, db: Session = Depends(get_db)):
    return auth_service.register(db, body)


@router.post("/refresh", response_model=TokenResponse)
def refresh(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    """Reissue a token with a fresh expiry for the current user."""
    return auth_service.refresh(db, session)


@router.get("/me", response_model=MeResponse)
def me(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return auth_service.get_me(db, session)
