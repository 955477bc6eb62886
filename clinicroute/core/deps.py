"""FastAPI dependencies for database access, authentication and authorization.

Request pipeline: ``get_db`` -> ``get_current_session`` (authenticate) ->
``require_roles`` (authorize) -> pydantic body/query models (validate) ->
router handler -> service (audit inside the same transaction).
"""

from typing import Generator

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from clinicroute.core.exceptions import ForbiddenException, UnauthorizedException
from clinicroute.db.enums import Role
from clinicroute.schemas.auth import UserSession

bearer_scheme = HTTPBearer(auto_error=False)


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Database session dependency.

    Uses the session factory created by create_app and stored on app.state;
    the session is closed after the request.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def get_current_session(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> UserSession:
    """
    Authenticate the bearer token and return the caller's identity.

    This is the PRIMARY auth dependency for every non-public endpoint.

    Raises:
        UnauthorizedException 401: missing/invalid/expired/revoked token,
        unknown or deactivated user
    """
    from clinicroute.services import auth_service

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedException("Not authenticated")

    try:
        session = auth_service.verify_token(db, credentials.credentials)
    except jwt.PyJWTError:
        raise UnauthorizedException("Invalid or expired token")

    request.state.user_session = session
    return session


def require_roles(allowed_roles):
    """
    Dependency factory for role-based authorization.

    Usage:
        @router.post("/sla/check", dependencies=[Depends(require_roles([Role.ADMIN]))])
    """
    allowed = {Role(r) for r in allowed_roles}

    def dependency(session: UserSession = Depends(get_current_session)) -> UserSession:
        if session.role not in allowed:
            raise ForbiddenException(
                f"Role '{session.role.value}' not authorized for this action"
            )
        return session
    return dependency
