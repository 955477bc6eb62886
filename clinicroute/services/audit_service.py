"""Audit logging service - compliance record of who did what to which entity.

Security guidelines:
- NEVER log secrets (passwords, tokens)
- Snapshots hold identifiers and workflow fields, not clinical free text
- IP: Trust X-Forwarded-For only behind a configured proxy
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from clinicroute.core.config import settings
from clinicroute.core.request_context import current_request_id
from clinicroute.db.enums import AuditAction, EntityType
from clinicroute.db.models import AuditLog
from clinicroute.utils.pagination import PaginationParams, paginate_query

logger = logging.getLogger(__name__)


def get_client_ip(request: Request | None) -> str | None:
    """
    Extract client IP from request.

    Only trusts X-Forwarded-For when TRUST_PROXY_HEADERS=True (behind reverse proxy).
    """
    if not request:
        return None

    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # X-Forwarded-For: client, proxy1, proxy2 - take first
            return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return None


def get_user_agent(request: Request | None) -> str | None:
    """Extract user agent from request (truncated to 500 chars)."""
    if not request:
        return None
    ua = request.headers.get("user-agent", "")
    return ua[:500] if ua else None


def _request_id(request: Request | None) -> str | None:
    if request is not None:
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            return request_id
    return current_request_id()


def record(
    db: Session,
    *,
    action: AuditAction,
    entity_type: EntityType | str,
    entity_id: UUID,
    description: str,
    user_id: UUID | None,
    clinic_id: UUID | None,
    case_id: UUID | None = None,
    previous_value: dict[str, Any] | None = None,
    new_value: dict[str, Any] | None = None,
    request: Request | None = None,
) -> AuditLog | None:
    """
    Append an audit entry to the caller's transaction.

    The insert runs in a SAVEPOINT so a failed audit write is rolled back on
    its own; the error is logged and swallowed and the caller's operation
    carries on. Returns None when the entry could not be written.
    """
    entry = AuditLog(
        clinic_id=clinic_id,
        action=action.value,
        entity_type=entity_type.value if isinstance(entity_type, EntityType) else entity_type,
        entity_id=entity_id,
        description=description,
        previous_value=previous_value,
        new_value=new_value,
        user_id=user_id,
        case_id=case_id,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        request_id=_request_id(request),
    )
    # Caller's pending changes flush outside the savepoint
    db.flush()
    try:
        with db.begin_nested():
            db.add(entry)
            db.flush()
    except Exception:
        logger.exception(
            "Failed to write audit entry",
            extra={"action": action.value, "entity_id": str(entity_id)},
        )
        return None
    return entry


# =============================================================================
# Queries (always clinic-scoped)
# =============================================================================

def query_logs(
    db: Session,
    clinic_id: UUID,
    pagination: PaginationParams,
    entity_type: str | None = None,
    entity_id: UUID | None = None,
    user_id: UUID | None = None,
    case_id: UUID | None = None,
    action: AuditAction | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> tuple[list[AuditLog], int]:
    """Filtered, newest-first audit search for one clinic."""
    query = db.query(AuditLog).filter(AuditLog.clinic_id == clinic_id)

    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AuditLog.entity_id == entity_id)
    if user_id:
        query = query.filter(AuditLog.user_id == user_id)
    if case_id:
        query = query.filter(AuditLog.case_id == case_id)
    if action:
        query = query.filter(AuditLog.action == action.value)
    if start_date:
        query = query.filter(AuditLog.created_at >= start_date)
    if end_date:
        query = query.filter(AuditLog.created_at <= end_date)

    query = query.order_by(AuditLog.created_at.desc())
    return paginate_query(query, pagination)


def get_case_trail(db: Session, clinic_id: UUID, case_id: UUID) -> list[AuditLog]:
    """Every entry tied to a case, newest first."""
    return (
        db.query(AuditLog)
        .filter(AuditLog.clinic_id == clinic_id, AuditLog.case_id == case_id)
        .order_by(AuditLog.created_at.desc())
        .all()
    )


def get_user_activity(
    db: Session, clinic_id: UUID, user_id: UUID, limit: int = 100
) -> list[AuditLog]:
    """Most recent actions performed by one user."""
    return (
        db.query(AuditLog)
        .filter(AuditLog.clinic_id == clinic_id, AuditLog.user_id == user_id)
        .order_by(AuditLog.created_at.desc())
        .limit(limit)
        .all()
    )


def export_entity_trail(
    db: Session, clinic_id: UUID, entity_type: str, entity_id: UUID
) -> list[AuditLog]:
    """Full history for one entity, oldest first (GDPR subject access)."""
    return (
        db.query(AuditLog)
        .filter(
            AuditLog.clinic_id == clinic_id,
            AuditLog.entity_type == entity_type,
            AuditLog.entity_id == entity_id,
        )
        .order_by(AuditLog.created_at.asc())
        .all()
    )
