"""Pydantic schemas for audit log endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from clinicroute.db.enums import AuditAction
from clinicroute.schemas.case import UserSummary
from clinicroute.schemas.common import CamelModel


class AuditLogRead(CamelModel):
    id: UUID
    action: AuditAction
    entity_type: str
    entity_id: UUID
    description: str
    previous_value: dict[str, Any] | None
    new_value: dict[str, Any] | None
    user_id: UUID | None
    user: UserSummary | None = None
    case_id: UUID | None
    ip_address: str | None
    user_agent: str | None
    created_at: datetime


class AuditExport(CamelModel):
    """GDPR subject-access export for one entity."""
    entity_type: str
    entity_id: UUID
    exported_at: datetime
    total: int
    entries: list[AuditLogRead]
