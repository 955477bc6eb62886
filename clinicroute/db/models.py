"""SQLAlchemy ORM models for tenants, users, cases, documents and audit."""

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    JSON, Boolean, Date, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, Uuid
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clinicroute.db.base import Base
from clinicroute.db.enums import (
    CasePriority, CaseSource, CaseStatus, DocumentType, Role, SubscriptionTier
)
from clinicroute.db.types import utcnow


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# Tenant & Identity Models
# =============================================================================

class Clinic(Base):
    """
    A tenant clinic.

    Users, cases and (through cases) notes, documents and status history
    belong to exactly one clinic and must be scoped by clinic_id in queries.
    """
    __tablename__ = "clinics"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    sla_default_days: Mapped[int | None] = mapped_column(Integer, nullable=True, default=5)
    subscription_tier: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SubscriptionTier.STARTER.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    users: Mapped[list["User"]] = relationship(back_populates="clinic")


class User(Base):
    """
    A clinic user.

    Email is stored lowercased and unique across the system. password_hash is
    empty for users who only sign in through the external identity provider.
    """
    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_clinic", "clinic_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    clinic_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    external_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.CLINICIAN.value)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    token_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    clinic: Mapped["Clinic"] = relationship(back_populates="users")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Insurer(Base):
    """Insurer reference data, shared across clinics."""
    __tablename__ = "insurers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    portal_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    avg_response_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)


# =============================================================================
# Case Models
# =============================================================================

class Case(Base):
    """
    A patient referral tracked through insurer authorisation.

    reference_number is globally unique; generation races surface as an
    IntegrityError on uq_cases_reference_number.
    """
    __tablename__ = "cases"
    __table_args__ = (
        UniqueConstraint("reference_number", name="uq_cases_reference_number"),
        Index("idx_cases_clinic_status", "clinic_id", "status"),
        Index("idx_cases_clinic_updated", "clinic_id", "updated_at"),
        Index("idx_cases_sla", "sla_deadline", "sla_breached"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reference_number: Mapped[str] = mapped_column(String(20), nullable=False)
    clinic_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clinics.id", ondelete="CASCADE"), nullable=False
    )

    # Patient
    patient_first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    patient_last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    patient_dob: Mapped[date] = mapped_column(Date, nullable=False)
    patient_nhs_number: Mapped[str | None] = mapped_column(String(20), nullable=True)
    patient_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    patient_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Referral
    referral_type: Mapped[str] = mapped_column(String(100), nullable=False)
    referring_clinician: Mapped[str] = mapped_column(String(200), nullable=False)
    clinical_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Insurer
    insurer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("insurers.id"), nullable=False
    )
    policy_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    authorisation_code: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Workflow
    status: Mapped[str] = mapped_column(String(30), nullable=False, default=CaseStatus.RECEIVED.value)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default=CasePriority.MEDIUM.value)
    source: Mapped[str] = mapped_column(String(10), nullable=False, default=CaseSource.PORTAL.value)
    sla_deadline: Mapped[datetime] = mapped_column(nullable=False)
    sla_breached: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    assigned_to_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # Status timestamps (set when entering SUBMITTED/APPROVED/CLOSED)
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)

    insurer: Mapped["Insurer"] = relationship(lazy="joined")
    created_by: Mapped["User"] = relationship(foreign_keys=[created_by_id])
    assigned_to: Mapped[Optional["User"]] = relationship(foreign_keys=[assigned_to_id])
    status_history: Mapped[list["CaseStatusHistory"]] = relationship(
        back_populates="case",
        cascade="all, delete-orphan",
        order_by="CaseStatusHistory.created_at",
    )
    notes: Mapped[list["CaseNote"]] = relationship(
        back_populates="case", cascade="all, delete-orphan"
    )
    documents: Mapped[list["Document"]] = relationship(
        back_populates="case", cascade="all, delete-orphan"
    )


class CaseStatusHistory(Base):
    """Append-only record of every status transition, including creation."""
    __tablename__ = "case_status_history"
    __table_args__ = (
        Index("idx_status_history_case", "case_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False
    )
    from_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    case: Mapped["Case"] = relationship(back_populates="status_history")
    changed_by: Mapped[Optional["User"]] = relationship()


class CaseNote(Base):
    """Free-text note on a case. Notes are never edited or deleted."""
    __tablename__ = "case_notes"
    __table_args__ = (
        Index("idx_case_notes_case", "case_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_internal: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    case: Mapped["Case"] = relationship(back_populates="notes")
    author: Mapped["User"] = relationship(lazy="joined")


class Document(Base):
    """
    Metadata for a file held in object storage.

    Deletion sets deleted_at; rows are never removed.
    """
    __tablename__ = "documents"
    __table_args__ = (
        Index("idx_documents_case", "case_id", "deleted_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    document_type: Mapped[str] = mapped_column(
        String(30), nullable=False, default=DocumentType.OTHER.value
    )
    storage_bucket: Mapped[str] = mapped_column(String(255), nullable=False)
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False)
    uploaded_by_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    case: Mapped["Case"] = relationship(back_populates="documents")
    uploaded_by: Mapped["User"] = relationship(lazy="joined")


# =============================================================================
# Audit
# =============================================================================

class AuditLog(Base):
    """
    Append-only compliance log.

    Never updated or deleted. clinic_id is the actor's clinic and scopes
    every audit query.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_clinic_created", "clinic_id", "created_at"),
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_case", "case_id"),
        Index("idx_audit_user", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    clinic_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("clinics.id", ondelete="CASCADE"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(30), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    previous_value: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    new_value: Mapped[dict | None] = mapped_column(JSONType, nullable=True)

    user_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    case_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="SET NULL"), nullable=True
    )

    # Request metadata
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)  # IPv6 max length
    user_agent: Mapped[str | None] = mapped_column(String(500), nullable=True)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)

    user: Mapped[Optional["User"]] = relationship(lazy="joined")
