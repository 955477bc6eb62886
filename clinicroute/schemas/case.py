"""Pydantic schemas for cases, notes and status history."""

from datetime import date, datetime
from uuid import UUID

from pydantic import EmailStr, Field, computed_field, field_validator

from clinicroute.core import status_rules
from clinicroute.db.enums import CasePriority, CaseSource, CaseStatus
from clinicroute.schemas.common import CamelModel
from clinicroute.utils.normalization import normalize_name, normalize_nhs_number


class CaseCreate(CamelModel):
    """Request schema for creating a case."""

    # Patient (required)
    patient_first_name: str = Field(..., min_length=1, max_length=100)
    patient_last_name: str = Field(..., min_length=1, max_length=100)
    patient_dob: date

    # Patient (optional)
    patient_nhs_number: str | None = Field(None, max_length=20)
    patient_email: EmailStr | None = None
    patient_phone: str | None = Field(None, max_length=50)

    # Referral
    referral_type: str = Field(..., min_length=1, max_length=100)
    referring_clinician: str = Field(..., min_length=1, max_length=200)
    clinical_notes: str | None = None

    # Insurer
    insurer_id: UUID
    policy_number: str | None = Field(None, max_length=100)

    # Workflow
    priority: CasePriority = CasePriority.MEDIUM
    assigned_to_id: UUID | None = None
    source: CaseSource = CaseSource.PORTAL

    @field_validator("patient_first_name", "patient_last_name")
    @classmethod
    def clean_name(cls, v: str) -> str:
        v = normalize_name(v)
        if not v:
            raise ValueError("Name must not be blank")
        return v

    @field_validator("patient_nhs_number")
    @classmethod
    def clean_nhs_number(cls, v: str | None) -> str | None:
        if v is None or v.strip() == "":
            return None
        return normalize_nhs_number(v)  # Raises ValueError on invalid

    @field_validator("patient_dob")
    @classmethod
    def dob_not_in_future(cls, v: date) -> date:
        if v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v


class CaseUpdate(CamelModel):
    """Request schema for partial case updates. Status and SLA are not editable here."""

    patient_first_name: str | None = Field(None, min_length=1, max_length=100)
    patient_last_name: str | None = Field(None, min_length=1, max_length=100)
    patient_dob: date | None = None
    patient_nhs_number: str | None = Field(None, max_length=20)
    patient_email: EmailStr | None = None
    patient_phone: str | None = Field(None, max_length=50)
    referral_type: str | None = Field(None, min_length=1, max_length=100)
    referring_clinician: str | None = Field(None, min_length=1, max_length=200)
    clinical_notes: str | None = None
    insurer_id: UUID | None = None
    policy_number: str | None = Field(None, max_length=100)
    authorisation_code: str | None = Field(None, max_length=100)
    priority: CasePriority | None = None
    assigned_to_id: UUID | None = None

    @field_validator("patient_first_name", "patient_last_name")
    @classmethod
    def clean_name(cls, v: str | None) -> str | None:
        return normalize_name(v) if v is not None else None

    @field_validator("patient_nhs_number")
    @classmethod
    def clean_nhs_number(cls, v: str | None) -> str | None:
        if v is None or v.strip() == "":
            return None
        return normalize_nhs_number(v)


class CaseStatusChange(CamelModel):
    status: CaseStatus
    reason: str | None = Field(None, max_length=2000)


class CaseAssign(CamelModel):
    assigned_to_id: UUID


class UserSummary(CamelModel):
    id: UUID
    email: str
    first_name: str
    last_name: str


class InsurerSummary(CamelModel):
    id: UUID
    name: str
    code: str


class CaseRead(CamelModel):
    """Case detail/list payload."""
    id: UUID
    reference_number: str
    clinic_id: UUID

    patient_first_name: str
    patient_last_name: str
    patient_dob: date
    patient_nhs_number: str | None
    patient_email: str | None
    patient_phone: str | None

    referral_type: str
    referring_clinician: str
    clinical_notes: str | None

    insurer_id: UUID
    insurer: InsurerSummary | None = None
    policy_number: str | None
    authorisation_code: str | None

    status: CaseStatus
    priority: CasePriority
    source: CaseSource
    sla_deadline: datetime
    sla_breached: bool

    created_by_id: UUID
    assigned_to_id: UUID | None
    assigned_to: UserSummary | None = None

    submitted_at: datetime | None
    approved_at: datetime | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    @computed_field(alias="allowedNextStatuses")
    @property
    def allowed_next_statuses(self) -> list[CaseStatus]:
        """Statuses the case can move to next; empty once terminal."""
        return status_rules.allowed_next_statuses(self.status)


class CaseStats(CamelModel):
    total_cases: int
    active_cases: int
    overdue_cases: int
    today_cases: int
    by_status: dict[str, int]
    by_priority: dict[str, int]


class SlaCheckResult(CamelModel):
    breached_count: int


class CaseStatusHistoryRead(CamelModel):
    id: UUID
    from_status: CaseStatus | None
    to_status: CaseStatus
    reason: str | None
    changed_by_id: UUID | None
    created_at: datetime


# =============================================================================
# Notes
# =============================================================================

class CaseNoteCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=5000)
    is_internal: bool = True


class CaseNoteRead(CamelModel):
    id: UUID
    case_id: UUID
    content: str
    is_internal: bool
    author_id: UUID
    author: UserSummary | None = None
    created_at: datetime
