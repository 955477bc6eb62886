"""Enums shared by models, schemas and services.

Values are stored as plain strings in the database.
"""

from enum import Enum


class Role(str, Enum):
    """
    Clinic user roles.

    - ADMIN: clinic administration (users, SLA checks, exports)
    - MANAGER: case assignment, reports, audit review
    - CLINICIAN: day-to-day case work
    """
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CLINICIAN = "CLINICIAN"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


class CaseStatus(str, Enum):
    RECEIVED = "RECEIVED"
    SUBMITTED = "SUBMITTED"
    AWAITING_INSURER = "AWAITING_INSURER"
    APPROVED = "APPROVED"
    DENIED = "DENIED"
    TREATMENT_SCHEDULED = "TREATMENT_SCHEDULED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class CasePriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class CaseSource(str, Enum):
    """How the referral reached the clinic."""
    PORTAL = "PORTAL"
    EMAIL = "EMAIL"
    API = "API"
    PHONE = "PHONE"


class DocumentType(str, Enum):
    REFERRAL_LETTER = "REFERRAL_LETTER"
    CLINICAL_NOTES = "CLINICAL_NOTES"
    INSURANCE_FORM = "INSURANCE_FORM"
    AUTHORIZATION = "AUTHORIZATION"
    LAB_RESULTS = "LAB_RESULTS"
    IMAGING = "IMAGING"
    CONSENT_FORM = "CONSENT_FORM"
    CORRESPONDENCE = "CORRESPONDENCE"
    OTHER = "OTHER"


class SubscriptionTier(str, Enum):
    STARTER = "STARTER"
    GROWTH = "GROWTH"
    ENTERPRISE = "ENTERPRISE"


class AuditAction(str, Enum):
    """Kinds of audit log entries."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VIEW = "VIEW"
    STATUS_CHANGE = "STATUS_CHANGE"
    ASSIGNMENT_CHANGE = "ASSIGNMENT_CHANGE"
    NOTE_ADDED = "NOTE_ADDED"
    DOCUMENT_UPLOAD = "DOCUMENT_UPLOAD"
    DOCUMENT_DOWNLOAD = "DOCUMENT_DOWNLOAD"
    DOCUMENT_DELETE = "DOCUMENT_DELETE"
    LOGIN = "LOGIN"
    EXPORT = "EXPORT"


class EntityType(str, Enum):
    CASE = "Case"
    DOCUMENT = "Document"
    USER = "User"
    CLINIC = "Clinic"


# =============================================================================
# Role sets (use these instead of inline lists in routers)
# =============================================================================

ROLES_CAN_ASSIGN = {Role.ADMIN, Role.MANAGER}
ROLES_CAN_VIEW_REPORTS = {Role.ADMIN, Role.MANAGER}
ROLES_CAN_VIEW_AUDIT = {Role.ADMIN, Role.MANAGER}
ROLES_CAN_EXPORT = {Role.ADMIN}
ROLES_CAN_MANAGE_USERS = {Role.ADMIN}


# =============================================================================
# Case status groups
# =============================================================================

TERMINAL_STATUSES = {CaseStatus.CLOSED, CaseStatus.CANCELLED}
ACTIVE_STATUSES = [s for s in CaseStatus if s not in TERMINAL_STATUSES]
