"""Case status transition table and per-status timestamp rules."""

from clinicroute.db.enums import CaseStatus

ALLOWED_TRANSITIONS: dict[CaseStatus, frozenset[CaseStatus]] = {
    CaseStatus.RECEIVED: frozenset({CaseStatus.SUBMITTED, CaseStatus.CANCELLED}),
    CaseStatus.SUBMITTED: frozenset({CaseStatus.AWAITING_INSURER, CaseStatus.CANCELLED}),
    CaseStatus.AWAITING_INSURER: frozenset(
        {CaseStatus.APPROVED, CaseStatus.DENIED, CaseStatus.CANCELLED}
    ),
    CaseStatus.APPROVED: frozenset({CaseStatus.TREATMENT_SCHEDULED, CaseStatus.CANCELLED}),
    # Resubmission after a denial is allowed
    CaseStatus.DENIED: frozenset({CaseStatus.CLOSED, CaseStatus.SUBMITTED}),
    CaseStatus.TREATMENT_SCHEDULED: frozenset({CaseStatus.CLOSED, CaseStatus.CANCELLED}),
    CaseStatus.CLOSED: frozenset(),
    CaseStatus.CANCELLED: frozenset(),
}

# Entering one of these statuses stamps the named Case column.
# Stamps are never cleared when a case moves backwards.
STATUS_TIMESTAMP_FIELDS: dict[CaseStatus, str] = {
    CaseStatus.SUBMITTED: "submitted_at",
    CaseStatus.APPROVED: "approved_at",
    CaseStatus.CLOSED: "completed_at",
}


def can_transition(from_status: CaseStatus | str, to_status: CaseStatus | str) -> bool:
    return CaseStatus(to_status) in ALLOWED_TRANSITIONS[CaseStatus(from_status)]


def allowed_next_statuses(from_status: CaseStatus | str) -> list[CaseStatus]:
    """Statuses reachable in one step, in declaration order."""
    allowed = ALLOWED_TRANSITIONS[CaseStatus(from_status)]
    return [s for s in CaseStatus if s in allowed]
