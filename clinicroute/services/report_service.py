"""Report service - read-only rollups over a clinic's cases.

All figures are computed in UTC. Weeks start on Monday. Rates and averages
over an empty set are 0.
"""

from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinicroute.db.enums import ACTIVE_STATUSES, CaseStatus
from clinicroute.db.models import Case, CaseStatusHistory, Insurer, User

PROCESSING_SAMPLE_SIZE = 100
SECONDS_PER_DAY = 86400


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _start_of_week(now: datetime) -> datetime:
    return _start_of_day(now) - timedelta(days=now.weekday())


def _start_of_month(now: datetime) -> datetime:
    return _start_of_day(now).replace(day=1)


def _percentage(part: int, whole: int) -> int:
    if not whole:
        return 0
    return round(part / whole * 100)


def average_processing_days(cases: list[Case]) -> float:
    """Mean created->completed time in days, 1 dp. Cases without completed_at are skipped."""
    durations = [
        (c.completed_at - c.created_at).total_seconds() / SECONDS_PER_DAY
        for c in cases
        if c.completed_at is not None
    ]
    if not durations:
        return 0.0
    return round(sum(durations) / len(durations), 1)


def _closed_cases_query(db: Session, clinic_id: UUID):
    return db.query(Case).filter(
        Case.clinic_id == clinic_id,
        Case.status == CaseStatus.CLOSED.value,
        Case.completed_at.isnot(None),
    )


# =============================================================================
# Dashboard
# =============================================================================

def get_dashboard(db: Session, clinic_id: UUID, now: datetime | None = None) -> dict:
    now = now or _utcnow()
    active_values = [s.value for s in ACTIVE_STATUSES]
    base = db.query(Case).filter(Case.clinic_id == clinic_id)

    recent_closed = (
        _closed_cases_query(db, clinic_id)
        .order_by(Case.completed_at.desc())
        .limit(PROCESSING_SAMPLE_SIZE)
        .all()
    )

    summary = {
        "total_active": base.filter(Case.status.in_(active_values)).count(),
        "total_overdue": base.filter(
            Case.status.in_(active_values), Case.sla_breached.is_(True)
        ).count(),
        "new_today": base.filter(Case.created_at >= _start_of_day(now)).count(),
        "new_this_week": base.filter(Case.created_at >= _start_of_week(now)).count(),
        "new_this_month": base.filter(Case.created_at >= _start_of_month(now)).count(),
        "avg_processing_days": average_processing_days(recent_closed),
    }

    by_status = (
        db.query(Case.status, func.count(Case.id))
        .filter(Case.clinic_id == clinic_id)
        .group_by(Case.status)
        .order_by(Case.status)
        .all()
    )

    by_insurer = (
        db.query(Insurer.id, Insurer.name, func.count(Case.id))
        .join(Case, Case.insurer_id == Insurer.id)
        .filter(Case.clinic_id == clinic_id, Case.status.in_(active_values))
        .group_by(Insurer.id, Insurer.name)
        .order_by(func.count(Case.id).desc(), Insurer.name)
        .all()
    )

    return {
        "summary": summary,
        "by_status": [{"status": status, "count": count} for status, count in by_status],
        "by_insurer": [
            {"insurer_id": insurer_id, "insurer_name": name, "count": count}
            for insurer_id, name, count in by_insurer
        ],
    }


# =============================================================================
# Trends
# =============================================================================

def get_weekly_trend(
    db: Session, clinic_id: UUID, weeks: int = 4, now: datetime | None = None
) -> list[dict]:
    """Received/completed counts per calendar week, oldest first, current week last."""
    now = now or _utcnow()
    current_week = _start_of_week(now)
    trend = []
    for offset in range(weeks - 1, -1, -1):
        week_start = current_week - timedelta(weeks=offset)
        week_end = week_start + timedelta(weeks=1)
        received = (
            db.query(func.count(Case.id))
            .filter(
                Case.clinic_id == clinic_id,
                Case.created_at >= week_start,
                Case.created_at < week_end,
            )
            .scalar()
        )
        completed = (
            db.query(func.count(Case.id))
            .filter(
                Case.clinic_id == clinic_id,
                Case.status == CaseStatus.CLOSED.value,
                Case.completed_at >= week_start,
                Case.completed_at < week_end,
            )
            .scalar()
        )
        trend.append({
            "week_start": week_start.date(),
            "received": received or 0,
            "completed": completed or 0,
        })
    return trend


# =============================================================================
# Insurer performance
# =============================================================================

def get_insurer_performance(db: Session, clinic_id: UUID) -> list[dict]:
    """
    Per-insurer outcome over the clinic's closed cases.

    A closed case counts as approved when it ever reached APPROVED, and as
    denied when it reached DENIED without a later approval.
    """
    closed = _closed_cases_query(db, clinic_id).all()
    if not closed:
        return []

    denied_ids = {
        case_id
        for (case_id,) in db.query(CaseStatusHistory.case_id)
        .filter(
            CaseStatusHistory.case_id.in_([c.id for c in closed]),
            CaseStatusHistory.to_status == CaseStatus.DENIED.value,
        )
        .distinct()
        .all()
    }

    grouped: dict[UUID, list[Case]] = {}
    for case in closed:
        grouped.setdefault(case.insurer_id, []).append(case)

    results = []
    for insurer_id, cases in grouped.items():
        approved = sum(1 for c in cases if c.approved_at is not None)
        denied = sum(1 for c in cases if c.approved_at is None and c.id in denied_ids)
        results.append({
            "insurer_id": insurer_id,
            "insurer_name": cases[0].insurer.name,
            "total_cases": len(cases),
            "avg_processing_days": average_processing_days(cases),
            "approval_rate": _percentage(approved, approved + denied),
        })

    results.sort(key=lambda r: (-r["total_cases"], r["insurer_name"]))
    return results


# =============================================================================
# SLA compliance
# =============================================================================

def get_sla_compliance(db: Session, clinic_id: UUID, now: datetime | None = None) -> dict:
    """Cases closed this month: on time vs breached."""
    now = now or _utcnow()
    completed = (
        _closed_cases_query(db, clinic_id)
        .filter(Case.completed_at >= _start_of_month(now))
        .all()
    )
    breached = sum(1 for c in completed if c.sla_breached)
    on_time = len(completed) - breached
    return {
        "period": "Current Month",
        "total_completed": len(completed),
        "on_time": on_time,
        "breached": breached,
        "compliance_rate": _percentage(on_time, len(completed)),
    }


# =============================================================================
# User productivity
# =============================================================================

def get_user_productivity(db: Session, clinic_id: UUID, now: datetime | None = None) -> list[dict]:
    """Per active user: cases assigned (created this month) and closed this month."""
    now = now or _utcnow()
    month_start = _start_of_month(now)

    users = (
        db.query(User)
        .filter(User.clinic_id == clinic_id, User.is_active.is_(True))
        .all()
    )

    assigned_counts = dict(
        db.query(Case.assigned_to_id, func.count(Case.id))
        .filter(Case.clinic_id == clinic_id, Case.created_at >= month_start)
        .group_by(Case.assigned_to_id)
        .all()
    )
    completed_counts = dict(
        db.query(Case.assigned_to_id, func.count(Case.id))
        .filter(
            Case.clinic_id == clinic_id,
            Case.status == CaseStatus.CLOSED.value,
            Case.completed_at >= month_start,
        )
        .group_by(Case.assigned_to_id)
        .all()
    )

    results = [
        {
            "user_id": user.id,
            "name": user.full_name,
            "role": user.role,
            "cases_assigned": assigned_counts.get(user.id, 0),
            "cases_completed": completed_counts.get(user.id, 0),
        }
        for user in users
    ]
    results.sort(key=lambda r: (-r["cases_completed"], -r["cases_assigned"], r["name"]))
    return results
