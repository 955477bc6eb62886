"""Pydantic schemas for report endpoints."""

from datetime import date
from uuid import UUID

from clinicroute.db.enums import CaseStatus, Role
from clinicroute.schemas.common import CamelModel


class DashboardSummary(CamelModel):
    total_active: int
    total_overdue: int
    new_today: int
    new_this_week: int
    new_this_month: int
    avg_processing_days: float


class StatusCount(CamelModel):
    status: CaseStatus
    count: int


class InsurerCount(CamelModel):
    insurer_id: UUID
    insurer_name: str
    count: int


class DashboardReport(CamelModel):
    summary: DashboardSummary
    by_status: list[StatusCount]
    by_insurer: list[InsurerCount]


class WeeklyTrendPoint(CamelModel):
    week_start: date
    received: int
    completed: int


class InsurerPerformance(CamelModel):
    insurer_id: UUID
    insurer_name: str
    total_cases: int
    avg_processing_days: float
    approval_rate: int


class SlaCompliance(CamelModel):
    period: str
    total_completed: int
    on_time: int
    breached: int
    compliance_rate: int


class UserProductivity(CamelModel):
    user_id: UUID
    name: str
    role: Role
    cases_assigned: int
    cases_completed: int
