"""Reports router - dashboard and management rollups."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clinicroute.core.deps import get_current_session, get_db, require_roles
from clinicroute.db.enums import ROLES_CAN_VIEW_REPORTS
from clinicroute.schemas.auth import UserSession
from clinicroute.schemas.report import (
    DashboardReport,
    InsurerPerformance,
    SlaCompliance,
    UserProductivity,
    WeeklyTrendPoint,
)
from clinicroute.services import report_service

router = APIRouter()


@router.get("/dashboard", response_model=DashboardReport)
def get_dashboard(
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return report_service.get_dashboard(db, session.clinic_id)


@router.get("/weekly-trend", response_model=list[WeeklyTrendPoint])
def get_weekly_trend(
    weeks: int = Query(4, ge=1, le=52),
    session: UserSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    return report_service.get_weekly_trend(db, session.clinic_id, weeks=weeks)


@router.get("/insurer-performance", response_model=list[InsurerPerformance])
def get_insurer_performance(
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_REPORTS)),
    db: Session = Depends(get_db),
):
    return report_service.get_insurer_performance(db, session.clinic_id)


@router.get("/sla-compliance", response_model=SlaCompliance)
def get_sla_compliance(
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_REPORTS)),
    db: Session = Depends(get_db),
):
    return report_service.get_sla_compliance(db, session.clinic_id)


@router.get("/user-productivity", response_model=list[UserProductivity])
def get_user_productivity(
    session: UserSession = Depends(require_roles(ROLES_CAN_VIEW_REPORTS)),
    db: Session = Depends(get_db),
):
    return report_service.get_user_productivity(db, session.clinic_id)
